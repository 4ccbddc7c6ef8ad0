"""CardConnect configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class CardConnectSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///cardconnect.db"
    echo_sql: bool = False
    log_level: str = "INFO"

    # Identity (Firebase Auth session captured by the host app)
    user_id: str | None = None
    id_token: str | None = None

    # Remote document store (Firestore REST)
    firebase_project_id: str = ""
    firebase_api_key: str | None = None
    firestore_database: str = "(default)"
    firestore_base_url: str = "https://firestore.googleapis.com/v1"
    firestore_page_size: int = 300
    http_timeout_seconds: float = 30.0

    # AI extraction / enrichment (Gemini REST)
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_enrichment_search: bool = True

    # Image payloads. Firestore caps a field at ~1MB and base64 inflates by
    # ~33%, so the raw bound stays at 700KB.
    image_max_bytes: int = 700_000
    image_start_quality: int = 50
    image_quality_step: int = 10
    image_min_quality: int = 10
    image_resize_quality: int = 50
    local_image_quality: int = 80

    # 1 = strictly sequential pushes
    sync_push_concurrency: int = 1

    model_config = {"env_prefix": "CARDCONNECT_", "env_file": ".env", "extra": "ignore"}

    @property
    def firestore_configured(self) -> bool:
        return bool(self.firebase_project_id)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)


settings = CardConnectSettings()
