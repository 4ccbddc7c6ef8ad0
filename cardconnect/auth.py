"""Identity provider seam.

The host application owns sign-in. The sync layer only needs the current
user's id (the sync partition key) and, for the REST transport, a bearer
token. Both are ``None`` when signed out.
"""

from __future__ import annotations

from typing import Protocol

from .config import settings


class IdentityProvider(Protocol):
    def current_user_id(self) -> str | None: ...

    def id_token(self) -> str | None: ...


class StaticIdentityProvider:
    """Identity captured once (from settings or a login flow) and held in memory."""

    def __init__(self, user_id: str | None = None, token: str | None = None):
        self._user_id = user_id or None
        self._token = token or None

    @classmethod
    def from_settings(cls) -> "StaticIdentityProvider":
        return cls(user_id=settings.user_id, token=settings.id_token)

    def current_user_id(self) -> str | None:
        return self._user_id

    def id_token(self) -> str | None:
        return self._token

    @property
    def is_logged_in(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str, token: str | None = None) -> None:
        self._user_id = user_id
        self._token = token

    def sign_out(self) -> None:
        self._user_id = None
        self._token = None
