"""Firestore REST document store.

Only the handful of calls the card sync needs: list a collection, overwrite
a document, delete a document. Values travel as Firestore typed values
(``{"stringValue": ...}``) and are converted to and from plain Python here.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import httpx

from ..config import settings
from ..errors import TransportFailure

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Minimal document-store contract used by the remote card repository."""

    async def list_documents(self, collection_path: str) -> list[tuple[str, dict[str, Any]]]: ...

    async def set_document(self, collection_path: str, doc_id: str, data: dict[str, Any]) -> None: ...

    async def delete_document(self, collection_path: str, doc_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Typed value codec
# ---------------------------------------------------------------------------


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(raw: str) -> datetime | str:
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        # Nanosecond precision or other shapes; leave for schema validation.
        return raw


def encode_value(value: Any) -> dict[str, Any]:
    """Python value -> Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": _format_timestamp(value)}
    if isinstance(value, (bytes, bytearray)):
        return {"bytesValue": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Unsupported Firestore value type: {type(value).__name__}")


def decode_value(typed: Any) -> Any:
    """Firestore typed value -> Python value (lenient; unknown shapes become None)."""
    if not isinstance(typed, dict) or not typed:
        return None
    kind, raw = next(iter(typed.items()))
    if kind == "nullValue":
        return None
    if kind == "booleanValue":
        return bool(raw)
    if kind == "integerValue":
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None
    if kind == "doubleValue":
        return float(raw) if raw is not None else None
    if kind in {"stringValue", "referenceValue"}:
        return raw
    if kind == "timestampValue":
        return _parse_timestamp(raw) if isinstance(raw, str) else None
    if kind == "bytesValue":
        return raw
    if kind == "mapValue":
        return decode_fields((raw or {}).get("fields", {}))
    if kind == "arrayValue":
        return [decode_value(v) for v in (raw or {}).get("values", [])]
    return None


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(val) for key, val in data.items()}


def decode_fields(fields: Any) -> dict[str, Any]:
    if not isinstance(fields, dict):
        return {}
    return {key: decode_value(val) for key, val in fields.items()}


def document_id_from_name(name: str) -> str:
    return name.rsplit("/", 1)[-1]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class FirestoreDocumentStore:
    """Async Firestore REST client.

    Usage:
        async with FirestoreDocumentStore(project_id, token_getter=identity.id_token) as fs:
            docs = await fs.list_documents("users/abc/cards")
    """

    def __init__(
        self,
        project_id: str | None = None,
        *,
        database: str | None = None,
        api_key: str | None = None,
        token_getter: Callable[[], str | None] | None = None,
        base_url: str | None = None,
        page_size: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.project_id = project_id or settings.firebase_project_id
        self.database = database or settings.firestore_database
        self.api_key = api_key if api_key is not None else settings.firebase_api_key
        self.page_size = page_size or settings.firestore_page_size
        self._token_getter = token_getter
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.firestore_base_url,
            headers={"Content-Type": "application/json"},
            timeout=settings.http_timeout_seconds,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    @property
    def documents_root(self) -> str:
        return f"/projects/{self.project_id}/databases/{self.database}/documents"

    def _headers(self) -> dict[str, str]:
        token = self._token_getter() if self._token_getter else None
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
        allow_404: bool = False,
    ) -> dict[str, Any]:
        query = dict(params or {})
        if self.api_key:
            query["key"] = self.api_key
        try:
            response = await self._client.request(
                method=method,
                url=f"{self.documents_root}/{path}",
                params=query or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise TransportFailure(f"Firestore unreachable: {e}") from e

        if allow_404 and response.status_code == 404:
            return {}

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = None
            if e.response.content:
                try:
                    body = e.response.json()
                except ValueError:
                    body = None
            message = ""
            if isinstance(body, dict):
                message = (body.get("error") or {}).get("message", "")
            raise TransportFailure(
                f"Firestore error {e.response.status_code}: {message or e.response.reason_phrase}",
                e.response.status_code,
                body,
            ) from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure("Firestore returned a non-JSON body", response.status_code) from e

    async def list_documents(self, collection_path: str) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(doc_id, fields)`` for every document, following page tokens."""
        out: list[tuple[str, dict[str, Any]]] = []
        page_token: str | None = None
        seen_tokens: set[str] = set()

        while True:
            params: dict[str, Any] = {"pageSize": self.page_size}
            if page_token:
                params["pageToken"] = page_token
            resp = await self._request("GET", collection_path, params=params, allow_404=True)

            for doc in resp.get("documents", []) or []:
                if not isinstance(doc, dict) or not doc.get("name"):
                    continue
                out.append((document_id_from_name(doc["name"]), decode_fields(doc.get("fields"))))

            page_token = resp.get("nextPageToken")
            if not page_token or page_token in seen_tokens:
                break
            seen_tokens.add(page_token)

        logger.debug("Listed %d documents under %s", len(out), collection_path)
        return out

    async def set_document(self, collection_path: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or fully overwrite a document (PATCH without an update mask)."""
        await self._request(
            "PATCH",
            f"{collection_path}/{doc_id}",
            json={"fields": encode_fields(data)},
        )

    async def delete_document(self, collection_path: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        await self._request("DELETE", f"{collection_path}/{doc_id}", allow_404=True)
