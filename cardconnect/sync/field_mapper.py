"""Bidirectional field mapping between remote card documents and local cards."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ..errors import DecodeFailure
from ..models.card import CONTACT_FIELDS
from ..schemas.card import CardDraft, RemoteCardDocument

# Remote document key -> local model attribute
CARD_FIELD_MAP: dict[str, str] = {
    "id": "id",
    "name": "name",
    "title": "title",
    "phone": "phone",
    "email": "email",
    "website": "website",
    "companyName": "company_name",
    "department": "department",
    "address": "address",
    "companyDescription": "company_description",
    "personRoleDescription": "person_role_description",
    "industry": "industry",
    "imageDataBase64": "image_data_base64",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

# AI extraction keys -> draft attribute
DRAFT_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "title": "title",
    "phone": "phone",
    "email": "email",
    "website": "website",
    "companyName": "company_name",
    "department": "department",
    "address": "address",
}


def _as_utc(dt: datetime) -> datetime:
    """Normalize naive/aware datetimes into UTC-aware datetimes."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_card_to_remote(card, image_base64: str | None, updated_at: datetime) -> dict[str, Any]:
    """Build the remote document body for a card.

    Every remote key is always present; blank strings stay blank and a
    missing image is written as null.
    """
    return {
        "id": str(card.id),
        "name": card.name or "",
        "title": card.title or "",
        "phone": card.phone or "",
        "email": card.email or "",
        "website": card.website or "",
        "companyName": card.company_name or "",
        "department": card.department or "",
        "address": card.address or "",
        "companyDescription": card.company_description or "",
        "personRoleDescription": card.person_role_description or "",
        "industry": card.industry or "",
        "imageDataBase64": image_base64,
        "createdAt": _as_utc(card.created_at),
        "updatedAt": _as_utc(updated_at),
    }


def remote_card_to_local(data: dict[str, Any]) -> RemoteCardDocument:
    """Validate a remote document body. Raises DecodeFailure on bad shape."""
    if not isinstance(data, dict):
        raise DecodeFailure(f"Expected a document map, got {type(data).__name__}")
    local: dict[str, Any] = {}
    for remote_key, local_key in CARD_FIELD_MAP.items():
        if remote_key in data and data[remote_key] is not None:
            local[local_key] = data[remote_key]
    try:
        return RemoteCardDocument.model_validate(local)
    except ValidationError as e:
        raise DecodeFailure(f"Invalid card document: {e.error_count()} field error(s)") from e


def ai_card_to_draft(ai_data: dict[str, Any]) -> CardDraft:
    """Convert an AI extraction object to a draft, ignoring unknown keys."""
    result: dict[str, Any] = {}
    for ai_key, local_key in DRAFT_FIELD_MAP.items():
        value = ai_data.get(ai_key)
        if value is None:
            continue
        result[local_key] = value if isinstance(value, str) else str(value)
    return CardDraft(**result)


def draft_from_card(card) -> CardDraft:
    """Rebuild a draft from a stored card (used for re-enrichment)."""
    return CardDraft(**{field: getattr(card, field, None) for field in CONTACT_FIELDS})
