"""Card schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class CardDraft(BaseModel):
    """Transient partial card produced by AI extraction. Never persisted."""

    name: str | None = None
    title: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    company_name: str | None = None
    department: str | None = None
    address: str | None = None

    model_config = {"extra": "ignore"}


class Enrichment(BaseModel):
    company_description: str = ""
    role_description: str = ""
    industry: str = "Unknown"


class RemoteCardDocument(BaseModel):
    """Decoded form of users/{uid}/cards/{id}; see sync.field_mapper for the wire keys."""

    id: uuid.UUID
    name: str = ""
    title: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    company_name: str = ""
    department: str = ""
    address: str = ""
    company_description: str = ""
    person_role_description: str = ""
    industry: str = ""
    image_data_base64: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
