"""Sync and ingestion result schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel


class SyncResult(BaseModel):
    synced: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = []
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.errors


class IngestionReport(BaseModel):
    drafts: int = 0
    added: list[uuid.UUID] = []
    duplicates: list[str] = []
    notices: list[str] = []
    error: str | None = None
