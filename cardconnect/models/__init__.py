"""CardConnect models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, CreatedAtMixin, CloudSyncMixin
from .card import Card, CONTACT_FIELDS, UNKNOWN_INDUSTRY

__all__ = [
    "Base",
    "UUIDMixin",
    "CreatedAtMixin",
    "CloudSyncMixin",
    "Card",
    "CONTACT_FIELDS",
    "UNKNOWN_INDUSTRY",
]
