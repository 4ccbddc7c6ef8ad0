"""Card model."""

from __future__ import annotations

from sqlalchemy import Index, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, CreatedAtMixin, CloudSyncMixin

# Plain string fields copied between drafts, cards and remote documents.
CONTACT_FIELDS: tuple[str, ...] = (
    "name",
    "title",
    "phone",
    "email",
    "website",
    "company_name",
    "department",
    "address",
)

UNKNOWN_INDUSTRY = "Unknown"


class Card(UUIDMixin, CreatedAtMixin, CloudSyncMixin, Base):
    __tablename__ = "card"
    __table_args__ = (
        Index("ix_card_created_at", "created_at"),
    )

    name: Mapped[str] = mapped_column(String(200), default="")
    title: Mapped[str] = mapped_column(String(200), default="")
    phone: Mapped[str] = mapped_column(String(100), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    website: Mapped[str] = mapped_column(String(500), default="")
    company_name: Mapped[str] = mapped_column(String(200), default="")
    department: Mapped[str] = mapped_column(String(200), default="")
    address: Mapped[str] = mapped_column(String(500), default="")

    company_description: Mapped[str] = mapped_column(Text, default="")
    person_role_description: Mapped[str] = mapped_column(Text, default="")
    industry: Mapped[str] = mapped_column(String(100), default="")

    # Kept out of the default SELECT; load with undefer(Card.image_data).
    image_data: Mapped[bytes | None] = mapped_column(LargeBinary, default=None, deferred=True)

    @property
    def display_name(self) -> str:
        return self.name or "New Card"

    def __repr__(self) -> str:
        return f"<Card {self.display_name!r} ({self.id})>"
