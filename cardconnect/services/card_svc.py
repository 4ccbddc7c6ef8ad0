"""Card service - CRUD, search and sync-flag bookkeeping for the local store."""

from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from ..models.card import UNKNOWN_INDUSTRY, Card


async def list_cards(
    db: AsyncSession,
    *,
    search: str | None = None,
    include_images: bool = False,
) -> list[Card]:
    """List cards newest first, optionally filtered by name/company/title."""
    stmt = select(Card)

    if search:
        q = f"%{search}%"
        stmt = stmt.where(
            or_(
                Card.name.ilike(q),
                Card.company_name.ilike(q),
                Card.title.ilike(q),
            )
        )

    if include_images:
        stmt = stmt.options(undefer(Card.image_data))

    stmt = stmt.order_by(Card.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_cards(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(Card))).scalar() or 0


async def industry_counts(db: AsyncSession) -> list[tuple[str, int]]:
    """Cards per industry, most common first. Blank industries count as "Unknown"."""
    label = func.coalesce(func.nullif(func.trim(Card.industry), ""), UNKNOWN_INDUSTRY)
    stmt = (
        select(label, func.count())
        .group_by(label)
        .order_by(func.count().desc(), label)
    )
    result = await db.execute(stmt)
    return [(industry, count) for industry, count in result.all()]


async def get_card(
    db: AsyncSession, card_id: uuid.UUID, *, include_image: bool = False
) -> Card | None:
    stmt = select(Card).where(Card.id == card_id)
    if include_image:
        stmt = stmt.options(undefer(Card.image_data))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def existing_ids(db: AsyncSession) -> set[uuid.UUID]:
    result = await db.execute(select(Card.id))
    return set(result.scalars().all())


async def add_cards(db: AsyncSession, cards: Iterable[Card]) -> int:
    """Insert already-built cards in one commit. Returns the number added."""
    count = 0
    for card in cards:
        db.add(card)
        count += 1
    if count:
        await db.commit()
    return count


async def update_card(db: AsyncSession, card_id: uuid.UUID, **kwargs) -> Card | None:
    """Update an existing card.

    The sync flag is left as is; an edited card that was synced keeps
    reporting ``is_synced_to_cloud`` until it is pushed again.
    """
    card = await get_card(db, card_id)
    if not card:
        return None
    for key, value in kwargs.items():
        if key in {"id", "created_at"}:
            raise ValueError(f"Card.{key} is immutable")
        setattr(card, key, value)
    await db.commit()
    return card


async def delete_card(db: AsyncSession, card_id: uuid.UUID) -> bool:
    """Delete a card. Returns True if found and deleted."""
    result = await db.execute(delete(Card).where(Card.id == card_id))
    await db.commit()
    return (result.rowcount or 0) > 0


async def delete_all_cards(db: AsyncSession) -> int:
    result = await db.execute(delete(Card))
    await db.commit()
    return result.rowcount or 0


async def mark_synced(db: AsyncSession, card_ids: Iterable[uuid.UUID], synced: bool = True) -> int:
    ids = list(card_ids)
    if not ids:
        return 0
    result = await db.execute(
        update(Card).where(Card.id.in_(ids)).values(is_synced_to_cloud=synced)
    )
    await db.commit()
    return result.rowcount or 0
