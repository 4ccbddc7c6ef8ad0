"""Duplicate detection for freshly extracted drafts.

Matching is deliberately loose to absorb OCR variance: a stored card is a
duplicate when it *contains* the draft's name and the draft's company,
case-insensitively. Short names can therefore produce false positives, and
a draft with neither name nor company matches every card.
"""

from __future__ import annotations

from typing import Iterable

from ..models.card import Card
from ..schemas.card import CardDraft


def _norm(value: str | None) -> str:
    return (value or "").casefold()


def matches(draft: CardDraft, card: Card) -> bool:
    return (
        _norm(draft.name) in _norm(card.name)
        and _norm(draft.company_name) in _norm(card.company_name)
    )


def find_duplicate(draft: CardDraft, cards: Iterable[Card]) -> Card | None:
    for card in cards:
        if matches(draft, card):
            return card
    return None


def is_duplicate(draft: CardDraft, cards: Iterable[Card]) -> bool:
    return find_duplicate(draft, cards) is not None
