"""Ingestion pipeline - photo -> drafts -> dedup -> enrich -> store -> push.

One call handles one captured image, which may hold several cards. Drafts
are handled sequentially so a card added earlier in the same image counts
as a duplicate for the drafts after it.
"""

from __future__ import annotations

import logging
import uuid
from urllib.parse import quote_plus

from ..ai.gemini import CardEnricher, CardExtractor, enrichment_fallback
from ..auth import IdentityProvider
from ..errors import CardConnectError
from ..imaging.codec import prepare_local_image
from ..models.card import CONTACT_FIELDS, Card
from ..schemas.card import CardDraft, Enrichment
from ..schemas.sync import IngestionReport
from ..services import card_svc, dedup
from ..store import CardStore
from ..sync.field_mapper import draft_from_card
from ..sync.sync_engine import CardSyncEngine
from ..sync.state import SyncStateStore

logger = logging.getLogger(__name__)

NO_CARDS_FOUND = "No business cards found in the image."

LINKEDIN_SEARCH_URL = "https://www.linkedin.com/search/results/all/?keywords={query}"


def linkedin_search_url(card: Card) -> str:
    """People-search URL for the card's name and company."""
    query = " ".join(part for part in (card.name, card.company_name) if part)
    return LINKEDIN_SEARCH_URL.format(query=quote_plus(query))


def build_card(draft: CardDraft, enrichment: Enrichment, image_data: bytes | None) -> Card:
    return Card(
        id=uuid.uuid4(),
        **{field: getattr(draft, field) or "" for field in CONTACT_FIELDS},
        company_description=enrichment.company_description,
        person_role_description=enrichment.role_description,
        industry=enrichment.industry,
        image_data=image_data,
        is_synced_to_cloud=False,
    )


class IngestionPipeline:
    def __init__(
        self,
        store: CardStore,
        extractor: CardExtractor,
        enricher: CardEnricher,
        sync_engine: CardSyncEngine,
        identity: IdentityProvider,
        state: SyncStateStore | None = None,
    ):
        self.store = store
        self.extractor = extractor
        self.enricher = enricher
        self.sync_engine = sync_engine
        self.identity = identity
        self.state = state or sync_engine.state

    def _notify(self, report: IngestionReport, message: str) -> None:
        report.notices.append(message)
        self.state.update(notice=message)

    async def process_image(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> IngestionReport:
        """Extract, dedup, enrich and store every card found in one photo.

        New cards are pushed in the background when a user is signed in;
        call ``drain()`` to wait for those pushes.
        """
        report = IngestionReport()
        try:
            drafts = await self.extractor.extract(image_bytes, mime_type)
        except CardConnectError as e:
            logger.error("Error processing image: %s", e.message)
            report.error = f"Error processing card: {e.message}"
            self.state.update(error_message=report.error)
            return report

        report.drafts = len(drafts)
        logger.info("Extracted %d draft(s) from image", len(drafts))
        if not drafts:
            self._notify(report, NO_CARDS_FOUND)
            return report

        local_image = prepare_local_image(image_bytes)

        for draft in drafts:
            async with self.store.read() as db:
                existing = await card_svc.list_cards(db)
            if dedup.is_duplicate(draft, existing):
                name = draft.name or ""
                logger.info("Duplicate card found for %s at %s. Skipping.", name, draft.company_name or "")
                report.duplicates.append(name)
                self._notify(report, f"Duplicate card found for {name}. It was not added.")
                continue

            enrichment = await self._enrich(draft)
            card = build_card(draft, enrichment, local_image)

            try:
                async with self.store.write() as db:
                    await card_svc.add_cards(db, [card])
            except Exception as e:
                logger.error("Failed to save card %s: %s", card.display_name, e)
                self._notify(report, f"Failed to save card for {card.display_name}: {e}")
                continue

            report.added.append(card.id)
            logger.info("Card added: %s (%s)", card.display_name, card.id)

            if self.identity.current_user_id():
                self.sync_engine.push_card_in_background(card.id)

        return report

    async def _enrich(self, draft: CardDraft) -> Enrichment:
        try:
            return await self.enricher.enrich(draft)
        except Exception as e:
            logger.warning("Enrichment failed for %s: %s", draft.name or "", e)
            return enrichment_fallback()

    async def drain(self) -> None:
        """Wait for outstanding background pushes."""
        await self.sync_engine.drain()

    async def enrich_card(self, card_id: uuid.UUID) -> Card | None:
        """Re-run enrichment for a stored card, overwriting its descriptions."""
        async with self.store.read() as db:
            card = await card_svc.get_card(db, card_id)
        if card is None:
            return None

        enrichment = await self._enrich(draft_from_card(card))
        async with self.store.write() as db:
            return await card_svc.update_card(
                db,
                card_id,
                company_description=enrichment.company_description,
                person_role_description=enrichment.role_description,
                industry=enrichment.industry,
            )
