"""Tests for the image ingestion pipeline."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock

import pytest

from cardconnect.errors import ModelFailure
from cardconnect.ingestion.pipeline import IngestionPipeline, linkedin_search_url
from cardconnect.models.card import Card
from cardconnect.schemas.card import CardDraft, Enrichment
from cardconnect.services import card_svc
from cardconnect.sync.repository import RemoteCardRepository
from cardconnect.sync.sync_engine import CardSyncEngine

from conftest import FakeGemini, make_card


def _pipeline(store, gemini, sync_engine, identity) -> IngestionPipeline:
    return IngestionPipeline(store, gemini, gemini, sync_engine, identity)


async def _cards(store) -> list[Card]:
    async with store.read() as db:
        return await card_svc.list_cards(db, include_images=True)


@pytest.mark.asyncio
async def test_adds_new_cards_and_skips_duplicates(store, sync_engine, identity, document_store, jpeg_bytes):
    async with store.write() as db:
        await card_svc.add_cards(db, [make_card(name="John Smith", company_name="Acme Corp")])
    gemini = FakeGemini(drafts=[
        CardDraft(name="John Smith", company_name="Acme"),
        CardDraft(name="Mary Jones", company_name="Globex", title="CFO"),
    ])
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    assert report.drafts == 2
    assert len(report.added) == 1
    assert report.duplicates == ["John Smith"]
    assert "Duplicate card found for John Smith. It was not added." in report.notices

    cards = await _cards(store)
    assert len(cards) == 2
    mary = next(c for c in cards if c.name == "Mary Jones")
    assert mary.id == report.added[0]
    assert mary.industry == "Manufacturing"
    assert mary.company_description == "Makes widgets"
    assert mary.person_role_description == "Buys gears"
    assert mary.image_data.startswith(b"\xff\xd8")
    assert mary.is_synced_to_cloud is True
    assert str(mary.id) in document_store.docs()
    assert [d.name for d in gemini.enriched] == ["Mary Jones"]


@pytest.mark.asyncio
async def test_duplicate_within_same_image(store, sync_engine, identity, jpeg_bytes):
    gemini = FakeGemini(drafts=[
        CardDraft(name="Ana Lima", company_name="Sol"),
        CardDraft(name="Ana Lima", company_name="Sol"),
    ])
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    assert len(report.added) == 1
    assert report.duplicates == ["Ana Lima"]


@pytest.mark.asyncio
async def test_no_cards_found(store, sync_engine, identity, state, jpeg_bytes):
    pipeline = _pipeline(store, FakeGemini(drafts=[]), sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)

    assert report.drafts == 0
    assert report.error is None
    assert report.notices == ["No business cards found in the image."]
    assert state.current_state().notice == "No business cards found in the image."
    assert await _cards(store) == []


@pytest.mark.asyncio
async def test_extraction_failure_is_reported(store, sync_engine, identity, state, jpeg_bytes):
    gemini = FakeGemini()
    gemini.extract_error = ModelFailure("Gemini unreachable: timeout")
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)

    assert report.error == "Error processing card: Gemini unreachable: timeout"
    assert state.current_state().error_message == report.error
    assert await _cards(store) == []


@pytest.mark.asyncio
async def test_enrichment_fallback_is_stored(store, sync_engine, identity, jpeg_bytes):
    fallback = Enrichment(
        company_description="Failed to enrich data.",
        role_description="Failed to enrich data.",
        industry="Unknown",
    )
    gemini = FakeGemini(drafts=[CardDraft(name="Lee")], enrichment=fallback)
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    (card,) = await _cards(store)
    assert card.id == report.added[0]
    assert card.company_description == "Failed to enrich data."
    assert card.industry == "Unknown"


@pytest.mark.asyncio
async def test_raising_enricher_falls_back_per_card(store, sync_engine, identity, jpeg_bytes):
    gemini = FakeGemini(drafts=[CardDraft(name="Lee", company_name="Oak"), CardDraft(name="Sam", company_name="Elm")])
    gemini.enrich_error = RuntimeError("enrichment backend down")
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    assert report.error is None
    assert len(report.added) == 2
    cards = await _cards(store)
    assert sorted(c.name for c in cards) == ["Lee", "Sam"]
    for card in cards:
        assert card.company_description == "Failed to enrich data."
        assert card.person_role_description == "Failed to enrich data."
        assert card.industry == "Unknown"


@pytest.mark.asyncio
async def test_delete_right_after_ingest_stays_deleted(store, sync_engine, identity, document_store, jpeg_bytes):
    document_store.write_delay = 0.05
    pipeline = _pipeline(store, FakeGemini(drafts=[CardDraft(name="Kai")]), sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    (card_id,) = report.added
    await sync_engine.delete_card(card_id)
    await pipeline.drain()

    assert card_id not in {c.id for c in await sync_engine.repository.list_all()}
    assert await _cards(store) == []


@pytest.mark.asyncio
async def test_signed_out_cards_stay_local(store, document_store, signed_out, jpeg_bytes):
    engine = CardSyncEngine(store, RemoteCardRepository(document_store, signed_out))
    pipeline = _pipeline(store, FakeGemini(drafts=[CardDraft(name="Kim")]), engine, signed_out)

    await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    (card,) = await _cards(store)
    assert card.is_synced_to_cloud is False
    assert document_store.calls == []


@pytest.mark.asyncio
async def test_failed_background_push_leaves_card_unsynced(store, sync_engine, identity, jpeg_bytes):
    sync_engine.repository.put = AsyncMock(side_effect=RuntimeError("offline"))
    pipeline = _pipeline(store, FakeGemini(drafts=[CardDraft(name="Ola")]), sync_engine, identity)

    report = await pipeline.process_image(jpeg_bytes)
    await pipeline.drain()

    assert len(report.added) == 1
    (card,) = await _cards(store)
    assert card.is_synced_to_cloud is False


@pytest.mark.asyncio
async def test_enrich_card_overwrites_descriptions(store, sync_engine, identity):
    card = make_card(company_description="old", person_role_description="old", industry="Old")
    async with store.write() as db:
        await card_svc.add_cards(db, [card])
    gemini = FakeGemini()
    pipeline = _pipeline(store, gemini, sync_engine, identity)

    updated = await pipeline.enrich_card(card.id)

    assert updated.company_description == "Makes widgets"
    assert updated.industry == "Manufacturing"
    assert gemini.enriched[0].company_name == "Acme"
    assert await pipeline.enrich_card(uuid.uuid4()) is None


def test_linkedin_search_url():
    card = make_card(name="Jane Doe", company_name="Acme & Co")
    assert linkedin_search_url(card) == (
        "https://www.linkedin.com/search/results/all/?keywords=Jane+Doe+Acme+%26+Co"
    )
