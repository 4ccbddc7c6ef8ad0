"""Async test fixtures: SQLite card store, in-memory document store, fake AI."""

from __future__ import annotations

import asyncio
import copy
import io
import uuid
from typing import Any

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardconnect.auth import StaticIdentityProvider
from cardconnect.errors import TransportFailure
from cardconnect.models.base import Base
from cardconnect.models.card import Card
from cardconnect.schemas.card import CardDraft, Enrichment
from cardconnect.store import CardStore
from cardconnect.sync.repository import RemoteCardRepository
from cardconnect.sync.state import SyncStateStore
from cardconnect.sync.sync_engine import CardSyncEngine

USER_ID = "user-123"


@pytest_asyncio.fixture
async def engine(tmp_path):
    # File-backed so concurrent sessions get their own connections.
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cards.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(session_factory):
    return CardStore(session_factory)


class FakeDocumentStore:
    """In-memory stand-in for the Firestore document store."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail_ids: set[str] = set()
        self.fail_list = False
        self.write_delay = 0.0
        self.calls: list[tuple[str, str, str | None]] = []

    async def list_documents(self, collection_path: str) -> list[tuple[str, dict[str, Any]]]:
        self.calls.append(("list", collection_path, None))
        if self.fail_list:
            raise TransportFailure("Firestore error 503: unavailable", 503)
        docs = self.collections.get(collection_path, {})
        return [(doc_id, copy.deepcopy(data)) for doc_id, data in docs.items()]

    async def set_document(self, collection_path: str, doc_id: str, data: dict[str, Any]) -> None:
        self.calls.append(("set", collection_path, doc_id))
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if doc_id in self.fail_ids:
            raise TransportFailure("Firestore error 500: write failed", 500)
        self.collections.setdefault(collection_path, {})[doc_id] = copy.deepcopy(data)

    async def delete_document(self, collection_path: str, doc_id: str) -> None:
        self.calls.append(("delete", collection_path, doc_id))
        if doc_id in self.fail_ids:
            raise TransportFailure("Firestore error 500: delete failed", 500)
        self.collections.get(collection_path, {}).pop(doc_id, None)

    def docs(self, user_id: str = USER_ID) -> dict[str, dict[str, Any]]:
        return self.collections.get(f"users/{user_id}/cards", {})


class FakeGemini:
    """Scripted extractor, enricher and analyst."""

    def __init__(self, drafts: list[CardDraft] | None = None, enrichment: Enrichment | None = None):
        self.drafts = drafts or []
        self.enrichment = enrichment or Enrichment(
            company_description="Makes widgets", role_description="Buys gears", industry="Manufacturing"
        )
        self.extract_error: Exception | None = None
        self.enrich_error: Exception | None = None
        self.answer = "Talk to Jane at Acme."
        self.analyze_error: Exception | None = None
        self.questions: list[tuple[str, int]] = []
        self.enriched: list[CardDraft] = []

    async def extract(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> list[CardDraft]:
        if self.extract_error is not None:
            raise self.extract_error
        return list(self.drafts)

    async def enrich(self, draft: CardDraft) -> Enrichment:
        self.enriched.append(draft)
        if self.enrich_error is not None:
            raise self.enrich_error
        return self.enrichment

    async def analyze(self, question: str, cards) -> str:
        self.questions.append((question, len(cards)))
        if self.analyze_error is not None:
            raise self.analyze_error
        return self.answer


@pytest.fixture
def document_store():
    return FakeDocumentStore()


@pytest.fixture
def identity():
    return StaticIdentityProvider(user_id=USER_ID, token="token-abc")


@pytest.fixture
def signed_out():
    return StaticIdentityProvider()


@pytest.fixture
def repository(document_store, identity):
    return RemoteCardRepository(document_store, identity)


@pytest.fixture
def state():
    return SyncStateStore()


@pytest.fixture
def sync_engine(store, repository, state):
    return CardSyncEngine(store, repository, state=state, push_concurrency=1)


def make_jpeg(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG", quality=90)
    return buf.getvalue()


def make_card(**kwargs) -> Card:
    fields = {
        "id": uuid.uuid4(),
        "name": "Jane Doe",
        "title": "CTO",
        "company_name": "Acme",
        "email": "jane@acme.test",
    }
    fields.update(kwargs)
    return Card(**fields)


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()
