"""Application container - wires store, remote, AI and sync services.

The container owns the per-process ``SyncSession``, so "pull once per
session" means once per ``CardConnectApp`` instance.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from .ai.gemini import CardEnricher, CardExtractor, ContactAnalyst, GeminiClient
from .auth import StaticIdentityProvider
from .config import settings
from .database import build_engine, build_session_factory, create_tables
from .ingestion.pipeline import IngestionPipeline
from .remote.firestore import DocumentStore, FirestoreDocumentStore
from .store import CardStore
from .sync.repository import RemoteCardRepository
from .sync.session import SyncSession
from .sync.state import SyncStateStore
from .sync.sync_engine import CardSyncEngine

logger = logging.getLogger(__name__)


class CardConnectApp:
    """Usage:
        async with CardConnectApp() as app:
            report = await app.pipeline.process_image(photo)
            await app.pipeline.drain()
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine | None = None,
        identity: StaticIdentityProvider | None = None,
        document_store: DocumentStore | None = None,
        extractor: CardExtractor | None = None,
        enricher: CardEnricher | None = None,
        analyst: ContactAnalyst | None = None,
    ):
        self.engine = engine or build_engine()
        self.store = CardStore(build_session_factory(self.engine))
        self.identity = identity or StaticIdentityProvider.from_settings()

        self._owned_clients: list = []
        if document_store is None:
            if not settings.firestore_configured:
                logger.warning("CARDCONNECT_FIREBASE_PROJECT_ID not set; cloud sync will fail")
            document_store = FirestoreDocumentStore(token_getter=self.identity.id_token)
            self._owned_clients.append(document_store)
        self.document_store = document_store

        if extractor is None or enricher is None or analyst is None:
            if not settings.gemini_configured:
                logger.warning("CARDCONNECT_GEMINI_API_KEY not set; extraction, enrichment and analysis will fail")
            gemini = GeminiClient()
            self._owned_clients.append(gemini)
            extractor = extractor or gemini
            enricher = enricher or gemini
            analyst = analyst or gemini
        self.analyst = analyst

        self.session = SyncSession()
        self.state = SyncStateStore()
        self.repository = RemoteCardRepository(
            self.document_store, self.identity, max_image_bytes=settings.image_max_bytes
        )
        self.sync_engine = CardSyncEngine(
            self.store,
            self.repository,
            session=self.session,
            state=self.state,
            push_concurrency=settings.sync_push_concurrency,
        )
        self.pipeline = IngestionPipeline(
            self.store, extractor, enricher, self.sync_engine, self.identity, state=self.state
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def start(self) -> None:
        await create_tables(self.engine)

    async def close(self) -> None:
        """Finish background pushes, then release HTTP clients and the engine."""
        await self.sync_engine.drain()
        for client in self._owned_clients:
            await client.close()
        await self.engine.dispose()

    def on_login_state_changed(self, is_logged_in: bool) -> asyncio.Task | None:
        """Hook for the host's auth listener; pulls at most once per app instance."""
        return self.sync_engine.on_login_state_changed(is_logged_in)
