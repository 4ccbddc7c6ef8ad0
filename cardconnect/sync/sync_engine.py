"""Sync orchestrator - push (local -> cloud), pull-merge (cloud -> local), deletes.

Sync status is a two-state flag per card (``is_synced_to_cloud``); there is
no version vector and no conflict resolution:

- push overwrites the remote document (last writer wins remotely);
- pull-merge only imports remote cards whose id is missing locally. A remote
  edit to a card that already exists locally is not applied; local wins.

Per-card failures never abort a batch and progress already committed to the
cloud is not rolled back, so a partial push leaves a mix of synced and
unsynced cards.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Sequence

from ..config import settings
from ..errors import NotAuthenticated
from ..models.card import Card
from ..schemas.sync import SyncResult
from ..services import card_svc
from ..store import CardStore
from .repository import RemoteCardRepository
from .session import SyncSession
from .state import SyncStateStore

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "Not logged in"


def _push_summary(synced: int, failed: int) -> str:
    if failed == 0:
        return f"Successfully synced {synced} card(s) to cloud"
    return f"Synced {synced} card(s), {failed} failed"


class CardSyncEngine:
    def __init__(
        self,
        store: CardStore,
        repository: RemoteCardRepository,
        *,
        session: SyncSession | None = None,
        state: SyncStateStore | None = None,
        push_concurrency: int | None = None,
    ):
        self.store = store
        self.repository = repository
        self.session = session or SyncSession()
        self.state = state or SyncStateStore()
        self.push_concurrency = max(1, push_concurrency or settings.sync_push_concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._pushes: dict[uuid.UUID, asyncio.Task] = {}

    # -- helpers ------------------------------------------------------------

    def _track(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for background sync tasks started by this engine."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _load_for_push(self, cards: Sequence[Card] | None) -> list[Card]:
        async with self.store.read() as db:
            stored = await card_svc.list_cards(db, include_images=True)
        if cards is None:
            return stored
        by_id = {c.id: c for c in stored}
        # Keep the caller's enumeration order; cards deleted meanwhile are dropped.
        return [by_id[c.id] for c in cards if c.id in by_id]

    async def _mark_synced(self, card_id: uuid.UUID) -> None:
        async with self.store.write() as db:
            await card_svc.mark_synced(db, [card_id])

    # -- push ---------------------------------------------------------------

    async def push_all(self, cards: Sequence[Card] | None = None) -> SyncResult:
        """Upload every given card (all local cards by default).

        Each card is attempted independently; failures are counted and
        recorded, and the remaining cards are still pushed.
        """
        if not self.repository.is_authenticated:
            self.state.update(error_message=NOT_LOGGED_IN)
            return SyncResult(errors=[NOT_LOGGED_IN], message=NOT_LOGGED_IN)

        self.state.update(is_syncing=True, error_message=None)
        result = SyncResult()
        try:
            targets = await self._load_for_push(cards)
            semaphore = asyncio.Semaphore(self.push_concurrency)

            async def _push_one(card: Card) -> str | None:
                async with semaphore:
                    try:
                        await self.repository.put(card)
                    except Exception as e:
                        logger.warning("Failed to sync card %s (%s): %s", card.display_name, card.id, e)
                        return f"{card.display_name}: {e}"
                    await self._mark_synced(card.id)
                    return None

            if self.push_concurrency == 1:
                outcomes = [await _push_one(card) for card in targets]
            else:
                outcomes = await asyncio.gather(*(_push_one(card) for card in targets))

            for error in outcomes:
                if error is None:
                    result.synced += 1
                else:
                    result.failed += 1
                    result.errors.append(error)

            result.message = _push_summary(result.synced, result.failed)
            logger.info("Push finished: %d synced, %d failed", result.synced, result.failed)
            self.state.update(
                last_sync_at=datetime.now(timezone.utc),
                notice=result.message,
                error_message=result.errors[-1] if result.errors else None,
            )
        except Exception as e:
            logger.exception("Error syncing to cloud")
            result.errors.append(str(e))
            result.message = f"Failed to sync to cloud: {e}"
            self.state.update(error_message=result.message)
        finally:
            self.state.update(is_syncing=False)
        return result

    async def push_card(self, card_id: uuid.UUID) -> bool:
        """Upload one card and mark it synced. Returns False (and logs) on failure."""
        if not self.repository.is_authenticated:
            return False
        async with self.store.read() as db:
            card = await card_svc.get_card(db, card_id, include_image=True)
        if card is None:
            return False
        try:
            await self.repository.put(card)
        except Exception as e:
            logger.warning("Failed to sync new card %s: %s", card_id, e)
            return False
        await self._mark_synced(card_id)
        return True

    def push_card_in_background(self, card_id: uuid.UUID) -> asyncio.Task:
        task = self._track(self.push_card(card_id), name=f"push-card-{card_id}")
        self._pushes[card_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self._pushes.get(card_id) is done:
                del self._pushes[card_id]

        task.add_done_callback(_forget)
        return task

    # -- pull ---------------------------------------------------------------

    async def pull_merge(self) -> SyncResult:
        """Import remote cards whose id is not present locally.

        Imported cards are marked synced. Remote cards sharing an id with a
        local card are skipped without comparing content.
        """
        if not self.repository.is_authenticated:
            self.state.update(error_message=NOT_LOGGED_IN)
            return SyncResult(errors=[NOT_LOGGED_IN], message=NOT_LOGGED_IN)

        self.state.update(is_syncing=True, error_message=None)
        result = SyncResult()
        try:
            remote_cards = await self.repository.list_all()

            async with self.store.write() as db:
                local_ids = await card_svc.existing_ids(db)
                new_cards: list[Card] = []
                for card in remote_cards:
                    if card.id in local_ids:
                        result.skipped += 1
                        continue
                    card.is_synced_to_cloud = True
                    local_ids.add(card.id)
                    new_cards.append(card)
                result.imported = await card_svc.add_cards(db, new_cards)

            logger.info(
                "Synced %d cards from cloud, imported %d new cards",
                len(remote_cards), result.imported,
            )
            result.message = f"Imported {result.imported} card(s) from cloud"
            self.state.update(
                last_sync_at=datetime.now(timezone.utc),
                notice=result.message if result.imported else None,
            )
        except Exception as e:
            logger.exception("Error syncing from cloud")
            result.errors.append(str(e))
            result.message = f"Failed to sync from cloud: {e}"
            self.state.update(error_message=result.message)
        finally:
            self.state.update(is_syncing=False)
        return result

    async def sync_on_login(self, is_logged_in: bool) -> SyncResult | None:
        """Pull once per session when the user is (or becomes) logged in."""
        if not is_logged_in or not self.session.claim():
            return None
        return await self.pull_merge()

    def on_login_state_changed(self, is_logged_in: bool) -> asyncio.Task | None:
        """Trigger-site variant: claims the session flag synchronously, then
        schedules the pull as a background task."""
        if not is_logged_in or not self.session.claim():
            return None
        return self._track(self.pull_merge(), name="pull-on-login")

    # -- deletes ------------------------------------------------------------

    async def delete_card(self, card_id: uuid.UUID) -> bool:
        """Delete locally, then remotely when signed in.

        A failed remote delete is logged; the local delete stands. A background
        push still in flight for the card is awaited first so its upload cannot
        land after the remote delete.
        """
        async with self.store.write() as db:
            deleted = await card_svc.delete_card(db, card_id)

        pending = self._pushes.get(card_id)
        if pending is not None and not pending.done():
            await asyncio.gather(pending, return_exceptions=True)

        if self.repository.is_authenticated:
            try:
                await self.repository.delete(card_id)
            except Exception as e:
                logger.warning("Failed to delete card %s from cloud: %s", card_id, e)
        return deleted

    async def delete_all_user_data(self) -> int:
        """Account deletion: wipe the user's cloud collection, then local cards."""
        if not self.repository.is_authenticated:
            raise NotAuthenticated()
        removed = await self.repository.delete_all_for_user()
        async with self.store.write() as db:
            await card_svc.delete_all_cards(db)
        self.state.update(notice=None, error_message=None, last_sync_at=None)
        return removed
