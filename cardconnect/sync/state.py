"""Observable sync state.

Readers get immutable snapshots through ``current_state()`` and can
``subscribe`` to changes; only the owning services mutate it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncState:
    is_syncing: bool = False
    last_sync_at: datetime | None = None
    error_message: str | None = None
    notice: str | None = None


Listener = Callable[[SyncState], None]


class SyncStateStore:
    def __init__(self) -> None:
        self._state = SyncState()
        self._listeners: list[Listener] = []

    def current_state(self) -> SyncState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, **changes) -> SyncState:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Sync state listener failed")
        return self._state
