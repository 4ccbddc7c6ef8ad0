"""Per-process "already pulled this session" guard."""

from __future__ import annotations


class SyncSession:
    """Starts unclaimed, is claimed by the first pull trigger, never resets.

    ``claim()`` is synchronous so it can be called at the trigger site before
    any await; two triggers racing each other cannot both win.
    """

    def __init__(self) -> None:
        self._has_synced = False

    @property
    def has_synced(self) -> bool:
        return self._has_synced

    def claim(self) -> bool:
        if self._has_synced:
            return False
        self._has_synced = True
        return True
