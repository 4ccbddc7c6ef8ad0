"""Shared local card store with a single-writer discipline.

Every task (image processing, pull, push, background per-card pushes)
shares one store. Reads open their own session freely; mutations go through
``write()``, which holds one ``asyncio.Lock`` for the lifetime of the
session so inserts, deletes and flag updates never interleave.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class CardStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def write(self) -> AsyncIterator[AsyncSession]:
        async with self._write_lock:
            async with self._session_factory() as session:
                try:
                    yield session
                except Exception:
                    await session.rollback()
                    raise
