"""
In-process per-entity locks.

Mutations of one property's inventory, or of one tenant's ledger, are
serialised through a lock keyed by (kind, id). Operations spanning several
entities take their keys in sorted order so two transfers in opposite
directions cannot deadlock.
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import AsyncExitStack, asynccontextmanager

PROPERTY = "property"
TENANT = "tenant"

LockKey = tuple[str, Hashable]


class EntityLocks:
    """Registry of asyncio locks, one per entity key."""

    def __init__(self):
        self._locks: dict[LockKey, asyncio.Lock] = {}

    def get(self, kind: str, entity_id: Hashable) -> asyncio.Lock:
        key = (kind, entity_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, kind: str, entity_id: Hashable) -> bool:
        lock = self._locks.get((kind, entity_id))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: LockKey) -> AsyncIterator[None]:
        """Acquire every key (deduplicated, sorted) for the duration of the block."""
        ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
        async with AsyncExitStack() as stack:
            for kind, entity_id in ordered:
                await stack.enter_async_context(self.get(kind, entity_id))
            yield

    def clear(self) -> None:
        self._locks.clear()


# Global lock registry shared by the services
entity_locks = EntityLocks()
