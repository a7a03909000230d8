"""
storefront/services/locks.py

Purpose: Keyed asyncio locks

- One lock per key (chat id, product id), created on demand
- Entries are dropped as soon as nobody holds or waits on them
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Hashable


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class KeyedLocks:
    """
    Usage:
        async with user_locks.hold(chat_id):
            ...
    """

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[Hashable, _Entry] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable):
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]

    def is_locked(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)


# Serializes every update for one chat
user_locks = KeyedLocks("user")

# Serializes cart stock checks against one product
product_locks = KeyedLocks("product")
