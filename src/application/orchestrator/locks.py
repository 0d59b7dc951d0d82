"""Per-conversation turn serialization."""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

log = logging.getLogger(__name__)


class ConversationLockRegistry:
    """Hands out one asyncio.Lock per conversation id.

    Locks are held weakly: once no turn holds or waits on a conversation's
    lock, it is dropped from the registry.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def is_locked(self, conversation_id: str) -> bool:
        lock = self._locks.get(conversation_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock for the duration of the block."""
        lock = self._lock_for(conversation_id)
        if lock.locked():
            log.debug(f"Waiting for running turn of conversation {conversation_id}")
        async with lock:
            yield
