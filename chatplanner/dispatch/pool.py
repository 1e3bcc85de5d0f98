from __future__ import annotations

import asyncio
from datetime import tzinfo

from loguru import logger

from chatplanner.dispatch.dispatcher import Dispatcher, InboundResult


class InboundWorkerPool:
    """Runs the synchronous dispatcher off the event loop.

    At most ``max_workers`` messages are handled at once, and messages of one user
    are handled strictly one after another in arrival order.
    """

    def __init__(self, dispatcher: Dispatcher, max_workers: int = 8) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be positive")
        self.dispatcher = dispatcher
        self.max_workers = max_workers
        self._slots = asyncio.Semaphore(max_workers)
        self._user_locks: dict[str, asyncio.Lock] = {}
        self._user_pending: dict[str, int] = {}

    def _acquire_ref(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        self._user_pending[user_id] = self._user_pending.get(user_id, 0) + 1
        return lock

    def _release_ref(self, user_id: str) -> None:
        pending = self._user_pending[user_id] - 1
        if pending:
            self._user_pending[user_id] = pending
            return
        # nobody holds or waits on the lock any more
        del self._user_pending[user_id]
        del self._user_locks[user_id]

    @property
    def tracked_users(self) -> int:
        return len(self._user_locks)

    async def submit(
        self,
        user_id: str,
        text: str,
        tz: tzinfo | str | None = None,
        source: str = "text",
    ) -> InboundResult:
        key = str(user_id)
        lock = self._acquire_ref(key)
        try:
            async with lock:
                async with self._slots:
                    logger.debug("Worker slot taken for user {}", key)
                    return await asyncio.to_thread(self.dispatcher.handle_inbound_text, key, text, tz, source)
        finally:
            self._release_ref(key)
