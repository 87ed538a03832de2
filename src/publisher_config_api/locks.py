"""
Per-file mutual exclusion for read-modify-write operations.

Operations registered under the same key run one at a time in the order
they arrived; operations under different keys run concurrently. The
registry lives for the process lifetime and is only safe within a single
event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FileLockRegistry:
    """
    Chains operations per key.

    Each key maps to a future that resolves when the most recently queued
    operation for that key finishes. A new operation waits on that future,
    registers its own, runs, then resolves its own future. The entry is
    removed once the last queued operation for a key is done, so the map
    never grows beyond the set of keys currently in use.

    There is no timeout: an operation that never finishes keeps its key
    locked.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Future[None]] = {}

    def pending_keys(self) -> List[str]:
        return sorted(self._pending)

    def is_locked(self, key: str) -> bool:
        return key in self._pending

    async def with_lock(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` once every earlier operation on ``key`` has finished.

        Args:
            key: Lock key, normally the target filename
            operation: Zero-argument coroutine function to execute

        Returns:
            Whatever ``operation`` returns; its exceptions propagate unchanged
        """
        loop = asyncio.get_running_loop()
        previous = self._pending.get(key)
        done: asyncio.Future[None] = loop.create_future()
        self._pending[key] = done

        try:
            if previous is not None:
                logger.debug(f"Waiting for pending operation on {key}")
                # shield: cancelling this waiter must not resolve the predecessor
                await asyncio.shield(previous)
            return await operation()
        finally:
            self._release(key, previous, done)

    def _release(
        self,
        key: str,
        previous: asyncio.Future[None] | None,
        done: asyncio.Future[None],
    ) -> None:
        def _resolve(_: object = None) -> None:
            if not done.done():
                done.set_result(None)
            if self._pending.get(key) is done:
                del self._pending[key]

        if previous is not None and not previous.done():
            # Cancelled while queued; hand over only when the predecessor ends.
            previous.add_done_callback(_resolve)
        else:
            _resolve()
