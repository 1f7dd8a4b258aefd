"""In-process change notifications per owner or per book."""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Set

logger = logging.getLogger(__name__)


async def _signals(queue: "asyncio.Queue[None]") -> AsyncIterator[None]:
    while True:
        await queue.get()
        yield None


class ChangeBroadcaster:
    """
    Fan-out of "something changed" signals to the listeners of a key.

    Repositories publish under the owner's uid for book collections and
    under a `BookRef` for a book's sessions. Each listener has a one-slot
    queue, so a burst of writes collapses into a single pending signal:
    listeners re-read the full collection anyway.
    """

    def __init__(self):
        self._listeners: Dict[Hashable, Set[asyncio.Queue]] = defaultdict(set)

    def publish(self, key: Hashable) -> None:
        """Signal every listener of `key` that its collection changed."""
        for queue in list(self._listeners.get(key, ())):
            if queue.empty():
                queue.put_nowait(None)

    @asynccontextmanager
    async def listen(self, key: Hashable) -> AsyncIterator[AsyncIterator[None]]:
        """Register a listener for `key` for the duration of the block."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._listeners[key].add(queue)
        logger.debug(f"Listener added for {key} ({len(self._listeners[key])} active)")
        try:
            yield _signals(queue)
        finally:
            self._listeners[key].discard(queue)
            if not self._listeners[key]:
                del self._listeners[key]

    def listener_count(self, key: Hashable) -> int:
        return len(self._listeners.get(key, ()))
