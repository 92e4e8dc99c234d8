# notifier.py: per-user fan-out of real-time events (new messages)

import asyncio
import logging
import os
from typing import Any, Dict, Iterable, Set

import anyio.from_thread

logger = logging.getLogger(__name__)

QUEUE_SIZE = int(os.getenv("NOTIFY_QUEUE_SIZE", "100"))


class Notifier:
    """Registry of listener queues per user.

    Events reach only the listeners registered for the users they name.
    Delivery is best effort: a listener whose queue is full misses the event.
    """

    def __init__(self, queue_size: int = QUEUE_SIZE):
        # user_id -> set of listener queues (one per open socket)
        self._listeners: Dict[int, Set[asyncio.Queue]] = {}
        self._queue_size = queue_size

    def subscribe(self, user_id: int) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._listeners.setdefault(user_id, set()).add(q)
        return q

    def unsubscribe(self, user_id: int, q: asyncio.Queue) -> None:
        queues = self._listeners.get(user_id)
        if not queues:
            return
        queues.discard(q)
        if not queues:
            del self._listeners[user_id]

    def publish(self, user_ids: Iterable[int], event: Dict[str, Any]) -> int:
        """Queue `event` for every listener of `user_ids`; returns how many got it."""
        sent = 0
        for uid in set(user_ids):
            for q in list(self._listeners.get(uid, ())):
                try:
                    q.put_nowait(event)
                    sent += 1
                except asyncio.QueueFull:
                    logger.warning("dropping %s event for user %s: listener queue full", event.get("type"), uid)
        return sent

    def publish_from_thread(self, user_ids: Iterable[int], event: Dict[str, Any]) -> int:
        """Publish from a sync endpoint's worker thread onto the listeners' event loop.

        Outside an AnyIO worker thread (CLI, tests, the loop thread itself) this
        publishes directly.
        """
        user_ids = list(user_ids)
        try:
            return anyio.from_thread.run_sync(self.publish, user_ids, event)
        except RuntimeError:
            return self.publish(user_ids, event)

    def listener_count(self, user_id: int) -> int:
        return len(self._listeners.get(user_id, ()))


# Singleton instance
notifier = Notifier()
