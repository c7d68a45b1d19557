"""Bounded FIFO of pending digest notifications."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE = 50


@dataclass(frozen=True)
class NotificationItem:
    """A message judged worth surfacing, waiting for the next digest."""
    channel_label: str
    author_label: str
    content: str


class DigestAccumulator:
    """Insertion-ordered, bounded queue of ``NotificationItem``.

    ``max_queue`` is a hard safety cap, separate from the per-flush batch
    size: when a push overflows it, the oldest items are dropped. Digest
    delivery is best-effort, so losing old items is preferred over unbounded
    growth while flushing is disabled or stalled.

    The watcher pushes from Bolt listener threads and the flush job drains
    from the scheduler thread; a single lock guards both.
    """

    def __init__(self, max_queue: int = DEFAULT_MAX_QUEUE) -> None:
        if max_queue < 1:
            raise ValueError("max_queue must be at least 1")
        self.max_queue = max_queue
        self._items: deque[NotificationItem] = deque()
        self._lock = threading.Lock()

    def push(self, item: NotificationItem, max_queue: int | None = None) -> int:
        """Append ``item`` and evict from the front past the cap.

        Args:
            item: The notification to queue.
            max_queue: Optional cap override (e.g. re-read from config).

        Returns:
            Number of items evicted.
        """
        with self._lock:
            if max_queue is not None and max_queue >= 1:
                self.max_queue = max_queue
            self._items.append(item)
            evicted = 0
            while len(self._items) > self.max_queue:
                self._items.popleft()
                evicted += 1

        if evicted:
            logger.info("Digest queue full; evicted %d oldest item(s)", evicted)
        return evicted

    def drain(self, max_items: int) -> list[NotificationItem]:
        """Remove and return up to ``max_items`` of the oldest items."""
        with self._lock:
            count = min(max(max_items, 0), len(self._items))
            return [self._items.popleft() for _ in range(count)]

    def snapshot(self) -> list[NotificationItem]:
        """Return a copy of the queued items, oldest first."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
