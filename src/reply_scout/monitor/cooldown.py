"""Per-channel notification cooldown."""

from __future__ import annotations

import threading


class CooldownLedger:
    """Remembers when each channel last produced a notification.

    Timestamps are monotonic seconds. Entries are never removed, so the ledger
    grows to at most the number of distinct watched channels seen.

    Bolt listeners run on a thread pool, so check-and-record goes through
    ``try_acquire`` under a lock.
    """

    def __init__(self) -> None:
        self._last: dict[str, float] = {}
        self._lock = threading.Lock()

    def allow(self, channel_id: str, now: float, cooldown_seconds: float) -> bool:
        """Return True if ``channel_id`` may notify at ``now``."""
        with self._lock:
            return self._allow_locked(channel_id, now, cooldown_seconds)

    def record(self, channel_id: str, now: float) -> None:
        """Overwrite the channel's last-notification time with ``now``."""
        with self._lock:
            self._last[channel_id] = now

    def try_acquire(self, channel_id: str, now: float, cooldown_seconds: float) -> bool:
        """Atomically check the cooldown and record ``now`` if it passes."""
        with self._lock:
            if not self._allow_locked(channel_id, now, cooldown_seconds):
                return False
            self._last[channel_id] = now
            return True

    def last_notified(self, channel_id: str) -> float | None:
        with self._lock:
            return self._last.get(channel_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last)

    def _allow_locked(self, channel_id: str, now: float, cooldown_seconds: float) -> bool:
        last = self._last.get(channel_id)
        if last is None:
            return True
        return now - last >= cooldown_seconds
