"""Periodic digest flushing.

A single APScheduler interval job drains the accumulator, renders the batch,
and hands it to the notifier. Delivery is at-most-once: a batch that fails
to send is logged and dropped, never re-queued.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from reply_scout.digest.render import render_digest
from reply_scout.errors import ConfigUnavailable, DeliveryFailure

if TYPE_CHECKING:
    from reply_scout.config import ConfigProvider
    from reply_scout.delivery.notifier import Notifier
    from reply_scout.digest.accumulator import DigestAccumulator

logger = logging.getLogger(__name__)

FLUSH_JOB_ID = "digest_flush"


class FlushScheduler:
    """Owns the one recurring digest flush job for the process.

    ``start`` is idempotent. Ticks never overlap: the job runs with
    ``max_instances=1`` and ``flush`` itself skips if a tick is in progress.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        accumulator: DigestAccumulator,
        notifier: Notifier,
        scheduler: Any = None,
    ) -> None:
        self.config_provider = config_provider
        self.accumulator = accumulator
        self.notifier = notifier
        self._scheduler = scheduler
        self._started = False
        self._interval_minutes: int | None = None
        self._start_lock = threading.Lock()
        self._tick_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._started

    def start(self, interval_minutes: int) -> bool:
        """Schedule the flush job and start the scheduler.

        Returns ``False`` (and does nothing) if already started.
        """
        with self._start_lock:
            if self._started:
                logger.debug("Flush scheduler already running; ignoring start")
                return False

            if self._scheduler is None:
                from apscheduler.schedulers.background import BackgroundScheduler
                self._scheduler = BackgroundScheduler()

            self._scheduler.add_job(
                self.flush,
                "interval",
                minutes=interval_minutes,
                id=FLUSH_JOB_ID,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            self._scheduler.start()
            self._started = True
            self._interval_minutes = interval_minutes

        logger.info("Digest flush scheduled every %d minute(s)", interval_minutes)
        return True

    def reschedule(self, interval_minutes: int) -> None:
        """Change the flush period of a running scheduler."""
        if not self._started or interval_minutes == self._interval_minutes:
            return
        self._scheduler.reschedule_job(
            FLUSH_JOB_ID, trigger="interval", minutes=interval_minutes,
        )
        self._interval_minutes = interval_minutes
        logger.info("Digest flush rescheduled to every %d minute(s)", interval_minutes)

    def shutdown(self) -> None:
        if not self._started:
            return
        try:
            self._scheduler.shutdown(wait=False)
        except Exception:
            logger.debug("Scheduler already shut down")
        self._started = False

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def flush(self) -> int:
        """Run one flush tick.

        Returns the number of items delivered (0 for an idle or failed tick).
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous digest flush still running; skipping tick")
            return 0
        try:
            return self._flush_locked()
        except Exception:
            logger.exception("Digest flush failed")
            return 0
        finally:
            self._tick_lock.release()

    def _flush_locked(self) -> int:
        try:
            config = self.config_provider.load()
        except ConfigUnavailable:
            logger.exception("Config unavailable; skipping digest flush")
            return 0

        # Picks up interval edits made directly in the config file
        self.reschedule(config.digest.interval_minutes)

        if not config.digest.enabled or len(self.accumulator) == 0:
            return 0

        items = self.accumulator.drain(config.digest.max_items)
        if not items:
            return 0

        text = render_digest(items)
        try:
            self.notifier.deliver(text)
        except DeliveryFailure:
            logger.exception("Dropped digest batch of %d item(s)", len(items))
            return 0

        logger.info("Delivered digest with %d item(s)", len(items))
        return len(items)
