"""Channel watcher - scores, gates, and routes each inbound message."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from reply_scout.digest.accumulator import NotificationItem
from reply_scout.digest.render import render_realtime
from reply_scout.errors import ConfigUnavailable, DeliveryFailure
from reply_scout.monitor.scorer import score_message

if TYPE_CHECKING:
    from reply_scout.config import ConfigProvider
    from reply_scout.delivery.notifier import Notifier
    from reply_scout.digest.accumulator import DigestAccumulator
    from reply_scout.monitor.cooldown import CooldownLedger
    from reply_scout.monitor.events import SlackDirectory
    from reply_scout.monitor.message import ChatMessage

logger = logging.getLogger(__name__)


class WatchOutcome(Enum):
    """Where a single message ended up."""

    IGNORED_SELF = "ignored_self"
    NOT_WATCHED = "not_watched"
    BELOW_THRESHOLD = "below_threshold"
    COOLING_DOWN = "cooling_down"
    CONFIG_UNAVAILABLE = "config_unavailable"
    QUEUED = "queued"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


class ChannelWatcher:
    """Decides, per message, whether the owner should hear about it.

    Flow:
      1. Drop our own messages.
      2. Drop if watching is off or the channel is not watched.
      3. Score; drop below ``min_score_to_notify``.
      4. Drop if the channel is still cooling down.
      5. Record the cooldown (in both modes).
      6. Queue for the digest, or deliver a realtime alert.

    Config is re-read for every message. Each call is isolated: errors are
    logged and reported through the returned ``WatchOutcome``. Display names
    are looked up through ``directory`` only after step 5, so ignored traffic
    costs no API calls.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        ledger: CooldownLedger,
        accumulator: DigestAccumulator,
        notifier: Notifier,
        clock: Callable[[], float] = time.monotonic,
        directory: SlackDirectory | None = None,
    ) -> None:
        self.config_provider = config_provider
        self.ledger = ledger
        self.accumulator = accumulator
        self.notifier = notifier
        self._clock = clock
        self.directory = directory

    def handle(self, message: ChatMessage) -> WatchOutcome:
        """Process one inbound message and return the outcome."""
        if message.is_self:
            return WatchOutcome.IGNORED_SELF

        try:
            config = self.config_provider.load()
        except ConfigUnavailable:
            logger.exception("Config unavailable; skipping %s", message.message_id)
            return WatchOutcome.CONFIG_UNAVAILABLE

        watch = config.watch
        if not watch.enabled or not watch.is_watched(message.channel_id):
            return WatchOutcome.NOT_WATCHED

        score = score_message(message.text, watch)
        if score < watch.min_score_to_notify:
            return WatchOutcome.BELOW_THRESHOLD

        now = self._clock()
        if not self.ledger.try_acquire(
            message.channel_id, now, watch.cooldown_seconds_per_channel,
        ):
            logger.debug("Cooldown active for %s; suppressed", message.channel_id)
            return WatchOutcome.COOLING_DOWN

        channel_label, author_label = self._labels(message)
        item = NotificationItem(
            channel_label=channel_label,
            author_label=author_label,
            content=message.text,
        )

        if config.digest.enabled:
            self.accumulator.push(item, max_queue=config.digest.max_queue)
            logger.info(
                "Queued reply opportunity from #%s (score %d, %d pending)",
                channel_label,
                score,
                len(self.accumulator),
            )
            return WatchOutcome.QUEUED

        try:
            self.notifier.deliver(render_realtime(item))
        except DeliveryFailure:
            logger.exception("Failed to deliver alert for %s", message.message_id)
            return WatchOutcome.DELIVERY_FAILED

        logger.info(
            "Sent reply opportunity from #%s (score %d)", channel_label, score,
        )
        return WatchOutcome.DELIVERED

    def _labels(self, message: ChatMessage) -> tuple[str, str]:
        channel_label = message.channel_name
        author_label = message.author_name
        if self.directory is not None:
            channel_label = channel_label or self.directory.channel_name(message.channel_id)
            author_label = author_label or self.directory.user_name(message.author_id)
        return channel_label or message.channel_id, author_label or message.author_id
