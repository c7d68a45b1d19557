"""Digest module - batching, rendering, and periodic flushing."""

from reply_scout.digest.accumulator import DigestAccumulator, NotificationItem
from reply_scout.digest.render import render_digest, render_realtime
from reply_scout.digest.scheduler import FlushScheduler

__all__ = [
    "NotificationItem",
    "DigestAccumulator",
    "render_digest",
    "render_realtime",
    "FlushScheduler",
]
