"""Delivery module - owner notifications."""

from reply_scout.delivery.notifier import Notifier

__all__ = [
    "Notifier",
]
