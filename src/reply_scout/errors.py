"""Exception hierarchy for Reply Scout."""

from __future__ import annotations


class ReplyScoutError(Exception):
    """Base class for all Reply Scout errors."""


class ConfigUnavailable(ReplyScoutError):
    """The configuration document is missing or cannot be parsed."""


class DeliveryFailure(ReplyScoutError):
    """The delivery sink rejected a notification or timed out."""


class InvalidEventPayload(ReplyScoutError):
    """A chat event is missing one of the fields the watcher needs."""


class HistoryUnavailable(ReplyScoutError):
    """Recent channel history could not be fetched."""
