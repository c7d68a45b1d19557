"""Conversion of raw Slack ``message`` events into ``ChatMessage`` records."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from reply_scout.errors import InvalidEventPayload
from reply_scout.monitor.message import ChatMessage

logger = logging.getLogger(__name__)

# Subtypes that are still a person (or bot) posting text. Everything else
# (edits, deletions, joins, topic changes) is not a new message.
_POSTED_SUBTYPES = {"", "bot_message", "thread_broadcast", "file_share", "me_message"}


class SlackDirectoryClient(Protocol):
    """The subset of ``slack_sdk.WebClient`` used for name lookups."""

    def conversations_info(self, *, channel: str, **kwargs: Any) -> Any: ...

    def users_info(self, *, user: str, **kwargs: Any) -> Any: ...


class SlackDirectory:
    """Resolves channel and user ids to display names.

    Results are cached for the lifetime of the process. API failures fall
    back to the raw id and are not cached, so a later lookup can succeed.
    """

    def __init__(self, slack_client: SlackDirectoryClient | None = None) -> None:
        self._client = slack_client
        self._channels: dict[str, str] = {}
        self._users: dict[str, str] = {}
        self._lock = threading.Lock()

    def channel_name(self, channel_id: str) -> str:
        with self._lock:
            cached = self._channels.get(channel_id)
        if cached is not None:
            return cached
        if self._client is None:
            return channel_id

        try:
            response = self._client.conversations_info(channel=channel_id)
        except Exception:
            logger.warning("conversations.info failed for %s", channel_id, exc_info=True)
            return channel_id

        name = response.get("channel", {}).get("name") or channel_id
        with self._lock:
            self._channels[channel_id] = name
        return name

    def user_name(self, user_id: str) -> str:
        with self._lock:
            cached = self._users.get(user_id)
        if cached is not None:
            return cached
        if self._client is None:
            return user_id

        try:
            response = self._client.users_info(user=user_id)
        except Exception:
            logger.warning("users.info failed for %s", user_id, exc_info=True)
            return user_id

        user = response.get("user", {})
        profile = user.get("profile", {})
        name = (
            profile.get("display_name")
            or profile.get("real_name")
            or user.get("name")
            or user_id
        )
        with self._lock:
            self._users[user_id] = name
        return name


def parse_message_event(event: dict, bot_user_id: str = "") -> ChatMessage:
    """Build a ``ChatMessage`` from a Slack Events API ``message`` payload.

    No API calls are made here. Channel and author display names are left
    empty (except for bot posts, which carry a ``username``) and are resolved
    by the watcher once a message is worth surfacing.

    Args:
        event: The ``event`` object delivered by Bolt.
        bot_user_id: Our own user id, from ``auth.test``.

    Returns:
        The parsed message. ``is_self`` is set for our own posts and for any
        bot-authored message.

    Raises:
        InvalidEventPayload: If the event is not a newly posted message or
            lacks a channel, author, or text.
    """
    subtype = event.get("subtype") or ""
    if subtype not in _POSTED_SUBTYPES:
        raise InvalidEventPayload(f"Ignoring message subtype {subtype!r}")

    channel_id = event.get("channel")
    author_id = event.get("user") or event.get("bot_id")
    text = event.get("text")
    if not channel_id or not author_id or text is None:
        raise InvalidEventPayload("Message event is missing channel, user or text")

    is_self = bool(
        (bot_user_id and event.get("user") == bot_user_id)
        or event.get("bot_id")
        or subtype == "bot_message"
    )

    return ChatMessage(
        channel_id=channel_id,
        text=text,
        author_name=event.get("username", "") if is_self else "",
        is_self=is_self,
        author_id=author_id,
        ts=event.get("ts", ""),
    )
