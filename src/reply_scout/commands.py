"""Slash commands for managing watched channels and digest mode.

``/watch add [#channel]``, ``/watch remove [#channel]``, ``/watch list`` and
``/digest on|off [minutes]`` edit the config document in place. The watcher
re-reads config on every message, so changes apply immediately.

``/draft`` and ``/paste draft <text>`` DM the owner a snapshot of the
conversation to reply to: the channel's recent history, or pasted text.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Callable

from reply_scout.errors import HistoryUnavailable, ReplyScoutError

if TYPE_CHECKING:
    from reply_scout.delivery.notifier import Notifier
    from reply_scout.digest.scheduler import FlushScheduler
    from reply_scout.monitor.events import SlackDirectory

logger = logging.getLogger(__name__)

MIN_DIGEST_INTERVAL = 5
MAX_DIGEST_INTERVAL = 60

MAX_CONTEXT_MESSAGES = 50
MAX_CONTEXT_CHARS = 7000
MIN_PASTE_CHARS = 10

_CHANNEL_REF = re.compile(r"<#([^|>]+)(?:\|[^>]*)?>")

WATCH_USAGE = "Usage: /watch add [#channel] | /watch remove [#channel] | /watch list"
DIGEST_USAGE = f"Usage: /digest on|off [minutes {MIN_DIGEST_INTERVAL}-{MAX_DIGEST_INTERVAL}]"
PASTE_USAGE = "Usage: /paste draft <copied messages>"
OWNER_ONLY = "Only the bot owner can use this command."


class WatchCommands:
    """Handles the operator slash commands against a config provider.

    The provider must expose ``read_raw()`` and ``save_raw(document)``.
    """

    def __init__(
        self,
        config_provider: Any,
        scheduler: FlushScheduler | None = None,
        owner_user_id: str = "",
    ) -> None:
        self.config_provider = config_provider
        self.scheduler = scheduler
        self.owner_user_id = owner_user_id

    # ------------------------------------------------------------------
    # Bolt registration
    # ------------------------------------------------------------------

    def register(self, app: Any) -> None:
        app.command("/watch")(self._bolt_handler(self.handle_watch))
        app.command("/digest")(self._bolt_handler(self.handle_digest))

    def _bolt_handler(self, fn: Callable[[str, str], str]) -> Callable[..., None]:
        def handler(ack: Any, command: dict) -> None:
            user_id = command.get("user_id", "")
            if self.owner_user_id and user_id != self.owner_user_id:
                ack(OWNER_ONLY)
                return
            try:
                reply = fn(command.get("text", ""), command.get("channel_id", ""))
            except (ReplyScoutError, OSError):
                logger.exception("Command %s failed", command.get("command"))
                reply = "Something went wrong. Check the bot logs."
            ack(reply)
        return handler

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def handle_watch(self, text: str, current_channel_id: str) -> str:
        """Apply ``/watch <sub> [channel]`` and return the reply text."""
        parts = text.split()
        if not parts:
            return WATCH_USAGE
        sub = parts[0].lower()

        document = self.config_provider.read_raw()
        watch = document.get("watch") or {"enabled": True, "channel_ids": [], "keywords": []}
        document["watch"] = watch
        channel_ids: list[str] = list(watch.get("channel_ids") or [])

        if sub == "list":
            if not channel_ids:
                return "No watched channels yet."
            return "\n".join(f"<#{cid}>" for cid in channel_ids)

        if sub not in ("add", "remove"):
            return WATCH_USAGE

        match = _CHANNEL_REF.search(text)
        channel_id = match.group(1) if match else current_channel_id
        if not channel_id:
            return WATCH_USAGE

        if sub == "add":
            if channel_id not in channel_ids:
                channel_ids.append(channel_id)
            watch["channel_ids"] = channel_ids
            self.config_provider.save_raw(document)
            logger.info("Watching channel %s", channel_id)
            return f"Watching <#{channel_id}>. I'll DM you when there's a good chance to reply."

        watch["channel_ids"] = [cid for cid in channel_ids if cid != channel_id]
        self.config_provider.save_raw(document)
        logger.info("Stopped watching channel %s", channel_id)
        return f"Stopped watching <#{channel_id}>."

    def handle_digest(self, text: str, current_channel_id: str = "") -> str:
        """Apply ``/digest on|off [minutes]`` and return the reply text."""
        parts = text.split()
        if not parts or parts[0].lower() not in ("on", "off"):
            return DIGEST_USAGE

        interval: int | None = None
        if len(parts) > 1:
            try:
                interval = int(parts[1])
            except ValueError:
                return DIGEST_USAGE
            if not MIN_DIGEST_INTERVAL <= interval <= MAX_DIGEST_INTERVAL:
                return DIGEST_USAGE

        document = self.config_provider.read_raw()
        digest = document.get("digest") or {}
        document["digest"] = digest
        digest["enabled"] = parts[0].lower() == "on"
        if interval is not None:
            digest["interval_minutes"] = interval
        self.config_provider.save_raw(document)

        if interval is not None and self.scheduler is not None:
            self.scheduler.reschedule(interval)

        state = "ON" if digest["enabled"] else "OFF"
        suffix = f", interval set to {interval} mins" if interval is not None else ""
        logger.info("Digest turned %s%s", state, suffix)
        return f"Digest is {state}{suffix}."


class ContextCommands:
    """Sends the owner the conversation behind a reply opportunity.

    ``/draft`` fetches the channel's recent history and ``/paste draft``
    forwards text copied from elsewhere. Both deliver through the same
    notifier as alerts and digests.
    """

    def __init__(
        self,
        config_provider: Any,
        notifier: Notifier,
        slack_client: Any = None,
        directory: SlackDirectory | None = None,
        owner_user_id: str = "",
    ) -> None:
        self.config_provider = config_provider
        self.notifier = notifier
        self._client = slack_client
        self.directory = directory
        self.owner_user_id = owner_user_id

    def register(self, app: Any) -> None:
        app.command("/draft")(self._bolt_handler(self.handle_draft))
        app.command("/paste")(self._bolt_handler(self.handle_paste))

    def _bolt_handler(self, fn: Callable[[str, str], str]) -> Callable[..., None]:
        # Ack inside Slack's 3s window; the reply goes out via ``respond``.
        def handler(ack: Any, respond: Any, command: dict) -> None:
            ack()
            user_id = command.get("user_id", "")
            if self.owner_user_id and user_id != self.owner_user_id:
                respond(OWNER_ONLY)
                return
            try:
                reply = fn(command.get("text", ""), command.get("channel_id", ""))
            except HistoryUnavailable:
                logger.exception("Could not read history for %s", command.get("channel_id"))
                reply = "Couldn't read this channel's history. Is the bot a member?"
            except ReplyScoutError:
                logger.exception("Command %s failed", command.get("command"))
                reply = "Something went wrong. Check the bot logs."
            respond(reply)
        return handler

    def handle_draft(self, text: str, current_channel_id: str) -> str:
        """DM the recent history of ``current_channel_id`` to the owner."""
        if not current_channel_id:
            return "Run /draft inside the channel you want to reply in."

        config = self.config_provider.load()
        convo = self.recent_messages(current_channel_id, config.watch.context_messages)
        if not convo:
            return "No recent messages to send."

        channel_label = current_channel_id
        if self.directory is not None:
            channel_label = self.directory.channel_name(current_channel_id)

        self.notifier.deliver(f"Conversation in #{channel_label}:\n\n{convo}")
        logger.info("Sent context for #%s to owner", channel_label)
        return "Conversation sent to your DMs."

    def handle_paste(self, text: str, current_channel_id: str = "") -> str:
        """DM pasted conversation text to the owner."""
        sub, _, pasted = text.strip().partition(" ")
        if sub.lower() != "draft":
            return PASTE_USAGE
        pasted = pasted.strip()
        if len(pasted) < MIN_PASTE_CHARS:
            return "Paste a bit more context."

        self.notifier.deliver(f"Pasted conversation:\n\n{pasted[:MAX_CONTEXT_CHARS]}")
        return "Conversation sent to your DMs."

    def recent_messages(self, channel_id: str, limit: int) -> str:
        """Return up to ``limit`` (max 50) recent messages, oldest first.

        Each line is ``author: text``; the whole block is capped at 7000
        characters.

        Raises:
            HistoryUnavailable: If there is no client or the API call fails.
        """
        if self._client is None:
            raise HistoryUnavailable("No Slack client configured")
        try:
            response = self._client.conversations_history(
                channel=channel_id,
                limit=min(limit, MAX_CONTEXT_MESSAGES),
            )
        except Exception as exc:
            raise HistoryUnavailable(f"conversations.history failed: {exc}") from exc

        lines = []
        for msg in reversed(response.get("messages", [])):
            lines.append(f"{self._author(msg)}: {msg.get('text', '')}")
        return "\n".join(lines)[:MAX_CONTEXT_CHARS]

    def _author(self, msg: dict) -> str:
        user_id = msg.get("user")
        if user_id and self.directory is not None:
            return self.directory.user_name(user_id)
        return msg.get("username") or user_id or msg.get("bot_id") or "unknown"
