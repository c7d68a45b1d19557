"""Notification delivery - sends reply opportunities to the owner by DM.

The notifier is the single delivery sink for both realtime alerts and digest
batches. Text is rendered and truncated upstream; the notifier only sends.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from reply_scout.errors import DeliveryFailure

if TYPE_CHECKING:
    from slack_sdk import WebClient

    from reply_scout.config import BotConfig

logger = logging.getLogger(__name__)

# Slack rejects chat.postMessage text above 40k characters.
MAX_MESSAGE_CHARS = 40000


class Notifier:
    """Sends DM notifications to the bot owner."""

    def __init__(self, config: BotConfig, slack_client: WebClient | None = None) -> None:
        self.owner_user_id: str = config.slack.owner_user_id
        self._client = slack_client

    def deliver(self, text: str) -> dict[str, Any]:
        """Post ``text`` to the owner's DM.

        Returns the Slack API response dict on success.

        Raises:
            DeliveryFailure: If no client or owner is configured, or the
                Slack API rejects the call or times out.
        """
        if not self._client:
            raise DeliveryFailure("No Slack client configured")
        if not self.owner_user_id:
            raise DeliveryFailure("No owner_user_id configured")

        if len(text) > MAX_MESSAGE_CHARS:
            text = text[:MAX_MESSAGE_CHARS - 15] + "\n...(truncated)"

        try:
            response = self._client.chat_postMessage(
                channel=self.owner_user_id,
                text=text,
            )
        except Exception as exc:
            raise DeliveryFailure(f"chat.postMessage to owner failed: {exc}") from exc

        logger.debug("Sent owner notification (%d chars)", len(text))
        return response
