"""Reply Scout - main application.

Watches Slack channels for messages worth a reply and DMs the owner,
either immediately or as a periodic digest.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Any

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler
from slack_sdk import WebClient

from reply_scout.commands import ContextCommands, WatchCommands
from reply_scout.config import ConfigProvider, load_provider
from reply_scout.delivery.notifier import Notifier
from reply_scout.digest.accumulator import DigestAccumulator
from reply_scout.digest.scheduler import FlushScheduler
from reply_scout.errors import ConfigUnavailable, InvalidEventPayload
from reply_scout.monitor.cooldown import CooldownLedger
from reply_scout.monitor.events import SlackDirectory, parse_message_event
from reply_scout.monitor.watcher import ChannelWatcher, WatchOutcome

logger = logging.getLogger(__name__)


class ReplyScoutBot:
    """Main bot orchestrator.

    Owns the process-wide state (cooldown ledger, digest accumulator, flush
    scheduler) and wires it to Slack:
      1. Bolt ``message`` events are parsed and handed to the watcher.
      2. The watcher scores, gates, and queues or delivers.
      3. The flush scheduler, started once the session is ready, drains the
         digest on an interval.
      4. ``/watch`` and ``/digest`` commands edit the config document;
         ``/draft`` and ``/paste`` DM the owner conversation context.
    """

    def __init__(self, config_provider: ConfigProvider) -> None:
        self.config_provider = config_provider
        self.config = config_provider.load()
        self._bot_user_id = ""
        self._bolt_app: Any = None
        self._handler: Any = None

        self._slack_client = self._create_slack_client()

        self.ledger = CooldownLedger()
        self.accumulator = DigestAccumulator(max_queue=self.config.digest.max_queue)
        self.directory = SlackDirectory(self._slack_client)
        self.notifier = Notifier(self.config, slack_client=self._slack_client)
        self.watcher = ChannelWatcher(
            config_provider,
            ledger=self.ledger,
            accumulator=self.accumulator,
            notifier=self.notifier,
            directory=self.directory,
        )
        self.scheduler = FlushScheduler(
            config_provider,
            accumulator=self.accumulator,
            notifier=self.notifier,
        )
        self.commands = WatchCommands(
            config_provider,
            scheduler=self.scheduler,
            owner_user_id=self.config.slack.owner_user_id,
        )
        self.context_commands = ContextCommands(
            config_provider,
            notifier=self.notifier,
            slack_client=self._slack_client,
            directory=self.directory,
            owner_user_id=self.config.slack.owner_user_id,
        )

        self._setup_bolt_app()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Confirm the session, start the flush scheduler, then listen."""
        logger.info("Starting Reply Scout")

        if not self.on_ready():
            return

        if self._bolt_app is None or not self.config.slack.app_token:
            logger.error("No app_token configured; cannot receive message events")
            self.stop()
            return

        self._handler = SocketModeHandler(self._bolt_app, self.config.slack.app_token)
        logger.info("Starting Slack Bolt socket-mode listener")
        self._handler.start()  # Blocks until stopped

    def on_ready(self) -> bool:
        """Resolve our identity and start the digest loop.

        Returns ``False`` if the Slack session could not be confirmed.
        """
        if self._slack_client is None:
            logger.error("No bot_token configured; cannot connect to Slack")
            return False
        try:
            auth = self._slack_client.auth_test()
        except Exception:
            logger.exception("auth.test failed; Slack session not ready")
            return False

        self._bot_user_id = auth.get("user_id", "")
        logger.info("Logged in as %s (%s)", auth.get("user", ""), self._bot_user_id)

        config = self.config_provider.load()
        self.scheduler.start(config.digest.interval_minutes)
        return True

    def stop(self) -> None:
        """Gracefully shut down the scheduler and listener."""
        logger.info("Stopping Reply Scout")
        self.scheduler.shutdown()
        if self._handler is not None:
            try:
                self._handler.close()
            except Exception:
                logger.debug("Socket-mode handler already closed")
        logger.info("Reply Scout stopped")

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: dict) -> WatchOutcome | None:
        """Handle one Slack ``message`` event.

        Never raises: a failure in one event must not affect the next.
        """
        try:
            message = parse_message_event(event, self._bot_user_id)
        except InvalidEventPayload as exc:
            logger.debug("Ignoring event: %s", exc)
            return None

        try:
            return self.watcher.handle(message)
        except Exception:
            logger.exception("Failed to handle message %s", message.message_id)
            return None

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def _create_slack_client(self) -> WebClient | None:
        """Create a Slack WebClient if a bot token is configured."""
        if not self.config.slack.bot_token:
            return None
        return WebClient(
            token=self.config.slack.bot_token,
            timeout=self.config.delivery.timeout_seconds,
        )

    def _setup_bolt_app(self) -> None:
        """Configure the Slack Bolt app for message events and commands."""
        if not self.config.slack.bot_token:
            return

        self._bolt_app = App(
            client=self._slack_client,
            signing_secret=self.config.slack.signing_secret or None,
            token_verification_enabled=False,
        )
        self._bolt_app.event("message")(self._on_message)
        self.commands.register(self._bolt_app)
        self.context_commands.register(self._bolt_app)
        logger.info("Slack Bolt app initialized with message and command handlers")

    def _on_message(self, event: dict) -> None:
        self.handle_event(event)


# ======================================================================
# CLI entry point
# ======================================================================


def main() -> None:
    """Command-line entry point for Reply Scout."""
    parser = argparse.ArgumentParser(
        description="Reply Scout - DM alerts for chat messages worth a reply",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config YAML file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # A missing or malformed config is fatal at startup only
    try:
        provider = load_provider(args.config)
    except ConfigUnavailable as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    logger.info("Configuration loaded successfully")

    if args.dry_run:
        logger.info("Dry run complete - configuration is valid")
        sys.exit(0)

    bot = ReplyScoutBot(provider)

    def _shutdown(signum: int, _frame: Any) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down...", sig_name)
        bot.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    bot.start()


if __name__ == "__main__":
    main()
