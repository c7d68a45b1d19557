"""Monitor module - message parsing, scoring, cooldown, and watching."""

from reply_scout.monitor.cooldown import CooldownLedger
from reply_scout.monitor.events import SlackDirectory, parse_message_event
from reply_scout.monitor.message import ChatMessage
from reply_scout.monitor.scorer import has_keyword, looks_like_question, score_message
from reply_scout.monitor.watcher import ChannelWatcher, WatchOutcome

__all__ = [
    "ChatMessage",
    "CooldownLedger",
    "SlackDirectory",
    "parse_message_event",
    "score_message",
    "looks_like_question",
    "has_keyword",
    "ChannelWatcher",
    "WatchOutcome",
]
