"""Shared data types for inbound chat messages.

ChatMessage is the record every watcher decision is made on. Display names
are optional: the watcher resolves them only for messages it surfaces.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChatMessage:
    """One inbound message from a chat channel."""
    channel_id: str
    text: str
    channel_name: str = ""
    author_name: str = ""
    is_self: bool = False
    author_id: str = ""
    ts: str = ""

    @property
    def message_id(self) -> str:
        """Unique identifier for log correlation."""
        return f"{self.channel_id}:{self.ts}"
