"""Plain-text rendering of digest batches and realtime alerts.

The digest layout is consumed downstream and must stay stable::

    Digest (<n>):

    #<channel>
    - <author>: <excerpt>

    Use /draft in the channel for full reply options.
    Or use /paste draft to generate from copied messages.
"""

from __future__ import annotations

import re

from reply_scout.digest.accumulator import NotificationItem

DIGEST_EXCERPT_CHARS = 180
REALTIME_EXCERPT_CHARS = 250

DIGEST_FOOTER = (
    "Use /draft in the channel for full reply options.\n"
    "Or use /paste draft to generate from copied messages.\n"
)

_WHITESPACE = re.compile(r"\s+")


def excerpt(text: str | None, limit: int = DIGEST_EXCERPT_CHARS) -> str:
    """Collapse whitespace runs to single spaces and cut to ``limit`` chars."""
    return _WHITESPACE.sub(" ", text or "")[:limit]


def group_by_channel(items: list[NotificationItem]) -> dict[str, list[NotificationItem]]:
    """Group items by channel label, keeping first-appearance channel order."""
    grouped: dict[str, list[NotificationItem]] = {}
    for item in items:
        grouped.setdefault(item.channel_label, []).append(item)
    return grouped


def render_digest(items: list[NotificationItem]) -> str:
    """Render a drained batch as a single DM body."""
    out = f"Digest ({len(items)}):\n\n"
    for channel_label, group in group_by_channel(items).items():
        out += f"#{channel_label}\n"
        for item in group:
            out += f"- {item.author_label}: {excerpt(item.content)}\n"
        out += "\n"
    out += DIGEST_FOOTER
    return out.strip()


def render_realtime(item: NotificationItem) -> str:
    """Render a single immediate reply-opportunity alert."""
    content = (item.content or "")[:REALTIME_EXCERPT_CHARS]
    return (
        f"Reply opportunity in #{item.channel_label}:\n"
        f"{item.author_label}: {content}\n\n"
        f"Run /draft in that channel."
    )
