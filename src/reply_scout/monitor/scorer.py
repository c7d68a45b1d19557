"""Reply-worthiness scoring for chat messages.

Scoring rules (additive, no early exit):
    - +3 if the message looks like a question
    - +2 if the message contains a configured keyword
    - +1 if the message is longer than 120 characters

Empty text scores 0. The score has no upper bound and is never negative.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from reply_scout.config import WatchConfig

QUESTION_POINTS = 3
KEYWORD_POINTS = 2
LONG_MESSAGE_POINTS = 1
LONG_MESSAGE_CHARS = 120

_QUESTION_WORDS = re.compile(
    r"(?i)(?:"
    r"\bhow\b"
    r"|\bwhy\b"
    r"|\bwhat\b"
    r"|\bwen\b"
    r"|\banyone know\b"
    r"|\bhelp\b"
    r"|\bwhere\b"
    r"|\bwhen\b"
    r")",
)


def looks_like_question(text: str | None) -> bool:
    """Detect whether text ends with ``?`` or uses an interrogative marker."""
    if not text:
        return False
    stripped = text.strip()
    return stripped.endswith("?") or bool(_QUESTION_WORDS.search(stripped))


def has_keyword(text: str | None, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match against any keyword."""
    text_lower = (text or "").lower()
    return any(kw.lower() in text_lower for kw in keywords if kw)


def score_message(text: str | None, config: WatchConfig) -> int:
    """Calculate the reply-worthiness score of ``text``.

    Args:
        text: Raw message text; ``None`` is treated as empty.
        config: Watch config supplying the keyword list.

    Returns:
        Non-negative integer score (higher = more worth a reply).
    """
    points = 0
    if looks_like_question(text):
        points += QUESTION_POINTS
    if has_keyword(text, config.keywords):
        points += KEYWORD_POINTS
    if len(text or "") > LONG_MESSAGE_CHARS:
        points += LONG_MESSAGE_POINTS
    return points
