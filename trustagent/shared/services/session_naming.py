"""Deterministic session titles derived from the first user message."""
from __future__ import annotations

from collections.abc import Sequence

from trustagent.shared.models.message import Message, MessageRole
from trustagent.shared.models.session import DEFAULT_SESSION_TITLE

MAX_TITLE_CHARS = 20


def derive_session_title(messages: Sequence[Message]) -> str:
    """First user message, trimmed and cut to 20 characters plus ``...``.

    Falls back to the default title when there is no user message.
    """
    for message in messages:
        if message.role is MessageRole.USER:
            title = " ".join(message.content.split())
            if not title:
                continue
            if len(title) > MAX_TITLE_CHARS:
                title = title[:MAX_TITLE_CHARS] + "..."
            return title
    return DEFAULT_SESSION_TITLE
