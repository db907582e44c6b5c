"""Session model — one conversation thread as cached by the client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from trustagent.shared.models.message import (
    Message,
    timestamp_from_wire,
    timestamp_to_wire,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Chat"
_VISIBLE_ROLES = {"user", "assistant", "bot"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_default_session_title(title: str | None) -> bool:
    if not title:
        return True
    return title.strip() == DEFAULT_SESSION_TITLE


@dataclass
class Session:
    """Holds one session's metadata and transcript.

    The backend owns sessions; instances here are read-cache copies.
    """

    id: str
    title: str = DEFAULT_SESSION_TITLE
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_blank(self) -> bool:
        """True for a fresh session: no messages and still the default title."""
        return not self.messages and is_default_session_title(self.title)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def with_title(self, title: str) -> Session:
        return replace(self, title=title, messages=list(self.messages))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        messages: list[Message] = []
        for raw in data.get("messages") or []:
            # System prompts live in the backend transcript but are never shown
            if raw.get("role") not in _VISIBLE_ROLES:
                continue
            messages.append(Message.from_dict(raw))
        return cls(
            id=str(data["id"]),
            title=data.get("title") or DEFAULT_SESSION_TITLE,
            messages=messages,
            created_at=timestamp_from_wire(data.get("created_at")),
            updated_at=timestamp_from_wire(data.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": timestamp_to_wire(self.created_at),
            "updated_at": timestamp_to_wire(self.updated_at),
        }
