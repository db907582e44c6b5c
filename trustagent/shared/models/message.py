"""Chat message model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_from_wire(value: Any) -> datetime:
    """Parse a backend timestamp (UNIX seconds or ISO string)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return _utcnow()


def timestamp_to_wire(value: datetime) -> int:
    return int(value.timestamp())


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        # The original backend also tagged replies as "bot"
        role = data.get("role", "assistant")
        if role == "bot":
            role = "assistant"
        return cls(
            role=MessageRole(role),
            content=str(data.get("content", "")),
            timestamp=timestamp_from_wire(data.get("timestamp")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": timestamp_to_wire(self.timestamp),
        }
