"""Tool server, tool and agent-status models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ServerStatus(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class McpServerInfo:
    """A tool-hosting server as reported by the backend."""
    name: str
    status: ServerStatus = ServerStatus.STOPPED

    @property
    def is_running(self) -> bool:
        return self.status is ServerStatus.RUNNING

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> McpServerInfo:
        try:
            status = ServerStatus(str(data.get("status", "stopped")).lower())
        except ValueError:
            status = ServerStatus.STOPPED
        return cls(name=str(data["name"]), status=status)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "status": self.status.value}


@dataclass(frozen=True)
class ToolDescriptor:
    server_name: str
    tool_name: str


class AgentStatusKind(Enum):
    THINKING = "thinking"
    USING_TOOL = "using_tool"


@dataclass(frozen=True)
class AgentStatus:
    """Transient progress of an in-flight agent task. Never persisted."""
    kind: AgentStatusKind
    tool_name: str | None = None

    @classmethod
    def thinking(cls) -> AgentStatus:
        return cls(AgentStatusKind.THINKING)

    @classmethod
    def using_tool(cls, tool_name: str) -> AgentStatus:
        return cls(AgentStatusKind.USING_TOOL, tool_name)

    @property
    def label(self) -> str:
        if self.kind is AgentStatusKind.USING_TOOL:
            return f"Using {self.tool_name}"
        return "Thinking"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.kind.value}
        if self.tool_name is not None:
            data["tool_name"] = self.tool_name
        return data
