"""Data models shared by the sync core, the backends and the TUI."""
from __future__ import annotations

from trustagent.shared.models.message import Message, MessageRole
from trustagent.shared.models.session import DEFAULT_SESSION_TITLE, Session
from trustagent.shared.models.tools import (
    AgentStatus,
    AgentStatusKind,
    McpServerInfo,
    ServerStatus,
    ToolDescriptor,
)

__all__ = [
    "AgentStatus",
    "AgentStatusKind",
    "DEFAULT_SESSION_TITLE",
    "McpServerInfo",
    "Message",
    "MessageRole",
    "ServerStatus",
    "Session",
    "ToolDescriptor",
]
