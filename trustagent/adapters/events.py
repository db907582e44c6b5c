"""Event types delivered by the event bridge.

Each backend push channel payload is parsed into a typed dataclass so
consumers never handle raw dicts.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from trustagent.shared.models.tools import AgentStatus

logger = logging.getLogger(__name__)

CHANNEL_SERVER_STATUS = "mcp_server_status_changed"
CHANNEL_AGENT_EVENT = "agent_event"
CHANNELS = (CHANNEL_SERVER_STATUS, CHANNEL_AGENT_EVENT)

_CLEARED_STATUSES = {None, "", "idle", "done", "finished", "cleared"}


@dataclass(frozen=True)
class BridgeEvent:
    """Base event normalized from a backend push channel."""
    channel: str = ""


@dataclass(frozen=True)
class ServerStatusChanged(BridgeEvent):
    """Some tool server changed status. Which one is deliberately unknown."""
    channel: str = CHANNEL_SERVER_STATUS


@dataclass(frozen=True)
class AgentStatusChanged(BridgeEvent):
    channel: str = CHANNEL_AGENT_EVENT
    status: AgentStatus | None = None


def parse_agent_status(payload: Any) -> AgentStatus | None:
    """Parse an ``agent_event`` payload.

    Accepts ``{"status": "thinking"}``,
    ``{"status": "using_tool", "tool_name": "search"}``,
    ``{"status": {"using_tool": {"tool_name": "search"}}}`` and a cleared
    status (``null``/``"idle"``/``"done"``). Raises ValueError otherwise.
    """
    if isinstance(payload, dict) and "status" in payload:
        status = payload["status"]
        tool_name = payload.get("tool_name") or payload.get("toolName")
    else:
        status, tool_name = payload, None

    if isinstance(status, dict):
        if "using_tool" in status:
            inner = status["using_tool"] or {}
            if not isinstance(inner, dict):
                raise ValueError(f"Malformed using_tool status: {inner!r}")
            tool_name = inner.get("tool_name") or inner.get("toolName")
            status = "using_tool"
        elif "thinking" in status:
            status = "thinking"
        else:
            raise ValueError(f"Unknown agent status: {status!r}")

    if status is not None and not isinstance(status, str):
        raise ValueError(f"Unknown agent status: {status!r}")
    if status in _CLEARED_STATUSES:
        return None
    if status == "thinking":
        return AgentStatus.thinking()
    if status == "using_tool":
        if not tool_name:
            raise ValueError("using_tool status without a tool name")
        return AgentStatus.using_tool(str(tool_name))
    raise ValueError(f"Unknown agent status: {status!r}")


def normalize(channel: str, payload: Any = None) -> BridgeEvent:
    """Turn a raw channel payload into a typed event.

    Raises ValueError for unknown channels or malformed payloads.
    """
    if channel == CHANNEL_SERVER_STATUS:
        return ServerStatusChanged()
    if channel == CHANNEL_AGENT_EVENT:
        return AgentStatusChanged(status=parse_agent_status(payload))
    raise ValueError(f"Unknown push channel: {channel!r}")


def event_to_dict(event: BridgeEvent) -> dict[str, Any]:
    """Convert an event back to its channel payload (for fakes and logging)."""
    if isinstance(event, AgentStatusChanged):
        if event.status is None:
            return {"status": None}
        return event.status.to_dict()
    return {}
