"""Backend interface consumed by the sync core.

Every operation is asynchronous and may raise ``BackendError``. The push
channels are not part of this protocol: backends hand their payloads to an
``EventBridge`` callback (see ``attach_events``).
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from trustagent.adapters.event_bridge import EventBridge
from trustagent.shared.models.session import Session
from trustagent.shared.models.tools import McpServerInfo


@runtime_checkable
class Backend(Protocol):
    async def get_all_sessions(self) -> list[Session]: ...

    async def get_current_session(self) -> Session: ...

    async def finalize_and_new_chat(self) -> Session: ...

    async def select_session(self, session_id: str) -> Session: ...

    async def rename_session(self, session_id: str, new_title: str) -> None: ...

    async def delete_session(self, session_id: str) -> None: ...

    async def run_agent_task(self, message: str, active_tools: Iterable[str]) -> str: ...

    async def get_mcp_servers(self) -> list[McpServerInfo]: ...

    async def get_discovered_tools(self, server_name: str) -> list[str]: ...

    async def get_all_discovered_tools(self) -> list[str]: ...

    async def open_config_file(self) -> None: ...

    def attach_events(self, bridge: EventBridge) -> None:
        """Route this backend's push channels into *bridge*."""
        ...

    async def aclose(self) -> None: ...
