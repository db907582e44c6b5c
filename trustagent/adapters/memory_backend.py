"""In-memory backend used for demo mode and tests.

Implements the same session rules as the desktop backend: switching away
from (or finalizing) a session deletes it when it is empty and otherwise
derives a title from its first user message. Nothing is persisted.
"""
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone

from trustagent.adapters.event_bridge import ChannelCallback, EventBridge
from trustagent.adapters.events import CHANNEL_AGENT_EVENT, CHANNEL_SERVER_STATUS
from trustagent.errors import BackendError, BackendUnavailableError, SessionNotFoundError
from trustagent.shared.models.message import Message
from trustagent.shared.models.session import DEFAULT_SESSION_TITLE, Session
from trustagent.shared.models.tools import AgentStatus, McpServerInfo, ServerStatus
from trustagent.shared.services.session_naming import derive_session_title

logger = logging.getLogger(__name__)

StatusReporter = Callable[[AgentStatus | None], Awaitable[None]]
Responder = Callable[[str, frozenset[str], StatusReporter], Awaitable[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _copy(session: Session) -> Session:
    return replace(session, messages=list(session.messages))


class InMemoryBackend:
    """Backend that keeps sessions and tool servers in process memory."""

    def __init__(
        self,
        responder: Responder | None = None,
        servers: dict[str, list[str]] | None = None,
    ) -> None:
        self._sessions: dict[str, Session] = {}
        self._current_id: str | None = None
        self._servers: dict[str, ServerStatus] = {}
        self._tools: dict[str, list[str]] = {}
        self._responder: Responder = responder or simulated_reply
        self._callbacks: dict[str, ChannelCallback] = {}
        self._failures: dict[str, BackendError] = {}
        self.config_opened = 0
        self.calls: list[str] = []
        for name, tools in (servers or {}).items():
            self._servers[name] = ServerStatus.RUNNING
            self._tools[name] = list(tools)

    # ── test / demo helpers ──────────────────────────────────────────

    def seed_session(
        self,
        title: str,
        messages: Iterable[Message] = (),
        updated_at: datetime | None = None,
    ) -> Session:
        """Insert a stored session without touching the current pointer."""
        session = Session(id=str(uuid.uuid4()), title=title, messages=list(messages))
        if updated_at is not None:
            session.updated_at = updated_at
        self._sessions[session.id] = session
        return _copy(session)

    def inject_failure(
        self, operation: str, reason: str = "network error", *, unavailable: bool = False
    ) -> None:
        """Make the next call to *operation* fail."""
        if unavailable:
            self._failures[operation] = BackendUnavailableError(operation, reason)
        else:
            self._failures[operation] = BackendError(operation, reason)

    async def set_server_status(
        self,
        name: str,
        status: ServerStatus,
        tools: Iterable[str] | None = None,
    ) -> None:
        """Change a server's status and push ``mcp_server_status_changed``."""
        self._servers[name] = status
        if status is ServerStatus.RUNNING:
            if tools is not None:
                self._tools[name] = list(tools)
        else:
            self._tools.pop(name, None)
        logger.info("Tool server %s is now %s", name, status.value)
        await self._emit(CHANNEL_SERVER_STATUS, {})

    @property
    def current_id(self) -> str | None:
        return self._current_id

    # ── push channels ────────────────────────────────────────────────

    def attach_events(self, bridge: EventBridge) -> None:
        self._callbacks = {
            CHANNEL_SERVER_STATUS: bridge.make_callback(CHANNEL_SERVER_STATUS),
            CHANNEL_AGENT_EVENT: bridge.make_callback(CHANNEL_AGENT_EVENT),
        }

    async def _emit(self, channel: str, payload: dict) -> None:
        callback = self._callbacks.get(channel)
        if callback is not None:
            await callback(payload)

    async def _report_status(self, status: AgentStatus | None) -> None:
        payload = status.to_dict() if status is not None else {"status": None}
        await self._emit(CHANNEL_AGENT_EVENT, payload)

    # ── internals ────────────────────────────────────────────────────

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        # Yield so callers observe a real suspension point
        await asyncio.sleep(0)
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    def _finalize(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        if not session.messages:
            del self._sessions[session_id]
            logger.debug("Dropped empty session %s", session_id)
            return
        if session.title == DEFAULT_SESSION_TITLE:
            session.title = derive_session_title(session.messages)
        session.updated_at = _utcnow()

    def _new_session(self) -> Session:
        session = Session(id=str(uuid.uuid4()), title=DEFAULT_SESSION_TITLE)
        self._sessions[session.id] = session
        self._current_id = session.id
        return session

    # ── sessions ─────────────────────────────────────────────────────

    async def get_all_sessions(self) -> list[Session]:
        await self._enter("get_all_sessions")
        ordered = sorted(
            self._sessions.values(), key=lambda s: s.updated_at, reverse=True
        )
        return [_copy(s) for s in ordered]

    async def get_current_session(self) -> Session:
        await self._enter("get_current_session")
        session = self._sessions.get(self._current_id or "")
        if session is None:
            raise SessionNotFoundError("get_current_session")
        return _copy(session)

    async def finalize_and_new_chat(self) -> Session:
        await self._enter("finalize_and_new_chat")
        if self._current_id is not None:
            self._finalize(self._current_id)
        return _copy(self._new_session())

    async def select_session(self, session_id: str) -> Session:
        await self._enter("select_session")
        if session_id not in self._sessions:
            raise SessionNotFoundError("select_session", session_id)
        if self._current_id is not None and self._current_id != session_id:
            self._finalize(self._current_id)
        self._current_id = session_id
        return _copy(self._sessions[session_id])

    async def rename_session(self, session_id: str, new_title: str) -> None:
        await self._enter("rename_session")
        session = self._sessions.get(session_id)
        if session is not None:
            session.title = new_title
            session.updated_at = _utcnow()

    async def delete_session(self, session_id: str) -> None:
        await self._enter("delete_session")
        if self._sessions.pop(session_id, None) is not None:
            if self._current_id == session_id:
                self._current_id = None

    # ── agent ────────────────────────────────────────────────────────

    async def run_agent_task(self, message: str, active_tools: Iterable[str]) -> str:
        await self._enter("run_agent_task")
        session = self._sessions.get(self._current_id or "")
        if session is None:
            session = self._new_session()
        session.messages.append(Message.user(message))
        session.updated_at = _utcnow()

        tools = frozenset(active_tools)
        await self._report_status(AgentStatus.thinking())
        try:
            reply = await self._responder(message, tools, self._report_status)
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError("run_agent_task", str(exc)) from exc
        finally:
            await self._report_status(None)

        session.messages.append(Message.assistant(reply))
        session.updated_at = _utcnow()
        if session.title == DEFAULT_SESSION_TITLE:
            session.title = derive_session_title(session.messages)
        return reply

    # ── tools ────────────────────────────────────────────────────────

    async def get_mcp_servers(self) -> list[McpServerInfo]:
        await self._enter("get_mcp_servers")
        return [McpServerInfo(name, status) for name, status in self._servers.items()]

    async def get_discovered_tools(self, server_name: str) -> list[str]:
        await self._enter("get_discovered_tools")
        return list(self._tools.get(server_name, []))

    async def get_all_discovered_tools(self) -> list[str]:
        await self._enter("get_all_discovered_tools")
        names: list[str] = []
        for server, status in self._servers.items():
            if status is not ServerStatus.RUNNING:
                continue
            for tool in self._tools.get(server, []):
                if tool not in names:
                    names.append(tool)
        return names

    async def open_config_file(self) -> None:
        await self._enter("open_config_file")
        self.config_opened += 1
        logger.info("Config file open requested (in-memory backend)")

    async def aclose(self) -> None:
        self._callbacks = {}


async def simulated_reply(
    message: str, tools: frozenset[str], report: StatusReporter
) -> str:
    """Demo responder that answers in a format matching the request."""
    if tools:
        tool = sorted(tools)[0]
        await report(AgentStatus.using_tool(tool))
        await asyncio.sleep(0.2)
        await report(AgentStatus.thinking())
    await asyncio.sleep(0.3)

    lowered = message.lower()
    if "json" in lowered:
        return (
            '{"request": %s, "tools": %s, "status": "ok"}'
            % (json.dumps(message), json.dumps(sorted(tools)))
        )
    if "html" in lowered:
        return (
            "<!DOCTYPE html>\n<html><body><h1>Demo</h1>"
            "<p>Simulated HTML reply.</p></body></html>"
        )
    if "xml" in lowered:
        return "<reply>\n  <status>ok</status>\n  <echo>demo</echo>\n</reply>"
    return (
        "## Simulated reply\n\n"
        f"You said: *{message}*\n\n"
        f"- Enabled tools: {', '.join(sorted(tools)) or 'none'}\n"
        "- Ask for JSON, XML or HTML to see the other renderers."
    )
