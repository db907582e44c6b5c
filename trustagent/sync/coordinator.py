"""Sync coordinator — keeps the client caches consistent with the backend.

User actions and bridge events both funnel through ``SyncCoordinator``.
It issues backend calls, awaits them, and applies each response to the
SessionStore / ActiveToolSet / ToolCatalog in one step, so a failed call
never leaves a cache half-updated.

Ordering rules:
    - startup steps run strictly in sequence; the tool seed runs beside
      them after a short delay;
    - tool queries (startup seed, server-status re-queries) apply in
      resolution order, so the last one to resolve wins;
    - toggles wait for every outstanding tool query to settle first;
    - nothing is applied once ``close()`` has run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from trustagent.adapters.backend import Backend
from trustagent.adapters.event_bridge import EventBridge, Subscription
from trustagent.adapters.events import AgentStatusChanged, BridgeEvent, ServerStatusChanged
from trustagent.errors import BackendError, CoordinatorClosedError
from trustagent.shared.models.message import Message
from trustagent.shared.models.session import Session
from trustagent.shared.models.tools import AgentStatus
from trustagent.sync.active_tools import ActiveToolSet
from trustagent.sync.session_store import SessionStore
from trustagent.sync.tool_catalog import ToolCatalog

logger = logging.getLogger(__name__)

ERROR_PREFIX = "❌ Error: "

Listener = Callable[[], None]
AlertHandler = Callable[[str], None]


class CoordinatorState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class Reaction:
    """What the coordinator should do in response to one bridge event."""
    agent_status: AgentStatus | None
    requery_tools: bool = False


def react_to_event(
    event: BridgeEvent,
    *,
    sending: bool,
    current_status: AgentStatus | None,
) -> Reaction:
    """Pure transition from (event, current state) to the next state.

    Agent statuses only matter while a send is outstanding; anything that
    arrives outside that window is stale and ignored.
    """
    if isinstance(event, ServerStatusChanged):
        return Reaction(agent_status=current_status, requery_tools=True)
    if isinstance(event, AgentStatusChanged):
        if not sending:
            return Reaction(agent_status=None)
        return Reaction(agent_status=event.status)
    return Reaction(agent_status=current_status)


def format_error_reply(error: BaseException) -> str:
    reason = error.reason if isinstance(error, BackendError) else str(error)
    return f"{ERROR_PREFIX}{reason}"


class SyncCoordinator:
    """Owns the client caches and serializes backend round trips against them."""

    def __init__(
        self,
        backend: Backend,
        *,
        bridge: EventBridge | None = None,
        tool_seed_delay: float = 1.5,
        on_alert: AlertHandler | None = None,
    ) -> None:
        self.backend = backend
        self.bridge = bridge or EventBridge()
        self.store = SessionStore()
        self.active_tools = ActiveToolSet()
        self.catalog = ToolCatalog()
        self.state = CoordinatorState.UNINITIALIZED
        self.startup_error: BackendError | None = None
        self.agent_status: AgentStatus | None = None
        self.is_sending = False

        self._tool_seed_delay = tool_seed_delay
        self._on_alert = on_alert
        self._listeners: list[Listener] = []
        self._closed = False
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()
        self._tool_queries_pending = 0
        self._tools_settled = asyncio.Event()
        self._tools_settled.set()

    # ── observers ────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a no-arg callback fired after each applied change."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Coordinator listener failed")

    def _alert(self, message: str) -> None:
        logger.error("Alert: %s", message)
        if self._on_alert is not None and not self._closed:
            self._on_alert(message)

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise CoordinatorClosedError(operation)

    # ── lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Run the startup sequence and begin consuming bridge events."""
        self._ensure_open("start")
        if self.state is not CoordinatorState.UNINITIALIZED:
            logger.debug("start() ignored in state %s", self.state.value)
            return
        self.state = CoordinatorState.INITIALIZING
        self._notify()

        self._subscription = self.bridge.subscribe()
        self.backend.attach_events(self.bridge)
        self._spawn(self._consume_events(self._subscription), "bridge-consumer")
        self._spawn(self._seed_tools(), "tool-seed")

        try:
            await self._load_initial_session()
        except BackendError as exc:
            if self._closed:
                return
            logger.error("Startup failed: %s", exc.describe())
            self.startup_error = exc
            self._alert(f"Failed to load chat sessions: {exc.reason}")

        if self._closed:
            return
        self.state = CoordinatorState.READY
        logger.info(
            "Coordinator ready: %d session(s), current=%s",
            len(self.store.sessions), self.store.current_id,
        )
        self._notify()

    async def _load_initial_session(self) -> None:
        sessions = await self.backend.get_all_sessions()
        if self._closed:
            return
        self.store.replace_sessions(sessions)
        self._notify()

        if sessions:
            current = await self.backend.select_session(sessions[0].id)
        else:
            current = await self.backend.finalize_and_new_chat()
        if self._closed:
            return
        self.store.set_current(current)

        # Selecting or creating may have finalized the backend's previous
        # session, so the list fetched above can be stale
        try:
            sessions = await self.backend.get_all_sessions()
        except BackendError as exc:
            logger.warning("Session list reload during startup failed: %s", exc.describe())
        else:
            if not self._closed:
                self.store.replace_sessions(sessions)
        self._notify()

    async def close(self) -> None:
        """Tear down: stop event consumption and ignore in-flight results."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
        tasks = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._listeners.clear()
        logger.info("Coordinator closed")

    # ── bridge events ────────────────────────────────────────────────

    async def _consume_events(self, subscription: Subscription) -> None:
        async for event in subscription:
            if self._closed:
                break
            self.apply_event(event)

    def apply_event(self, event: BridgeEvent) -> Reaction:
        reaction = react_to_event(
            event, sending=self.is_sending, current_status=self.agent_status
        )
        if reaction.agent_status != self.agent_status:
            self.agent_status = reaction.agent_status
            self._notify()
        if reaction.requery_tools and not self._closed:
            self._spawn(self.refresh_tools(), "tool-requery")
        return reaction

    # ── tools ────────────────────────────────────────────────────────

    async def _seed_tools(self) -> None:
        if self._tool_seed_delay > 0:
            await asyncio.sleep(self._tool_seed_delay)
        await self.refresh_tools()

    async def refresh_tools(self) -> bool:
        """Re-query discoverable tools and the catalog; True if applied."""
        if self._closed:
            return False
        self._tool_queries_pending += 1
        self._tools_settled.clear()
        try:
            try:
                names = await self.backend.get_all_discovered_tools()
                catalog = await self._fetch_catalog()
            except BackendError as exc:
                logger.error("Tool refresh failed: %s", exc.describe())
                return False
            if self._closed:
                return False
            # Applied as soon as this query resolves: last to resolve wins
            self.active_tools.replace_all(names)
            self.catalog = catalog
            logger.info(
                "Tools refreshed: %d active, %d server(s)",
                len(self.active_tools), len(catalog.servers),
            )
            self._notify()
            return True
        finally:
            self._tool_queries_pending -= 1
            if self._tool_queries_pending == 0:
                self._tools_settled.set()

    async def _fetch_catalog(self) -> ToolCatalog:
        servers = await self.backend.get_mcp_servers()
        tools_by_server: dict[str, list[str]] = {}
        for server in servers:
            if server.is_running:
                tools_by_server[server.name] = await self.backend.get_discovered_tools(
                    server.name
                )
        return ToolCatalog.build(servers, tools_by_server)

    async def toggle_tool(self, tool_name: str) -> bool:
        """Flip a tool once no tool query is outstanding. Returns new state."""
        self._ensure_open("toggle_tool")
        while self._tool_queries_pending:
            await self._tools_settled.wait()
        self.active_tools.toggle(tool_name)
        enabled = self.active_tools.is_enabled(tool_name)
        logger.debug("Tool %s %s", tool_name, "enabled" if enabled else "disabled")
        self._notify()
        return enabled

    # ── sessions ─────────────────────────────────────────────────────

    async def new_chat(self) -> Session | None:
        """Finalize the current session and start a new one.

        A blank current session is simply kept, so repeated "new chat"
        clicks never pile up empty sessions.
        """
        self._ensure_open("new_chat")
        current = self.store.current
        if current is not None and current.is_blank:
            logger.debug("new_chat: current session %s is blank; reusing it", current.id)
            self._notify()
            return current

        try:
            session = await self.backend.finalize_and_new_chat()
            sessions = await self.backend.get_all_sessions()
        except BackendError as exc:
            logger.error("new_chat failed: %s", exc.describe())
            self._alert(f"Error creating new chat: {exc.reason}")
            return None
        if self._closed:
            return None
        self.store.replace_sessions(sessions)
        self.store.set_current(session)
        self._notify()
        return self.store.current

    async def select_session(self, session_id: str) -> Session | None:
        self._ensure_open("select_session")
        try:
            session = await self.backend.select_session(session_id)
        except BackendError as exc:
            logger.error("select_session(%s) failed: %s", session_id, exc.describe())
            self._alert(f"Error switching session: {exc.reason}")
            return None

        sessions: list[Session] | None = None
        try:
            sessions = await self.backend.get_all_sessions()
        except BackendError as exc:
            logger.error("Session list reload failed: %s", exc.describe())
            self._alert(f"Error loading sessions: {exc.reason}")
        if self._closed:
            return None

        # The backend already switched; mirror it even if the list reload failed
        if sessions is not None:
            self.store.replace_sessions(sessions)
        self.store.set_current(session)
        self._notify()
        return self.store.current

    async def rename_session(self, session_id: str, new_title: str) -> bool:
        self._ensure_open("rename_session")
        title = new_title.strip()
        if not title:
            logger.debug("rename_session: blank title rejected")
            return False

        if session_id == self.store.current_id:
            previous = self.store.rename_local(session_id, title)
            self._notify()
            try:
                await self.backend.rename_session(session_id, title)
            except BackendError as exc:
                logger.error("rename_session(%s) failed: %s", session_id, exc.describe())
                if not self._closed and previous is not None:
                    self.store.rename_local(session_id, previous)
                    self._notify()
                self._alert(f"Error renaming session: {exc.reason}")
                return False
            return True

        try:
            await self.backend.rename_session(session_id, title)
        except BackendError as exc:
            logger.error("rename_session(%s) failed: %s", session_id, exc.describe())
            self._alert(f"Error renaming session: {exc.reason}")
            return False
        if self._closed:
            return True
        self.store.rename_local(session_id, title)
        self._notify()
        await self._reload_sessions()
        return True

    async def delete_session(self, session_id: str) -> bool:
        self._ensure_open("delete_session")
        try:
            await self.backend.delete_session(session_id)
        except BackendError as exc:
            logger.error("delete_session(%s) failed: %s", session_id, exc.describe())
            self._alert(f"Error deleting session: {exc.reason}")
            return False
        if self._closed:
            return True
        self.store.remove(session_id)
        self._notify()
        await self._reload_sessions()
        return True

    async def _reload_sessions(self) -> bool:
        try:
            sessions = await self.backend.get_all_sessions()
        except BackendError as exc:
            logger.error("Session list reload failed: %s", exc.describe())
            self._alert(f"Error loading sessions: {exc.reason}")
            return False
        if self._closed:
            return False
        self.store.replace_sessions(sessions)
        self._notify()
        return True

    async def refresh_sessions(self) -> bool:
        """Explicit refresh point for the session list."""
        self._ensure_open("refresh_sessions")
        return await self._reload_sessions()

    # ── messages ─────────────────────────────────────────────────────

    async def send_message(self, text: str) -> Message | None:
        """Send *text* to the agent; returns the appended reply or error message.

        Returns None when nothing was sent (blank text, a send already in
        flight, or no session could be created).
        """
        self._ensure_open("send_message")
        trimmed = text.strip()
        if not trimmed or self.is_sending:
            return None

        if self.store.current is None:
            await self.new_chat()
            if self._closed:
                return None
            if self.store.current is None:
                logger.error("send_message aborted: no session could be created")
                return None

        exchange = self.store.begin_exchange(trimmed)
        self.is_sending = True
        self.agent_status = None
        self._notify()

        reply: Message | None = None
        succeeded = False
        try:
            answer = await self.backend.run_agent_task(
                trimmed, self.active_tools.snapshot()
            )
        except BackendError as exc:
            logger.error("run_agent_task failed: %s", exc.describe())
            if not self._closed:
                reply = exchange.fail(format_error_reply(exc))
        else:
            if not self._closed:
                reply = exchange.confirm(answer)
                succeeded = True
        finally:
            # Cleared regardless of which status events did or did not arrive
            if not self._closed:
                self.is_sending = False
                self.agent_status = None
                self._notify()

        if succeeded:
            await self._reload_sessions()
        return reply

    # ── misc ─────────────────────────────────────────────────────────

    async def open_config(self) -> bool:
        self._ensure_open("open_config")
        try:
            await self.backend.open_config_file()
        except BackendError as exc:
            logger.error("open_config_file failed: %s", exc.describe())
            return False
        return True
