"""Main screen — session sidebar, transcript, tools menu and prompt input."""

from __future__ import annotations

import logging

from textual import work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Header, Input

from trustagent.sync.coordinator import CoordinatorState, SyncCoordinator
from trustagent.tui.screens.delete_confirm import DeleteConfirmScreen
from trustagent.tui.screens.rename import RenameScreen
from trustagent.tui.widgets.conversation import ConversationView
from trustagent.tui.widgets.session_list import SessionList
from trustagent.tui.widgets.status_bar import StatusBar
from trustagent.tui.widgets.tools_menu import ToolsMenu

logger = logging.getLogger(__name__)


class MainScreen(Screen):
    """Primary workspace. All state lives in the coordinator; this only renders it."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        *,
        backend_label: str = "in-memory",
        demo: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.coordinator = coordinator
        self._backend_label = backend_label
        self._demo = demo
        self._refresh_scheduled = False
        self._remove_listener = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="workspace"):
            yield SessionList(id="session-list")
            with Vertical(id="main-pane"):
                yield ConversationView(id="conversation")
                yield ToolsMenu(id="tools-menu")
        yield Input(placeholder="Type a message and press Enter...", id="prompt-input")
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        sb = self.query_one("#status-bar", StatusBar)
        sb.backend_label = self._backend_label
        sb.mode = "demo" if self._demo else "live"
        if self._demo:
            self.notify(
                "No backend connected. Responses are simulated.",
                title="Demo mode",
                severity="warning",
            )
        self._remove_listener = self.coordinator.add_listener(self._on_state_changed)
        self.query_one("#prompt-input", Input).focus()
        self._on_state_changed()
        if self.coordinator.state is CoordinatorState.UNINITIALIZED:
            self._start_coordinator()

    def on_unmount(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    # ── rendering ────────────────────────────────────────────────────

    def _on_state_changed(self) -> None:
        # Coalesce bursts of changes into one refresh
        if self._refresh_scheduled:
            return
        self._refresh_scheduled = True
        self.call_later(self._refresh_views)

    async def _refresh_views(self) -> None:
        self._refresh_scheduled = False
        coordinator = self.coordinator
        store = coordinator.store
        await self.query_one("#session-list", SessionList).show(
            store.sessions, store.current_id
        )
        await self.query_one("#conversation", ConversationView).show(
            store.current_id, store.messages
        )
        await self.query_one("#tools-menu", ToolsMenu).show(
            coordinator.catalog, coordinator.active_tools.snapshot()
        )

        sb = self.query_one("#status-bar", StatusBar)
        if coordinator.startup_error is not None:
            sb.state = "error"
        else:
            sb.state = coordinator.state.value
        sb.sending = coordinator.is_sending
        sb.agent_status = coordinator.agent_status.label if coordinator.agent_status else ""
        sb.active_tools = len(coordinator.active_tools)
        if store.current is not None:
            self.app.sub_title = store.current.title

    # ── workers ──────────────────────────────────────────────────────

    @work(name="coordinator-start")
    async def _start_coordinator(self) -> None:
        await self.coordinator.start()

    @work(name="send-message")
    async def _send(self, text: str) -> None:
        await self.coordinator.send_message(text)

    @work(name="select-session")
    async def _select(self, session_id: str) -> None:
        await self.coordinator.select_session(session_id)

    @work(name="new-chat")
    async def new_chat(self) -> None:
        await self.coordinator.new_chat()

    @work(name="rename-session")
    async def _rename(self, session_id: str, title: str) -> None:
        await self.coordinator.rename_session(session_id, title)

    @work(name="delete-session")
    async def _delete(self, session_id: str) -> None:
        await self.coordinator.delete_session(session_id)

    @work(name="toggle-tool")
    async def _toggle(self, tool_name: str) -> None:
        await self.coordinator.toggle_tool(tool_name)

    @work(name="open-config")
    async def open_config(self) -> None:
        if not await self.coordinator.open_config():
            self.notify("Could not open the config file.", severity="warning")

    # ── events ───────────────────────────────────────────────────────

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        text = event.value
        if not text.strip():
            return
        if self.coordinator.is_sending:
            self.notify("Still waiting for the previous reply.", severity="warning")
            return
        event.input.value = ""
        self._send(text)

    def on_session_list_session_chosen(self, event: SessionList.SessionChosen) -> None:
        event.stop()
        if event.session_id != self.coordinator.store.current_id:
            self._select(event.session_id)

    def on_tools_menu_toggle_requested(self, event: ToolsMenu.ToggleRequested) -> None:
        event.stop()
        self._toggle(event.tool_name)

    # ── actions (called from app bindings) ───────────────────────────

    def _target_session(self):
        """Highlighted sidebar session, else the current one."""
        session_list = self.query_one("#session-list", SessionList)
        return session_list.highlighted_session or self.coordinator.store.current

    def request_rename(self) -> None:
        session = self._target_session()
        if session is None:
            return

        def _on_result(title: str | None) -> None:
            if title:
                self._rename(session.id, title)

        self.app.push_screen(RenameScreen(session), _on_result)

    def request_delete(self) -> None:
        session = self._target_session()
        if session is None:
            return

        def _on_result(choice: str | None) -> None:
            if choice == "delete":
                self._delete(session.id)

        self.app.push_screen(DeleteConfirmScreen(session), _on_result)

    def toggle_tools_menu(self) -> None:
        self.query_one("#tools-menu", ToolsMenu).toggle()

    def focus_sessions(self) -> None:
        self.query_one("#session-list", SessionList).focus()

    def focus_input(self) -> None:
        self.query_one("#prompt-input", Input).focus()
