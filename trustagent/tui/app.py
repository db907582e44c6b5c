"""TrustAgent TUI — Textual application class."""

from __future__ import annotations

import logging
from pathlib import Path

from textual.app import App

from trustagent.adapters.backend import Backend
from trustagent.adapters.event_bridge import EventBridge
from trustagent.config import ClientConfig
from trustagent.sync.coordinator import SyncCoordinator
from trustagent.tui.screens.main import MainScreen

logger = logging.getLogger(__name__)


class TrustAgentApp(App):
    """Terminal chat client for a tool-using agent backend."""

    TITLE = "TrustAgent"
    SUB_TITLE = "Agent Chat"
    CSS_PATH = Path("styles/app.tcss")

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+n", "new_chat", "New Chat"),
        ("ctrl+r", "rename_session", "Rename"),
        ("ctrl+d", "delete_session", "Delete"),
        ("ctrl+l", "focus_sessions", "Sessions"),
        ("ctrl+e", "focus_input", "Input"),
        ("f2", "toggle_tools", "Tools"),
        ("ctrl+o", "open_config", "Config"),
        ("escape", "blur", "Blur"),
    ]

    def __init__(
        self,
        backend: Backend,
        config: ClientConfig | None = None,
        *,
        backend_label: str = "in-memory",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or ClientConfig()
        self.backend = backend
        self.backend_label = backend_label
        self.coordinator = SyncCoordinator(
            backend,
            bridge=EventBridge(queue_size=self.config.event_queue_size),
            tool_seed_delay=self.config.tool_seed_delay_seconds,
            on_alert=self._alert,
        )
        self._shut_down = False

    def on_mount(self) -> None:
        self.push_screen(MainScreen(
            self.coordinator,
            backend_label=self.backend_label,
            demo=self.config.demo_mode,
        ))

    def _alert(self, message: str) -> None:
        self.notify(message, title="Error", severity="error", timeout=8)

    def _main_screen(self) -> MainScreen | None:
        screen = self.screen
        return screen if isinstance(screen, MainScreen) else None

    def action_new_chat(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.new_chat()

    def action_rename_session(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.request_rename()

    def action_delete_session(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.request_delete()

    def action_focus_sessions(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.focus_sessions()

    def action_focus_input(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.focus_input()

    def action_toggle_tools(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.toggle_tools_menu()

    def action_open_config(self) -> None:
        screen = self._main_screen()
        if screen is not None:
            screen.open_config()

    def action_blur(self) -> None:
        self.screen.set_focus(None)

    async def shutdown(self) -> None:
        """Tear down the coordinator and release the backend."""
        if self._shut_down:
            return
        self._shut_down = True
        await self.coordinator.close()
        self.coordinator.bridge.close()
        await self.backend.aclose()
        logger.info("TUI shut down")

    async def action_quit(self) -> None:
        await self.shutdown()
        await super().action_quit()
