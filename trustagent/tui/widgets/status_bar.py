"""Status bar — bottom bar showing connection, agent status and tool count."""

from __future__ import annotations

import time
from typing import Optional

from rich.text import Text
from textual.reactive import reactive
from textual.timer import Timer
from textual.widget import Widget


def _format_elapsed(seconds: float) -> str:
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s"
    m, s = divmod(secs, 60)
    return f"{m}m {s}s"


class StatusBar(Widget):
    """Single-line status bar driven by the coordinator's state."""

    backend_label: reactive[str] = reactive("—")
    state: reactive[str] = reactive("uninitialized")
    agent_status: reactive[str] = reactive("")
    sending: reactive[bool] = reactive(False)
    active_tools: reactive[int] = reactive(0)
    mode: reactive[str] = reactive("live")

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._send_started_at: Optional[float] = None
        self._elapsed_timer: Timer | None = None

    def watch_sending(self, old_value: bool, new_value: bool) -> None:
        if new_value and not old_value:
            self._send_started_at = time.monotonic()
            if self._elapsed_timer is None:
                self._elapsed_timer = self.set_interval(1.0, self.refresh)
        elif old_value and not new_value:
            self._send_started_at = None
            if self._elapsed_timer is not None:
                self._elapsed_timer.stop()
                self._elapsed_timer = None

    def watch_mode(self, value: str) -> None:
        if value == "demo":
            self.add_class("demo-mode")
        else:
            self.remove_class("demo-mode")

    def render(self) -> Text:
        state_colors = {
            "ready": "green",
            "initializing": "yellow",
            "uninitialized": "dim",
            "error": "red bold",
        }
        bar = Text()

        if self.mode == "demo":
            bar.append(" ⚠ DEMO ", style="bold black on yellow")
            bar.append(" ", style="dim")

        bar.append(f" {self.backend_label} ", style="bold")
        bar.append(" │ ", style="dim")
        bar.append(f"● {self.state}", style=state_colors.get(self.state, "white"))
        bar.append(" │ ", style="dim")
        bar.append(f"{self.active_tools} tool(s) active", style="cyan")

        if self.sending:
            bar.append(" │ ", style="dim")
            label = self.agent_status or "Waiting for reply"
            if self._send_started_at is not None:
                label += f" ({_format_elapsed(time.monotonic() - self._send_started_at)})"
            bar.append(label, style="yellow")

        return bar
