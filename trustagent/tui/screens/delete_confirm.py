"""Delete confirmation modal — asks before deleting a chat session.

Returns "delete" if confirmed, None if cancelled.
"""
from __future__ import annotations

import time

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static

from trustagent.shared.models.session import Session


class DeleteConfirmScreen(ModalScreen[str | None]):
    """Modal confirmation dialog before deleting a session."""

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
        ("y", "confirm_delete", "Confirm"),
    ]

    _MOUNT_GUARD_SECONDS = 0.3

    def __init__(self, session: Session, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session = session
        self._mount_time = 0.0

    def compose(self) -> ComposeResult:
        safe_title = self.session.title.replace("[", "\\[")
        with Vertical(id="delete-confirm-dialog", classes="modal-dialog"):
            yield Label("Delete session?")
            yield Static(
                f"[bold]{safe_title}[/bold] [dim]"
                f"{self.session.message_count} message(s)[/dim]",
                markup=True,
            )
            yield Button("[y] Delete", id="btn-delete-confirm", variant="error")
            yield Button("[Esc] Cancel", id="btn-delete-cancel")

    def on_mount(self) -> None:
        self._mount_time = time.monotonic()
        self.query_one("#btn-delete-confirm", Button).focus()

    def _is_guarded(self) -> bool:
        # Swallow the keypress that opened the dialog
        return time.monotonic() - self._mount_time < self._MOUNT_GUARD_SECONDS

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if self._is_guarded():
            return
        if event.button.id == "btn-delete-confirm":
            self.dismiss("delete")
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)

    def action_confirm_delete(self) -> None:
        if self._is_guarded():
            return
        self.dismiss("delete")
