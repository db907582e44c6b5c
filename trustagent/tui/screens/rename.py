"""Rename modal — asks for a new session title.

Returns the trimmed title, or None if cancelled or left blank.
"""
from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from trustagent.shared.models.session import Session


class RenameScreen(ModalScreen[str | None]):
    """Modal text prompt for renaming a session."""

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
    ]

    def __init__(self, session: Session, **kwargs) -> None:
        super().__init__(**kwargs)
        self.session = session

    def compose(self) -> ComposeResult:
        with Vertical(id="rename-dialog", classes="modal-dialog"):
            yield Label("Rename session")
            yield Input(value=self.session.title, id="rename-input")
            yield Button("Save", id="btn-rename-save", variant="primary")
            yield Button("[Esc] Cancel", id="btn-rename-cancel")

    def on_mount(self) -> None:
        self.query_one("#rename-input", Input).focus()

    def _submit(self) -> None:
        title = self.query_one("#rename-input", Input).value.strip()
        self.dismiss(title or None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-rename-save":
            self._submit()
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
