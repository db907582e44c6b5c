"""Session list — sidebar of chat sessions, newest first."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.text import Text
from textual.message import Message
from textual.widgets import Label, ListItem, ListView

from trustagent.shared.models.session import Session


def _format_relative_time(dt: datetime) -> str:
    """Format a datetime as a compact relative time string."""
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = max(int((now - dt).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def session_label(session: Session, current: bool) -> Text:
    label = Text()
    label.append("● " if current else "  ", style="green")
    label.append(session.title, style="bold" if current else "")
    label.append(f"  {_format_relative_time(session.updated_at)}", style="dim")
    return label


class SessionItem(ListItem):
    def __init__(self, session: Session, current: bool) -> None:
        self.session = session
        super().__init__(Label(session_label(session, current)))


class SessionList(ListView):
    """Sessions as listed by the backend. Selecting one asks to switch."""

    class SessionChosen(Message):
        def __init__(self, session_id: str) -> None:
            self.session_id = session_id
            super().__init__()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._signature: tuple = ()

    @property
    def highlighted_session(self) -> Session | None:
        item = self.highlighted_child
        if isinstance(item, SessionItem):
            return item.session
        return None

    async def show(self, sessions: list[Session], current_id: str | None) -> None:
        signature = tuple((s.id, s.title, s.updated_at) for s in sessions) + (current_id,)
        if signature == self._signature:
            return
        self._signature = signature
        await self.clear()
        for session in sessions:
            await self.append(SessionItem(session, session.id == current_id))
        for index, session in enumerate(sessions):
            if session.id == current_id:
                self.index = index
                break

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        if isinstance(event.item, SessionItem):
            self.post_message(self.SessionChosen(event.item.session.id))
