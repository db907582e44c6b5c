"""Session store — client-side cache of the backend's sessions.

Holds the ordered session list and the single current session with its
transcript. The backend is the source of truth; this cache only changes
at explicit refresh points driven by the coordinator.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from trustagent.shared.models.message import Message, MessageRole
from trustagent.shared.models.session import Session

logger = logging.getLogger(__name__)


@dataclass
class PendingExchange:
    """A user message appended ahead of the backend's reply.

    Phase one (``SessionStore.begin_exchange``) appends the user message.
    Phase two is exactly one of ``confirm`` (append the reply) or ``fail``
    (append an assistant-role error). The user message is never rolled
    back.
    """

    store: SessionStore
    session_id: str
    user_message: Message
    settled: bool = field(default=False, init=False)

    def confirm(self, reply: str) -> Message | None:
        return self._settle(Message.assistant(reply))

    def fail(self, error_text: str) -> Message | None:
        return self._settle(Message.assistant(error_text))

    def _settle(self, message: Message) -> Message | None:
        if self.settled:
            raise RuntimeError("Exchange already settled")
        self.settled = True
        return self.store._append_to(self.session_id, message)


class SessionStore:
    """Ordered session summaries plus the current session transcript."""

    def __init__(self) -> None:
        self._sessions: list[Session] = []
        self._current: Session | None = None

    # ── read side ─────────────────────────────────────────────────────

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def current(self) -> Session | None:
        return self._current

    @property
    def current_id(self) -> str | None:
        return self._current.id if self._current else None

    @property
    def messages(self) -> list[Message]:
        if self._current is None:
            return []
        return list(self._current.messages)

    def get(self, session_id: str) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def current_is_blank(self) -> bool:
        return self._current is not None and self._current.is_blank

    # ── refresh points ────────────────────────────────────────────────

    def replace_sessions(self, sessions: Sequence[Session]) -> None:
        """Adopt a freshly fetched session list, keeping backend order."""
        self._sessions = list(sessions)
        if self._current is not None:
            listed = self.get(self._current.id)
            if listed is not None and listed.title != self._current.title:
                # Titles may be generated server-side after the first reply
                self._current = self._current.with_title(listed.title)

    def set_current(self, session: Session) -> None:
        self._current = Session(
            id=session.id,
            title=session.title,
            messages=list(session.messages),
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
        if self.get(session.id) is None:
            self._sessions.insert(0, session)

    def clear_current(self) -> None:
        self._current = None

    def rename_local(self, session_id: str, title: str) -> str | None:
        """Set a title locally. Returns the previous title, or None if unknown."""
        previous: str | None = None
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                previous = session.title
                self._sessions[index] = session.with_title(title)
        if self._current is not None and self._current.id == session_id:
            if previous is None:
                previous = self._current.title
            self._current = self._current.with_title(title)
        return previous

    def remove(self, session_id: str) -> bool:
        """Drop a session locally; clears the current pointer if it matched."""
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if s.id != session_id]
        was_current = self.current_id == session_id
        if was_current:
            self._current = None
        return was_current or len(self._sessions) != before

    # ── transcript ────────────────────────────────────────────────────

    def begin_exchange(self, text: str) -> PendingExchange:
        """Phase one of a send: append the user message immediately."""
        if self._current is None:
            raise RuntimeError("Cannot send without a current session")
        user_message = Message(role=MessageRole.USER, content=text)
        self._current.messages.append(user_message)
        return PendingExchange(
            store=self,
            session_id=self._current.id,
            user_message=user_message,
        )

    def _append_to(self, session_id: str, message: Message) -> Message | None:
        if self._current is None or self._current.id != session_id:
            # User switched sessions mid-send; the backend keeps the reply
            logger.info(
                "Dropping reply for session %s (current is %s)",
                session_id, self.current_id,
            )
            return None
        self._current.messages.append(message)
        return message
