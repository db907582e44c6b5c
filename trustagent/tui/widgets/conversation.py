"""Conversation view — scrollable transcript of the current session.

Assistant messages are rendered through the content-format classifier:
JSON and XML/HTML get syntax highlighting, everything else goes through
Rich's Markdown renderer.
"""

from __future__ import annotations

import logging

from rich.console import RenderableType
from rich.markdown import Markdown as RichMarkdown
from rich.syntax import Syntax
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widget import Widget
from textual.widgets import Static

from trustagent.shared.formatters.content_format import (
    FormatTag,
    classify,
    fence_language,
    pretty_json,
    unwrap_fenced_block,
)
from trustagent.shared.models.message import Message, MessageRole
from trustagent.sync.coordinator import ERROR_PREFIX

logger = logging.getLogger(__name__)

_SYNTAX_THEME = "monokai"


def _esc(text: str) -> str:
    """Escape Rich markup characters in dynamic content."""
    return text.replace("[", "\\[")


def render_content(text: str) -> RenderableType:
    """Pick a Rich renderable for one message body.

    A message that is a single fenced block with a language tag is shown
    as highlighted code in that language. Structured renderers fall back
    to plain text when they cannot handle the content.
    """
    language = fence_language(text)
    if language:
        return Syntax(unwrap_fenced_block(text), language, theme=_SYNTAX_THEME, word_wrap=True)

    tag = classify(text)
    if tag is FormatTag.JSON:
        try:
            return Syntax(pretty_json(text), "json", theme=_SYNTAX_THEME, word_wrap=True)
        except ValueError:
            logger.debug("JSON re-indent failed; showing raw text")
            return Text(text)
    if tag in (FormatTag.XML, FormatTag.HTML):
        return Syntax(text.strip(), tag.value, theme=_SYNTAX_THEME, word_wrap=True)
    if tag is FormatTag.MARKDOWN:
        return RichMarkdown(text)
    return Text(text)


class MessageWidget(Widget):
    """A single rendered message with timestamp and role badge."""

    DEFAULT_CSS = """
    MessageWidget {
        height: auto;
    }
    MessageWidget .msg-header {
        height: auto;
    }
    MessageWidget .msg-body {
        height: auto;
        margin: 0;
        padding: 0;
    }
    """

    def __init__(self, message: Message, **kwargs) -> None:
        self.message = message
        css_class = "message-user" if message.role is MessageRole.USER else "message-assistant"
        if message.role is MessageRole.ASSISTANT and message.content.startswith(ERROR_PREFIX):
            css_class += " message-error"
        super().__init__(classes=css_class, **kwargs)

    def compose(self) -> ComposeResult:
        msg = self.message
        ts = msg.timestamp.astimezone().strftime("%H:%M:%S")
        timestamp_str = f"[dim]{ts}[/dim]"

        if msg.role is MessageRole.USER:
            yield Static(
                f"[bold $primary]You[/bold $primary] {timestamp_str}",
                classes="msg-header",
                markup=True,
            )
            yield Static(Text(msg.content), classes="msg-body")
        else:
            yield Static(
                f"[bold cyan]Assistant[/bold cyan] {timestamp_str}",
                classes="msg-header",
                markup=True,
            )
            yield Static(render_content(msg.content), classes="msg-body")


class ConversationView(VerticalScroll):
    """Transcript of the current session, rebuilt only when it changes."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._session_id: str | None = None
        self._shown: list[Message] = []

    async def show(self, session_id: str | None, messages: list[Message]) -> None:
        """Sync the view with *messages*, appending when only new ones arrived."""
        shown = len(self._shown)
        # Rebuild unless what is on screen is still a prefix of the transcript
        if session_id != self._session_id or list(messages[:shown]) != self._shown:
            await self.remove_children()
            self._session_id = session_id
            self._shown = []
            if session_id is None:
                await self.mount(Static(
                    "[dim]No session selected. Type a message to start one.[/dim]",
                    classes="empty-hint",
                    markup=True,
                ))
                return

        new_messages = messages[len(self._shown):]
        if not new_messages:
            return
        if not self._shown:
            for hint in self.query(".empty-hint"):
                await hint.remove()
        await self.mount_all(MessageWidget(m) for m in new_messages)
        self._shown = list(messages)
        self.scroll_end(animate=False)

    @property
    def rendered_count(self) -> int:
        return len(self._shown)
