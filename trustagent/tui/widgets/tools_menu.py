"""Tools menu — tool servers and their tools, with per-tool enable toggles."""

from __future__ import annotations

from rich.text import Text
from textual.message import Message
from textual.widgets import Label, ListItem, ListView

from trustagent.shared.models.tools import ToolDescriptor
from trustagent.sync.tool_catalog import ToolCatalog


class ServerItem(ListItem):
    """Non-selectable header row for one tool server."""

    def __init__(self, name: str, running: bool) -> None:
        label = Text()
        label.append("▸ " if running else "■ ", style="green" if running else "red")
        label.append(name, style="bold")
        if not running:
            label.append("  stopped", style="dim italic")
        super().__init__(Label(label), disabled=True)


class ToolItem(ListItem):
    def __init__(self, tool: ToolDescriptor, enabled: bool) -> None:
        self.tool = tool
        label = Text()
        label.append("  [x] " if enabled else "  [ ] ", style="cyan" if enabled else "dim")
        label.append(tool.tool_name)
        super().__init__(Label(label))


class ToolsMenu(ListView):
    """Selecting a tool row asks the coordinator to toggle it."""

    class ToggleRequested(Message):
        def __init__(self, tool_name: str) -> None:
            self.tool_name = tool_name
            super().__init__()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._signature: tuple = ()

    async def show(self, catalog: ToolCatalog, enabled: frozenset[str]) -> None:
        signature = (
            tuple((s.name, s.status) for s in catalog.servers),
            tuple(sorted(catalog.tools_by_server.items())),
            enabled,
        )
        if signature == self._signature:
            return
        self._signature = signature
        index = self.index
        await self.clear()
        for server in catalog.servers:
            await self.append(ServerItem(server.name, server.is_running))
            for tool in catalog.tools_for(server.name):
                descriptor = ToolDescriptor(server.name, tool)
                await self.append(ToolItem(descriptor, tool in enabled))
        if index is not None and index < len(self.children):
            self.index = index

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        if isinstance(event.item, ToolItem):
            self.post_message(self.ToggleRequested(event.item.tool.tool_name))

    def toggle(self) -> None:
        self.toggle_class("visible")
