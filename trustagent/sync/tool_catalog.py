"""Tool catalog — which servers exist and which tools each one exposes."""

from __future__ import annotations

from dataclasses import dataclass, field

from trustagent.shared.models.tools import McpServerInfo, ToolDescriptor


@dataclass(frozen=True)
class ToolCatalog:
    """Immutable snapshot of tool servers and their discovered tools.

    Tools of a stopped server are kept out of every selectable view even
    when an earlier query discovered them.
    """

    servers: tuple[McpServerInfo, ...] = ()
    tools_by_server: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        servers: list[McpServerInfo],
        tools_by_server: dict[str, list[str]],
    ) -> ToolCatalog:
        running = {s.name for s in servers if s.is_running}
        return cls(
            servers=tuple(servers),
            tools_by_server={
                name: tuple(tools)
                for name, tools in tools_by_server.items()
                if name in running
            },
        )

    def server(self, name: str) -> McpServerInfo | None:
        for server in self.servers:
            if server.name == name:
                return server
        return None

    def tools_for(self, server_name: str) -> tuple[str, ...]:
        server = self.server(server_name)
        if server is None or not server.is_running:
            return ()
        return self.tools_by_server.get(server_name, ())

    def selectable(self) -> list[ToolDescriptor]:
        """All tools on running servers, in server order."""
        return [
            ToolDescriptor(server.name, tool)
            for server in self.servers
            if server.is_running
            for tool in self.tools_by_server.get(server.name, ())
        ]

    def selectable_names(self) -> set[str]:
        return {d.tool_name for d in self.selectable()}
