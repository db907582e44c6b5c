"""Tests for the HTTP + SSE backend client against a fake aiohttp server."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from trustagent.adapters.event_bridge import EventBridge
from trustagent.adapters.events import AgentStatusChanged, ServerStatusChanged
from trustagent.adapters.http_backend import HttpBackend, SseParser
from trustagent.errors import BackendError, BackendUnavailableError
from trustagent.shared.models.message import MessageRole
from trustagent.shared.models.tools import AgentStatus, ServerStatus
from trustagent.sync.coordinator import CoordinatorState, SyncCoordinator

_SESSION = {
    "id": "s1",
    "title": "Trip",
    "messages": [
        {"role": "user", "content": "plan it", "timestamp": 1700000000},
        {"role": "bot", "content": "sure", "timestamp": 1700000001},
    ],
    "created_at": 1700000000,
    "updated_at": 1700000001,
}


class TestSseParser:
    def test_single_event(self):
        parser = SseParser()
        assert parser.feed("event: agent_event\n") is None
        assert parser.feed('data: {"status": "thinking"}\n') is None
        assert parser.feed("\n") == ("agent_event", '{"status": "thinking"}')

    def test_multi_line_data_and_comments(self):
        parser = SseParser()
        parser.feed(": keepalive\n")
        parser.feed("data: a\n")
        parser.feed("data: b\n")
        assert parser.feed("\r\n") == ("message", "a\nb")

    def test_blank_line_without_data_resets(self):
        parser = SseParser()
        parser.feed("event: lonely\n")
        assert parser.feed("\n") is None
        parser.feed("data: x\n")
        assert parser.feed("\n") == ("message", "x")


class TestHttpBackend(AioHTTPTestCase):
    async def get_application(self):
        self.requests: list[tuple[str, dict[str, Any]]] = []
        app = web.Application()
        app.router.add_post("/invoke/{operation}", self._handle_invoke)
        app.router.add_get("/events", self._handle_events)
        return app

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.backend = HttpBackend(str(self.server.make_url("")))

    async def asyncTearDown(self):
        await self.backend.aclose()
        await super().asyncTearDown()

    # ── fake server ──

    async def _handle_invoke(self, request: web.Request) -> web.Response:
        operation = request.match_info["operation"]
        args = await request.json()
        self.requests.append((operation, args))

        if operation == "get_all_sessions":
            return web.json_response({"result": [_SESSION]})
        if operation in ("get_current_session", "select_session"):
            if args.get("id") == "missing":
                return web.json_response({"error": "Session to select not found"})
            return web.json_response({"result": _SESSION})
        if operation == "finalize_and_new_chat":
            return web.json_response({"result": "s1"})
        if operation in ("rename_session", "delete_session", "open_config_file"):
            return web.json_response({"result": None})
        if operation == "run_agent_task":
            return web.json_response({"result": f"echo {args['message']}"})
        if operation == "get_mcp_servers":
            return web.json_response({"result": [
                {"name": "fs", "status": "running"},
                {"name": "web", "status": "stopped"},
            ]})
        if operation == "get_discovered_tools":
            return web.json_response({"result": [{"name": "read"}, "write"]})
        if operation == "get_all_discovered_tools":
            return web.json_response({"result": ["read", "write"]})
        if operation == "crash":
            return web.Response(status=500, text="Internal Server Error")
        return web.json_response({"error": "unknown operation"}, status=404)

    async def _handle_events(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"},
        )
        await response.prepare(request)
        await response.write(b"event: connected\ndata: {}\n\n")
        await response.write(
            f"event: agent_event\ndata: {json.dumps({'status': 'thinking'})}\n\n".encode()
        )
        await response.write(b": keepalive\n\n")
        await response.write(b"event: mcp_server_status_changed\ndata: {}\n\n")
        await response.write(b"event: agent_event\ndata: {not json}\n\n")
        return response

    # ── commands ──

    async def test_get_all_sessions(self):
        sessions = await self.backend.get_all_sessions()
        assert [s.id for s in sessions] == ["s1"]
        assert [m.role for m in sessions[0].messages] == [
            MessageRole.USER, MessageRole.ASSISTANT,
        ]

    async def test_select_session_sends_id(self):
        session = await self.backend.select_session("s1")
        assert session.title == "Trip"
        assert self.requests[-1] == ("select_session", {"id": "s1"})

    async def test_error_body_raises_backend_error(self):
        with pytest.raises(BackendError) as info:
            await self.backend.select_session("missing")
        assert info.value.reason == "Session to select not found"
        assert info.value.operation == "select_session"

    async def test_rename_argument_names(self):
        await self.backend.rename_session("s1", "New title")
        assert self.requests[-1] == ("rename_session", {"id": "s1", "new_title": "New title"})

    async def test_run_agent_task_sends_sorted_tools(self):
        reply = await self.backend.run_agent_task("hi", {"write", "read"})
        assert reply == "echo hi"
        assert self.requests[-1] == (
            "run_agent_task", {"message": "hi", "active_tools": ["read", "write"]},
        )

    async def test_finalize_with_id_only_fetches_current(self):
        session = await self.backend.finalize_and_new_chat()
        assert session.id == "s1"
        assert [op for op, _ in self.requests] == [
            "finalize_and_new_chat", "get_current_session",
        ]

    async def test_tools(self):
        servers = await self.backend.get_mcp_servers()
        assert [(s.name, s.status) for s in servers] == [
            ("fs", ServerStatus.RUNNING), ("web", ServerStatus.STOPPED),
        ]
        assert await self.backend.get_discovered_tools("fs") == ["read", "write"]
        assert self.requests[-1] == ("get_discovered_tools", {"server_name": "fs"})
        assert await self.backend.get_all_discovered_tools() == ["read", "write"]

    async def test_unknown_operation(self):
        with pytest.raises(BackendError) as info:
            await self.backend._invoke("nope")
        assert info.value.reason == "unknown operation"

    async def test_non_json_response(self):
        with pytest.raises(BackendError) as info:
            await self.backend._invoke("crash")
        assert "invalid JSON" in info.value.reason

    # ── push channels ──

    async def test_event_stream_feeds_bridge(self):
        bridge = EventBridge()
        subscription = bridge.subscribe()
        self.backend.attach_events(bridge)

        first = await asyncio.wait_for(subscription.get(), timeout=5)
        second = await asyncio.wait_for(subscription.get(), timeout=5)

        assert isinstance(first, AgentStatusChanged)
        assert first.status == AgentStatus.thinking()
        assert isinstance(second, ServerStatusChanged)


@pytest.mark.asyncio
async def test_unreachable_backend_raises_unavailable():
    backend = HttpBackend("http://127.0.0.1:1")
    try:
        with pytest.raises(BackendUnavailableError):
            await backend.get_all_sessions()
    finally:
        await backend.aclose()


class TestMalformedBackend(AioHTTPTestCase):
    """A server whose payloads have the wrong shape."""

    async def get_application(self):
        app = web.Application()
        app.router.add_post("/invoke/{operation}", self._handle_invoke)
        app.router.add_get("/events", self._handle_events)
        return app

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.backend = HttpBackend(str(self.server.make_url("")))

    async def asyncTearDown(self):
        await self.backend.aclose()
        await super().asyncTearDown()

    async def _handle_invoke(self, request: web.Request) -> web.Response:
        operation = request.match_info["operation"]
        if operation == "get_all_sessions":
            return web.json_response({"result": [{"title": "no id"}]})
        if operation == "select_session":
            return web.json_response({"result": {"id": "s1", "messages": ["not a dict"]}})
        if operation == "get_mcp_servers":
            return web.json_response({"result": [{"status": "running"}]})
        if operation == "get_all_discovered_tools":
            return web.json_response({"result": 7})
        return web.json_response({"result": None})

    async def _handle_events(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"},
        )
        await response.prepare(request)
        bad = {"status": {"using_tool": "search"}}
        await response.write(f"event: agent_event\ndata: {json.dumps(bad)}\n\n".encode())
        await response.write(
            f"event: agent_event\ndata: {json.dumps({'status': 'thinking'})}\n\n".encode()
        )
        await response.write(b"event: mcp_server_status_changed\ndata: {}\n\n")
        return response

    async def test_session_without_id_is_backend_error(self):
        with pytest.raises(BackendError) as info:
            await self.backend.get_all_sessions()
        assert info.value.operation == "get_all_sessions"
        assert "malformed response" in info.value.reason

    async def test_non_dict_message_is_backend_error(self):
        with pytest.raises(BackendError) as info:
            await self.backend.select_session("s1")
        assert info.value.operation == "select_session"

    async def test_server_without_name_is_backend_error(self):
        with pytest.raises(BackendError):
            await self.backend.get_mcp_servers()

    async def test_non_list_tools_is_backend_error(self):
        with pytest.raises(BackendError):
            await self.backend.get_all_discovered_tools()

    async def test_startup_survives_malformed_sessions(self):
        alerts: list[str] = []
        coordinator = SyncCoordinator(
            self.backend, tool_seed_delay=60, on_alert=alerts.append
        )
        await coordinator.start()

        assert coordinator.state is CoordinatorState.READY
        assert coordinator.startup_error is not None
        assert len(alerts) == 1
        assert alerts[0].startswith("Failed to load chat sessions:")
        await coordinator.close()

    async def test_bad_event_does_not_stop_the_stream(self):
        bridge = EventBridge()
        subscription = bridge.subscribe()
        self.backend.attach_events(bridge)

        first = await asyncio.wait_for(subscription.get(), timeout=5)
        second = await asyncio.wait_for(subscription.get(), timeout=5)

        assert isinstance(first, AgentStatusChanged)
        assert first.status == AgentStatus.thinking()
        assert isinstance(second, ServerStatusChanged)
        # aclose() in teardown must not re-raise anything from the listener
