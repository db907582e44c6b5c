"""Tests for push-channel normalization and the event bridge."""

from __future__ import annotations

import asyncio

import pytest

from trustagent.adapters.event_bridge import EventBridge
from trustagent.adapters.events import (
    CHANNEL_AGENT_EVENT,
    CHANNEL_SERVER_STATUS,
    AgentStatusChanged,
    ServerStatusChanged,
    event_to_dict,
    normalize,
    parse_agent_status,
)
from trustagent.shared.models.tools import AgentStatus


class TestParseAgentStatus:
    def test_thinking(self):
        assert parse_agent_status({"status": "thinking"}) == AgentStatus.thinking()

    def test_using_tool_flat(self):
        status = parse_agent_status({"status": "using_tool", "tool_name": "search"})
        assert status == AgentStatus.using_tool("search")

    def test_using_tool_nested(self):
        payload = {"status": {"using_tool": {"tool_name": "read_file"}}}
        assert parse_agent_status(payload) == AgentStatus.using_tool("read_file")

    def test_bare_string(self):
        assert parse_agent_status("thinking") == AgentStatus.thinking()

    @pytest.mark.parametrize("payload", [None, {"status": None}, "idle", {"status": "done"}])
    def test_cleared(self, payload):
        assert parse_agent_status(payload) is None

    @pytest.mark.parametrize("payload", [
        {"status": "dancing"},
        {"status": "using_tool"},
        {"status": {"unknown": {}}},
        {"status": 42},
        {"status": ["thinking"]},
        {"status": {"using_tool": "search"}},
    ])
    def test_malformed(self, payload):
        with pytest.raises(ValueError):
            parse_agent_status(payload)


class TestNormalize:
    def test_server_status_payload_is_ignored(self):
        assert isinstance(normalize(CHANNEL_SERVER_STATUS, {"anything": 1}), ServerStatusChanged)

    def test_agent_event(self):
        event = normalize(CHANNEL_AGENT_EVENT, {"status": "thinking"})
        assert isinstance(event, AgentStatusChanged)
        assert event.status == AgentStatus.thinking()
        assert event_to_dict(event) == {"status": "thinking"}

    def test_unknown_channel(self):
        with pytest.raises(ValueError):
            normalize("nope", {})


@pytest.mark.asyncio
async def test_bridge_fans_out_to_every_subscriber():
    bridge = EventBridge()
    first = bridge.subscribe()
    second = bridge.subscribe()
    callback = bridge.make_callback(CHANNEL_SERVER_STATUS)

    await callback({})

    assert isinstance(await first.get(), ServerStatusChanged)
    assert isinstance(await second.get(), ServerStatusChanged)


@pytest.mark.asyncio
async def test_bridge_preserves_order():
    bridge = EventBridge()
    sub = bridge.subscribe()
    bridge.publish_raw(CHANNEL_AGENT_EVENT, {"status": "thinking"})
    bridge.publish_raw(CHANNEL_AGENT_EVENT, {"status": "using_tool", "tool_name": "x"})
    bridge.publish_raw(CHANNEL_AGENT_EVENT, {"status": None})

    statuses = [(await sub.get()).status for _ in range(3)]
    assert statuses == [AgentStatus.thinking(), AgentStatus.using_tool("x"), None]


@pytest.mark.asyncio
async def test_malformed_payload_is_dropped():
    bridge = EventBridge()
    sub = bridge.subscribe()
    bridge.publish_raw(CHANNEL_AGENT_EVENT, {"status": "bogus"})
    bridge.publish_raw(CHANNEL_SERVER_STATUS, {})
    assert isinstance(await sub.get(), ServerStatusChanged)


@pytest.mark.asyncio
async def test_cancel_stops_delivery_and_ends_iteration():
    bridge = EventBridge()
    sub = bridge.subscribe()
    bridge.publish_raw(CHANNEL_SERVER_STATUS, {})
    sub.cancel()
    bridge.publish_raw(CHANNEL_SERVER_STATUS, {})

    received = [event async for event in sub]
    assert received == []
    assert bridge.subscriber_count == 0


@pytest.mark.asyncio
async def test_cancel_wakes_blocked_consumer():
    bridge = EventBridge()
    sub = bridge.subscribe()

    async def _consume() -> list:
        return [event async for event in sub]

    task = asyncio.create_task(_consume())
    await asyncio.sleep(0)
    sub.cancel()
    assert await asyncio.wait_for(task, timeout=1) == []


@pytest.mark.asyncio
async def test_full_queue_drops_newest():
    bridge = EventBridge(queue_size=1)
    sub = bridge.subscribe()
    bridge.publish_raw(CHANNEL_AGENT_EVENT, {"status": "thinking"})
    bridge.publish_raw(CHANNEL_SERVER_STATUS, {})
    assert isinstance(await sub.get(), AgentStatusChanged)


@pytest.mark.asyncio
async def test_closed_bridge_hands_out_finished_subscriptions():
    bridge = EventBridge()
    live = bridge.subscribe()
    bridge.close()
    late = bridge.subscribe()
    assert live.cancelled and late.cancelled
    assert [e async for e in late] == []
