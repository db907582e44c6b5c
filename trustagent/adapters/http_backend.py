"""HTTP + SSE backend client.

Commands are ``POST {base_url}/invoke/{operation}`` with a JSON object of
arguments; the server answers ``{"result": ...}`` or ``{"error": "..."}``.
Push channels arrive on ``GET {base_url}/events`` as Server-Sent Events
whose event name is the channel and whose data is the JSON payload.

No request timeout is applied by default and the event stream is never
reconnected here; both are left to the caller.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import aiohttp

from trustagent.adapters.event_bridge import EventBridge
from trustagent.adapters.events import CHANNELS
from trustagent.errors import BackendError, BackendUnavailableError
from trustagent.shared.models.session import Session
from trustagent.shared.models.tools import McpServerInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SseParser:
    """Incremental Server-Sent-Events parser fed one line at a time."""

    def __init__(self) -> None:
        self._event = "message"
        self._data: list[str] = []

    def feed(self, line: str) -> tuple[str, str] | None:
        """Consume one line; return ``(event, data)`` when an event completes."""
        line = line.rstrip("\r\n")
        if not line:
            if not self._data:
                self._event = "message"
                return None
            result = (self._event, "\n".join(self._data))
            self._event = "message"
            self._data = []
            return result
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        return None


def _tool_names(raw: Any) -> list[str]:
    # Servers may return bare names or full tool objects with a "name" key
    names: list[str] = []
    for item in raw or []:
        if isinstance(item, dict):
            name = item.get("name") or item.get("tool_name")
        else:
            name = item
        if name:
            names.append(str(name))
    return names


def _decode(operation: str, decoder: Callable[[Any], T], result: Any) -> T:
    """Apply *decoder* to a command result; a malformed shape is a BackendError."""
    try:
        return decoder(result)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Malformed %s result: %r", operation, result)
        raise BackendError(operation, f"malformed response: {exc!r}") from exc


def _sessions(result: Any) -> list[Session]:
    return [Session.from_dict(item) for item in result or []]


def _servers(result: Any) -> list[McpServerInfo]:
    return [McpServerInfo.from_dict(item) for item in result or []]


class HttpBackend:
    """Backend reached over HTTP, with push channels read from SSE."""

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._bridge: EventBridge | None = None
        self._listen_task: asyncio.Task | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _invoke(self, operation: str, **args: Any) -> Any:
        url = f"{self._base_url}/invoke/{operation}"
        logger.debug("invoke %s args=%s", operation, sorted(args))
        try:
            async with self._client().post(url, json=args) as resp:
                status = resp.status
                try:
                    body = await resp.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError) as exc:
                    raise BackendError(
                        operation, f"HTTP {status}: invalid JSON response"
                    ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise BackendUnavailableError(operation, str(exc) or "connection failed") from exc
        except aiohttp.ClientError as exc:
            raise BackendError(operation, str(exc)) from exc

        if isinstance(body, dict) and body.get("error") is not None:
            raise BackendError(operation, str(body["error"]))
        if status >= 400:
            raise BackendError(operation, f"HTTP {status}")
        if not isinstance(body, dict):
            raise BackendError(operation, "response is not a JSON object")
        return body.get("result")

    # ── sessions ─────────────────────────────────────────────────────

    async def get_all_sessions(self) -> list[Session]:
        result = await self._invoke("get_all_sessions")
        return _decode("get_all_sessions", _sessions, result)

    async def get_current_session(self) -> Session:
        result = await self._invoke("get_current_session")
        if not isinstance(result, dict):
            raise BackendError("get_current_session", "No current session")
        return _decode("get_current_session", Session.from_dict, result)

    async def finalize_and_new_chat(self) -> Session:
        result = await self._invoke("finalize_and_new_chat")
        if isinstance(result, str):
            # Older servers answer with the new id only
            return await self.get_current_session()
        if not isinstance(result, dict):
            raise BackendError("finalize_and_new_chat", "no session returned")
        return _decode("finalize_and_new_chat", Session.from_dict, result)

    async def select_session(self, session_id: str) -> Session:
        result = await self._invoke("select_session", id=session_id)
        if not isinstance(result, dict):
            raise BackendError("select_session", "no session returned")
        return _decode("select_session", Session.from_dict, result)

    async def rename_session(self, session_id: str, new_title: str) -> None:
        await self._invoke("rename_session", id=session_id, new_title=new_title)

    async def delete_session(self, session_id: str) -> None:
        await self._invoke("delete_session", id=session_id)

    # ── agent + tools ────────────────────────────────────────────────

    async def run_agent_task(self, message: str, active_tools: Iterable[str]) -> str:
        result = await self._invoke(
            "run_agent_task", message=message, active_tools=sorted(active_tools)
        )
        return "" if result is None else str(result)

    async def get_mcp_servers(self) -> list[McpServerInfo]:
        result = await self._invoke("get_mcp_servers")
        return _decode("get_mcp_servers", _servers, result)

    async def get_discovered_tools(self, server_name: str) -> list[str]:
        result = await self._invoke("get_discovered_tools", server_name=server_name)
        return _decode("get_discovered_tools", _tool_names, result)

    async def get_all_discovered_tools(self) -> list[str]:
        return _decode(
            "get_all_discovered_tools", _tool_names,
            await self._invoke("get_all_discovered_tools"),
        )

    async def open_config_file(self) -> None:
        await self._invoke("open_config_file")

    # ── push channels ────────────────────────────────────────────────

    def attach_events(self, bridge: EventBridge) -> None:
        """Start reading the SSE stream into *bridge*. Needs a running loop."""
        self._bridge = bridge
        if self._listen_task is None or self._listen_task.done():
            self._listen_task = asyncio.get_running_loop().create_task(
                self._listen(), name="sse-listener"
            )

    async def _listen(self) -> None:
        url = f"{self._base_url}/events"
        parser = SseParser()
        try:
            async with self._client().get(
                url, timeout=aiohttp.ClientTimeout(total=None)
            ) as resp:
                if resp.status != 200:
                    logger.error("Event stream refused: HTTP %d", resp.status)
                    return
                logger.info("Event stream connected: %s", url)
                async for raw in resp.content:
                    parsed = parser.feed(raw.decode("utf-8", errors="replace"))
                    if parsed is not None:
                        self._dispatch(*parsed)
        except aiohttp.ClientError as exc:
            logger.error("Event stream failed: %s", exc)
            return
        logger.warning("Event stream closed by server: %s", url)

    def _dispatch(self, event: str, data: str) -> None:
        if event not in CHANNELS or self._bridge is None:
            logger.debug("Ignoring SSE event %s", event)
            return
        try:
            payload = json.loads(data) if data else None
        except json.JSONDecodeError:
            logger.warning("Ignoring %s event with invalid JSON data", event)
            return
        try:
            self._bridge.publish_raw(event, payload)
        except Exception:
            # One bad event must not end the stream for later ones
            logger.exception("Failed to dispatch %s event: %r", event, payload)

    async def aclose(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Event stream listener had already failed")
            self._listen_task = None
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
