"""Adapters package - Bridge between the backend and the client.

This package contains the backend protocol and its HTTP and in-memory
implementations, plus the event bridge that turns backend push channels
into typed events.
"""
from __future__ import annotations

__all__ = [
    "Backend",
    "EventBridge",
    "HttpBackend",
    "InMemoryBackend",
    "Subscription",
]

from trustagent.adapters.backend import Backend
from trustagent.adapters.event_bridge import EventBridge, Subscription
from trustagent.adapters.http_backend import HttpBackend
from trustagent.adapters.memory_backend import InMemoryBackend
