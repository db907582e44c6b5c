"""Sync package - client-side caches and the coordinator that keeps them
consistent with the backend.
"""
from __future__ import annotations

__all__ = [
    "ActiveToolSet",
    "CoordinatorState",
    "PendingExchange",
    "SessionStore",
    "SyncCoordinator",
    "ToolCatalog",
]

from trustagent.sync.active_tools import ActiveToolSet
from trustagent.sync.coordinator import CoordinatorState, SyncCoordinator
from trustagent.sync.session_store import PendingExchange, SessionStore
from trustagent.sync.tool_catalog import ToolCatalog
