"""Active tool set — tool names enabled for the next agent task."""

from __future__ import annotations

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)


class ActiveToolSet:
    """Mutable set of enabled tool names, rebuilt from scratch each run.

    ``replace_all`` overwrites instead of merging, so callers that mix
    toggles with backend re-queries must serialize them (the coordinator
    does).
    """

    def __init__(self, tool_names: Iterable[str] = ()) -> None:
        self._names: set[str] = set(tool_names)

    def toggle(self, tool_name: str) -> None:
        if tool_name in self._names:
            self._names.discard(tool_name)
        else:
            self._names.add(tool_name)

    def replace_all(self, tool_names: Iterable[str]) -> None:
        new_names = set(tool_names)
        if new_names != self._names:
            logger.debug(
                "ActiveToolSet.replace_all: %d -> %d tools",
                len(self._names), len(new_names),
            )
        self._names = new_names

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._names)

    def is_enabled(self, tool_name: str) -> bool:
        return tool_name in self._names

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"ActiveToolSet({sorted(self._names)!r})"
