from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from taskboard.infra.store.notifying import NotifyingStore
from taskboard.infra.store.tree import split_path


class MemoryRecordStore(NotifyingStore):
    """Process-local store. Used for tests and for running the bot without a database file."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self._root: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._root)

    async def _fetch(self, path: str) -> Optional[Any]:
        node: Any = self._root
        for part in split_path(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    async def _apply_write(self, path: str, value: Optional[Any]) -> None:
        self._set(path, value)

    async def _apply_merge(self, path: str, children: Dict[str, Optional[Any]]) -> None:
        for key, value in children.items():
            self._set(f"{path}/{key}", value)

    async def _apply_delete(self, path: str) -> None:
        self._set(path, None)

    def _set(self, path: str, value: Optional[Any]) -> None:
        parts = split_path(path)
        if value is None:
            self._remove(parts)
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                # a scalar ancestor gets replaced by the new subtree
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = copy.deepcopy(value)

    def _remove(self, parts: list[str]) -> None:
        trail = []
        node: Any = self._root
        for part in parts[:-1]:
            if not isinstance(node, dict) or part not in node:
                return
            trail.append((node, part))
            node = node[part]
        if not isinstance(node, dict):
            return
        node.pop(parts[-1], None)
        # empty parents disappear, like in a realtime JSON tree
        for parent, key in reversed(trail):
            if parent[key]:
                break
            del parent[key]
