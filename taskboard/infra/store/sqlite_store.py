from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from taskboard.domain.common.errors import StoreError
from taskboard.infra.db.connection import Database, Statement
from taskboard.infra.store.notifying import NotifyingStore
from taskboard.infra.store.tree import ancestors, flatten, inflate

_SUBTREE = "path = ? OR substr(path, 1, ?) = ?"


def _subtree_params(path: str) -> Tuple[str, int, str]:
    prefix = path + "/"
    return (path, len(prefix), prefix)


class SqliteRecordStore(NotifyingStore):
    """
    JSON tree persisted in the `nodes` table (see migrations/001_nodes.sql).
    Each mutation is one transaction; subscribers are notified after commit.
    """

    def __init__(self, db: Database) -> None:
        super().__init__()
        self._db = db

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    async def _fetch(self, path: str) -> Optional[Any]:
        try:
            rows = await self._db.fetchall(
                f"SELECT path, value_json FROM nodes WHERE {_SUBTREE} ORDER BY path;",
                _subtree_params(path),
            )
            if not rows:
                # the value may sit on a scalar ancestor, which means nothing lives below it
                return None
            return inflate(path, [(r["path"], json.loads(r["value_json"])) for r in rows])
        except (aiosqlite.Error, ValueError) as e:
            raise StoreError(f"read {path} failed: {e}") from e

    async def _apply_write(self, path: str, value: Optional[Any]) -> None:
        statements = self._clear(path)
        statements.extend(self._insert(path, value))
        await self._run(path, statements)

    async def _apply_merge(self, path: str, children: Dict[str, Optional[Any]]) -> None:
        statements: List[Statement] = []
        for key, value in children.items():
            child_path = f"{path}/{key}"
            statements.extend(self._clear(child_path))
            statements.extend(self._insert(child_path, value))
        await self._run(path, statements)

    async def _apply_delete(self, path: str) -> None:
        await self._run(path, [(f"DELETE FROM nodes WHERE {_SUBTREE};", _subtree_params(path))])

    def _clear(self, path: str) -> List[Statement]:
        statements: List[Statement] = [(f"DELETE FROM nodes WHERE {_SUBTREE};", _subtree_params(path))]
        parents = ancestors(path)
        if parents:
            marks = ", ".join("?" for _ in parents)
            statements.append((f"DELETE FROM nodes WHERE path IN ({marks});", tuple(parents)))
        return statements

    def _insert(self, path: str, value: Optional[Any]) -> List[Statement]:
        now_iso = self._now_iso()
        return [
            (
                "INSERT INTO nodes(path, value_json, updated_at) VALUES (?, ?, ?);",
                (leaf_path, json.dumps(leaf, ensure_ascii=False), now_iso),
            )
            for leaf_path, leaf in flatten(path, value)
        ]

    async def _run(self, path: str, statements: List[Statement]) -> None:
        try:
            await self._db.execute_batch(statements)
        except aiosqlite.Error as e:
            raise StoreError(f"write {path} failed: {e}") from e
