"""Test doubles shared by the test modules."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Set, Tuple

from taskboard.domain.common.errors import StoreError
from taskboard.domain.tasks.ports import Clock, IdGenerator
from taskboard.infra.store.memory_store import MemoryRecordStore

FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)


class FixedClock(Clock):
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


class SeqIds(IdGenerator):
    def __init__(self, prefix: str = "id") -> None:
        self._prefix = prefix
        self._n = 0

    def new_id(self) -> str:
        self._n += 1
        return f"{self._prefix}{self._n}"


class SpyStore(MemoryRecordStore):
    """
    MemoryRecordStore that records every call made through the public API and can be
    told to fail reads of given paths, every mutation, or mutations under given prefixes.
    """

    def __init__(self, initial: Optional[dict] = None) -> None:
        super().__init__(initial)
        self.calls: List[Tuple[str, str]] = []
        self.fail_reads: Set[str] = set()
        self.fail_mutations = False
        self.fail_mutation_prefixes: Set[str] = set()

    def _check_mutation(self, op: str, path: str) -> None:
        self.calls.append((op, path))
        if self.fail_mutations or any(path.startswith(p) for p in self.fail_mutation_prefixes):
            raise StoreError(f"{op} {path} failed")

    @property
    def mutations(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] != "read"]

    async def read(self, path: str) -> Optional[Any]:
        self.calls.append(("read", path))
        if path in self.fail_reads:
            raise StoreError(f"read {path} failed")
        return await super().read(path)

    async def write(self, path: str, value: Any) -> None:
        self._check_mutation("write", path)
        await super().write(path, value)

    async def merge(self, path: str, partial: Mapping[str, Any]) -> None:
        self._check_mutation("merge", path)
        await super().merge(path, partial)

    async def delete(self, path: str) -> None:
        self._check_mutation("delete", path)
        await super().delete(path)


def task_value(title: str, created_at: str = "2026-01-01T10:00:00+00:00", **extra: Any) -> dict:
    value = {"title": title, "completed": False, "createdAt": created_at}
    value.update(extra)
    return value
