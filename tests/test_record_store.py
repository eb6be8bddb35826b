"""
Record store behaviour, run against both adapters (in-memory and SQLite).

Run with: python -m pytest tests/test_record_store.py -v
"""
from __future__ import annotations

import asyncio
import os
import tempfile

import pytest

from taskboard.infra.db.connection import Database
from taskboard.infra.db.schema_version import MIGRATIONS_DIR, apply_migrations
from taskboard.infra.store.memory_store import MemoryRecordStore
from taskboard.infra.store.sqlite_store import SqliteRecordStore


async def _sqlite_store(path: str) -> SqliteRecordStore:
    db = Database(path)
    await apply_migrations(db=db, migrations_dir=str(MIGRATIONS_DIR), now_iso="2026-01-01T00:00:00+00:00")
    return SqliteRecordStore(db)


def _run_on_both(check) -> None:
    async def run():
        memory = MemoryRecordStore()
        try:
            await check(memory)
        finally:
            memory.close()

        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            path = f.name
        try:
            store = await _sqlite_store(path)
            try:
                await check(store)
            finally:
                store.close()
        finally:
            for suffix in ("", "-wal", "-shm"):
                if os.path.exists(path + suffix):
                    os.remove(path + suffix)

    asyncio.run(run())


class Recorder:
    def __init__(self) -> None:
        self.values = []

    async def __call__(self, value) -> None:
        self.values.append(value)


# ----- read / write / merge / delete -----


def test_write_then_read_nested_value():
    async def check(store):
        await store.write("tasks/u1/t1", {"title": "Milk", "completed": False, "subtasks": {"s1": {"title": "a"}}})
        assert await store.read("tasks/u1/t1") == {"title": "Milk", "completed": False, "subtasks": {"s1": {"title": "a"}}}
        assert await store.read("tasks/u1/t1/title") == "Milk"
        assert await store.read("tasks/u1") == {"t1": {"title": "Milk", "completed": False, "subtasks": {"s1": {"title": "a"}}}}
        assert await store.read("tasks/u2") is None
        assert await store.read("tasks/u1/t1/title/deeper") is None

    _run_on_both(check)


def test_write_replaces_whole_value():
    async def check(store):
        await store.write("users/u1", {"name": "Ann", "email": "ann@example.com"})
        await store.write("users/u1", {"name": "Ann B"})
        assert await store.read("users/u1") == {"name": "Ann B"}

    _run_on_both(check)


def test_none_and_empty_mapping_mean_absent():
    async def check(store):
        await store.write("a/b", {"c": 1, "d": None, "e": {}})
        assert await store.read("a/b") == {"c": 1}
        await store.write("a/b", None)
        assert await store.read("a/b") is None
        # empty parents disappear too
        assert await store.read("a") is None
        await store.write("x", {})
        assert await store.read("x") is None

    _run_on_both(check)


def test_merge_touches_only_given_children():
    async def check(store):
        await store.write("tasks/u1/t1", {"title": "Milk", "completed": False, "description": "2 l"})
        await store.merge("tasks/u1/t1", {"completed": True, "description": None, "targetDate": "2026-02-01"})
        assert await store.read("tasks/u1/t1") == {"title": "Milk", "completed": True, "targetDate": "2026-02-01"}

    _run_on_both(check)


def test_merge_replaces_child_subtree():
    async def check(store):
        await store.write("t", {"recurrence": {"type": "weekly", "interval": 2}, "title": "x"})
        await store.merge("t", {"recurrence": {"type": "daily"}})
        assert await store.read("t") == {"recurrence": {"type": "daily"}, "title": "x"}

    _run_on_both(check)


def test_delete_removes_subtree_only():
    async def check(store):
        await store.write("userTasks/c1", {"o1": {"t1": True, "t2": True}, "o2": {"t9": True}})
        await store.delete("userTasks/c1/o1/t1")
        assert await store.read("userTasks/c1") == {"o1": {"t2": True}, "o2": {"t9": True}}
        await store.delete("userTasks/c1/o1")
        assert await store.read("userTasks/c1") == {"o2": {"t9": True}}
        await store.delete("userTasks/c1/missing/path")
        assert await store.read("userTasks/c1") == {"o2": {"t9": True}}

    _run_on_both(check)


def test_write_below_scalar_replaces_it():
    async def check(store):
        await store.write("a", 1)
        await store.write("a/b", 2)
        assert await store.read("a") == {"b": 2}
        await store.write("a", "flat")
        assert await store.read("a") == "flat"
        assert await store.read("a/b") is None

    _run_on_both(check)


def test_scalar_types_survive():
    async def check(store):
        await store.write("v", {"s": "ä€", "i": 3, "f": 1.5, "t": True, "n": False})
        assert await store.read("v") == {"s": "ä€", "i": 3, "f": 1.5, "t": True, "n": False}

    _run_on_both(check)


def test_lists_are_stored_keyed_by_index():
    async def check(store):
        await store.write("l", ["x", "y"])
        assert await store.read("l") == {"0": "x", "1": "y"}

    _run_on_both(check)


def test_invalid_paths_rejected():
    async def check(store):
        for bad in ("", "/", "a//b"):
            with pytest.raises(ValueError):
                await store.read(bad)
            with pytest.raises(ValueError):
                await store.write(bad, 1)
        with pytest.raises(ValueError):
            await store.merge("a", {"b/c": 1})

    _run_on_both(check)


# ----- subscriptions -----


def test_subscribe_delivers_current_value_immediately():
    async def check(store):
        await store.write("tasks/u1/t1", {"title": "Milk"})
        present, absent = Recorder(), Recorder()
        store.subscribe("tasks/u1", present)
        store.subscribe("tasks/u2", absent)
        await store.drain()
        assert present.values == [{"t1": {"title": "Milk"}}]
        assert absent.values == [None]

    _run_on_both(check)


def test_subscriber_sees_changes_at_and_below_path():
    async def check(store):
        rec = Recorder()
        store.subscribe("tasks/u1", rec)
        await store.drain()

        await store.write("tasks/u1/t1", {"title": "Milk"})
        await store.drain()
        await store.merge("tasks/u1/t1", {"completed": True})
        await store.drain()
        await store.write("tasks/u2/t1", {"title": "Other user"})
        await store.drain()
        await store.delete("tasks")
        await store.drain()

        assert rec.values == [
            None,
            {"t1": {"title": "Milk"}},
            {"t1": {"title": "Milk", "completed": True}},
            None,
        ]

    _run_on_both(check)


def test_unsubscribe_stops_deliveries():
    async def check(store):
        rec = Recorder()
        sub = store.subscribe("p", rec)
        await store.drain()
        assert sub.active
        assert store.subscription_count == 1

        sub.unsubscribe()
        sub.unsubscribe()
        await store.write("p", 1)
        await store.drain()
        assert not sub.active
        assert store.subscription_count == 0
        assert rec.values == [None]

    _run_on_both(check)


def test_failing_callback_keeps_subscription_alive():
    async def check(store):
        seen = []

        async def flaky(value):
            seen.append(value)
            if value is None:
                raise RuntimeError("boom")

        store.subscribe("p", flaky)
        await store.drain()
        await store.write("p", 5)
        await store.drain()
        assert seen == [None, 5]

    _run_on_both(check)


def test_burst_of_changes_coalesces_into_latest_value():
    async def run():
        store = MemoryRecordStore()
        rec = Recorder()
        store.subscribe("counter", rec)
        await store.drain()
        for n in (1, 2, 3):
            await store.write("counter", n)
        await store.drain()
        assert rec.values == [None, 3]
        store.close()

    asyncio.run(run())


def test_deliveries_follow_change_order():
    """Every delivery reflects a state at least as new as the previous one."""
    async def check(store):
        rec = Recorder()
        store.subscribe("counter", rec)
        for n in range(1, 6):
            await store.write("counter", n)
            await asyncio.sleep(0)
        await store.drain()
        numbers = [v for v in rec.values if v is not None]
        assert numbers == sorted(numbers)
        assert rec.values[-1] == 5

    _run_on_both(check)


def test_sqlite_store_survives_reopen():
    async def run():
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            path = f.name
        try:
            store = await _sqlite_store(path)
            await store.write("users/u1", {"name": "Ann"})
            store.close()

            reopened = await _sqlite_store(path)
            assert await reopened.read("users/u1") == {"name": "Ann"}
            reopened.close()
        finally:
            for suffix in ("", "-wal", "-shm"):
                if os.path.exists(path + suffix):
                    os.remove(path + suffix)

    asyncio.run(run())


def test_migrations_run_once():
    async def run():
        with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
            path = f.name
        try:
            db = Database(path)
            assert await apply_migrations(db=db, migrations_dir=str(MIGRATIONS_DIR), now_iso="2026-01-01T00:00:00+00:00") == 1
            assert await apply_migrations(db=db, migrations_dir=str(MIGRATIONS_DIR), now_iso="2026-01-02T00:00:00+00:00") == 0
            rows = await db.fetchall("SELECT version, applied_at FROM schema_migrations;")
            assert [(r["version"], r["applied_at"]) for r in rows] == [(1, "2026-01-01T00:00:00+00:00")]
        finally:
            for suffix in ("", "-wal", "-shm"):
                if os.path.exists(path + suffix):
                    os.remove(path + suffix)

    asyncio.run(run())
