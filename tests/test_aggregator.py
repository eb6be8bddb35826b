"""
Aggregator tests: the merged table of owned and shared tasks, self-repair of
dangling collaboration entries and the render-per-batch contract.

Run with: python -m pytest tests/test_aggregator.py -v
"""
from __future__ import annotations

import asyncio
from typing import Dict, List

from taskboard.domain.tasks.aggregator import (
    TaskAggregator,
    build_owned_views,
    collaboration_pairs,
    merge_views,
    sort_views,
)
from taskboard.domain.tasks.display_names import DisplayNameCache
from taskboard.domain.tasks.models import TaskView
from taskboard.domain.tasks.service import TaskService
from taskboard.infra.store.memory_store import MemoryRecordStore

from tests.fakes import FixedClock, SeqIds, SpyStore, task_value

USERS = {
    "U": {"name": "Ursula", "email": "u@example.com"},
    "O": {"name": "Olive", "email": "o@example.com"},
    "C": {"name": "", "email": "c@example.com"},
}


class Renders:
    def __init__(self) -> None:
        self.tables: List[Dict[str, TaskView]] = []

    async def __call__(self, table: Dict[str, TaskView]) -> None:
        self.tables.append(dict(table))

    @property
    def last(self) -> Dict[str, TaskView]:
        return self.tables[-1]


async def _started(store, uid: str, renders: Renders = None) -> TaskAggregator:
    agg = TaskAggregator(store, uid, on_render=renders)
    await agg.start()
    await store.drain()
    return agg


# ----- pure helpers -----


def test_build_owned_views_tags_owner_and_skips_junk():
    views = build_owned_views("U", {"t1": task_value("A"), "t2": "not a task"}, "Ursula")
    assert list(views) == ["U_t1"]
    assert views["U_t1"].owner_id == "U"
    assert views["U_t1"].task_id == "t1"
    assert views["U_t1"].owner_display == "Ursula"
    assert build_owned_views("U", None, "Ursula") == {}


def test_collaboration_pairs_reads_only_true_flags():
    pairs = collaboration_pairs({"O": {"t1": True, "t2": False}, "P": {"t3": True}, "bad": True})
    assert sorted(pairs) == [("O", "t1"), ("P", "t3")]
    assert collaboration_pairs(None) == []


def test_merge_views_is_union_of_both_shadows():
    owned = build_owned_views("U", {"t1": task_value("mine")}, "Ursula")
    shared = build_owned_views("O", {"t9": task_value("theirs")}, "Olive")
    table = merge_views(owned, shared)
    assert set(table) == {"U_t1", "O_t9"}
    assert merge_views({}, {}) == {}


def test_sort_views_newest_first():
    views = build_owned_views(
        "U",
        {
            "old": task_value("old", created_at="2025-01-01T00:00:00+00:00"),
            "new": task_value("new", created_at="2026-01-01T00:00:00+00:00"),
            "undated": {"title": "undated"},
        },
        "Ursula",
    )
    assert [v.task_id for v in sort_views(views.values())] == ["new", "old", "undated"]


# ----- end to end -----


def test_owner_with_one_task_sees_exactly_that_entry():
    async def run():
        store = MemoryRecordStore({"users": USERS, "tasks": {"U": {"T": task_value("Milk")}}})
        renders = Renders()
        agg = await _started(store, "U", renders)

        assert list(agg.table) == ["U_T"]
        view = agg.get("U", "T")
        assert view.owner_id == "U"
        assert view.owner_display == "Ursula"
        assert view.record.title == "Milk"
        assert renders.tables
        agg.stop()

    asyncio.run(run())


def test_added_collaborator_sees_shared_task():
    async def run():
        store = MemoryRecordStore({"users": USERS, "tasks": {"O": {"T": task_value("Paint fence")}}})
        service = TaskService(store, FixedClock(), SeqIds())
        agg = await _started(store, "C")
        assert agg.table == {}

        assert await service.add_collaborator("O", "O", "T", "C") is True
        await store.drain()

        view = agg.get("O", "T")
        assert view is not None
        assert view.owner_id == "O"
        assert view.owner_display == "Olive"
        assert view.record.collaborators == frozenset({"C"})
        assert agg.views("shared") == [view]
        assert agg.views("mine") == []
        agg.stop()

    asyncio.run(run())


def test_deleted_task_is_pruned_on_next_reconciliation():
    async def run():
        store = SpyStore(
            {
                "users": USERS,
                "tasks": {
                    "O": {"T": task_value("Paint fence", collaborators={"C": True})},
                    "P": {"T2": task_value("Other")},
                },
                "userTasks": {"C": {"O": {"T": True}}},
            }
        )
        agg = await _started(store, "C")
        assert set(agg.table) == {"O_T"}

        # owner removes the task but the mirror stays behind
        await store.delete("tasks/O/T")
        await store.drain()
        assert await store.read("userTasks/C/O/T") is True

        await store.write("userTasks/C/P/T2", True)
        await store.drain()

        assert await store.read("userTasks/C/O/T") is None
        assert set(agg.table) == {"P_T2"}
        agg.stop()

    asyncio.run(run())


def test_dangling_entry_removed_after_one_pass():
    async def run():
        store = SpyStore({"users": USERS, "userTasks": {"C": {"O": {"gone": True}}}})
        renders = Renders()
        agg = await _started(store, "C", renders)

        assert ("delete", "userTasks/C/O/gone") in store.calls
        assert store.snapshot().get("userTasks") is None
        assert "O_gone" not in agg.table
        assert renders.last == {}
        agg.stop()

    asyncio.run(run())


def test_subtask_toggle_changes_only_that_flag():
    async def run():
        store = MemoryRecordStore(
            {
                "users": USERS,
                "tasks": {
                    "U": {
                        "T": task_value(
                            "Trip",
                            subtasks={
                                "s1": {"id": "s1", "title": "Tickets", "completed": False, "createdAt": "2026-01-01T00:00:00+00:00"},
                                "s2": {"id": "s2", "title": "Hotel", "completed": False, "createdAt": "2026-01-02T00:00:00+00:00"},
                            },
                        )
                    }
                },
            }
        )
        service = TaskService(store, FixedClock(), SeqIds())
        agg = await _started(store, "U")

        assert await service.toggle_subtask("U", "U", "T", "s1", True) is True
        await store.drain()

        raw = await store.read("tasks/U/T")
        assert raw["subtasks"]["s1"] == {"id": "s1", "title": "Tickets", "completed": True, "createdAt": "2026-01-01T00:00:00+00:00"}
        assert raw["subtasks"]["s2"]["completed"] is False
        assert raw["completed"] is False
        record = agg.get("U", "T").record
        assert record.subtask_progress == (1, 2)
        assert record.completed is False
        agg.stop()

    asyncio.run(run())


# ----- properties -----


def test_every_entry_comes_from_exactly_one_source():
    async def run():
        store = MemoryRecordStore(
            {
                "users": USERS,
                "tasks": {
                    "U": {"a": task_value("mine")},
                    "O": {"b": task_value("shared"), "c": task_value("not shared")},
                },
                "userTasks": {"U": {"O": {"b": True}}},
            }
        )
        service = TaskService(store, FixedClock(), SeqIds())
        agg = await _started(store, "U")

        def check():
            mirror = store.snapshot().get("userTasks", {}).get("U", {})
            for key, view in agg.table.items():
                owned = view.owner_id == "U"
                shared = bool(mirror.get(view.owner_id, {}).get(view.task_id))
                assert owned != shared, key

        check()
        assert set(agg.table) == {"U_a", "O_b"}

        assert await service.remove_collaborator("O", "O", "b", "U") is True
        await store.drain()
        check()
        assert set(agg.table) == {"U_a"}

        assert await service.add_collaborator("O", "O", "c", "U") is True
        await store.drain()
        check()
        assert set(agg.table) == {"U_a", "O_c"}
        agg.stop()

    asyncio.run(run())


def test_same_owned_value_twice_gives_same_table():
    async def run():
        store = MemoryRecordStore({"users": USERS})
        agg = await _started(store, "U")
        value = {"t1": task_value("A"), "t2": task_value("B", completed=True)}

        await agg.handle_owned(value)
        once = agg.table
        await agg.handle_owned(value)
        assert agg.table == once
        assert set(once) == {"U_t1", "U_t2"}
        agg.stop()

    asyncio.run(run())


def test_absent_owned_value_clears_owned_entries():
    async def run():
        store = MemoryRecordStore({"users": USERS, "tasks": {"U": {"t1": task_value("A")}}})
        agg = await _started(store, "U")
        assert set(agg.table) == {"U_t1"}

        await store.delete("tasks/U/t1")
        await store.drain()
        assert agg.table == {}
        agg.stop()

    asyncio.run(run())


def test_collaboration_batch_never_touches_own_entries():
    async def run():
        store = SpyStore(
            {
                "users": USERS,
                "tasks": {"U": {"mine": task_value("mine")}, "O": {"x": task_value("theirs")}},
                # a self-reference should not be possible, but must not leak into the table
                "userTasks": {"U": {"O": {"x": True}, "U": {"mine": True}}},
            }
        )
        agg = await _started(store, "U")
        before = agg.get("U", "mine")

        await agg.handle_collaborations({"O": {"x": True}, "U": {"mine": True}})
        assert agg.get("U", "mine") is before
        assert set(agg.table) == {"U_mine", "O_x"}
        assert ("read", "tasks/U/mine") not in store.calls
        assert ("delete", "userTasks/U/U/mine") not in store.calls

        await agg.handle_collaborations(None)
        assert set(agg.table) == {"U_mine"}
        agg.stop()

    asyncio.run(run())


# ----- rendering and failures -----


def test_one_render_per_collaboration_batch():
    async def run():
        tasks = {f"t{i}": task_value(f"task {i}") for i in range(5)}
        store = MemoryRecordStore({"users": USERS, "tasks": {"O": tasks}})
        renders = Renders()
        agg = await _started(store, "C", renders)
        before = len(renders.tables)

        await agg.handle_collaborations({"O": {tid: True for tid in tasks}})
        assert len(renders.tables) == before + 1
        assert len(renders.last) == 5
        agg.stop()

    asyncio.run(run())


def test_failed_point_read_keeps_last_known_entry():
    async def run():
        store = SpyStore(
            {
                "users": USERS,
                "tasks": {"O": {"T": task_value("Paint fence")}},
                "userTasks": {"C": {"O": {"T": True}}},
            }
        )
        agg = await _started(store, "C")
        known = agg.get("O", "T")
        assert known is not None

        store.fail_reads.add("tasks/O/T")
        await agg.refresh_shared()
        assert agg.get("O", "T") is known
        assert ("delete", "userTasks/C/O/T") not in store.calls
        agg.stop()

    asyncio.run(run())


def test_refresh_shared_picks_up_owner_edits():
    async def run():
        store = MemoryRecordStore(
            {
                "users": USERS,
                "tasks": {"O": {"T": task_value("Paint fence")}},
                "userTasks": {"C": {"O": {"T": True}}},
            }
        )
        agg = await _started(store, "C")
        await store.merge("tasks/O/T", {"title": "Paint the fence"})
        await store.drain()
        # shared snapshots are point reads: nothing moves until the next pass
        assert agg.get("O", "T").record.title == "Paint fence"

        await agg.refresh_shared()
        assert agg.get("O", "T").record.title == "Paint the fence"
        agg.stop()

    asyncio.run(run())


def test_render_errors_do_not_break_deliveries():
    async def run():
        store = MemoryRecordStore({"users": USERS})

        async def broken(_table):
            raise RuntimeError("render failed")

        agg = TaskAggregator(store, "U", on_render=broken)
        await agg.start()
        await store.write("tasks/U/t1", task_value("A"))
        await store.drain()
        assert set(agg.table) == {"U_t1"}
        agg.stop()

    asyncio.run(run())


def test_stop_releases_subscriptions_and_clears_table():
    async def run():
        store = MemoryRecordStore({"users": USERS, "tasks": {"U": {"t1": task_value("A")}}})
        async with TaskAggregator(store, "U") as agg:
            await store.drain()
            assert store.subscription_count == 2
            assert agg.running
        assert store.subscription_count == 0
        assert not agg.running
        assert agg.table == {}

        await store.write("tasks/U/t2", task_value("B"))
        await store.drain()
        assert agg.table == {}

    asyncio.run(run())


# ----- display names -----


def test_display_names_resolve_once_and_fall_back():
    async def run():
        store = SpyStore({"users": USERS})
        names = DisplayNameCache(store)

        assert (await names.resolve("O")).display == "Olive"
        assert (await names.resolve("C")).display == "c@example.com"
        assert (await names.resolve("ghost")).display == "ghost"
        assert (await names.resolve("O")).display == "Olive"
        assert store.calls.count(("read", "users/O")) == 1

        # no refresh within a session
        await store.merge("users/O", {"name": "Olivia"})
        assert names.display("O") == "Olive"
        assert len(names) == 3

        store.fail_reads.add("users/X")
        info = await names.resolve("X")
        assert info.raw is None
        assert info.display == "X"

    asyncio.run(run())


def test_concurrent_lookups_share_one_read():
    async def run():
        store = SpyStore({"users": USERS})
        names = DisplayNameCache(store)
        infos = await asyncio.gather(*(names.resolve("O") for _ in range(4)))
        assert {i.display for i in infos} == {"Olive"}
        assert store.calls.count(("read", "users/O")) == 1

    asyncio.run(run())
