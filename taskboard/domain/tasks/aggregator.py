from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from taskboard.domain.common.errors import StoreError
from taskboard.domain.tasks import paths
from taskboard.domain.tasks.display_names import DisplayNameCache
from taskboard.domain.tasks.models import TaskRecord, TaskView, view_key
from taskboard.domain.tasks.ports import RecordStore, Subscription

logger = logging.getLogger(__name__)

RenderFn = Callable[[Dict[str, TaskView]], Awaitable[None]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ---------- pure reconciliation helpers ----------


def build_owned_views(uid: str, subtree: Any, owner_display: str) -> Dict[str, TaskView]:
    """Full `tasks/{uid}` value -> table entries for the owner. Absent value means zero tasks."""
    if not isinstance(subtree, Mapping):
        return {}
    views: Dict[str, TaskView] = {}
    for task_id, raw in subtree.items():
        if not isinstance(raw, Mapping):
            continue
        view = TaskView(
            owner_id=uid,
            task_id=task_id,
            owner_display=owner_display,
            record=TaskRecord.from_value(task_id, raw),
        )
        views[view.key] = view
    return views


def collaboration_pairs(mapping: Any) -> List[Tuple[str, str]]:
    """Full `userTasks/{uid}` value -> [(owner_id, task_id), ...]."""
    if not isinstance(mapping, Mapping):
        return []
    pairs: List[Tuple[str, str]] = []
    for owner_id, tasks_for_owner in mapping.items():
        if not isinstance(tasks_for_owner, Mapping):
            continue
        for task_id, flag in tasks_for_owner.items():
            if flag:
                pairs.append((owner_id, task_id))
    return pairs


def merge_views(owned: Mapping[str, TaskView], shared: Mapping[str, TaskView]) -> Dict[str, TaskView]:
    """
    One flat table from both shadows. The key spaces are disjoint (shared never holds
    the viewer's own prefix), so the update order only matters if that is violated.
    """
    table: Dict[str, TaskView] = dict(shared)
    table.update(owned)
    return table


def sort_views(views: Iterable[TaskView]) -> List[TaskView]:
    """Newest first, like the dashboard list."""
    return sorted(
        views,
        key=lambda v: (v.record.created_at or _EPOCH, v.key),
        reverse=True,
    )


# ---------- live aggregator ----------


class TaskAggregator:
    """
    Per-session merged view of the tasks a user owns and the tasks shared with them.

    Owns two subscriptions (tasks/{uid} and userTasks/{uid}), the display-name cache and
    two private shadows. Every delivery updates its shadow and hands the merged table to
    `on_render`. Build one per signed-in user; stop() on sign-out.
    """

    def __init__(
        self,
        store: RecordStore,
        uid: str,
        on_render: Optional[RenderFn] = None,
        names: Optional[DisplayNameCache] = None,
    ) -> None:
        if not uid:
            raise ValueError("uid is required")
        self._store = store
        self._uid = uid
        self._on_render = on_render
        self._names = names or DisplayNameCache(store)

        self._owned: Dict[str, TaskView] = {}
        self._shared: Dict[str, TaskView] = {}
        self._subs: List[Subscription] = []
        self._running = False

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def names(self) -> DisplayNameCache:
        return self._names

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        await self._names.resolve(self._uid)
        self._subs = [
            self._store.subscribe(paths.owner_tasks(self._uid), self.handle_owned),
            self._store.subscribe(paths.collaborations(self._uid), self.handle_collaborations),
        ]
        logger.debug("Aggregator started for %s", self._uid)

    def stop(self) -> None:
        for sub in self._subs:
            sub.unsubscribe()
        self._subs = []
        self._running = False
        self._owned.clear()
        self._shared.clear()
        logger.debug("Aggregator stopped for %s", self._uid)

    async def __aenter__(self) -> "TaskAggregator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ----- table access -----

    @property
    def table(self) -> Dict[str, TaskView]:
        return merge_views(self._owned, self._shared)

    def get(self, owner_id: str, task_id: str) -> Optional[TaskView]:
        return self.table.get(view_key(owner_id, task_id))

    def views(self, scope: Optional[str] = None) -> List[TaskView]:
        """scope: None (all), "mine" or "shared"."""
        items = self.table.values()
        if scope == "mine":
            items = [v for v in items if v.owner_id == self._uid]
        elif scope == "shared":
            items = [v for v in items if v.owner_id != self._uid]
        return sort_views(items)

    async def refresh_shared(self) -> None:
        """
        Run a collaboration pass on demand. Shared snapshots are point reads, so they
        only change when userTasks/{uid} does or when asked through here.
        """
        if not self._running:
            return
        try:
            value = await self._store.read(paths.collaborations(self._uid))
        except StoreError:
            logger.error("Could not re-read collaborations for %s", self._uid, exc_info=True)
            return
        await self.handle_collaborations(value)

    # ----- deliveries -----

    async def handle_owned(self, value: Any) -> None:
        if not self._running:
            return
        info = await self._names.resolve(self._uid)
        self._owned = build_owned_views(self._uid, value, info.display)
        logger.debug("Owned delivery for %s: %d tasks", self._uid, len(self._owned))
        await self._render()

    async def handle_collaborations(self, value: Any) -> None:
        if not self._running:
            return
        pairs = []
        for owner_id, task_id in collaboration_pairs(value):
            if owner_id == self._uid:
                # own tasks come from the ownership subscription only
                logger.warning(
                    "Ignoring collaboration entry pointing at own task: %s",
                    paths.collaboration(self._uid, owner_id, task_id),
                )
                continue
            pairs.append((owner_id, task_id))

        previous = self._shared
        results = await asyncio.gather(*(self._resolve_shared(o, t, previous) for o, t in pairs))

        if not self._running:
            return
        self._shared = {view.key: view for view in results if view is not None}
        logger.debug("Collaboration delivery for %s: %d shared tasks", self._uid, len(self._shared))
        await self._render()

    async def _resolve_shared(
        self,
        owner_id: str,
        task_id: str,
        previous: Mapping[str, TaskView],
    ) -> Optional[TaskView]:
        key = view_key(owner_id, task_id)
        try:
            raw = await self._store.read(paths.task(owner_id, task_id))
        except StoreError:
            logger.error("Point read failed for %s, keeping last known value", key, exc_info=True)
            return previous.get(key)

        if raw is None:
            await self._prune(owner_id, task_id)
            return None

        info = await self._names.resolve(owner_id)
        return TaskView(
            owner_id=owner_id,
            task_id=task_id,
            owner_display=info.display,
            record=TaskRecord.from_value(task_id, raw),
        )

    async def _prune(self, owner_id: str, task_id: str) -> None:
        dangling = paths.collaboration(self._uid, owner_id, task_id)
        try:
            await self._store.delete(dangling)
            logger.info("Removed dangling collaboration entry %s", dangling)
        except StoreError:
            logger.error("Could not remove dangling collaboration entry %s", dangling, exc_info=True)

    async def _render(self) -> None:
        if self._on_render is None:
            return
        try:
            await self._on_render(self.table)
        except Exception:
            logger.exception("Render callback failed for %s", self._uid)
