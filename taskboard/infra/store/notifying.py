from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from typing import Any, Dict, Mapping, Optional, Set

from taskboard.domain.common.errors import StoreError
from taskboard.domain.tasks.ports import Listener, RecordStore, Subscription
from taskboard.infra.store.tree import is_related, normalize, split_path

logger = logging.getLogger(__name__)


class _Listener(Subscription):
    """
    One pump task per subscription. notify() only marks it dirty; the pump reads the
    current value and calls back, so bursts of changes collapse into one delivery and
    deliveries never overtake each other.
    """

    def __init__(self, store: "NotifyingStore", path: str, callback: Listener) -> None:
        self.path = path
        self._store = store
        self._callback = callback
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._active = True
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self.notify()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def notify(self) -> None:
        if not self._active:
            return
        self._idle.clear()
        self._wakeup.set()

    async def _run(self) -> None:
        while self._active:
            await self._wakeup.wait()
            self._wakeup.clear()
            try:
                value = await self._store.read(self.path)
            except StoreError:
                logger.error("Subscription read failed for %s", self.path, exc_info=True)
            else:
                try:
                    await self._callback(value)
                except Exception:
                    logger.exception("Subscription callback failed for %s", self.path)
            if not self._wakeup.is_set():
                self._idle.set()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def busy(self) -> bool:
        return self._active and not self._idle.is_set()

    async def wait_idle(self) -> None:
        await self._idle.wait()

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._listeners.discard(self)
        if self._task is not None:
            self._task.cancel()
        self._idle.set()


class NotifyingStore(RecordStore):
    """
    Subscription fan-out shared by the store adapters. Subclasses implement the
    _apply_* / _fetch hooks on normalized values; this class validates paths,
    normalizes values and wakes up the subscriptions a change touches.
    """

    MAX_DRAIN_ROUNDS = 1000

    def __init__(self) -> None:
        self._listeners: Set[_Listener] = set()

    # ----- hooks -----

    @abstractmethod
    async def _fetch(self, path: str) -> Optional[Any]: ...

    @abstractmethod
    async def _apply_write(self, path: str, value: Optional[Any]) -> None: ...

    @abstractmethod
    async def _apply_merge(self, path: str, children: Dict[str, Optional[Any]]) -> None: ...

    @abstractmethod
    async def _apply_delete(self, path: str) -> None: ...

    # ----- RecordStore -----

    def subscribe(self, path: str, callback: Listener) -> Subscription:
        split_path(path)
        listener = _Listener(self, path.strip("/"), callback)
        self._listeners.add(listener)
        listener.start()
        return listener

    async def read(self, path: str) -> Optional[Any]:
        split_path(path)
        return await self._fetch(path.strip("/"))

    async def write(self, path: str, value: Any) -> None:
        split_path(path)
        path = path.strip("/")
        await self._apply_write(path, normalize(value))
        self._notify(path)

    async def merge(self, path: str, partial: Mapping[str, Any]) -> None:
        split_path(path)
        path = path.strip("/")
        children: Dict[str, Optional[Any]] = {}
        for key, value in partial.items():
            key = str(key)
            if not key or "/" in key:
                raise ValueError(f"Invalid merge key: {key!r}")
            children[key] = normalize(value)
        if not children:
            return
        await self._apply_merge(path, children)
        self._notify(path)

    async def delete(self, path: str) -> None:
        split_path(path)
        path = path.strip("/")
        await self._apply_delete(path)
        self._notify(path)

    async def drain(self) -> None:
        for _ in range(self.MAX_DRAIN_ROUNDS):
            await asyncio.sleep(0)
            busy = [listener for listener in list(self._listeners) if listener.busy]
            if not busy:
                await asyncio.sleep(0)
                if not any(listener.busy for listener in self._listeners):
                    return
                continue
            await asyncio.gather(*(listener.wait_idle() for listener in busy))
        logger.warning("drain() gave up: subscriptions keep re-triggering each other")

    def close(self) -> None:
        for listener in list(self._listeners):
            listener.unsubscribe()

    @property
    def subscription_count(self) -> int:
        return len(self._listeners)

    def _notify(self, path: str) -> None:
        for listener in list(self._listeners):
            if is_related(listener.path, path):
                listener.notify()
