from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional

Listener = Callable[[Optional[Any]], Awaitable[None]]


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...


class IdGenerator(ABC):
    @abstractmethod
    def new_id(self) -> str: ...


class Subscription(ABC):
    """Handle returned by RecordStore.subscribe(). Release it with unsubscribe()."""

    @abstractmethod
    def unsubscribe(self) -> None: ...

    @property
    @abstractmethod
    def active(self) -> bool: ...


class RecordStore(ABC):
    """
    Realtime hierarchical store. Paths are '/'-separated keys, values are JSON-like trees.
    None (or an empty mapping) means absent.
    """

    @abstractmethod
    def subscribe(self, path: str, callback: Listener) -> Subscription:
        """
        Deliver the full value at `path` to `callback` once right away and again
        after every change at or below `path`.
        """

    @abstractmethod
    async def read(self, path: str) -> Optional[Any]: ...

    @abstractmethod
    async def write(self, path: str, value: Any) -> None: ...

    @abstractmethod
    async def merge(self, path: str, partial: Mapping[str, Any]) -> None: ...

    @abstractmethod
    async def delete(self, path: str) -> None: ...

    @abstractmethod
    async def drain(self) -> None:
        """Wait until every live subscription has delivered the current value."""
