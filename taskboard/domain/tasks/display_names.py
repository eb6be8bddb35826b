from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from taskboard.domain.common.errors import StoreError
from taskboard.domain.tasks import paths
from taskboard.domain.tasks.models import OwnerInfo
from taskboard.domain.tasks.ports import RecordStore

logger = logging.getLogger(__name__)


def display_name_for(uid: str, raw: Optional[dict]) -> str:
    if not raw:
        return uid
    return raw.get("name") or raw.get("email") or uid


class DisplayNameCache:
    """
    uid -> OwnerInfo, resolved at most once per session.

    Entries are never refreshed: a rename mid-session shows up only in a new session.
    Concurrent lookups of the same uid share one read.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._entries: Dict[str, OwnerInfo] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    def get(self, uid: str) -> Optional[OwnerInfo]:
        return self._entries.get(uid)

    def display(self, uid: str) -> str:
        info = self._entries.get(uid)
        return info.display if info else uid

    async def resolve(self, uid: str) -> OwnerInfo:
        if not uid:
            return OwnerInfo(raw=None, display="")
        cached = self._entries.get(uid)
        if cached is not None:
            return cached

        pending = self._pending.get(uid)
        if pending is None:
            pending = asyncio.ensure_future(self._load(uid))
            self._pending[uid] = pending
            pending.add_done_callback(lambda _f: self._pending.pop(uid, None))
        return await asyncio.shield(pending)

    async def _load(self, uid: str) -> OwnerInfo:
        try:
            raw = await self._store.read(paths.user(uid))
        except StoreError:
            logger.warning("Could not load user %s, falling back to raw id", uid, exc_info=True)
            raw = None

        raw = raw if isinstance(raw, dict) else None
        info = OwnerInfo(raw=raw, display=display_name_for(uid, raw))
        self._entries[uid] = info
        return info

    def __len__(self) -> int:
        return len(self._entries)
