from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from taskboard.domain.common.errors import StoreError
from taskboard.domain.common.time import to_iso
from taskboard.domain.tasks import paths
from taskboard.domain.tasks.ports import Clock, RecordStore
from taskboard.domain.tasks.rules import require_actor
from taskboard.domain.users.models import Identity, UserRecord

logger = logging.getLogger(__name__)


class UserService:
    """User directory under `users/{uid}`. Store failures are logged, never raised."""

    def __init__(self, store: RecordStore, clock: Clock, new_accounts_active: bool = True) -> None:
        self._store = store
        self._clock = clock
        self._new_accounts_active = new_accounts_active

    async def handle_login(self, identity: Identity) -> bool:
        """Create the user record on first sign-in, refresh it afterwards."""
        uid = require_actor(identity.uid)
        now_iso = to_iso(self._clock.now())
        try:
            existing = await self._store.read(paths.user(uid))
            existing = existing if isinstance(existing, dict) else None

            data = {
                "name": identity.display_name or "No Name",
                "email": identity.email or (existing or {}).get("email") or "",
                # keep a stored photo if the provider sent none
                "photoURL": identity.photo_url or (existing or {}).get("photoURL") or "",
                "isAccountActive": (
                    existing.get("isAccountActive") is not False if existing else self._new_accounts_active
                ),
                "lastLogin": now_iso,
            }
            if existing:
                data["updatedAt"] = now_iso
                await self._store.merge(paths.user(uid), data)
                logger.info("User login updated: %s", uid)
            else:
                data["createdAt"] = now_iso
                await self._store.write(paths.user(uid), data)
                logger.info("New user created: %s (active=%s)", uid, data["isAccountActive"])
        except StoreError:
            logger.error("Error handling login for %s", uid, exc_info=True)
            return False
        return True

    async def handle_logout(self, uid: str) -> bool:
        uid = require_actor(uid)
        try:
            await self._store.merge(paths.user(uid), {"lastLogout": to_iso(self._clock.now())})
        except StoreError:
            logger.error("Error handling logout for %s", uid, exc_info=True)
            return False
        return True

    async def get_user(self, uid: str) -> Optional[UserRecord]:
        try:
            raw = await self._store.read(paths.user(uid))
        except StoreError:
            logger.error("Error getting user %s", uid, exc_info=True)
            return None
        return UserRecord.from_value(uid, raw) if isinstance(raw, dict) else None

    async def list_users(self) -> List[UserRecord]:
        try:
            raw = await self._store.read(paths.USERS_ROOT)
        except StoreError:
            logger.error("Error listing users", exc_info=True)
            return []
        if not isinstance(raw, dict):
            return []
        users = [UserRecord.from_value(uid, value) for uid, value in raw.items() if isinstance(value, dict)]
        return sorted(users, key=lambda u: (u.display.casefold(), u.uid))

    async def is_active(self, uid: str) -> bool:
        user = await self.get_user(uid)
        return user.is_active if user else False

    async def activate_user(self, uid: str) -> bool:
        return await self._set_active(uid, True)

    async def deactivate_user(self, uid: str) -> bool:
        return await self._set_active(uid, False)

    async def _set_active(self, uid: str, active: bool) -> bool:
        uid = require_actor(uid)
        stamp_field = "activatedAt" if active else "deactivatedAt"
        try:
            if await self._store.read(paths.user(uid)) is None:
                logger.warning("Cannot change activation of unknown user %s", uid)
                return False
            await self._store.merge(
                paths.user(uid),
                {"isAccountActive": active, stamp_field: to_iso(self._clock.now())},
            )
        except StoreError:
            logger.error("Error changing activation of %s", uid, exc_info=True)
            return False
        logger.info("User %s %s", uid, "activated" if active else "deactivated")
        return True

    async def collaborator_candidates(self, owner_id: str, existing: Iterable[str] = ()) -> List[UserRecord]:
        """Active users that could be added to one of owner_id's tasks."""
        skip = set(existing) | {owner_id}
        return [u for u in await self.list_users() if u.is_active and u.uid not in skip]
