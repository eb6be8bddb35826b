from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Set

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, User

from taskboard.config import Settings
from taskboard.domain.users.models import Identity
from taskboard.domain.users.service import UserService
from taskboard.ui.telegram.texts.tasks import SIGN_IN_PENDING

logger = logging.getLogger(__name__)


def identity_from(user: User) -> Identity:
    return Identity(
        uid=str(user.id),
        display_name=user.full_name or user.username,
        email=None,
        photo_url=None,
    )


class SignInMiddleware(BaseMiddleware):
    """
    Telegram is the identity provider: the first event from a user signs them in
    (creates/refreshes users/<uid>). Deactivated accounts are stopped here; admins
    always pass. Handlers get the stable id as `uid`.
    """

    def __init__(self, users: UserService, settings: Settings) -> None:
        self._users = users
        self._settings = settings
        self._signed_in: Set[str] = set()

    def forget(self, uid: str) -> None:
        self._signed_in.discard(uid)

    async def __call__(self, handler: Callable, event, data: Dict[str, Any]):
        user: Optional[User] = None
        if isinstance(event, (Message, CallbackQuery)):
            user = event.from_user
        if user is None:
            return await handler(event, data)

        identity = identity_from(user)
        uid = identity.uid
        if uid not in self._signed_in:
            if await self._users.handle_login(identity):
                self._signed_in.add(uid)

        is_admin = self._settings.is_admin(user.id)
        if is_admin:
            if not await self._users.is_active(uid):
                await self._users.activate_user(uid)
        elif not await self._users.is_active(uid):
            logger.info("[AUTH] blocked inactive user_id=%s", uid)
            if isinstance(event, Message):
                await event.answer(SIGN_IN_PENDING)
            elif isinstance(event, CallbackQuery):
                await event.answer(SIGN_IN_PENDING, show_alert=True)
            return

        data["uid"] = uid
        data["is_admin"] = is_admin
        data["sign_in"] = self
        return await handler(event, data)
