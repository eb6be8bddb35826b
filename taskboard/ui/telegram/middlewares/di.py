from __future__ import annotations

from typing import Callable, Dict, Any, Awaitable

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from taskboard.config import Settings
from taskboard.domain.tasks.service import TaskService
from taskboard.domain.users.service import UserService
from taskboard.ui.telegram.live import LiveBoards


class DIMiddleware(BaseMiddleware):
    """
    Inject dependencies to handlers via `data` dict.

    Handlers can request args by name, e.g.
      async def handler(message: Message, uid: str, task_service: TaskService, boards: LiveBoards): ...
    """

    def __init__(
        self,
        task_service: TaskService,
        user_service: UserService,
        boards: LiveBoards,
        settings: Settings,
    ) -> None:
        self._tasks = task_service
        self._users = user_service
        self._boards = boards
        self._settings = settings

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        # keep names stable across the project
        data["task_service"] = self._tasks
        data["user_service"] = self._users
        data["boards"] = self._boards
        data["settings"] = self._settings

        return await handler(event, data)
