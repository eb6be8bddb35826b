from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup

from taskboard.domain.tasks.aggregator import TaskAggregator
from taskboard.domain.tasks.models import TaskView
from taskboard.domain.tasks.ports import RecordStore
from taskboard.ui.telegram.keyboards.tasks import board_kb, gone_kb, task_kb
from taskboard.ui.telegram.render import SCOPE_MINE, TASK_GONE, render_board, render_task

logger = logging.getLogger(__name__)


@dataclass
class LiveView:
    """The message a user is looking at. owner_id/task_id set -> task card, else the board."""

    chat_id: int
    message_id: int
    scope: str = SCOPE_MINE
    owner_id: Optional[str] = None
    task_id: Optional[str] = None


class LiveBoards:
    """
    One TaskAggregator per signed-in user. Each aggregator render edits that user's
    live message in place, so the chat follows the store without polling.
    """

    def __init__(self, bot: Bot, store: RecordStore) -> None:
        self._bot = bot
        self._store = store
        self._sessions: Dict[str, TaskAggregator] = {}
        self._views: Dict[str, LiveView] = {}

    async def session(self, uid: str) -> TaskAggregator:
        agg = self._sessions.get(uid)
        if agg is not None:
            return agg

        async def on_render(_table) -> None:
            await self._refresh(uid)

        agg = TaskAggregator(self._store, uid, on_render=on_render)
        self._sessions[uid] = agg
        await agg.start()
        # let the first deliveries land before anyone reads the table
        await self._store.drain()
        logger.info("Session started for %s", uid)
        return agg

    async def refresh_shared(self, uid: str) -> None:
        agg = await self.session(uid)
        await agg.refresh_shared()

    def attach(self, uid: str, view: LiveView) -> None:
        self._views[uid] = view

    def detach(self, uid: str) -> None:
        self._views.pop(uid, None)

    async def settle(self) -> None:
        """Wait for pending deliveries. Never call from inside a render."""
        await self._store.drain()

    def view(self, uid: str) -> Optional[LiveView]:
        return self._views.get(uid)

    async def stop(self, uid: str) -> None:
        self._views.pop(uid, None)
        agg = self._sessions.pop(uid, None)
        if agg is not None:
            agg.stop()
            logger.info("Session stopped for %s", uid)

    async def stop_all(self) -> None:
        for uid in list(self._sessions):
            await self.stop(uid)

    async def compose(self, uid: str, view: LiveView) -> Tuple[str, InlineKeyboardMarkup]:
        agg = await self.session(uid)
        if view.owner_id and view.task_id:
            task = agg.get(view.owner_id, view.task_id)
            if task is None:
                return TASK_GONE, gone_kb()
            await self._resolve_collaborators(agg, task)
            return (
                render_task(task, uid, agg.names.display),
                task_kb(task, uid, agg.names.display),
            )
        views = agg.views(view.scope)
        return render_board(views, uid, view.scope), board_kb(views, view.scope)

    async def _resolve_collaborators(self, agg: TaskAggregator, task: TaskView) -> None:
        for cid in task.record.collaborators:
            if agg.names.get(cid) is None:
                await agg.names.resolve(cid)

    async def _refresh(self, uid: str) -> None:
        view = self._views.get(uid)
        if view is None:
            return
        text, markup = await self.compose(uid, view)
        try:
            await self._bot.edit_message_text(
                text=text,
                chat_id=view.chat_id,
                message_id=view.message_id,
                reply_markup=markup,
            )
        except TelegramBadRequest as e:
            if "message is not modified" in str(e).lower():
                return
            # message deleted or too old to edit: stop following it
            logger.debug("Dropping live view for %s: %s", uid, e)
            if self._views.get(uid) is view:
                self._views.pop(uid, None)
