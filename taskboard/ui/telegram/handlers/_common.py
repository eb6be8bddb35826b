from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Optional, Tuple, TypeVar

from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from taskboard.domain.common.errors import DomainError
from taskboard.domain.common.time import parse_date
from taskboard.ui.telegram.keyboards.mainmenu import main_menu_kb
from taskboard.ui.telegram.live import LiveBoards, LiveView
from taskboard.ui.telegram.render import SCOPE_MINE, SCOPE_SHARED
from taskboard.ui.telegram.texts.tasks import SAVE_FAILED

logger = logging.getLogger(__name__)

T = TypeVar("T")

SKIP_WORDS = {"-", "skip", "none"}


def callback_parts(cb: CallbackQuery, expected: int) -> Optional[list[str]]:
    parts = (cb.data or "").split(":")
    if len(parts) != expected or any(not p for p in parts):
        return None
    return parts


def parse_date_input(text: str) -> Tuple[bool, Optional[date]]:
    """(ok, value). '-' means no date."""
    text = (text or "").strip()
    if text.lower() in SKIP_WORDS:
        return True, None
    try:
        return True, parse_date(text)
    except ValueError:
        return False, None


def parse_interval(text: str) -> Optional[int]:
    try:
        value = int((text or "").strip())
    except ValueError:
        return None
    return value if 1 <= value <= 365 else None


async def to_main_menu(message: Message, state: Optional[FSMContext] = None, text: str = "Main menu.") -> None:
    """Leave any input flow and put the reply keyboard back."""
    if state is not None:
        await state.clear()
    await message.answer(text, reply_markup=main_menu_kb())


async def run_for_callback(cb: CallbackQuery, action: Awaitable[T]) -> Optional[T]:
    """Await a service call; domain errors and store failures become an alert."""
    try:
        result = await action
    except DomainError as e:
        await cb.answer(str(e), show_alert=True)
        return None
    if result is False or result is None:
        await cb.answer(SAVE_FAILED, show_alert=True)
        return None
    return result


async def run_for_message(message: Message, action: Awaitable[T]) -> Optional[T]:
    try:
        result = await action
    except DomainError as e:
        await message.answer(str(e))
        return None
    if result is False or result is None:
        await message.answer(SAVE_FAILED)
        return None
    return result


async def show_live(
    *,
    target: Message,
    boards: LiveBoards,
    uid: str,
    scope: str = SCOPE_MINE,
    owner_id: Optional[str] = None,
    task_id: Optional[str] = None,
    prefer_edit: bool,
) -> None:
    """
    prefer_edit=True: edit target in place (callback UX).
    prefer_edit=False: send a new message (command / end of an input flow).
    Either way the message becomes the user's live view.
    """
    if (owner_id and owner_id != uid) or (owner_id is None and scope == SCOPE_SHARED):
        await boards.refresh_shared(uid)
    await boards.settle()
    view = LiveView(chat_id=target.chat.id, message_id=target.message_id, scope=scope, owner_id=owner_id, task_id=task_id)
    text, markup = await boards.compose(uid, view)

    if prefer_edit:
        try:
            await target.edit_text(text, reply_markup=markup)
            boards.attach(uid, view)
            return
        except TelegramBadRequest as e:
            if "message is not modified" in str(e).lower():
                boards.attach(uid, view)
                return
            # message too old to edit: fall back to a new one
            logger.debug("Edit failed, sending a new live message: %s", e)

    sent = await target.answer(text, reply_markup=markup)
    view.message_id = sent.message_id
    view.chat_id = sent.chat.id
    boards.attach(uid, view)
