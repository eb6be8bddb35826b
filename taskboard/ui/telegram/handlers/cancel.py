from __future__ import annotations

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from taskboard.ui.telegram.handlers._common import to_main_menu
from taskboard.ui.telegram.texts.tasks import CANCELLED, NOTHING_TO_CANCEL

router = Router()

CANCEL_WORDS = {"cancel", "stop"}


async def _cancel(message: Message, state: FSMContext) -> None:
    if await state.get_state() is None:
        await to_main_menu(message, text=NOTHING_TO_CANCEL)
        return
    await to_main_menu(message, state, text=CANCELLED)


@router.message(Command("cancel"))
async def cancel_cmd(message: Message, state: FSMContext):
    await _cancel(message, state)

@router.message(F.text.casefold().in_(CANCEL_WORDS))
async def cancel_text(message: Message, state: FSMContext):
    await _cancel(message, state)

@router.callback_query(F.data == "cancel")
async def cancel_cb(cb: CallbackQuery, state: FSMContext):
    await cb.answer()
    await _cancel(cb.message, state)
