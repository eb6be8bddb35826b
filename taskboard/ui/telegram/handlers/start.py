from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from taskboard.domain.users.service import UserService
from taskboard.ui.telegram.handlers._common import to_main_menu
from taskboard.ui.telegram.keyboards.mainmenu import BTN_HELP
from taskboard.ui.telegram.live import LiveBoards
from taskboard.ui.telegram.middlewares.auth import SignInMiddleware
from taskboard.ui.telegram.texts.tasks import HELP, SIGNED_OUT

router = Router()


@router.message(CommandStart())
async def start_cmd(message: Message, state: FSMContext, uid: str, boards: LiveBoards):
    # starting the session here makes the first /tasks instant
    await boards.session(uid)
    await to_main_menu(message, state, text=f"Welcome, {escape(message.from_user.full_name)}!")


@router.message(Command("menu"))
async def menu_cmd(message: Message, state: FSMContext):
    await to_main_menu(message, state)


@router.message(Command("help"))
@router.message(F.text == BTN_HELP)
async def help_cmd(message: Message):
    await message.answer(HELP)


@router.message(Command("logout"))
async def logout_cmd(
    message: Message,
    state: FSMContext,
    uid: str,
    boards: LiveBoards,
    user_service: UserService,
    sign_in: SignInMiddleware,
):
    await state.clear()
    await boards.stop(uid)
    await user_service.handle_logout(uid)
    sign_in.forget(uid)
    await message.answer(SIGNED_OUT, reply_markup=ReplyKeyboardRemove())
