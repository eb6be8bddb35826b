from __future__ import annotations

from aiogram.types import ReplyKeyboardMarkup
from aiogram.utils.keyboard import ReplyKeyboardBuilder

BTN_MY_TASKS = "My tasks"
BTN_SHARED = "Shared with me"
BTN_ADD_TASK = "Add task"
BTN_HELP = "Help"


def main_menu_kb() -> ReplyKeyboardMarkup:
    kb = ReplyKeyboardBuilder()

    kb.button(text=BTN_MY_TASKS)
    kb.button(text=BTN_SHARED)
    kb.button(text=BTN_ADD_TASK)
    kb.button(text=BTN_HELP)

    # 2x2 grid
    kb.adjust(2, 2)

    return kb.as_markup(resize_keyboard=True, one_time_keyboard=False)
