from __future__ import annotations

from typing import Iterable

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from taskboard.domain.users.models import UserRecord
from taskboard.ui.telegram.render import short_title


def users_kb(users: Iterable[UserRecord]) -> InlineKeyboardMarkup:
    """One row per user: ad:off:<uid> for active accounts, ad:on:<uid> for inactive ones."""
    kb = InlineKeyboardBuilder()
    for u in users:
        if u.is_active:
            kb.button(text=f"🟢 {short_title(u.display, 30)}", callback_data=f"ad:off:{u.uid}")
        else:
            kb.button(text=f"⚪ {short_title(u.display, 30)}", callback_data=f"ad:on:{u.uid}")
    kb.adjust(1)
    return kb.as_markup()
