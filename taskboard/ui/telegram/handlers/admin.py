from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from taskboard.domain.users.service import UserService
from taskboard.ui.telegram.keyboards.admin import users_kb

router = Router()

USERS_HEADER = "<b>Users</b>\n🟢 active, ⚪ waiting. Tap to switch."


@router.message(Command("users"))
async def users_cmd(message: Message, is_admin: bool, user_service: UserService):
    if not is_admin:
        await message.answer("Admins only.")
        return
    users = await user_service.list_users()
    if not users:
        await message.answer("No users yet.")
        return
    await message.answer(USERS_HEADER, reply_markup=users_kb(users))


@router.callback_query(F.data.startswith("ad:"))
async def users_toggle(cb: CallbackQuery, uid: str, is_admin: bool, user_service: UserService):
    if not is_admin:
        await cb.answer("Admins only.", show_alert=True)
        return
    parts = (cb.data or "").split(":")
    if len(parts) != 3 or parts[1] not in ("on", "off") or not parts[2]:
        await cb.answer()
        return
    _, action, target = parts
    if target == uid and action == "off":
        await cb.answer("You cannot deactivate yourself.", show_alert=True)
        return

    if action == "on":
        ok = await user_service.activate_user(target)
    else:
        ok = await user_service.deactivate_user(target)
    if not ok:
        await cb.answer("Could not update the account.", show_alert=True)
        return

    await cb.answer("Activated ✅" if action == "on" else "Deactivated 🚫")
    users = await user_service.list_users()
    await cb.message.edit_reply_markup(reply_markup=users_kb(users))
