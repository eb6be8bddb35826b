from __future__ import annotations

from html import escape

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from taskboard.domain.common.errors import ValidationError
from taskboard.domain.common.time import parse_date
from taskboard.domain.tasks.models import RECURRENCE_TYPES, NewTaskRequest, Recurrence
from taskboard.domain.tasks.rules import validate_description, validate_title
from taskboard.domain.tasks.service import TaskService
from taskboard.domain.users.service import UserService
from taskboard.ui.telegram.handlers._common import (
    SKIP_WORDS,
    callback_parts,
    parse_date_input,
    parse_interval,
    run_for_callback,
    run_for_message,
    show_live,
)
from taskboard.ui.telegram.keyboards.mainmenu import BTN_ADD_TASK, BTN_MY_TASKS, BTN_SHARED, main_menu_kb
from taskboard.ui.telegram.keyboards.tasks import (
    collaborator_picker_kb,
    confirm_delete_kb,
    recurrence_kb,
)
from taskboard.ui.telegram.live import LiveBoards, LiveView
from taskboard.ui.telegram.render import SCOPE_MINE, SCOPE_SHARED
from taskboard.ui.telegram.states.tasks import TasksFlow
from taskboard.ui.telegram.texts import tasks as txt

router = Router()

_UNITS = {"daily": "day", "weekly": "week", "monthly": "month"}


def _follow(cb: CallbackQuery, boards: LiveBoards, uid: str, owner_id: str, task_id: str) -> None:
    # the card the user pressed becomes the one that follows store updates
    boards.attach(
        uid,
        LiveView(chat_id=cb.message.chat.id, message_id=cb.message.message_id, owner_id=owner_id, task_id=task_id),
    )


# ---------- board ----------


@router.message(Command("tasks"))
@router.message(F.text == BTN_MY_TASKS)
async def tasks_cmd(message: Message, state: FSMContext, uid: str, boards: LiveBoards):
    await state.clear()
    await show_live(target=message, boards=boards, uid=uid, scope=SCOPE_MINE, prefer_edit=False)


@router.message(Command("shared"))
@router.message(F.text == BTN_SHARED)
async def shared_cmd(message: Message, state: FSMContext, uid: str, boards: LiveBoards):
    await state.clear()
    await show_live(target=message, boards=boards, uid=uid, scope=SCOPE_SHARED, prefer_edit=False)


@router.callback_query(F.data.startswith("tb:tab:"))
async def board_tab(cb: CallbackQuery, uid: str, boards: LiveBoards):
    scope = cb.data.split(":")[-1]
    if scope not in (SCOPE_MINE, SCOPE_SHARED):
        scope = SCOPE_MINE
    await cb.answer()
    await show_live(target=cb.message, boards=boards, uid=uid, scope=scope, prefer_edit=True)


@router.callback_query(F.data.startswith("tk:open:"))
async def task_open(cb: CallbackQuery, state: FSMContext, uid: str, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    await state.clear()
    await cb.answer()
    await show_live(target=cb.message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=True)


# ---------- new task flow ----------


async def _start_add_flow(message: Message, state: FSMContext) -> None:
    await state.clear()
    await state.set_state(TasksFlow.add_title)
    await message.answer(txt.ASK_TITLE, reply_markup=main_menu_kb())


@router.message(Command("add"))
@router.message(F.text == BTN_ADD_TASK)
async def add_cmd(message: Message, state: FSMContext):
    await _start_add_flow(message, state)


@router.callback_query(F.data == "tk:new")
async def add_cb(cb: CallbackQuery, state: FSMContext):
    await cb.answer()
    await _start_add_flow(cb.message, state)


@router.message(TasksFlow.add_title)
async def add_title(message: Message, state: FSMContext):
    try:
        title = validate_title(message.text or "")
    except ValidationError as e:
        await message.answer(f"{e} {txt.ASK_TITLE}")
        return
    await state.update_data(title=title)
    await state.set_state(TasksFlow.add_description)
    await message.answer(txt.ASK_DESCRIPTION)


@router.message(TasksFlow.add_description)
async def add_description(message: Message, state: FSMContext):
    raw = (message.text or "").strip()
    description = "" if raw.lower() in SKIP_WORDS else raw
    try:
        description = validate_description(description)
    except ValidationError as e:
        await message.answer(str(e))
        return
    await state.update_data(description=description)
    await state.set_state(TasksFlow.add_target_date)
    await message.answer(txt.ASK_TARGET_DATE)


@router.message(TasksFlow.add_target_date)
async def add_target_date(message: Message, state: FSMContext):
    ok, target = parse_date_input(message.text or "")
    if not ok:
        await message.answer(txt.BAD_DATE)
        return
    await state.update_data(target_date=target.isoformat() if target else None)
    await state.set_state(TasksFlow.add_recurrence)
    await message.answer(txt.ASK_RECURRENCE, reply_markup=recurrence_kb("nt:rec"))


async def _create_from_state(
    message: Message,
    state: FSMContext,
    uid: str,
    task_service: TaskService,
    boards: LiveBoards,
    interval: int,
) -> None:
    data = await state.get_data()
    await state.clear()
    req = NewTaskRequest(
        owner_id=uid,
        title=data.get("title", ""),
        description=data.get("description", ""),
        target_date=parse_date(data.get("target_date")),
        recurrence=Recurrence(type=data.get("recurrence", "none"), interval=interval),
    )
    task_id = await run_for_message(message, task_service.create_task(uid, req))
    if task_id is None:
        return
    await message.answer(txt.TASK_ADDED, reply_markup=main_menu_kb())
    await show_live(target=message, boards=boards, uid=uid, owner_id=uid, task_id=task_id, prefer_edit=False)


@router.callback_query(TasksFlow.add_recurrence, F.data.startswith("nt:rec:"))
async def add_recurrence(cb: CallbackQuery, state: FSMContext, uid: str, task_service: TaskService, boards: LiveBoards):
    rtype = cb.data.split(":")[-1]
    if rtype not in RECURRENCE_TYPES:
        await cb.answer()
        return
    await cb.answer()
    await state.update_data(recurrence=rtype)
    if rtype == "none":
        await _create_from_state(cb.message, state, uid, task_service, boards, interval=1)
        return
    await state.set_state(TasksFlow.add_interval)
    await cb.message.answer(txt.ASK_INTERVAL.format(unit=_UNITS[rtype]))


@router.message(TasksFlow.add_interval)
async def add_interval(message: Message, state: FSMContext, uid: str, task_service: TaskService, boards: LiveBoards):
    interval = parse_interval(message.text or "")
    if interval is None:
        await message.answer(txt.BAD_INTERVAL)
        return
    await _create_from_state(message, state, uid, task_service, boards, interval=interval)


# ---------- task actions ----------


@router.callback_query(F.data.startswith("tk:tog:"))
async def task_toggle(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    view = (await boards.session(uid)).get(owner_id, task_id)
    if view is None:
        await cb.answer(txt.TASK_MISSING, show_alert=True)
        return
    _follow(cb, boards, uid, owner_id, task_id)
    if await run_for_callback(cb, task_service.toggle_task(uid, owner_id, task_id, not view.record.completed)):
        await cb.answer(txt.SAVED)
        if owner_id != uid:
            await boards.refresh_shared(uid)


@router.callback_query(F.data.startswith("tk:del:"))
async def task_delete_ask(cb: CallbackQuery, uid: str, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    view = (await boards.session(uid)).get(owner_id, task_id)
    if view is None:
        await cb.answer(txt.TASK_MISSING, show_alert=True)
        return
    await cb.answer()
    # stop live edits while the confirmation is on screen
    boards.detach(uid)
    await cb.message.edit_text(
        txt.CONFIRM_DELETE.format(title=escape(view.record.title)),
        reply_markup=confirm_delete_kb(owner_id, task_id),
    )


@router.callback_query(F.data.startswith("tk:delok:"))
async def task_delete(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    if await run_for_callback(cb, task_service.delete_task(uid, owner_id, task_id)):
        await cb.answer("Deleted 🗑️")
        await show_live(target=cb.message, boards=boards, uid=uid, scope=SCOPE_MINE, prefer_edit=True)


@router.callback_query(F.data.startswith("tk:edit:"))
async def task_edit_ask(cb: CallbackQuery, state: FSMContext, uid: str, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    view = (await boards.session(uid)).get(owner_id, task_id)
    if view is None:
        await cb.answer(txt.TASK_MISSING, show_alert=True)
        return
    await cb.answer()
    await state.set_state(TasksFlow.edit_title)
    await state.update_data(
        owner_id=owner_id,
        task_id=task_id,
        title=view.record.title,
        description=view.record.description,
    )
    await cb.message.answer(txt.ASK_NEW_TITLE.format(title=escape(view.record.title)))


@router.message(TasksFlow.edit_title)
async def task_edit_title(message: Message, state: FSMContext):
    raw = (message.text or "").strip()
    if raw.lower() not in SKIP_WORDS:
        try:
            await state.update_data(title=validate_title(raw))
        except ValidationError as e:
            await message.answer(str(e))
            return
    await state.set_state(TasksFlow.edit_description)
    await message.answer(txt.ASK_NEW_DESCRIPTION)


@router.message(TasksFlow.edit_description)
async def task_edit_description(
    message: Message,
    state: FSMContext,
    uid: str,
    task_service: TaskService,
    boards: LiveBoards,
):
    raw = (message.text or "").strip()
    data = await state.get_data()
    if raw.lower() in SKIP_WORDS:
        description = data.get("description", "")
    elif raw.lower() == "clear":
        description = ""
    else:
        try:
            description = validate_description(raw)
        except ValidationError as e:
            await message.answer(str(e))
            return
    await state.clear()
    owner_id, task_id = data.get("owner_id"), data.get("task_id")
    action = task_service.update_task(uid, owner_id, task_id, data.get("title", ""), description)
    if await run_for_message(message, action):
        await show_live(target=message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=False)


@router.callback_query(F.data.startswith("tk:due:"))
async def task_due_ask(cb: CallbackQuery, state: FSMContext):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    await cb.answer()
    await state.set_state(TasksFlow.due_date)
    await state.update_data(owner_id=owner_id, task_id=task_id)
    await cb.message.answer(txt.ASK_DUE_DATE)


@router.message(TasksFlow.due_date)
async def task_due_set(message: Message, state: FSMContext, uid: str, task_service: TaskService, boards: LiveBoards):
    ok, target = parse_date_input(message.text or "")
    if not ok:
        await message.answer(txt.BAD_DATE)
        return
    data = await state.get_data()
    await state.clear()
    owner_id, task_id = data.get("owner_id"), data.get("task_id")
    if await run_for_message(message, task_service.set_target_date(uid, owner_id, task_id, target)):
        await show_live(target=message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=False)


@router.callback_query(F.data.startswith("tk:rec:"))
async def task_recurrence_ask(cb: CallbackQuery):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    await cb.answer()
    await cb.message.answer(txt.ASK_RECURRENCE, reply_markup=recurrence_kb(f"tk:recset:{owner_id}:{task_id}"))


@router.callback_query(F.data.startswith("tk:recset:"))
async def task_recurrence_pick(
    cb: CallbackQuery,
    state: FSMContext,
    uid: str,
    task_service: TaskService,
    boards: LiveBoards,
):
    parts = callback_parts(cb, 5)
    if not parts or parts[4] not in RECURRENCE_TYPES:
        await cb.answer()
        return
    _, _, owner_id, task_id, rtype = parts
    if rtype == "none":
        if await run_for_callback(cb, task_service.set_recurrence(uid, owner_id, task_id, "none", 1)):
            await cb.answer(txt.SAVED)
            await show_live(target=cb.message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=True)
        return
    await cb.answer()
    await state.set_state(TasksFlow.recurrence_interval)
    await state.update_data(owner_id=owner_id, task_id=task_id, recurrence=rtype)
    await cb.message.edit_text(txt.ASK_INTERVAL.format(unit=_UNITS[rtype]))


@router.message(TasksFlow.recurrence_interval)
async def task_recurrence_interval(
    message: Message,
    state: FSMContext,
    uid: str,
    task_service: TaskService,
    boards: LiveBoards,
):
    interval = parse_interval(message.text or "")
    if interval is None:
        await message.answer(txt.BAD_INTERVAL)
        return
    data = await state.get_data()
    await state.clear()
    owner_id, task_id = data.get("owner_id"), data.get("task_id")
    action = task_service.set_recurrence(uid, owner_id, task_id, data.get("recurrence", "none"), interval)
    if await run_for_message(message, action):
        await show_live(target=message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=False)


# ---------- subtasks ----------


@router.callback_query(F.data.startswith("st:tog:"))
async def subtask_toggle(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 5)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id, subtask_id = parts
    view = (await boards.session(uid)).get(owner_id, task_id)
    subtask = view.record.subtasks.get(subtask_id) if view else None
    if subtask is None:
        await cb.answer(txt.TASK_MISSING, show_alert=True)
        return
    _follow(cb, boards, uid, owner_id, task_id)
    action = task_service.toggle_subtask(uid, owner_id, task_id, subtask_id, not subtask.completed)
    if await run_for_callback(cb, action):
        await cb.answer(txt.SAVED)
        if owner_id != uid:
            await boards.refresh_shared(uid)


@router.callback_query(F.data.startswith("st:del:"))
async def subtask_delete(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 5)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id, subtask_id = parts
    _follow(cb, boards, uid, owner_id, task_id)
    if await run_for_callback(cb, task_service.delete_subtask(uid, owner_id, task_id, subtask_id)):
        await cb.answer("Removed")


@router.callback_query(F.data.startswith("st:add:"))
async def subtask_add_ask(cb: CallbackQuery, state: FSMContext):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    await cb.answer()
    await state.set_state(TasksFlow.subtask_title)
    await state.update_data(owner_id=owner_id, task_id=task_id)
    await cb.message.answer(txt.ASK_SUBTASK)


@router.message(TasksFlow.subtask_title)
async def subtask_add(message: Message, state: FSMContext, uid: str, task_service: TaskService, boards: LiveBoards):
    data = await state.get_data()
    owner_id, task_id = data.get("owner_id"), data.get("task_id")
    try:
        title = validate_title(message.text or "", what="Subtask title")
    except ValidationError as e:
        await message.answer(str(e))
        return
    await state.clear()
    if await run_for_message(message, task_service.add_subtask(uid, owner_id, task_id, title)):
        await show_live(target=message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=False)


# ---------- collaborators ----------


@router.callback_query(F.data.startswith("co:add:"))
async def collaborator_pick_list(cb: CallbackQuery, uid: str, user_service: UserService, boards: LiveBoards):
    parts = callback_parts(cb, 4)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id = parts
    view = (await boards.session(uid)).get(owner_id, task_id)
    if view is None:
        await cb.answer(txt.TASK_MISSING, show_alert=True)
        return
    candidates = await user_service.collaborator_candidates(owner_id, view.record.collaborators)
    if not candidates:
        await cb.answer(txt.NO_CANDIDATES, show_alert=True)
        return
    await cb.answer()
    await cb.message.answer(txt.PICK_COLLABORATOR, reply_markup=collaborator_picker_kb(candidates, owner_id, task_id))


@router.callback_query(F.data.startswith("co:pick:"))
async def collaborator_add(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 5)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id, collaborator_id = parts
    if await run_for_callback(cb, task_service.add_collaborator(uid, owner_id, task_id, collaborator_id)):
        await cb.answer("Collaborator added 👥")
        await show_live(target=cb.message, boards=boards, uid=uid, owner_id=owner_id, task_id=task_id, prefer_edit=True)


@router.callback_query(F.data.startswith("co:rm:"))
async def collaborator_remove(cb: CallbackQuery, uid: str, task_service: TaskService, boards: LiveBoards):
    parts = callback_parts(cb, 5)
    if not parts:
        await cb.answer()
        return
    _, _, owner_id, task_id, collaborator_id = parts
    _follow(cb, boards, uid, owner_id, task_id)
    if await run_for_callback(cb, task_service.remove_collaborator(uid, owner_id, task_id, collaborator_id)):
        await cb.answer("Collaborator removed")
