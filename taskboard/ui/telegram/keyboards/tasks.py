from __future__ import annotations

from typing import Callable, Iterable, Optional

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from taskboard.domain.tasks.models import RECURRENCE_TYPES, TaskView
from taskboard.domain.users.models import UserRecord
from taskboard.ui.telegram.render import (
    SCOPE_MINE,
    SCOPE_SHARED,
    checkbox,
    collaborator_name,
    short_title,
)


def board_kb(views: Iterable[TaskView], scope: str) -> InlineKeyboardMarkup:
    """
    callback_data:
      - tk:open:<owner>:<task>
      - tb:tab:<scope>
      - tk:new
    """
    kb = InlineKeyboardBuilder()
    sizes = []
    for v in views:
        kb.button(
            text=f"{checkbox(v.record.completed)} {short_title(v.record.title)}",
            callback_data=f"tk:open:{v.owner_id}:{v.task_id}",
        )
        sizes.append(1)

    mine = "• Mine •" if scope == SCOPE_MINE else "Mine"
    shared = "• Shared •" if scope == SCOPE_SHARED else "Shared"
    kb.button(text=mine, callback_data=f"tb:tab:{SCOPE_MINE}")
    kb.button(text=shared, callback_data=f"tb:tab:{SCOPE_SHARED}")
    kb.button(text="➕ Add task", callback_data="tk:new")
    sizes.extend([2, 1])
    kb.adjust(*sizes)
    return kb.as_markup()


def task_kb(view: TaskView, uid: Optional[str], display: Callable[[str], str]) -> InlineKeyboardMarkup:
    ref = f"{view.owner_id}:{view.task_id}"
    is_owner = view.is_owned_by(uid)
    record = view.record

    kb = InlineKeyboardBuilder()
    sizes = []

    kb.button(
        text="↩️ Reopen" if record.completed else "✅ Mark done",
        callback_data=f"tk:tog:{ref}",
    )
    sizes.append(1)

    for s in record.sorted_subtasks():
        kb.button(
            text=f"{checkbox(s.completed)} {short_title(s.title, 32)}",
            callback_data=f"st:tog:{ref}:{s.subtask_id}",
        )
        if is_owner:
            kb.button(text="✖", callback_data=f"st:del:{ref}:{s.subtask_id}")
            sizes.append(2)
        else:
            sizes.append(1)

    if is_owner:
        kb.button(text="➕ Subtask", callback_data=f"st:add:{ref}")
        kb.button(text="👥 Add collaborator", callback_data=f"co:add:{ref}")
        sizes.append(2)
        for cid in sorted(record.collaborators):
            kb.button(
                text=f"✖ {short_title(collaborator_name(cid, uid, display), 24)}",
                callback_data=f"co:rm:{ref}:{cid}",
            )
            sizes.append(1)
        kb.button(text="✏️ Edit", callback_data=f"tk:edit:{ref}")
        kb.button(text="📅 Due date", callback_data=f"tk:due:{ref}")
        kb.button(text="🔁 Repeat", callback_data=f"tk:rec:{ref}")
        kb.button(text="🗑 Delete", callback_data=f"tk:del:{ref}")
        sizes.extend([2, 2])

    back_scope = SCOPE_MINE if is_owner else SCOPE_SHARED
    kb.button(text="⬅️ Back", callback_data=f"tb:tab:{back_scope}")
    sizes.append(1)
    kb.adjust(*sizes)
    return kb.as_markup()


def gone_kb() -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="⬅️ Back", callback_data=f"tb:tab:{SCOPE_MINE}")
    return kb.as_markup()


def recurrence_kb(prefix: str) -> InlineKeyboardMarkup:
    """
    prefix examples:
      - "nt:rec"                 (new task flow)
      - "tk:recset:<owner>:<task>"
    callback_data will be f"{prefix}:<type>"
    """
    kb = InlineKeyboardBuilder()
    for rtype in RECURRENCE_TYPES:
        kb.button(text="No repeat" if rtype == "none" else rtype.capitalize(), callback_data=f"{prefix}:{rtype}")
    kb.adjust(2, 2)
    return kb.as_markup()


def confirm_delete_kb(owner_id: str, task_id: str) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="Delete", callback_data=f"tk:delok:{owner_id}:{task_id}")
    kb.button(text="Cancel", callback_data=f"tk:open:{owner_id}:{task_id}")
    kb.adjust(2)
    return kb.as_markup()


def collaborator_picker_kb(candidates: Iterable[UserRecord], owner_id: str, task_id: str) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for u in candidates:
        kb.button(text=short_title(u.display, 32), callback_data=f"co:pick:{owner_id}:{task_id}:{u.uid}")
    kb.button(text="Cancel", callback_data=f"tk:open:{owner_id}:{task_id}")
    kb.adjust(1)
    return kb.as_markup()
