"""
Text for the task board and the task detail card (HTML parse mode).
Pure functions: the aggregated table in, a string out.
"""
from __future__ import annotations

from html import escape
from typing import Callable, Iterable, Optional

from taskboard.domain.tasks.models import Recurrence, TaskRecord, TaskView

SCOPE_MINE = "mine"
SCOPE_SHARED = "shared"

_UNITS = {"daily": "day", "weekly": "week", "monthly": "month"}

EMPTY_BOARD = "No tasks yet. Add your first task!"
EMPTY_SHARED = "Nothing has been shared with you yet."
TASK_GONE = "This task is no longer available."


def recurrence_label(rec: Recurrence) -> Optional[str]:
    if rec.type == "none":
        return None
    if rec.interval > 1:
        return f"Repeats every {rec.interval} {_UNITS[rec.type]}s"
    return f"Repeats {rec.type}"


def due_label(record: TaskRecord) -> Optional[str]:
    due = record.target_date or record.next_due
    return due.isoformat() if due else None


def progress_label(record: TaskRecord) -> Optional[str]:
    done, total = record.subtask_progress
    if total == 0:
        return None
    return f"{done}/{total}"


def progress_pct(record: TaskRecord) -> int:
    done, total = record.subtask_progress
    return round(done / total * 100) if total else 0


def checkbox(done: bool) -> str:
    return "✅" if done else "⬜"


def short_title(title: str, limit: int = 40) -> str:
    title = title or "(untitled)"
    return title if len(title) <= limit else title[: limit - 1] + "…"


def _board_line(view: TaskView, uid: Optional[str]) -> str:
    record = view.record
    parts = [f"{checkbox(record.completed)} {escape(record.title or '(untitled)')}"]
    progress = progress_label(record)
    if progress:
        parts.append(progress)
    due = due_label(record)
    if due:
        parts.append(f"due {due}")
    if not view.is_owned_by(uid):
        parts.append(f"by {escape(view.owner_display)}")
    return " · ".join(parts)


def render_board(views: Iterable[TaskView], uid: Optional[str], scope: str = SCOPE_MINE) -> str:
    views = list(views)
    header = "<b>My tasks</b>" if scope == SCOPE_MINE else "<b>Shared with me</b>"
    if not views:
        return f"{header}\n\n{EMPTY_BOARD if scope == SCOPE_MINE else EMPTY_SHARED}"
    lines = [header, ""]
    lines.extend(_board_line(v, uid) for v in views)
    return "\n".join(lines)


def collaborator_name(cid: str, uid: Optional[str], display: Callable[[str], str]) -> str:
    if cid == uid:
        return "You"
    name = display(cid)
    return name if name != cid else cid[:10]


def render_task(view: TaskView, uid: Optional[str], display: Callable[[str], str]) -> str:
    record = view.record
    owner = "You" if view.is_owned_by(uid) else escape(view.owner_display)
    lines = [f"{checkbox(record.completed)} <b>{escape(record.title or '(untitled)')}</b>"]
    if record.description:
        lines.append(escape(record.description))
    lines.append("")
    lines.append(f"Owner: {owner}")

    due = due_label(record)
    lines.append(f"Due: {due}" if due else "Due: not set")
    rec = recurrence_label(record.recurrence)
    if rec:
        lines.append(rec)
        if record.next_due:
            lines.append(f"Next due: {record.next_due.isoformat()}")

    subtasks = record.sorted_subtasks()
    if subtasks:
        done, total = record.subtask_progress
        lines.append("")
        lines.append(f"<b>Subtasks</b> ({done}/{total}, {progress_pct(record)}%)")
        for s in subtasks:
            lines.append(f"{checkbox(s.completed)} {escape(s.title)}")

    if record.collaborators:
        names = [escape(collaborator_name(cid, uid, display)) for cid in sorted(record.collaborators)]
        lines.append("")
        lines.append("Collaborators: " + ", ".join(names))
    return "\n".join(lines)

