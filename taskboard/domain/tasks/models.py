from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Literal, Mapping, Optional

from taskboard.domain.common.time import format_date, from_iso, parse_date, to_iso

RecurrenceType = Literal["none", "daily", "weekly", "monthly"]
RECURRENCE_TYPES: tuple[RecurrenceType, ...] = ("none", "daily", "weekly", "monthly")


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    # older records carry epoch milliseconds instead of ISO strings
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
    try:
        return from_iso(str(raw))
    except ValueError:
        return None


def _safe_date(raw: Any) -> Optional[date]:
    try:
        return parse_date(raw)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Recurrence:
    type: RecurrenceType = "none"
    interval: int = 1

    @classmethod
    def from_value(cls, raw: Any) -> "Recurrence":
        if not isinstance(raw, Mapping):
            return cls()
        rtype = raw.get("type") or "none"
        if rtype not in RECURRENCE_TYPES:
            rtype = "none"
        try:
            interval = max(1, int(raw.get("interval") or 1))
        except (TypeError, ValueError):
            interval = 1
        return cls(type=rtype, interval=interval)

    def to_value(self) -> Dict[str, Any]:
        return {"type": self.type, "interval": self.interval}


@dataclass(frozen=True)
class Subtask:
    subtask_id: str
    title: str
    completed: bool
    created_at: Optional[datetime]

    @classmethod
    def from_value(cls, subtask_id: str, raw: Any) -> "Subtask":
        raw = raw if isinstance(raw, Mapping) else {}
        return cls(
            subtask_id=subtask_id,
            title=str(raw.get("title") or ""),
            completed=bool(raw.get("completed")),
            created_at=_parse_timestamp(raw.get("createdAt")),
        )

    def to_value(self) -> Dict[str, Any]:
        return {
            "id": self.subtask_id,
            "title": self.title,
            "completed": self.completed,
            "createdAt": to_iso(self.created_at) if self.created_at else None,
        }


@dataclass(frozen=True)
class TaskRecord:
    task_id: str
    title: str
    description: str = ""
    completed: bool = False
    target_date: Optional[date] = None
    recurrence: Recurrence = field(default_factory=Recurrence)
    next_due: Optional[date] = None
    subtasks: Dict[str, Subtask] = field(default_factory=dict)
    collaborators: frozenset[str] = frozenset()
    created_at: Optional[datetime] = None

    @classmethod
    def from_value(cls, task_id: str, raw: Any) -> "TaskRecord":
        """Build a record from the stored tree value. Missing fields get their defaults."""
        raw = raw if isinstance(raw, Mapping) else {}
        subtasks_raw = raw.get("subtasks") if isinstance(raw.get("subtasks"), Mapping) else {}
        collabs_raw = raw.get("collaborators") if isinstance(raw.get("collaborators"), Mapping) else {}
        return cls(
            task_id=str(raw.get("id") or task_id),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            completed=bool(raw.get("completed")),
            target_date=_safe_date(raw.get("targetDate")),
            recurrence=Recurrence.from_value(raw.get("recurrence")),
            next_due=_safe_date(raw.get("nextDue")),
            subtasks={sid: Subtask.from_value(sid, s) for sid, s in subtasks_raw.items()},
            collaborators=frozenset(cid for cid, flag in collabs_raw.items() if flag),
            created_at=_parse_timestamp(raw.get("createdAt")),
        )

    def to_value(self) -> Dict[str, Any]:
        return {
            "id": self.task_id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "targetDate": format_date(self.target_date),
            "recurrence": self.recurrence.to_value(),
            "nextDue": format_date(self.next_due),
            "subtasks": {sid: s.to_value() for sid, s in self.subtasks.items()},
            "collaborators": {cid: True for cid in sorted(self.collaborators)},
            "createdAt": to_iso(self.created_at) if self.created_at else None,
        }

    @property
    def subtask_progress(self) -> tuple[int, int]:
        done = sum(1 for s in self.subtasks.values() if s.completed)
        return done, len(self.subtasks)

    def sorted_subtasks(self) -> list[Subtask]:
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(self.subtasks.values(), key=lambda s: (s.created_at or epoch, s.subtask_id))


@dataclass(frozen=True)
class OwnerInfo:
    raw: Optional[Dict[str, Any]]
    display: str

    @property
    def photo_url(self) -> Optional[str]:
        if not self.raw:
            return None
        return self.raw.get("photoURL") or None


def view_key(owner_id: str, task_id: str) -> str:
    return f"{owner_id}_{task_id}"


@dataclass(frozen=True)
class TaskView:
    """One row of the aggregated table: a task snapshot tagged with its owner."""

    owner_id: str
    task_id: str
    owner_display: str
    record: TaskRecord

    @property
    def key(self) -> str:
        return view_key(self.owner_id, self.task_id)

    def is_owned_by(self, uid: Optional[str]) -> bool:
        return uid is not None and self.owner_id == uid


@dataclass(frozen=True)
class NewTaskRequest:
    owner_id: str
    title: str
    description: str = ""
    target_date: Optional[date] = None
    recurrence: Recurrence = field(default_factory=Recurrence)
