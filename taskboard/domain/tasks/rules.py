from __future__ import annotations

from typing import Optional

from taskboard.domain.common.errors import (
    NotAuthenticatedError,
    PermissionDeniedError,
    ValidationError,
)
from taskboard.domain.tasks.models import RECURRENCE_TYPES

MAX_TITLE_LEN = 200
MAX_DESCRIPTION_LEN = 2000


def require_actor(actor_id: Optional[str]) -> str:
    if not actor_id or not str(actor_id).strip():
        raise NotAuthenticatedError("Please sign in first.")
    return str(actor_id)


def require_owner(actor_id: str, owner_id: str) -> None:
    if actor_id != owner_id:
        raise PermissionDeniedError("Only the task owner can do that.")


def require_ids(*ids: Optional[str]) -> None:
    for value in ids:
        if not value or "/" in value:
            raise ValidationError("Invalid task reference.")


def validate_title(title: str, what: str = "Title") -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} is required.")
    if len(cleaned) > MAX_TITLE_LEN:
        raise ValidationError(f"{what} is too long (max {MAX_TITLE_LEN} chars).")
    return cleaned


def validate_description(description: Optional[str]) -> str:
    cleaned = (description or "").strip()
    if len(cleaned) > MAX_DESCRIPTION_LEN:
        raise ValidationError(f"Description is too long (max {MAX_DESCRIPTION_LEN} chars).")
    return cleaned


def validate_recurrence(recurrence_type: str, interval: int) -> None:
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError("Recurrence must be one of: none, daily, weekly, monthly.")
    if not isinstance(interval, int) or isinstance(interval, bool) or interval < 1:
        raise ValidationError("Recurrence interval must be a positive integer.")
