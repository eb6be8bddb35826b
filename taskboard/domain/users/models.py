from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Identity:
    """What the identity provider hands over on sign-in."""

    uid: str
    display_name: Optional[str]
    email: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class UserRecord:
    uid: str
    name: str
    email: str
    photo_url: str
    is_active: bool
    created_at: Optional[str]
    last_login: Optional[str]

    @classmethod
    def from_value(cls, uid: str, raw: Any) -> "UserRecord":
        raw = raw if isinstance(raw, Mapping) else {}
        return cls(
            uid=uid,
            name=str(raw.get("name") or ""),
            email=str(raw.get("email") or ""),
            photo_url=str(raw.get("photoURL") or ""),
            # records written before activation existed count as active
            is_active=raw.get("isAccountActive") is not False,
            created_at=raw.get("createdAt"),
            last_login=raw.get("lastLogin"),
        )

    @property
    def display(self) -> str:
        return self.name or self.email or self.uid
