from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskboard.domain.tasks.ports import Clock

logger = logging.getLogger(__name__)


def _zone(tz_name: str) -> tzinfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using UTC", tz_name)
        return timezone.utc


class SystemClock(Clock):
    """Wall clock in the bot's zone. Due dates and nextDue use its calendar day."""

    def __init__(self, tz_name: str) -> None:
        self._tz = _zone(tz_name)

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)
