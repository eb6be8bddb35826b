from __future__ import annotations

import uuid

from taskboard.domain.tasks.ports import IdGenerator

# short enough to fit owner/task/subtask ids into one Telegram callback payload
ID_LENGTH = 16


class UuidGenerator(IdGenerator):
    def new_id(self) -> str:
        return uuid.uuid4().hex[:ID_LENGTH]
