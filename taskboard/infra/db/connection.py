# taskboard/infra/db/connection.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Sequence, Tuple

import aiosqlite

Statement = Tuple[str, Sequence[Any]]


class Database:
    """
    Async SQLite helper:
    - a fresh connection per call, closed on exit
    - rows come back as aiosqlite.Row
    - writes commit before returning; execute_batch commits all or nothing
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON;")
            yield db

    async def executescript(self, sql: str) -> None:
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.executescript(sql)
            await db.commit()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        await self.execute_batch([(sql, params)])

    async def execute_batch(self, statements: Iterable[Statement]) -> None:
        async with self._connect() as db:
            try:
                for sql, params in statements:
                    await db.execute(sql, params)
            except aiosqlite.Error:
                await db.rollback()
                raise
            await db.commit()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        async with self._connect() as db:
            cur = await db.execute(sql, params)
            return await cur.fetchall()
