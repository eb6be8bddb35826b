from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Tuple

from taskboard.infra.db.connection import Database

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _pending_files(migrations_dir: str) -> List[Tuple[int, Path]]:
    """NNN_name.sql files sorted by version. Anything else in the folder is ignored."""
    found = []
    for p in Path(migrations_dir).glob("*.sql"):
        head = p.stem.split("_", 1)[0]
        if not p.is_file() or not head.isdigit():
            logger.warning("Skipping migration file without a version prefix: %s", p.name)
            continue
        found.append((int(head), p))
    return sorted(found)


async def apply_migrations(db: Database, migrations_dir: str, now_iso: str) -> int:
    """Apply every migration not yet in schema_migrations. Returns how many ran."""
    await db.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL);"
    )
    applied = {row["version"] for row in await db.fetchall("SELECT version FROM schema_migrations;")}

    ran = 0
    for version, p in _pending_files(migrations_dir):
        if version in applied:
            continue
        await db.executescript(p.read_text(encoding="utf-8"))
        await db.execute(
            "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?);",
            (version, now_iso),
        )
        logger.info("Applied migration %s", p.name)
        ran += 1
    return ran
