from dataclasses import dataclass
import os
from pathlib import Path

try:
    from dotenv import load_dotenv
    load_dotenv()
except Exception:
    pass


@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_telegram_ids: frozenset[int]
    timezone: str
    db_path: Path
    new_accounts_active: bool
    log_level: str

    def is_admin(self, telegram_id: int) -> bool:
        return telegram_id in self.admin_telegram_ids


def _parse_ids(raw: str) -> frozenset[int]:
    ids = set()
    for part in raw.replace(";", ",").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            raise RuntimeError(f"ADMIN_TELEGRAM_IDS contains a non-numeric id: {part!r}")
        if value <= 0:
            raise RuntimeError(f"ADMIN_TELEGRAM_IDS contains an invalid id: {part!r}")
        ids.add(value)
    return frozenset(ids)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    admin_ids = _parse_ids(os.getenv("ADMIN_TELEGRAM_IDS", ""))
    tz = os.getenv("TZ", "Europe/Helsinki").strip()
    db_raw = os.getenv("DB_PATH", "data/taskboard.db").strip()
    new_active = _parse_bool(os.getenv("NEW_ACCOUNTS_ACTIVE", "1"))
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    if not bot_token:
        raise RuntimeError("BOT_TOKEN missing in .env")

    # db_path may be relative; main.py resolves it against the repo root
    return Settings(
        bot_token=bot_token,
        admin_telegram_ids=admin_ids,
        timezone=tz,
        db_path=Path(db_raw),
        new_accounts_active=new_active,
        log_level=log_level,
    )
