from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import ExceptionTypeFilter
from aiogram.types import ErrorEvent

from taskboard.config import Settings, load_settings
from taskboard.domain.common.time import to_iso
from taskboard.domain.tasks.ports import Clock
from taskboard.domain.tasks.service import TaskService
from taskboard.domain.users.service import UserService
from taskboard.infra.clock.system_clock import SystemClock
from taskboard.infra.db.connection import Database
from taskboard.infra.db.schema_version import MIGRATIONS_DIR, apply_migrations
from taskboard.infra.ids.uuid_gen import UuidGenerator
from taskboard.infra.store.memory_store import MemoryRecordStore
from taskboard.infra.store.notifying import NotifyingStore
from taskboard.infra.store.sqlite_store import SqliteRecordStore

from taskboard.ui.telegram.handlers.admin import router as admin_router
from taskboard.ui.telegram.handlers.cancel import router as cancel_router
from taskboard.ui.telegram.handlers.start import router as start_router
from taskboard.ui.telegram.handlers.tasks import router as tasks_router
from taskboard.ui.telegram.live import LiveBoards
from taskboard.ui.telegram.middlewares.auth import SignInMiddleware
from taskboard.ui.telegram.middlewares.di import DIMiddleware

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


async def open_store(settings: Settings, clock: Clock) -> NotifyingStore:
    if str(settings.db_path) == IN_MEMORY:
        logger.warning("DB_PATH is %s, nothing will survive a restart", IN_MEMORY)
        return MemoryRecordStore()

    repo_root = Path(__file__).resolve().parents[3]  # .../taskboard/ui/telegram/main.py -> repo root

    db_path = settings.db_path
    if not db_path.is_absolute():
        db_path = repo_root / db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("DB_PATH: %s", db_path)

    db = Database(str(db_path))
    await apply_migrations(
        db=db,
        migrations_dir=str(MIGRATIONS_DIR),
        now_iso=to_iso(clock.now()),
    )
    return SqliteRecordStore(db)


async def main() -> None:
    settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(message)s",
    )
    logger.info("Bot starting - PID: %s", os.getpid())

    clock = SystemClock(settings.timezone)
    ids = UuidGenerator()
    store = await open_store(settings, clock)

    # --- services ---
    task_service = TaskService(store=store, clock=clock, ids=ids)
    user_service = UserService(store=store, clock=clock, new_accounts_active=settings.new_accounts_active)

    # --- bot/dispatcher ---
    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()
    boards = LiveBoards(bot, store)

    # --- middlewares ---
    sign_in = SignInMiddleware(user_service, settings)
    dp.message.middleware(sign_in)
    dp.callback_query.middleware(sign_in)

    di = DIMiddleware(task_service, user_service, boards, settings)
    dp.message.middleware(di)
    dp.callback_query.middleware(di)

    # --- routers ---
    dp.include_router(cancel_router)
    dp.include_router(start_router)
    dp.include_router(admin_router)
    dp.include_router(tasks_router)

    @dp.error(ExceptionTypeFilter(TelegramBadRequest))
    async def handle_old_callback_query(event: ErrorEvent) -> None:
        """Ignore TelegramBadRequest for old/invalid callback queries (e.g. after bot restart)."""
        msg = str(event.exception).lower()
        if "query is too old" in msg or "query id is invalid" in msg or "response timeout expired" in msg:
            logger.debug("Ignoring old/invalid callback query: %s", event.exception)
            return
        raise event.exception

    logger.info("Starting polling")
    try:
        await dp.start_polling(bot)
    finally:
        await boards.stop_all()
        store.close()
        await bot.session.close()
        logger.info("Bot shutdown complete - PID: %s", os.getpid())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
