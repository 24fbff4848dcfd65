"""
Точка входа: ядро таймера + (опционально) Telegram-пульт и уведомления
"""
import asyncio
import signal
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

import config
from database.progress_db import ProgressDB
from database.store import FirestoreStore, KeyValueStore, MemoryStore
from handlers import timer as timer_handlers
from middlewares import CorrelationMiddleware
from models.timer import TimerConfig
from services.timer_app import build_timer_app
from tasks.progress_migration import migration_pass
from utils.firestore_client import create_firestore_client
from utils.logging import get_logger, setup_logging
from utils.notify import fire_and_forget, log_notifier, make_notifier
from utils.scheduler import AsyncioScheduler

logger = get_logger(__name__)


def create_store() -> KeyValueStore:
    """Firestore, если доступен; иначе хранилище в памяти"""
    if config.USE_FIRESTORE:
        db = create_firestore_client(config.FIREBASE_PROJECT_ID)
        if db is not None:
            logger.info("Using Firestore store", extra={"collection": config.STORE_COLLECTION})
            return FirestoreStore(db, config.STORE_COLLECTION)
    logger.warning("Firestore unavailable, state will not survive restart")
    return MemoryStore()


async def main(shutdown_event: Optional[asyncio.Event] = None):
    """Основная точка входа приложения."""
    setup_logging(level=config.LOG_LEVEL)
    logger.info("Starting Pomodoro timer")

    shutdown_event = shutdown_event or asyncio.Event()
    store = create_store()
    scheduler = AsyncioScheduler()

    bot: Optional[Bot] = None
    if config.BOT_TOKEN:
        bot = Bot(
            token=config.BOT_TOKEN,
            default=DefaultBotProperties(parse_mode=ParseMode.HTML),
        )

    if bot is not None and config.NOTIFY_CHAT_ID:
        notify = fire_and_forget(make_notifier(bot, config.NOTIFY_CHAT_ID))
    else:
        notify = log_notifier

    migration_pass(ProgressDB(store))
    app = build_timer_app(
        store,
        scheduler,
        notify,
        default_config=TimerConfig(
            work_seconds=config.DEFAULT_WORK_SECONDS,
            short_break_seconds=config.DEFAULT_SHORT_BREAK_SECONDS,
            long_break_seconds=config.DEFAULT_LONG_BREAK_SECONDS,
        ),
        tick_interval_ms=config.TICK_INTERVAL_MS,
        min_visible=config.MIN_VISIBLE_HOURS,
    )

    # Обработка сигналов для graceful shutdown
    def signal_handler(sig, frame):
        logger.info("Received signal, initiating shutdown", extra={"signal": sig})
        shutdown_event.set()

    previous_handlers = {}
    if bot is None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[sig] = signal.signal(sig, signal_handler)

    try:
        if bot is not None:
            dp = Dispatcher()
            dp["app"] = app
            dp.message.middleware(CorrelationMiddleware())
            dp.include_router(timer_handlers.router)

            # Удаляем вебхуки (если были установлены)
            await bot.delete_webhook(drop_pending_updates=True)
            logger.info("Starting in polling mode")
            await dp.start_polling(bot)
        else:
            logger.info("No BOT_TOKEN, running headless")
            await shutdown_event.wait()
    finally:
        logger.info("Shutting down...")
        app.close()
        await scheduler.aclose()
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        if bot is not None:
            await bot.session.close()
        logger.info("Timer stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
