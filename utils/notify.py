import asyncio
from typing import Awaitable, Callable, Set

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from utils.logging import get_logger

logger = get_logger(__name__)

AsyncNotify = Callable[[str], Awaitable[None]]
Notify = Callable[[str], None]


def make_notifier(bot: Bot, chat_id: str) -> AsyncNotify:
    """Асинхронная отправка уведомления в чат; ошибки Telegram только логируются"""

    async def notify(message: str) -> None:
        try:
            await bot.send_message(chat_id=chat_id, text=message)
            logger.info("Notification sent", extra={"chat_id": chat_id})
        except TelegramAPIError as e:
            logger.error(
                "Notification failed",
                extra={"chat_id": chat_id, "error": str(e)},
            )

    return notify


def fire_and_forget(notify: AsyncNotify) -> Notify:
    """
    Оборачивает асинхронный notifier в синхронный вызов для движка:
    отправка планируется в текущем event loop, результат не ждём.
    """
    pending: Set[asyncio.Task] = set()

    def send(message: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            logger.error("Notification failed", extra={"error": str(e)})
            return
        task = loop.create_task(notify(message))
        # держим ссылку, иначе задачу может собрать GC до отправки
        pending.add(task)
        task.add_done_callback(pending.discard)

    return send


def log_notifier(message: str) -> None:
    """Notifier без внешнего канала: только запись в лог"""
    logger.info("Notification", extra={"text": message})
