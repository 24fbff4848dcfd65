# middlewares/correlation.py
from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import Message, TelegramObject

from utils.logging import get_logger, set_request_context

logger = get_logger(__name__)


class CorrelationMiddleware(BaseMiddleware):
    """request_id и user_id в контексте логов на время обработки команды"""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        request_id = str(uuid.uuid4())
        user_id: str | None = None
        command: str | None = None
        if isinstance(event, Message):
            if event.from_user:
                user_id = str(event.from_user.id)
            text = event.text or ""
            if text.startswith("/"):
                command = text.split()[0]

        set_request_context(request_id=request_id, user_id=user_id)
        data["request_id"] = request_id

        logger.info(
            "Command received",
            extra={"update_type": type(event).__name__, "command": command},
        )
        try:
            return await handler(event, data)
        finally:
            # очистим контекст, чтобы значения не «протекали» в следующий апдейт
            set_request_context(request_id=None, user_id=None)
