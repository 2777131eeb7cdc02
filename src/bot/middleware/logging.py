"""
Logging middleware - logs incoming commands
"""

from typing import Callable, Dict, Any, Awaitable

import time

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Message

from loguru import logger


class LoggingMiddleware(BaseMiddleware):
    """
    Logs each message update and how long its handler took
    """

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        chat_id = None
        update_type = type(event).__name__

        if isinstance(event, Message):
            chat_id = event.chat.id
            username = event.from_user.username if event.from_user else None
            logger.info(f"Command from @{username} in chat {chat_id}: {(event.text or '')[:100]}")

        start_time = time.monotonic()

        try:
            result = await handler(event, data)
        except Exception as e:
            logger.error(
                f"{update_type} failed after {time.monotonic() - start_time:.3f}s "
                f"(chat: {chat_id}): {e}"
            )
            raise

        logger.debug(f"{update_type} processed in {time.monotonic() - start_time:.3f}s (chat: {chat_id})")
        return result
