# coding: utf-8
"""
Telegram notification service

Single ordered delivery pipeline:
- enqueue() is fire-and-forget
- one worker sends messages in enqueue order
- fixed pause after every send (Telegram flood limits)
- oversized messages are split on line boundaries
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Union

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest, TelegramForbiddenError
from loguru import logger

from config.config import (
    TELEGRAM_MAX_MESSAGE_LENGTH,
    TELEGRAM_MESSAGE_DELAY,
    TELEGRAM_FALLBACK_CHUNK_LENGTH,
)


ChatId = Union[int, str]


def _hard_split(line: str, max_length: int) -> List[str]:
    """Cut a single line that alone exceeds max_length"""
    return [line[i:i + max_length] for i in range(0, len(line), max_length)] or [""]


def split_message(text: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH) -> List[str]:
    """
    Split text into the fewest chunks of at most max_length characters

    Lines are packed greedily in order. When every line fits within
    max_length, "\\n".join(chunks) gives back the original text. A longer
    line is cut into pieces of max_length characters and each cut becomes
    a chunk boundary, so joining with "\\n" adds a line break at every cut.

    Args:
        text: Message text
        max_length: Maximum chunk length

    Returns:
        List of chunks
    """
    if max_length <= 0:
        raise ValueError("max_length must be positive")

    if len(text) <= max_length:
        return [text]

    chunks: List[str] = []
    current: List[str] = []
    current_length = 0

    for line in text.split("\n"):
        for piece in _hard_split(line, max_length):
            added = len(piece) + (1 if current else 0)
            if current and current_length + added > max_length:
                chunks.append("\n".join(current))
                current = [piece]
                current_length = len(piece)
            else:
                current.append(piece)
                current_length += added

    if current:
        chunks.append("\n".join(current))

    return chunks


def _is_too_long(error: TelegramBadRequest) -> bool:
    return "message is too long" in str(error).lower()


@dataclass
class OutboundMessage:
    chat_id: ChatId
    text: str


class TelegramNotifier:
    """
    Ordered, paced delivery of alerts to Telegram chats

    Usage:
        notifier = TelegramNotifier(bot)
        await notifier.initialize()
        notifier.enqueue(chat_id, "<b>Hello</b>")
        ...
        await notifier.shutdown()
    """

    def __init__(
        self,
        bot: Bot,
        max_message_length: int = TELEGRAM_MAX_MESSAGE_LENGTH,
        message_delay_ms: int = TELEGRAM_MESSAGE_DELAY,
        fallback_chunk_length: int = TELEGRAM_FALLBACK_CHUNK_LENGTH,
    ):
        self.bot = bot
        self.max_message_length = max_message_length
        self.message_delay = message_delay_ms / 1000
        self.fallback_chunk_length = fallback_chunk_length

        self._queue: asyncio.Queue[OutboundMessage] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

        self.sent_count = 0
        self.failed_count = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def initialize(self) -> None:
        """
        Verify the bot token and start the delivery worker

        Raises:
            TelegramAPIError: if Telegram is unreachable or the token is invalid
        """
        me = await self.bot.get_me()
        logger.info(f"Telegram connection verified: @{me.username}")

        if not self.is_running:
            self._worker = asyncio.create_task(self._run(), name="telegram-delivery")
            logger.info("Telegram delivery worker started")

    def enqueue(self, chat_id: ChatId, text: str) -> None:
        """Queue a message for delivery (returns immediately)"""
        if not text:
            logger.warning(f"Skipping empty message for chat {chat_id}")
            return

        self._queue.put_nowait(OutboundMessage(chat_id=chat_id, text=text))
        logger.debug(f"Message queued for chat {chat_id} ({self._queue.qsize()} pending)")

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
            except Exception as e:
                self.failed_count += 1
                logger.exception(f"Unexpected error delivering message to {message.chat_id}: {e}")
            finally:
                self._queue.task_done()

    async def _deliver(self, message: OutboundMessage) -> None:
        chunks = split_message(message.text, self.max_message_length)
        if len(chunks) > 1:
            logger.debug(f"Message split into {len(chunks)} chunks")

        for chunk in chunks:
            await self._send_chunk(message.chat_id, chunk)

    async def _send(self, chat_id: ChatId, text: str) -> None:
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                disable_web_page_preview=True,
            )
        finally:
            await asyncio.sleep(self.message_delay)

    async def _send_chunk(self, chat_id: ChatId, text: str) -> None:
        try:
            await self._send(chat_id, text)
            self.sent_count += 1
            logger.debug(f"Message sent to chat {chat_id}")

        except TelegramBadRequest as e:
            if not _is_too_long(e):
                self.failed_count += 1
                logger.error(f"Telegram rejected message for chat {chat_id}: {e}")
                return

            logger.warning(
                f"Message too long for chat {chat_id}, retrying in "
                f"{self.fallback_chunk_length}-char chunks"
            )
            try:
                for piece in split_message(text, self.fallback_chunk_length):
                    await self._send(chat_id, piece)
                self.sent_count += 1
            except TelegramAPIError as retry_error:
                self.failed_count += 1
                logger.error(f"Failed to send rechunked message to chat {chat_id}: {retry_error}")

        except TelegramForbiddenError:
            self.failed_count += 1
            logger.warning(f"Bot is blocked or removed from chat {chat_id}")

        except TelegramAPIError as e:
            self.failed_count += 1
            logger.error(f"Failed to send message to chat {chat_id}: {e}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait until every queued message has been handled"""
        if not self.is_running:
            if self._queue.qsize():
                logger.warning(f"Delivery worker not running, {self._queue.qsize()} messages undelivered")
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Drain timed out with {self._queue.qsize()} messages pending")

    async def shutdown(self, timeout: Optional[float] = 30.0) -> None:
        """Drain the queue, stop the worker and close the bot session"""
        await self.drain(timeout=timeout)

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        await self.bot.session.close()
        logger.info(
            f"Telegram notifier stopped (sent: {self.sent_count}, failed: {self.failed_count})"
        )
