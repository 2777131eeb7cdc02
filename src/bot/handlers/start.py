"""
/start command handler
"""

from aiogram import Router
from aiogram.filters import CommandStart
from aiogram.types import Message
from loguru import logger

from src.monitoring.messages import START_TEXT

router = Router(name="start")


@router.message(CommandStart())
async def cmd_start(message: Message):
    """Introduce the bot"""
    await message.answer(START_TEXT)

    logger.info(f"/start from chat {message.chat.id}")
