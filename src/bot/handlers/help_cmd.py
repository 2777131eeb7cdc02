"""
/help command handler
"""

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from loguru import logger

from src.monitoring.messages import HELP_TEXT

router = Router(name="help")


@router.message(Command("help"))
async def cmd_help(message: Message):
    """
    Handle /help command - show available commands

    Args:
        message: Incoming message
    """
    await message.answer(HELP_TEXT)

    logger.info(f"Help shown in chat {message.chat.id}")
