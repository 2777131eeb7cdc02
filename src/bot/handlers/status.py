"""
/status command handler
"""

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message
from loguru import logger

from src.monitoring.engine import MonitoringEngine
from src.monitoring.messages import status_text

router = Router(name="status")


@router.message(Command("status"))
async def cmd_status(message: Message, engine: MonitoringEngine):
    """
    Handle /status command - engine state and counters

    Args:
        message: Incoming message
        engine: Monitoring engine (dispatcher workflow data)
    """
    text = status_text(engine.get_stats(), engine.get_settings())
    await message.answer(text)

    logger.info(f"Status shown in chat {message.chat.id}")
