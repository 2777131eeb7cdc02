"""
Tests for bot command handlers
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.bot.handlers.help_cmd import cmd_help
from src.bot.handlers.start import cmd_start
from src.bot.handlers.status import cmd_status
from src.monitoring.messages import HELP_TEXT, START_TEXT


@pytest.fixture
def message():
    message = MagicMock()
    message.chat.id = 12345
    message.answer = AsyncMock()
    return message


@pytest.mark.asyncio
async def test_start(message):
    await cmd_start(message)
    message.answer.assert_awaited_once_with(START_TEXT)


@pytest.mark.asyncio
async def test_help(message):
    await cmd_help(message)
    message.answer.assert_awaited_once_with(HELP_TEXT)


@pytest.mark.asyncio
async def test_status(message):
    engine = MagicMock()
    engine.get_stats.return_value = {
        "state": "running",
        "started_at": None,
        "uptime_seconds": 0,
        "tokens_detected": 7,
        "achievements_unlocked": 2,
        "dev_wallets_analyzed": 0,
        "blacklisted": 0,
        "errors": 1,
        "next_runs": {},
    }
    engine.get_settings.return_value = {
        "search_query": "raydium",
        "scan_interval_ms": 5_000,
        "min_liquidity_usd": 1_000,
    }

    await cmd_status(message, engine)

    text = message.answer.await_args.args[0]
    assert "Running" in text
    assert "<b>Tokens detected:</b> 7" in text
    assert "<b>Errors:</b> 1" in text
