"""
Unit tests for the Telegram notifier
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from aiogram.exceptions import TelegramBadRequest, TelegramNetworkError
from aiogram.methods import SendMessage

from src.services.telegram_service import TelegramNotifier, split_message


def bad_request(text: str) -> TelegramBadRequest:
    return TelegramBadRequest(method=SendMessage(chat_id=1, text="x"), message=text)


@pytest.fixture
def bot():
    bot = MagicMock()
    bot.get_me = AsyncMock(return_value=MagicMock(username="pump_monitor_bot"))
    bot.send_message = AsyncMock()
    bot.session.close = AsyncMock()
    return bot


@pytest.fixture
def notifier(bot):
    return TelegramNotifier(bot, max_message_length=100, message_delay_ms=0, fallback_chunk_length=40)


def sent_texts(bot) -> list:
    return [call.kwargs["text"] for call in bot.send_message.await_args_list]


# ===========================
# SPLITTING
# ===========================


def test_short_message_not_split():
    assert split_message("hello\nworld", 100) == ["hello\nworld"]


def test_split_preserves_lines_and_order():
    lines = [f"line {i:02d} " + "x" * 20 for i in range(20)]
    text = "\n".join(lines)

    chunks = split_message(text, 100)

    assert len(chunks) > 1
    assert all(len(chunk) <= 100 for chunk in chunks)
    assert "\n".join(chunks) == text


def test_split_uses_fewest_chunks():
    # Four 49-char lines: two per chunk (49 + 1 + 49 = 99)
    text = "\n".join(["a" * 49] * 4)
    assert len(split_message(text, 100)) == 2


def test_split_keeps_empty_lines():
    text = "header\n\n" + "\n".join(["y" * 30] * 6) + "\n\nfooter"

    chunks = split_message(text, 70)

    assert all(len(chunk) <= 70 for chunk in chunks)
    assert "\n".join(chunks) == text


def test_split_cuts_overlong_line():
    text = "short\n" + "z" * 250

    chunks = split_message(text, 100)

    # Each cut inside the long line starts a new chunk
    assert chunks == ["short", "z" * 100, "z" * 100, "z" * 50]
    assert "\n".join(chunks) != text


def test_split_invalid_limit():
    with pytest.raises(ValueError):
        split_message("text", 0)


# ===========================
# DELIVERY
# ===========================


@pytest.mark.asyncio
async def test_initialize_verifies_bot(notifier, bot):
    await notifier.initialize()

    bot.get_me.assert_awaited_once()
    assert notifier.is_running

    await notifier.shutdown()
    assert not notifier.is_running
    bot.session.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_initialize_failure_propagates(notifier, bot):
    bot.get_me.side_effect = TelegramNetworkError(method=MagicMock(), message="unreachable")

    with pytest.raises(TelegramNetworkError):
        await notifier.initialize()

    assert not notifier.is_running


@pytest.mark.asyncio
async def test_messages_delivered_in_enqueue_order(notifier, bot):
    await notifier.initialize()

    for i in range(5):
        notifier.enqueue("chat-a" if i % 2 else "chat-b", f"message {i}")
    await notifier.drain()

    assert sent_texts(bot) == [f"message {i}" for i in range(5)]
    assert notifier.sent_count == 5

    await notifier.shutdown()


@pytest.mark.asyncio
async def test_long_message_sent_in_chunks(notifier, bot):
    await notifier.initialize()
    text = "\n".join(f"row {i} " + "-" * 30 for i in range(10))

    notifier.enqueue(1, text)
    await notifier.drain()

    assert "\n".join(sent_texts(bot)) == text
    assert all(len(t) <= 100 for t in sent_texts(bot))

    await notifier.shutdown()


@pytest.mark.asyncio
async def test_failed_message_does_not_block_queue(notifier, bot):
    bot.send_message.side_effect = [bad_request("Bad Request: chat not found"), None]
    await notifier.initialize()

    notifier.enqueue(1, "first")
    notifier.enqueue(1, "second")
    await notifier.drain()

    assert sent_texts(bot) == ["first", "second"]
    assert notifier.failed_count == 1
    assert notifier.sent_count == 1

    await notifier.shutdown()


@pytest.mark.asyncio
async def test_too_long_message_rechunked_once(notifier, bot):
    bot.send_message.side_effect = [bad_request("Bad Request: message is too long"), None, None]
    await notifier.initialize()
    text = "a" * 30 + "\n" + "b" * 30

    notifier.enqueue(1, text)
    await notifier.drain()

    assert sent_texts(bot) == [text, "a" * 30, "b" * 30]
    assert notifier.sent_count == 1
    assert notifier.failed_count == 0

    await notifier.shutdown()


@pytest.mark.asyncio
async def test_rechunk_failure_is_dropped(notifier, bot):
    bot.send_message.side_effect = [
        bad_request("Bad Request: message is too long"),
        bad_request("Bad Request: message is too long"),
        None,
    ]
    await notifier.initialize()

    notifier.enqueue(1, "c" * 30)
    notifier.enqueue(1, "next")
    await notifier.drain()

    assert sent_texts(bot)[-1] == "next"
    assert notifier.failed_count == 1

    await notifier.shutdown()


def test_empty_message_not_queued(notifier):
    notifier.enqueue(1, "")
    assert notifier.pending == 0
