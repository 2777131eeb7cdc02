"""
Unit tests for Telegram message templates
"""
from datetime import datetime, timedelta, UTC

import pytest

from src.monitoring import messages
from src.services.dexscreener_service import TokenDetails, parse_pair


@pytest.fixture
def details():
    return TokenDetails(
        address="Token1Mint",
        name="Moon <Cat>",
        symbol="MCAT",
        price=0.00055,
        market_cap=550_000,
        liquidity=80_000,
        volume_24h=42_000,
        pair_address="Pair1Address",
        created_at=datetime(2024, 5, 1, 10, 0, tzinfo=UTC),
        url="https://dexscreener.com/solana/pair1",
    )


def test_format_helpers():
    assert messages.format_price(0.000123) == "$0.000123000000"
    assert messages.format_usd(1_234_567.8) == "$1,234,568"
    assert messages.format_timestamp(datetime(2024, 5, 1, 10, 5)) == "2024-05-01 10:05 UTC"


@pytest.mark.parametrize(
    "delta, expected",
    [
        (timedelta(minutes=45), "45m"),
        (timedelta(hours=3, minutes=7), "3h 7m"),
        (timedelta(seconds=-30), "0m"),
    ],
)
def test_format_elapsed(delta, expected):
    now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert messages.format_elapsed(now - delta, now) == expected


def test_format_duration():
    assert messages.format_duration(59) == "0m"
    assert messages.format_duration(3_660) == "1h 1m"
    assert messages.format_duration(90_000) == "1d 1h 0m"


def test_new_token_alert_escapes_names(raw_pair):
    pair = parse_pair(raw_pair(baseToken={"address": "Mint<1>", "name": "A & B", "symbol": "<AB>"}))

    text = messages.new_token_alert(pair)

    assert "New Token Detected" in text
    assert "A &amp; B" in text
    assert "&lt;AB&gt;" in text
    assert "<code>Mint&lt;1&gt;</code>" in text
    assert "$100,000" in text


def test_achievement_alert(details):
    now = details.created_at + timedelta(hours=2, minutes=30)

    text = messages.achievement_alert(details, 5, 100_000, now=now)

    assert text.startswith("🏆 <b>Achievement Unlocked: 5x!</b>")
    assert "Moon &lt;Cat&gt;" in text
    assert "$100,000" in text
    assert "$550,000" in text
    assert "2h 30m" in text
    assert 'href="https://dexscreener.com/solana/pair1"' in text


def test_achievement_alert_fractional_rung(details):
    assert "Achievement Unlocked: 1.75x!" in messages.achievement_alert(details, 1.75, 100_000)


def test_tokens_summary(raw_pair):
    pairs = [parse_pair(raw_pair(index=i)) for i in (1, 2)]

    text = messages.tokens_summary(pairs)

    assert text.startswith("📊 <b>Found 2 tokens</b>")
    assert "1. <b>TK1</b>" in text
    assert "2. <b>TK2</b>" in text


def test_no_tokens_found():
    assert messages.no_tokens_found(24) == (
        "🔍 Initial scan complete - No tokens found in the last 24 hours"
    )


def test_dev_wallet_alert_caution(details):
    plain = messages.dev_wallet_alert("DevWallet1", 4, details, caution_threshold=5)
    caution = messages.dev_wallet_alert("DevWallet1", 6, details, caution_threshold=5)

    assert "4 tokens" in plain
    assert "Use caution" not in plain
    assert "6 tokens" in caution
    assert "Use caution" in caution


def test_blacklist_alert(details):
    text = messages.blacklist_alert("DevWallet1", 17, 15, details)

    assert "Blacklisted" in text
    assert "<code>DevWallet1</code>" in text
    assert "15/100" in text
    assert "Moon &lt;Cat&gt;" in text


def test_status_text():
    stats = {
        "state": "running",
        "started_at": datetime(2024, 5, 1, 10, 0, tzinfo=UTC),
        "uptime_seconds": 7_200,
        "tokens_detected": 12,
        "achievements_unlocked": 3,
        "dev_wallets_analyzed": 4,
        "blacklisted": 1,
        "errors": 0,
        "next_runs": {"token_scan": datetime(2024, 5, 1, 12, 0, 5, tzinfo=UTC), "cleanup": None},
    }
    settings = {"search_query": "raydium", "scan_interval_ms": 5_000, "min_liquidity_usd": 1_000}

    text = messages.status_text(stats, settings)

    assert "<b>Bot Status:</b> Running" in text
    assert "5s" in text
    assert "$1,000" in text
    assert "2h 0m" in text
    assert "token_scan: 2024-05-01 12:00 UTC" in text
    assert "cleanup" not in text
