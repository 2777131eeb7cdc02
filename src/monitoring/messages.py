"""
Telegram message templates (HTML)

User-controlled text (token names, symbols, urls) is escaped with
aiogram's html.quote.
"""
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Sequence

from aiogram import html

from src.services.dexscreener_service import DexPair, TokenDetails
from src.monitoring.milestones import format_multiplier, multiplier_emoji


# ===========================
# FORMATTING HELPERS
# ===========================


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def format_price(price: float) -> str:
    """Fixed point, enough decimals for sub-cent tokens"""
    return f"${price:.12f}"


def format_usd(value: float) -> str:
    return f"${value:,.0f}"


def format_timestamp(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%d %H:%M UTC")


def format_elapsed(since: datetime, now: Optional[datetime] = None) -> str:
    """Time since a moment as 'Xh Ym' (or 'Ym' under an hour)"""
    now = now or datetime.now(UTC)
    minutes = max(0, int((now - _as_utc(since)).total_seconds() // 60))
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes = remainder // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _link(title: str, url: Optional[str]) -> str:
    if not url:
        return ""
    return f'<a href="{html.quote(url)}">{title}</a>'


# ===========================
# ALERTS
# ===========================


def new_token_alert(pair: DexPair) -> str:
    base = pair.base_token
    lines = [
        "🆕 <b>New Token Detected!</b> 🆕",
        "",
        f"<b>{html.quote(base.name)}</b> ({html.quote(base.symbol)})",
        f"💰 <b>Initial Price:</b> {format_price(pair.price_usd or 0.0)}",
        f"💵 <b>Market Cap:</b> {format_usd(pair.market_cap_usd)}",
        f"💧 <b>Liquidity:</b> {format_usd(pair.liquidity_usd)}",
        f"📊 <b>24h Volume:</b> {format_usd(pair.volume_24h)}",
        f"🔊 <b>Created:</b> {format_timestamp(pair.created_at)}",
        "",
        "▶️ <b>Token Address:</b>",
        f"<code>{html.quote(base.address)}</code>",
        "",
        _link("View Chart", pair.url),
    ]
    return "\n".join(lines).rstrip()


def achievement_alert(
    details: TokenDetails,
    multiplier: float,
    initial_market_cap: float,
    now: Optional[datetime] = None,
) -> str:
    label = format_multiplier(multiplier)
    lines = [
        f"🏆 <b>Achievement Unlocked: {label}!</b> {multiplier_emoji(multiplier)}",
        "",
        f"<b>{html.quote(details.name)}</b> ({html.quote(details.symbol)}) reached "
        f"<b>{label}</b> from initial market cap!",
        "",
        f"💵 <b>Initial MC:</b> {format_usd(initial_market_cap)}",
        f"💰 <b>Current MC:</b> {format_usd(details.market_cap)}",
        f"📈 <b>Current Price:</b> {format_price(details.price)}",
        f"📊 <b>24h Volume:</b> {format_usd(details.volume_24h)}",
        f"⏱ <b>Time to achieve:</b> {format_elapsed(details.created_at, now)}",
        "",
        "▶️ <b>Token Address:</b>",
        f"<code>{html.quote(details.address)}</code>",
        "",
        _link("View Chart", details.url),
    ]
    return "\n".join(lines).rstrip()


def _summary_line(index: int, pair: DexPair) -> str:
    base = pair.base_token
    return "\n".join([
        f"{index}. <b>{html.quote(base.symbol)}</b> - {html.quote(base.name)}",
        f"💰 MC: {format_usd(pair.market_cap_usd)}",
        f"💧 Liq: {format_usd(pair.liquidity_usd)}",
        f"📅 Listed: {format_timestamp(pair.created_at)}",
    ])


def tokens_summary(pairs: Sequence[DexPair]) -> str:
    """Bootstrap summary (may exceed the message limit, the notifier splits it)"""
    if not pairs:
        return "📊 No tokens to display"

    blocks = [f"📊 <b>Found {len(pairs)} tokens</b>"]
    blocks.extend(_summary_line(index, pair) for index, pair in enumerate(pairs, start=1))
    return "\n\n".join(blocks)


def no_tokens_found(lookback_hours: float) -> str:
    return f"🔍 Initial scan complete - No tokens found in the last {lookback_hours:g} hours"


def dev_wallet_alert(
    address: str,
    token_count: int,
    latest: TokenDetails,
    caution_threshold: int,
) -> str:
    caution = token_count > caution_threshold
    lines = [
        f"👨‍💻 <b>Developer Wallet Alert</b>{' ⚠️' if caution else ''}",
        "",
        f"This developer has created <b>{token_count} tokens</b>:",
        f"▶️ <code>{html.quote(address)}</code>",
        "",
        f"<b>Latest token:</b> {html.quote(latest.name)} ({html.quote(latest.symbol)})",
        f"💰 <b>Price:</b> {format_price(latest.price)}",
        f"💵 <b>Market Cap:</b> {format_usd(latest.market_cap)}",
        f"⏱ <b>Created:</b> {format_timestamp(latest.created_at)}",
    ]
    if caution:
        lines += ["", "⚠️ <b>Use caution when trading tokens from this developer.</b>"]
    if latest.url:
        lines += ["", _link("View Token", latest.url)]
    return "\n".join(lines)


def blacklist_alert(
    address: str,
    token_count: int,
    score: int,
    latest: Optional[TokenDetails] = None,
) -> str:
    lines = [
        "⛔️ <b>Developer Wallet Blacklisted</b>",
        "",
        f"▶️ <code>{html.quote(address)}</code>",
        f"🪙 <b>Tokens created:</b> {token_count}",
        f"📉 <b>Reputation score:</b> {score}/100",
    ]
    if latest:
        lines.append(
            f"<b>Latest token:</b> {html.quote(latest.name)} ({html.quote(latest.symbol)}), "
            f"MC {format_usd(latest.market_cap)}"
        )
    lines += ["", "New tokens from this wallet are high risk."]
    return "\n".join(lines)


# ===========================
# OPERATIONAL / COMMANDS
# ===========================


def monitor_started(token_count: int) -> str:
    return f"✅ <b>Monitoring started</b>\n\nTracking {token_count} tokens from the initial scan."


def monitor_stopped(stats: Dict[str, Any]) -> str:
    return (
        "🛑 <b>Monitoring stopped</b>\n\n"
        f"⏱ Uptime: {format_duration(stats['uptime_seconds'])}\n"
        f"🔍 Tokens detected: {stats['tokens_detected']}\n"
        f"🏆 Achievements: {stats['achievements_unlocked']}\n"
        f"❌ Errors: {stats['errors']}"
    )


START_TEXT = """🚀 <b>Pump Monitor Bot</b>

I monitor new Solana token listings on Raydium in real time.
You'll receive alerts for:
• New token listings
• Market cap achievements (1.1x to 100x)
• Developer wallet analysis

Use /help to see available commands."""


HELP_TEXT = """<b>Available Commands:</b>

/start - Start the bot
/status - Monitoring status and statistics
/help - Show this help message"""


def status_text(stats: Dict[str, Any], settings: Dict[str, Any]) -> str:
    started_at = stats.get("started_at")
    lines = [
        f"🤖 <b>Bot Status:</b> {stats['state'].capitalize()}",
        "",
        f"👀 <b>Monitoring:</b> {html.quote(settings['search_query'])}",
        f"⏱ <b>Refresh Rate:</b> {settings['scan_interval_ms'] / 1000:g}s",
        f"💧 <b>Min Liquidity:</b> {format_usd(settings['min_liquidity_usd'])}",
    ]
    if started_at:
        lines.append(f"🕒 <b>Running since:</b> {format_timestamp(started_at)}")
        lines.append(f"⏳ <b>Uptime:</b> {format_duration(stats['uptime_seconds'])}")
    lines += [
        "",
        f"🔍 <b>Tokens detected:</b> {stats['tokens_detected']}",
        f"🏆 <b>Achievements:</b> {stats['achievements_unlocked']}",
        f"👨‍💻 <b>Dev wallets analyzed:</b> {stats['dev_wallets_analyzed']}",
        f"⛔️ <b>Blacklisted:</b> {stats['blacklisted']}",
        f"❌ <b>Errors:</b> {stats['errors']}",
    ]

    next_runs: Dict[str, Optional[datetime]] = stats.get("next_runs") or {}
    scheduled: List[str] = [
        f"• {job_id}: {format_timestamp(run_at)}" for job_id, run_at in next_runs.items() if run_at
    ]
    if scheduled:
        lines += ["", "<b>Next runs:</b>", *scheduled]

    return "\n".join(lines)
