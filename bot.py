"""
Pump Monitor - Main Entry Point
"""

import asyncio
import signal
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand
from loguru import logger

from config.config import TELEGRAM_BOT_TOKEN, TELEGRAM_POLLING_ENABLED, validate_config
from config.logging import setup_logging
from config.sentry import init_sentry
from src.database.engine import dispose_engine
from src.bot.handlers import start, help_cmd, status
from src.bot.middleware.logging import LoggingMiddleware
from src.monitoring.engine import MonitoringEngine, MonitoringEngineError
from src.services.dexscreener_service import DexScreenerService
from src.services.telegram_service import TelegramNotifier


async def setup_bot_commands(bot: Bot) -> None:
    """
    Setup bot commands menu

    Args:
        bot: Bot instance
    """
    commands = [
        BotCommand(command="start", description="🚀 Start the bot"),
        BotCommand(command="status", description="📊 Monitoring status"),
        BotCommand(command="help", description="💡 Available commands"),
    ]

    await bot.set_my_commands(commands)
    logger.info("Bot commands menu initialized successfully")


async def wait_for_shutdown_signal() -> None:
    """Block until SIGINT or SIGTERM"""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Chat commands disabled, waiting for shutdown signal...")
    await stop_event.wait()
    logger.info("Shutdown signal received")


async def serve_commands(bot: Bot, engine: MonitoringEngine) -> None:
    """Serve /start, /help and /status until polling stops"""
    # engine is passed to handlers as workflow data
    dp = Dispatcher(engine=engine)

    dp.message.middleware(LoggingMiddleware())

    dp.include_router(start.router)
    dp.include_router(help_cmd.router)
    dp.include_router(status.router)

    dp.startup.register(setup_bot_commands)

    logger.info("Starting bot polling...")
    await dp.start_polling(
        bot,
        allowed_updates=dp.resolve_used_update_types(),
        drop_pending_updates=True,  # Skip old updates on startup
        close_bot_session=False,  # closed by the notifier on shutdown
    )


async def main() -> None:
    """Main function"""

    # Setup logging
    setup_logging()

    # Initialize Sentry error monitoring
    init_sentry()

    # Validate configuration
    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info("Configuration validated successfully")

    bot = Bot(
        token=TELEGRAM_BOT_TOKEN,
        default=DefaultBotProperties(
            parse_mode=ParseMode.HTML, link_preview_is_disabled=True
        ),
    )

    notifier = TelegramNotifier(bot)
    dexscreener = DexScreenerService()
    engine = MonitoringEngine(dexscreener, notifier)

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head
    try:
        await engine.start()
    except MonitoringEngineError as e:
        logger.error(f"Startup failed: {e}")
        await notifier.shutdown(timeout=5)
        await dexscreener.close()
        await dispose_engine()
        sys.exit(1)

    try:
        if TELEGRAM_POLLING_ENABLED:
            await serve_commands(bot, engine)
        else:
            await wait_for_shutdown_signal()
    except Exception as e:
        logger.exception(f"Critical error during bot operation: {e}")
        raise
    finally:
        await engine.stop()

        # Close database connections
        await dispose_engine()
        logger.info("Database connections closed")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
