# coding: utf-8
"""
Logging configuration with loguru for Pump Monitor

Sinks: colored console, daily monitor log (DEBUG), daily error log,
and Sentry for ERROR/CRITICAL records when SENTRY_DSN is set.
"""
import logging
import sys
from pathlib import Path

import sentry_sdk
from loguru import logger

from config.config import LOG_LEVEL, ENVIRONMENT, SENTRY_DSN, VERSION

LOGS_DIR = Path(__file__).parent.parent / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

# Third-party loggers that flood DEBUG/INFO
NOISY_LOGGERS = {
    "aiohttp": logging.WARNING,
    "aiogram": logging.WARNING,
    "asyncio": logging.WARNING,
    "apscheduler": logging.WARNING,
    "sqlalchemy.engine": logging.ERROR,
}


def _add_daily_file(prefix: str, level: str, retention: str) -> None:
    logger.add(
        LOGS_DIR / f"{prefix}_{{time:YYYY-MM-DD}}.log",
        format=FILE_FORMAT,
        level=level,
        rotation="00:00",
        retention=retention,
        compression="zip",
        encoding="utf-8",
    )


def setup_logging() -> None:
    """Install the monitor's loguru sinks (replaces the default handler)"""
    logger.remove()
    LOGS_DIR.mkdir(exist_ok=True)

    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=LOG_LEVEL, colorize=True)
    _add_daily_file("monitor", "DEBUG", "7 days")
    _add_daily_file("error", "ERROR", "30 days")

    if SENTRY_DSN:
        logger.add(sentry_sink, level="ERROR", format="{message}")

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logger.info(
        f"Pump Monitor v{VERSION} logging initialized | "
        f"Environment: {ENVIRONMENT} | Log level: {LOG_LEVEL}"
    )


def sentry_sink(message):
    """Forward an ERROR/CRITICAL loguru record to Sentry"""
    record = message.record

    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
        return

    sentry_sdk.capture_message(
        record["message"],
        level="fatal" if record["level"].name == "CRITICAL" else "error",
        extras={
            "function": record["function"],
            "file": record["file"].path,
            "line": record["line"],
        },
    )
