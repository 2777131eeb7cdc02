# coding: utf-8
"""
Sentry configuration for error monitoring and tracking
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.aiohttp import AioHttpIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT, VERSION


def init_sentry() -> None:
    """
    Initialize Sentry SDK for error monitoring

    Captures unhandled errors from the scheduler jobs, database and HTTP layers.
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            release=f"pump-monitor@{VERSION}",
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),
                AioHttpIntegration(),
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )

        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


def before_send_hook(event, hint):
    """
    Filter events before sending to Sentry

    Drops KeyboardInterrupt and strips the bot token from request URLs.
    """
    if 'exc_info' in hint:
        exc_type, exc_value, tb = hint['exc_info']

        if isinstance(exc_value, KeyboardInterrupt):
            return None

    request = event.get('request')
    if request and isinstance(request.get('url'), str) and '/bot' in request['url']:
        # Telegram API URLs embed the token: https://api.telegram.org/bot<token>/method
        prefix, _, rest = request['url'].partition('/bot')
        method = rest.split('/', 1)[1] if '/' in rest else ''
        request['url'] = f"{prefix}/bot[Filtered]/{method}"

    return event
