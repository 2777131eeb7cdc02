"""Services for external API integrations"""
from .dexscreener_service import DexScreenerService
from .telegram_service import TelegramNotifier

__all__ = ['DexScreenerService', 'TelegramNotifier']
