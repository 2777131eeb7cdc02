"""
Monitoring Engine Configuration

Defaults come from environment constants (config/config.py).
Tests build the dataclasses directly.
"""
from dataclasses import dataclass, field
from typing import Optional

from config.config import (
    TELEGRAM_CHAT_ID,
    TELEGRAM_ADMIN_CHAT_ID,
    BATCH_SIZE,
    SCAN_INTERVAL,
    ACHIEVEMENT_CHECK_INTERVAL,
    DEV_WALLET_CHECK_INTERVAL,
    CLEANUP_INTERVAL,
    ACHIEVEMENT_CHECK_LIMIT,
    ACHIEVEMENT_MAX_AGE_HOURS,
    DEV_WALLET_SWEEP_LIMIT,
    DEV_WALLET_ALERT_THRESHOLD,
    DEV_WALLET_CAUTION_THRESHOLD,
    REPUTATION_PENALTY_THRESHOLD,
    REPUTATION_PENALTY,
    BLACKLIST_THRESHOLD,
    RETENTION_DAYS,
)
from src.database.models import NEUTRAL_REPUTATION


@dataclass
class ScheduleConfig:
    """Periodic task intervals (ms)."""
    scan_interval_ms: int = SCAN_INTERVAL
    achievement_check_interval_ms: int = ACHIEVEMENT_CHECK_INTERVAL
    dev_wallet_check_interval_ms: int = DEV_WALLET_CHECK_INTERVAL
    cleanup_interval_ms: int = CLEANUP_INTERVAL


@dataclass
class SourceConfig:
    """Bootstrap writes and the milestone check page."""
    batch_size: int = BATCH_SIZE
    achievement_check_limit: int = ACHIEVEMENT_CHECK_LIMIT
    achievement_max_age_hours: float = ACHIEVEMENT_MAX_AGE_HOURS


@dataclass
class ReputationConfig:
    """Developer wallet sweep and scoring."""
    sweep_limit: int = DEV_WALLET_SWEEP_LIMIT
    min_tokens_for_sweep: int = 2
    alert_threshold: int = DEV_WALLET_ALERT_THRESHOLD        # alert when tokens > N
    caution_threshold: int = DEV_WALLET_CAUTION_THRESHOLD    # caution wording when > N
    baseline: int = NEUTRAL_REPUTATION
    penalty_threshold: int = REPUTATION_PENALTY_THRESHOLD
    penalty: int = REPUTATION_PENALTY
    blacklist_threshold: int = BLACKLIST_THRESHOLD          # blacklist when score < N


@dataclass
class NotificationConfig:
    """Alert destinations."""
    chat_id: str = TELEGRAM_CHAT_ID
    # Startup/shutdown notices, None = disabled
    admin_chat_id: Optional[str] = TELEGRAM_ADMIN_CHAT_ID


@dataclass
class MonitoringConfig:
    """Top-level monitoring configuration."""
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    source: SourceConfig = field(default_factory=SourceConfig)
    reputation: ReputationConfig = field(default_factory=ReputationConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)

    # Tokens without achievements older than this are purged
    retention_days: int = RETENTION_DAYS


# Singleton instance
MONITORING_CONFIG = MonitoringConfig()


def get_config() -> MonitoringConfig:
    """Get the monitoring configuration."""
    return MONITORING_CONFIG
