"""
Token Monitoring

New listing detection, market cap milestones and developer wallet
reputation, driven by APScheduler jobs.

NOTE: the engine is imported from its own module:
    from src.monitoring.engine import MonitoringEngine
"""
from src.monitoring.enums import EngineState, MonitoringTask
from src.monitoring.config import (
    MonitoringConfig,
    ScheduleConfig,
    SourceConfig,
    ReputationConfig,
    NotificationConfig,
    get_config,
)
from src.monitoring.milestones import MILESTONES
from src.monitoring.reputation import ReputationPolicy, LinearPenaltyPolicy

__all__ = [
    "EngineState",
    "MonitoringTask",
    "MonitoringConfig",
    "ScheduleConfig",
    "SourceConfig",
    "ReputationConfig",
    "NotificationConfig",
    "get_config",
    "MILESTONES",
    "ReputationPolicy",
    "LinearPenaltyPolicy",
]
