"""
Monitoring Enums
"""
from enum import Enum


class EngineState(str, Enum):
    """
    Monitoring engine lifecycle.

    UNINITIALIZED -> INITIALIZED -> RUNNING -> STOPPED
    A STOPPED engine can be started again.
    """
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"    # notifier and database verified
    RUNNING = "running"            # bootstrap done, jobs scheduled
    STOPPED = "stopped"


class MonitoringTask(str, Enum):
    """Periodic jobs (values are the scheduler job ids)."""
    TOKEN_SCAN = "token_scan"
    ACHIEVEMENT_CHECK = "achievement_check"
    DEV_WALLET_SWEEP = "dev_wallet_sweep"
    CLEANUP = "cleanup"
