"""
Monitoring Engine

Orchestrates the token monitor:
- Bootstrap: initial lookback scan, bulk store, summary alert
- token_scan: new pairs -> store -> alert -> dev wallet attribution
- achievement_check: market cap milestones for recent tokens
- dev_wallet_sweep: reputation scoring and blacklisting
- cleanup: purge old tokens that never reached a milestone

Every periodic job runs behind its own failure boundary: an error is
counted and logged with the job name, the other jobs keep running.
"""
import asyncio
from datetime import datetime, timedelta, UTC
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.database.crud import (
    TokenQuery,
    add_token_to_dev_wallet,
    bulk_upsert_tokens,
    get_tokens_for_achievement_check,
    get_top_dev_wallets,
    purge_stale_tokens,
    record_achievement,
    update_dev_wallet,
    update_token_achievements,
    upsert_token,
)
from src.database.engine import check_connection, get_session_maker
from src.database.models import DevWallet, MonitoredToken, UNKNOWN_DEV_WALLET
from src.monitoring import messages
from src.monitoring.config import MonitoringConfig, get_config
from src.monitoring.enums import EngineState, MonitoringTask
from src.monitoring.milestones import (
    compute_multiplier,
    format_multiplier,
    is_graduated,
    new_milestones,
)
from src.monitoring.reputation import LinearPenaltyPolicy, ReputationPolicy
from src.services.dexscreener_service import DexPair, DexScreenerService
from src.services.telegram_service import TelegramNotifier


class MonitoringEngineError(Exception):
    """Fatal startup error (services unreachable, bootstrap failed)"""
    pass


class MonitoringEngine:
    """
    Token monitoring state machine and job scheduler.

    Lifecycle: UNINITIALIZED -> INITIALIZED -> RUNNING -> STOPPED

    Jobs (APScheduler, one IntervalTrigger each, max_instances=1 so a tick
    is skipped while the previous run of the same job is in flight):
    - token_scan
    - achievement_check
    - dev_wallet_sweep
    - cleanup
    """

    def __init__(
        self,
        dexscreener: DexScreenerService,
        notifier: TelegramNotifier,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        config: Optional[MonitoringConfig] = None,
        policy: Optional[ReputationPolicy] = None,
    ):
        self.dexscreener = dexscreener
        self.notifier = notifier
        self.session_maker = session_maker or get_session_maker()
        self.config = config or get_config()
        self.policy: ReputationPolicy = policy or LinearPenaltyPolicy.from_config(
            self.config.reputation
        )

        self.state = EngineState.UNINITIALIZED
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.started_at: Optional[datetime] = None
        self.stopped_at: Optional[datetime] = None

        self.stats: Dict[str, int] = {
            "tokens_detected": 0,
            "achievements_unlocked": 0,
            "dev_wallets_analyzed": 0,
            "blacklisted": 0,
            "errors": 0,
        }
        self.task_runs: Dict[str, int] = {task.value: 0 for task in MonitoringTask}
        self.task_errors: Dict[str, int] = {task.value: 0 for task in MonitoringTask}
        # Job bodies currently executing, awaited by stop()
        self._active_tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self.state == EngineState.RUNNING

    # ===========================
    # LIFECYCLE
    # ===========================

    async def initialize(self) -> None:
        """
        Verify Telegram and the database

        Raises:
            MonitoringEngineError: if either check fails
        """
        if self.state in (EngineState.INITIALIZED, EngineState.RUNNING):
            logger.debug(f"Monitoring engine already {self.state.value}")
            return

        logger.info("Initializing monitoring engine...")
        try:
            await self.notifier.initialize()
            await check_connection(self.session_maker)
        except Exception as e:
            logger.error(f"Monitoring engine initialization failed: {e}")
            raise MonitoringEngineError(f"Failed to initialize services: {e}") from e

        self.state = EngineState.INITIALIZED
        logger.info("Monitoring engine initialized")

    async def start(self) -> None:
        """
        Run the bootstrap load and schedule the periodic jobs

        Raises:
            MonitoringEngineError: if initialization or bootstrap fails
        """
        if self.is_running:
            logger.warning("Monitoring engine already running")
            return

        if self.state != EngineState.INITIALIZED:
            await self.initialize()

        logger.info("Starting token monitoring...")
        try:
            loaded = await self._bootstrap()
        except Exception as e:
            logger.error(f"Failed to start monitoring: {e}")
            raise MonitoringEngineError(f"Bootstrap load failed: {e}") from e

        self._schedule_jobs()
        self.state = EngineState.RUNNING
        self.started_at = datetime.now(UTC)
        self.stopped_at = None

        self._notify_admin(messages.monitor_started(loaded))
        logger.info(
            f"Monitoring started successfully, checking for new tokens every "
            f"{self.config.schedule.scan_interval_ms}ms"
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Stop scheduling, let in-flight jobs finish, drain pending alerts
        and release connections

        Calling stop() when the engine is not running only logs a warning.

        Args:
            timeout: Seconds to wait for running jobs before cancelling them
        """
        if not self.is_running:
            logger.warning(f"Monitoring engine is not running (state: {self.state.value})")
            return

        logger.info("Stopping token monitoring...")
        self.state = EngineState.STOPPED
        self.stopped_at = datetime.now(UTC)

        if self.scheduler:
            self.scheduler.pause()

        await self._wait_for_active_tasks(timeout)

        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None

        self._notify_admin(messages.monitor_stopped(self.get_stats()))

        await self.notifier.shutdown()
        await self.dexscreener.close()

        logger.info(
            f"Monitoring stopped (tokens: {self.stats['tokens_detected']}, "
            f"achievements: {self.stats['achievements_unlocked']}, errors: {self.stats['errors']})"
        )

    async def _wait_for_active_tasks(self, timeout: float) -> None:
        running = {task for task in self._active_tasks if task is not asyncio.current_task()}
        if not running:
            return

        logger.info(f"Waiting for {len(running)} running job(s) to finish...")
        _, pending = await asyncio.wait(running, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} job(s) still running after {timeout}s, cancelling")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def _bootstrap(self) -> int:
        """Initial lookback scan: store everything, send one summary"""
        logger.info("Loading initial token data...")
        pairs = await self.dexscreener.get_initial_pairs()

        if not pairs:
            logger.info("No tokens found in initial scan")
            self._notify(messages.no_tokens_found(self.dexscreener.lookback_hours))
            return 0

        logger.info(f"Found {len(pairs)} tokens in initial scan, storing in database...")
        async with self.session_maker() as session:
            await bulk_upsert_tokens(
                session,
                [pair.to_token_data() for pair in pairs],
                batch_size=self.config.source.batch_size,
            )

        self.stats["tokens_detected"] += len(pairs)
        self._notify(messages.tokens_summary(pairs))

        logger.info("Initial data load complete")
        return len(pairs)

    # ===========================
    # SCHEDULING
    # ===========================

    def _schedule_jobs(self) -> None:
        schedule = self.config.schedule
        self.scheduler = AsyncIOScheduler()

        jobs = [
            (MonitoringTask.TOKEN_SCAN, self._job_token_scan, schedule.scan_interval_ms, "Token Scan"),
            (
                MonitoringTask.ACHIEVEMENT_CHECK,
                self._job_achievement_check,
                schedule.achievement_check_interval_ms,
                "Achievement Check",
            ),
            (
                MonitoringTask.DEV_WALLET_SWEEP,
                self._job_dev_wallet_sweep,
                schedule.dev_wallet_check_interval_ms,
                "Dev Wallet Sweep",
            ),
            (MonitoringTask.CLEANUP, self._job_cleanup, schedule.cleanup_interval_ms, "Cleanup"),
        ]

        for task, job, interval_ms, name in jobs:
            self.scheduler.add_job(
                job,
                IntervalTrigger(seconds=interval_ms / 1000),
                id=task.value,
                name=name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )

        self.scheduler.start()
        logger.info(
            f"Monitoring jobs scheduled: scan every {schedule.scan_interval_ms}ms, "
            f"achievements every {schedule.achievement_check_interval_ms}ms, "
            f"dev wallets every {schedule.dev_wallet_check_interval_ms}ms, "
            f"cleanup every {schedule.cleanup_interval_ms}ms"
        )

    async def _run_task(self, task: MonitoringTask, body: Callable[[], Awaitable[Any]]) -> None:
        """Failure boundary shared by all periodic jobs"""
        if not self.is_running:
            return

        self.task_runs[task.value] += 1
        current = asyncio.current_task()
        self._active_tasks.add(current)
        try:
            await body()
        except Exception as e:
            self._record_error(task)
            logger.exception(f"Error in {task.value} task: {e}")
        finally:
            self._active_tasks.discard(current)

    async def _job_token_scan(self) -> None:
        await self._run_task(MonitoringTask.TOKEN_SCAN, self.scan_for_new_tokens)

    async def _job_achievement_check(self) -> None:
        await self._run_task(MonitoringTask.ACHIEVEMENT_CHECK, self.check_token_achievements)

    async def _job_dev_wallet_sweep(self) -> None:
        await self._run_task(MonitoringTask.DEV_WALLET_SWEEP, self.analyze_dev_wallets)

    async def _job_cleanup(self) -> None:
        await self._run_task(MonitoringTask.CLEANUP, self.perform_cleanup)

    def _record_error(self, task: MonitoringTask) -> None:
        self.stats["errors"] += 1
        self.task_errors[task.value] += 1

    def _notify(self, text: str) -> None:
        self.notifier.enqueue(self.config.notification.chat_id, text)

    def _notify_admin(self, text: str) -> None:
        if self.config.notification.admin_chat_id:
            self.notifier.enqueue(self.config.notification.admin_chat_id, text)

    # ===========================
    # TOKEN SCAN
    # ===========================

    async def scan_for_new_tokens(self) -> int:
        """
        Store and announce pairs found since the last scan

        Each pair is handled on its own: a failure is logged and counted,
        the rest of the batch goes on.

        Returns:
            Number of pairs processed without error
        """
        pairs = await self.dexscreener.get_new_pairs()
        if not pairs:
            return 0

        processed = 0
        for pair in pairs:
            try:
                await self._process_new_pair(pair)
                processed += 1
            except Exception as e:
                self._record_error(MonitoringTask.TOKEN_SCAN)
                logger.error(f"Error processing token {pair.base_token.address}: {e}")

        logger.info(f"Token scan: {processed}/{len(pairs)} new tokens processed")
        return processed

    async def _process_new_pair(self, pair: DexPair) -> None:
        async with self.session_maker() as session:
            token, created = await upsert_token(session, pair.to_token_data())

        if not created:
            logger.debug(f"Token {token.symbol} already tracked, skipping alert")
            return

        self.stats["tokens_detected"] += 1
        self._notify(messages.new_token_alert(pair))
        logger.info(f"New token detected: {token.symbol} ({token.address})")

        if pair.dev_wallet and pair.dev_wallet != UNKNOWN_DEV_WALLET:
            await self.attribute_dev_wallet(pair.dev_wallet, token.address)

    async def attribute_dev_wallet(self, wallet_address: str, token_address: str) -> Optional[DevWallet]:
        """
        Link a token to its developer wallet

        Alerts when the wallet has created more than alert_threshold tokens.
        The reputation score computed here is informational; only the
        dev wallet sweep persists scores.
        """
        reputation = self.config.reputation

        async with self.session_maker() as session:
            wallet, added = await add_token_to_dev_wallet(session, wallet_address, token_address)

        if not added:
            return wallet

        advisory_score = self.policy(wallet.total_tokens, wallet.reputation_score)
        logger.debug(
            f"Dev wallet {wallet_address}: {wallet.total_tokens} tokens, "
            f"advisory score {advisory_score} (stored {wallet.reputation_score})"
        )

        if wallet.total_tokens > reputation.alert_threshold:
            latest = await self.dexscreener.get_token_details(wallet.latest_token)
            if latest is None:
                logger.warning(f"No details for latest token of dev wallet {wallet_address}, alert skipped")
                return wallet

            self._notify(
                messages.dev_wallet_alert(
                    wallet.address, wallet.total_tokens, latest, reputation.caution_threshold
                )
            )
            logger.info(f"Dev wallet alert: {wallet_address} created {wallet.total_tokens} tokens")

        return wallet

    # ===========================
    # ACHIEVEMENTS
    # ===========================

    async def check_token_achievements(self) -> int:
        """
        Check recent tokens against the milestone ladder

        Returns:
            Number of milestone alerts sent
        """
        source = self.config.source
        query = TokenQuery(
            limit=source.achievement_check_limit,
            max_age=source.achievement_max_age_hours,
        )
        async with self.session_maker() as session:
            tokens = await get_tokens_for_achievement_check(session, query)

        logger.debug(f"Checking achievements for {len(tokens)} tokens")

        alerts = 0
        for token in tokens:
            if is_graduated(token.achievements or []):
                continue
            try:
                if await self._check_token(token):
                    alerts += 1
            except Exception as e:
                self._record_error(MonitoringTask.ACHIEVEMENT_CHECK)
                logger.error(f"Error checking achievements for {token.symbol} ({token.address}): {e}")

        return alerts

    async def _check_token(self, token: MonitoredToken) -> bool:
        """
        Record every newly reached rung, alert once for the highest

        Returns:
            True if at least one rung was reached
        """
        if not token.initial_market_cap or token.initial_market_cap <= 0:
            logger.debug(f"Token {token.symbol} has no initial market cap, skipping")
            return False

        details = await self.dexscreener.get_token_details(token.address)
        if details is None:
            return False

        multiplier = compute_multiplier(details.market_cap, token.initial_market_cap)
        reached: List[float] = new_milestones(multiplier, token.achievements or [])
        if not reached:
            return False

        achieved_at = datetime.now(UTC)
        async with self.session_maker() as session:
            try:
                # Events and the achievements list commit together
                for milestone in reached:
                    await record_achievement(
                        session,
                        token.address,
                        milestone,
                        price=details.price,
                        market_cap=details.market_cap,
                        achieved_at=achieved_at,
                        commit=False,
                    )
                await update_token_achievements(
                    session,
                    token.address,
                    reached,
                    last_price=details.price,
                    last_market_cap=details.market_cap,
                    commit=False,
                )
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise

        self.stats["achievements_unlocked"] += len(reached)

        highest = reached[-1]
        self._notify(messages.achievement_alert(details, highest, token.initial_market_cap))
        logger.info(
            f"Achievement: {token.symbol} reached {format_multiplier(highest)} "
            f"(multiplier {multiplier:.2f}, new rungs {reached})"
        )
        return True

    # ===========================
    # DEV WALLETS
    # ===========================

    async def analyze_dev_wallets(self) -> int:
        """
        Re-score the most prolific developer wallets

        Returns:
            Number of wallets analyzed
        """
        reputation = self.config.reputation
        async with self.session_maker() as session:
            wallets = await get_top_dev_wallets(session, limit=reputation.sweep_limit)

        analyzed = 0
        for wallet in wallets:
            if wallet.total_tokens < reputation.min_tokens_for_sweep:
                continue
            try:
                await self._analyze_wallet(wallet)
                analyzed += 1
            except Exception as e:
                self._record_error(MonitoringTask.DEV_WALLET_SWEEP)
                logger.error(f"Error analyzing dev wallet {wallet.address}: {e}")

        self.stats["dev_wallets_analyzed"] += analyzed
        logger.debug(f"Dev wallet sweep: {analyzed} wallets analyzed")
        return analyzed

    async def _analyze_wallet(self, wallet: DevWallet) -> None:
        reputation = self.config.reputation

        latest = None
        if wallet.latest_token:
            latest = await self.dexscreener.get_token_details(wallet.latest_token)

        score = self.policy(wallet.total_tokens, wallet.reputation_score)
        updates: Dict[str, Any] = {}
        if score != wallet.reputation_score:
            updates["reputation_score"] = score

        newly_blacklisted = score < reputation.blacklist_threshold and not wallet.is_blacklisted
        if newly_blacklisted:
            updates["is_blacklisted"] = True

        if not updates:
            return

        async with self.session_maker() as session:
            await update_dev_wallet(session, wallet.address, **updates)

        logger.info(
            f"Dev wallet {wallet.address}: score {wallet.reputation_score} -> {score} "
            f"({wallet.total_tokens} tokens)"
        )

        if newly_blacklisted:
            self.stats["blacklisted"] += 1
            self._notify(messages.blacklist_alert(wallet.address, wallet.total_tokens, score, latest))
            logger.warning(f"Dev wallet blacklisted: {wallet.address}")

    # ===========================
    # CLEANUP
    # ===========================

    async def perform_cleanup(self) -> int:
        """
        Purge tokens past retention that never reached a milestone

        Returns:
            Number of deleted tokens
        """
        cutoff = datetime.now(UTC) - timedelta(days=self.config.retention_days)
        async with self.session_maker() as session:
            deleted = await purge_stale_tokens(session, cutoff)

        logger.info(f"Cleanup complete: {deleted} tokens removed")
        return deleted

    # ===========================
    # STATUS
    # ===========================

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot for /status"""
        uptime = 0.0
        if self.started_at:
            uptime = ((self.stopped_at or datetime.now(UTC)) - self.started_at).total_seconds()

        next_runs: Dict[str, Optional[datetime]] = {}
        if self.scheduler:
            next_runs = {job.id: job.next_run_time for job in self.scheduler.get_jobs()}

        return {
            "state": self.state.value,
            "started_at": self.started_at,
            "uptime_seconds": uptime,
            **self.stats,
            "task_runs": dict(self.task_runs),
            "task_errors": dict(self.task_errors),
            "next_runs": next_runs,
        }

    def get_settings(self) -> Dict[str, Any]:
        """Monitoring settings shown by /status"""
        return {
            "search_query": self.dexscreener.search_query,
            "scan_interval_ms": self.config.schedule.scan_interval_ms,
            "min_liquidity_usd": self.dexscreener.min_liquidity_usd,
        }
