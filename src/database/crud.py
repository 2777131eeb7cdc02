"""
CRUD operations for Pump Monitor

Async database operations using SQLAlchemy 2.0.
All writes are idempotent on their natural key: token address for tokens,
(token address, multiplier) for achievements, wallet address for dev wallets.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy import select, delete, func, exists
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import (
    MonitoredToken,
    TokenAchievement,
    DevWallet,
    NEUTRAL_REPUTATION,
)


@dataclass
class TokenQuery:
    """Filter options for selecting tracked tokens (ages in hours)"""

    limit: Optional[int] = None
    min_market_cap: Optional[float] = None
    max_market_cap: Optional[float] = None
    min_age: Optional[float] = None
    max_age: Optional[float] = None
    dev_wallet: Optional[str] = None
    exclude_blacklisted: bool = False


# ===========================
# TOKEN OPERATIONS
# ===========================


async def get_token(session: AsyncSession, address: str) -> Optional[MonitoredToken]:
    """
    Get token by address

    Args:
        session: Database session
        address: Token contract address

    Returns:
        MonitoredToken or None
    """
    stmt = select(MonitoredToken).where(MonitoredToken.address == address)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upsert_token(
    session: AsyncSession, token_data: Dict[str, Any]
) -> tuple[MonitoredToken, bool]:
    """
    Insert a token unless one with the same address already exists

    An existing row is returned untouched, so initial_price and
    initial_market_cap are never overwritten.

    Args:
        session: Database session
        token_data: Column values (see DexPair.to_token_data)

    Returns:
        Tuple of (MonitoredToken, is_created)
    """
    existing = await get_token(session, token_data["address"])
    if existing:
        logger.debug(f"Token already tracked: {existing.symbol} ({existing.address})")
        return existing, False

    token = MonitoredToken(**token_data)
    session.add(token)
    try:
        await session.commit()
    except IntegrityError:
        # Inserted concurrently by another run of the same task
        await session.rollback()
        existing = await get_token(session, token_data["address"])
        if existing is None:
            raise
        return existing, False

    await session.refresh(token)
    logger.debug(f"Stored token: {token.symbol} ({token.address})")
    return token, True


def _insert_ignore_duplicates(session: AsyncSession, rows: List[Dict[str, Any]]):
    """Build INSERT ... ON CONFLICT (address) DO NOTHING for the bound dialect"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        return None
    return insert(MonitoredToken).values(rows).on_conflict_do_nothing(
        index_elements=[MonitoredToken.address]
    )


async def bulk_upsert_tokens(
    session: AsyncSession,
    tokens: Sequence[Dict[str, Any]],
    batch_size: int = 50,
) -> int:
    """
    Insert tokens in fixed-size batches, ignoring already known addresses

    Every batch is committed on its own: if batch K fails it is rolled back
    and the error propagates, batches 1..K-1 stay committed.

    Args:
        session: Database session
        tokens: Column values per token
        batch_size: Rows per INSERT statement

    Returns:
        Number of batches committed
    """
    if not tokens:
        logger.debug("No tokens to insert")
        return 0

    # Same address twice in one statement would conflict with itself
    unique: Dict[str, Dict[str, Any]] = {}
    for row in tokens:
        unique.setdefault(row["address"], row)
    rows = list(unique.values())

    batches = [rows[i:i + batch_size] for i in range(0, len(rows), batch_size)]
    logger.info(f"Processing {len(rows)} tokens in {len(batches)} batches")

    committed = 0
    for index, batch in enumerate(batches, start=1):
        try:
            stmt = _insert_ignore_duplicates(session, batch)
            if stmt is None:
                for row in batch:
                    if await get_token(session, row["address"]) is None:
                        session.add(MonitoredToken(**row))
            else:
                await session.execute(stmt)
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                f"Failed to process batch {index} of {len(batches)} "
                f"({committed} batches already committed): {e}"
            )
            raise

        committed += 1
        logger.debug(f"Successfully processed batch {index} of {len(batches)}")

    logger.info(f"Successfully stored {len(rows)} tokens in database")
    return committed


async def get_tokens_for_achievement_check(
    session: AsyncSession, query: Optional[TokenQuery] = None
) -> List[MonitoredToken]:
    """
    Get tracked tokens matching the filters, newest first

    Args:
        session: Database session
        query: Filters (age window, market cap range, dev wallet, limit)

    Returns:
        List of MonitoredToken
    """
    query = query or TokenQuery()
    now = datetime.now(UTC)
    stmt = select(MonitoredToken)

    if query.min_market_cap is not None:
        stmt = stmt.where(MonitoredToken.initial_market_cap >= query.min_market_cap)

    if query.max_market_cap is not None:
        stmt = stmt.where(MonitoredToken.initial_market_cap <= query.max_market_cap)

    if query.min_age is not None:
        stmt = stmt.where(MonitoredToken.created_at <= now - timedelta(hours=query.min_age))

    if query.max_age is not None:
        stmt = stmt.where(MonitoredToken.created_at >= now - timedelta(hours=query.max_age))

    if query.dev_wallet:
        stmt = stmt.where(MonitoredToken.dev_wallet == query.dev_wallet)

    if query.exclude_blacklisted:
        blacklisted = select(DevWallet.address).where(DevWallet.is_blacklisted.is_(True))
        stmt = stmt.where(MonitoredToken.dev_wallet.not_in(blacklisted))

    stmt = stmt.order_by(MonitoredToken.created_at.desc())

    if query.limit:
        stmt = stmt.limit(query.limit)

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_token_achievements(
    session: AsyncSession,
    address: str,
    achievements: Iterable[float],
    last_price: float,
    last_market_cap: float,
    commit: bool = True,
) -> Optional[MonitoredToken]:
    """
    Merge achievements into a token and refresh its last price / market cap

    Achievements are only ever added: the stored list becomes the sorted
    union of the existing and the given multipliers.

    Args:
        session: Database session
        address: Token address
        achievements: Multipliers to add
        last_price: Current price
        last_market_cap: Current market cap
        commit: Commit immediately (False when part of a larger unit of work)

    Returns:
        Updated MonitoredToken or None if unknown
    """
    token = await get_token(session, address)
    if not token:
        logger.warning(f"Cannot update achievements: token {address} not found")
        return None

    # Assign a new list so the JSON column is flagged dirty
    token.achievements = sorted(set(token.achievements or []) | set(achievements))
    token.last_price = last_price
    token.last_market_cap = last_market_cap
    token.last_updated = datetime.now(UTC)

    if commit:
        await session.commit()
        await session.refresh(token)

    logger.debug(f"Updated achievements for {address}: {token.achievements}")
    return token


async def record_achievement(
    session: AsyncSession,
    token_address: str,
    multiplier: float,
    price: float,
    market_cap: float,
    achieved_at: Optional[datetime] = None,
    commit: bool = True,
) -> bool:
    """
    Record a milestone for a token (no-op when already recorded)

    Returns:
        True if a new row was created
    """
    stmt = select(TokenAchievement.id).where(
        TokenAchievement.token_address == token_address,
        TokenAchievement.multiplier == multiplier,
    )
    if (await session.execute(stmt)).first() is not None:
        logger.debug(f"Achievement {multiplier}x already recorded for {token_address}")
        return False

    session.add(
        TokenAchievement(
            token_address=token_address,
            multiplier=multiplier,
            achieved_at=achieved_at or datetime.now(UTC),
            price_at_achievement=price,
            market_cap_at_achievement=market_cap,
        )
    )

    if commit:
        await session.commit()
    else:
        await session.flush()

    logger.debug(f"Recorded {multiplier}x achievement for {token_address}")
    return True


async def get_token_achievements(
    session: AsyncSession, token_address: str
) -> List[TokenAchievement]:
    """Get all achievement rows for a token, lowest multiplier first"""
    stmt = (
        select(TokenAchievement)
        .where(TokenAchievement.token_address == token_address)
        .order_by(TokenAchievement.multiplier)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def purge_stale_tokens(session: AsyncSession, cutoff: datetime) -> int:
    """
    Delete tokens created before cutoff that never reached any milestone

    Tokens with at least one achievement are kept regardless of age.

    Returns:
        Number of deleted tokens
    """
    has_achievement_rows = exists().where(
        TokenAchievement.token_address == MonitoredToken.address
    )
    stmt = select(MonitoredToken).where(
        MonitoredToken.created_at < cutoff,
        ~has_achievement_rows,
    )
    candidates = (await session.execute(stmt)).scalars().all()

    stale_ids = [token.id for token in candidates if not token.achievements]
    if not stale_ids:
        return 0

    await session.execute(delete(MonitoredToken).where(MonitoredToken.id.in_(stale_ids)))
    await session.commit()

    logger.info(f"Purged {len(stale_ids)} tokens created before {cutoff.isoformat()}")
    return len(stale_ids)


# ===========================
# DEV WALLET OPERATIONS
# ===========================


async def get_dev_wallet(session: AsyncSession, address: str) -> Optional[DevWallet]:
    """Get developer wallet by address"""
    stmt = select(DevWallet).where(DevWallet.address == address)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_dev_wallet(
    session: AsyncSession, address: str
) -> tuple[DevWallet, bool]:
    """
    Get existing developer wallet or create one with a neutral reputation

    Returns:
        Tuple of (DevWallet, is_created)
    """
    wallet = await get_dev_wallet(session, address)
    if wallet:
        return wallet, False

    now = datetime.now(UTC)
    wallet = DevWallet(
        address=address,
        tokens_created=[],
        total_tokens=0,
        last_token_time=now,
        first_seen_at=now,
        is_blacklisted=False,
        reputation_score=NEUTRAL_REPUTATION,
    )
    session.add(wallet)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        wallet = await get_dev_wallet(session, address)
        if wallet is None:
            raise
        return wallet, False

    await session.refresh(wallet)
    logger.info(f"Created new developer wallet record: {address}")
    return wallet, True


async def update_dev_wallet(
    session: AsyncSession, address: str, **kwargs
) -> Optional[DevWallet]:
    """
    Update developer wallet fields

    is_blacklisted can only be switched on; attempts to clear it are ignored.
    """
    wallet = await get_dev_wallet(session, address)
    if not wallet:
        return None

    for key, value in kwargs.items():
        if key == "is_blacklisted" and wallet.is_blacklisted and not value:
            logger.warning(f"Ignoring attempt to un-blacklist wallet {address}")
            continue
        if key == "reputation_score":
            value = max(0, min(100, int(value)))
        if hasattr(wallet, key):
            setattr(wallet, key, value)

    await session.commit()
    await session.refresh(wallet)

    logger.debug(f"Updated developer wallet: {address} ({wallet.total_tokens} tokens)")
    return wallet


async def add_token_to_dev_wallet(
    session: AsyncSession, wallet_address: str, token_address: str
) -> tuple[DevWallet, bool]:
    """
    Attribute a token to a developer wallet (created on first sight)

    Returns:
        Tuple of (DevWallet, token_was_added)
    """
    wallet, _ = await get_or_create_dev_wallet(session, wallet_address)

    if token_address in (wallet.tokens_created or []):
        return wallet, False

    tokens = list(wallet.tokens_created or []) + [token_address]
    wallet.tokens_created = tokens
    wallet.total_tokens = len(tokens)
    wallet.last_token_time = datetime.now(UTC)

    await session.commit()
    await session.refresh(wallet)

    logger.debug(f"Added token {token_address} to wallet {wallet_address} ({len(tokens)} tokens)")
    return wallet, True


async def get_top_dev_wallets(session: AsyncSession, limit: int = 10) -> List[DevWallet]:
    """Get developer wallets with the most tokens created"""
    stmt = (
        select(DevWallet)
        .order_by(DevWallet.total_tokens.desc(), DevWallet.last_token_time.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_blacklisted_wallets(session: AsyncSession) -> List[DevWallet]:
    """Get all blacklisted developer wallets"""
    stmt = select(DevWallet).where(DevWallet.is_blacklisted.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


# ===========================
# STATISTICS
# ===========================


async def get_monitoring_counts(session: AsyncSession) -> dict:
    """
    Row counts for the status view

    Returns:
        Dict with tokens, achievements, dev_wallets, blacklisted
    """
    tokens = await session.scalar(select(func.count()).select_from(MonitoredToken))
    achievements = await session.scalar(select(func.count()).select_from(TokenAchievement))
    dev_wallets = await session.scalar(select(func.count()).select_from(DevWallet))
    blacklisted = await session.scalar(
        select(func.count()).select_from(DevWallet).where(DevWallet.is_blacklisted.is_(True))
    )
    return {
        "tokens": tokens or 0,
        "achievements": achievements or 0,
        "dev_wallets": dev_wallets or 0,
        "blacklisted": blacklisted or 0,
    }
