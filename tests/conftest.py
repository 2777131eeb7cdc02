"""
Pytest configuration and fixtures for Pump Monitor tests
"""

import time
from datetime import datetime, timedelta, UTC
from typing import Any, AsyncGenerator, Dict, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.database.models import Base


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to the test engine (what the monitoring engine uses)
    """
    return async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


def make_raw_pair(
    index: int = 1,
    liquidity: Optional[float] = 50_000,
    created_ms: Optional[float] = None,
    market_cap: Optional[float] = 100_000,
    price: str = "0.000123",
    owner: Optional[str] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """DexScreener pair payload as returned by /search"""
    if created_ms is None:
        created_ms = time.time() * 1000 - 60_000
    base_token: Dict[str, Any] = {
        "address": f"Token{index}Mint",
        "name": f"Token {index}",
        "symbol": f"TK{index}",
    }
    if owner:
        base_token["ownerAddress"] = owner
    pair = {
        "chainId": "solana",
        "dexId": "raydium",
        "url": f"https://dexscreener.com/solana/pair{index}",
        "pairAddress": f"Pair{index}Address",
        "baseToken": base_token,
        "quoteToken": {"address": "So11111111111111111111111111111111111111112", "name": "Wrapped SOL", "symbol": "SOL"},
        "priceUsd": price,
        "liquidity": {"usd": liquidity},
        "volume": {"h24": 12_345},
        "marketCap": market_cap,
        "pairCreatedAt": created_ms,
    }
    pair.update(overrides)
    return pair


def make_token_data(
    address: str = "Token1Mint",
    initial_market_cap: float = 100_000,
    created_at: Optional[datetime] = None,
    achievements: Optional[list] = None,
    dev_wallet: str = "unknown",
) -> Dict[str, Any]:
    """Column values for a monitored_tokens row"""
    created_at = created_at or datetime.now(UTC) - timedelta(hours=1)
    return {
        "address": address,
        "pair_address": f"{address}Pair",
        "symbol": address[:6].upper(),
        "name": f"{address} name",
        "initial_price": 0.0001,
        "initial_market_cap": initial_market_cap,
        "dev_wallet": dev_wallet,
        "achievements": achievements or [],
        "last_price": 0.0001,
        "last_market_cap": initial_market_cap,
        "created_at": created_at,
        "last_updated": created_at,
    }


@pytest.fixture
def raw_pair():
    """Factory for DexScreener pair payloads"""
    return make_raw_pair


@pytest.fixture
def token_data():
    """Factory for monitored_tokens column values"""
    return make_token_data
