"""
Database models for Pump Monitor

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from typing import List

from sqlalchemy import (
    JSON,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")

UNKNOWN_DEV_WALLET = "unknown"
NEUTRAL_REPUTATION = 50


def utcnow() -> datetime:
    """Timezone-aware current time (column defaults)"""
    return datetime.now(UTC)


# ===========================
# MODELS
# ===========================


class MonitoredToken(Base):
    """
    Token tracked since its first valid detection

    initial_price / initial_market_cap are captured once and never updated.
    achievements holds the reached multipliers, sorted ascending, append-only,
    kept in lockstep with TokenAchievement rows.
    """

    __tablename__ = "monitored_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, comment="Token contract address"
    )
    pair_address: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="DEX pair address"
    )
    symbol: Mapped[str] = mapped_column(String(64), nullable=False, comment="Token symbol")
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Token name")

    initial_price: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Initial token price at detection"
    )
    initial_market_cap: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Market cap at first detection"
    )

    dev_wallet: Mapped[str] = mapped_column(
        String(64),
        index=True,
        nullable=False,
        default=UNKNOWN_DEV_WALLET,
        comment="Developer wallet address",
    )
    achievements: Mapped[List[float]] = mapped_column(
        JSONList, nullable=False, default=list, comment="Achievement multipliers reached"
    )

    last_price: Mapped[float] = mapped_column(Float, nullable=False, comment="Most recent price")
    last_market_cap: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Most recent market cap"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        index=True,
        nullable=False,
        default=utcnow,
        comment="Pair creation time on the DEX",
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    achievement_records: Mapped[List["TokenAchievement"]] = relationship(
        back_populates="token", order_by="TokenAchievement.multiplier"
    )

    def __repr__(self) -> str:
        return f"<MonitoredToken {self.symbol} ({self.address}) achievements={self.achievements}>"


class TokenAchievement(Base):
    """
    Milestone reached by a token - one row per (token, multiplier), immutable
    """

    __tablename__ = "token_achievements"
    __table_args__ = (
        UniqueConstraint("token_address", "multiplier", name="uq_token_achievement"),
        Index("idx_token_achievements_token_address", "token_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    token_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("monitored_tokens.address"), nullable=False
    )
    multiplier: Mapped[float] = mapped_column(
        Float, nullable=False, comment="Achievement multiplier value"
    )
    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    price_at_achievement: Mapped[float] = mapped_column(Float, nullable=False)
    market_cap_at_achievement: Mapped[float] = mapped_column(Float, nullable=False)

    token: Mapped["MonitoredToken"] = relationship(back_populates="achievement_records")

    def __repr__(self) -> str:
        return f"<TokenAchievement {self.token_address} {self.multiplier}x>"


class DevWallet(Base):
    """
    Developer (creator) wallet and its reputation

    tokens_created keeps insertion order with no duplicates.
    is_blacklisted is one-way: never reset by the monitor.
    """

    __tablename__ = "dev_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False, comment="Developer wallet address"
    )
    tokens_created: Mapped[List[str]] = mapped_column(
        JSONList, nullable=False, default=list, comment="Created token addresses"
    )
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_token_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    is_blacklisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reputation_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=NEUTRAL_REPUTATION, comment="Reputation score (0-100)"
    )

    @property
    def latest_token(self) -> str | None:
        """Most recently attributed token address"""
        return self.tokens_created[-1] if self.tokens_created else None

    def __repr__(self) -> str:
        return (
            f"<DevWallet {self.address} tokens={self.total_tokens} "
            f"score={self.reputation_score} blacklisted={self.is_blacklisted}>"
        )
