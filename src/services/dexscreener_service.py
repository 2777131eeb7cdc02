# coding: utf-8
"""
DexScreener API Service for newly listed DEX pairs

Discovers fresh listings through the search endpoint and looks up current
token data for milestone checks.

Free API, no authentication required.
Rate limit: 300 requests/minute
"""
import math
import time
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional, Dict, Any, List, Set

import aiohttp
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception_type,
    before_sleep_log,
)

from config.config import (
    DEXSCREENER_API_URL,
    DEXSCREENER_SEARCH_QUERY,
    DEXSCREENER_RATE_LIMIT,
    DEXSCREENER_MAX_RETRIES,
    DEXSCREENER_RETRY_DELAY,
    DEXSCREENER_REQUEST_TIMEOUT,
    DEXSCREENER_INITIAL_LOOKBACK_HOURS,
    MIN_LIQUIDITY_USD,
)
from src.database.models import UNKNOWN_DEV_WALLET


# Create standard logger for tenacity
std_logger = logging.getLogger(__name__)


class DexScreenerError(Exception):
    """Raised when DexScreener returns an unusable response"""
    pass


class TransientRequestError(DexScreenerError):
    """Raised for responses worth retrying (429, 5xx)"""
    pass


# ===========================
# API MODELS
# ===========================


class TokenInfo(BaseModel):
    """Base/quote token of a pair"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address: Optional[str] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    owner_address: Optional[str] = Field(default=None, alias="ownerAddress")


class Liquidity(BaseModel):
    usd: Optional[float] = None
    base: Optional[float] = None
    quote: Optional[float] = None


class Volume(BaseModel):
    h24: Optional[float] = None
    h6: Optional[float] = None
    h1: Optional[float] = None


class DexPair(BaseModel):
    """
    Trading pair as returned by /search and /tokens endpoints

    Example:
        {
            "chainId": "solana",
            "dexId": "raydium",
            "url": "https://dexscreener.com/solana/...",
            "pairAddress": "...",
            "baseToken": {"address": "...", "name": "Memori", "symbol": "MORI"},
            "quoteToken": {"symbol": "SOL", ...},
            "priceUsd": "0.0123",
            "liquidity": {"usd": 50000},
            "volume": {"h24": 123456},
            "marketCap": 1230000,
            "pairCreatedAt": 1700000000000
        }
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chain_id: Optional[str] = Field(default=None, alias="chainId")
    dex_id: Optional[str] = Field(default=None, alias="dexId")
    url: Optional[str] = None
    pair_address: Optional[str] = Field(default=None, alias="pairAddress")
    base_token: Optional[TokenInfo] = Field(default=None, alias="baseToken")
    quote_token: Optional[TokenInfo] = Field(default=None, alias="quoteToken")
    price_usd: Optional[float] = Field(default=None, alias="priceUsd")
    liquidity: Optional[Liquidity] = None
    volume: Optional[Volume] = None
    market_cap: Optional[float] = Field(default=None, alias="marketCap")
    fdv: Optional[float] = None
    pair_created_at: Optional[float] = Field(default=None, alias="pairCreatedAt")

    @property
    def liquidity_usd(self) -> float:
        return (self.liquidity.usd if self.liquidity else None) or 0.0

    @property
    def volume_24h(self) -> float:
        return (self.volume.h24 if self.volume else None) or 0.0

    @property
    def market_cap_usd(self) -> float:
        """Market cap, falling back to fully diluted valuation"""
        return self.market_cap or self.fdv or 0.0

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp((self.pair_created_at or 0) / 1000, tz=UTC)

    @property
    def dev_wallet(self) -> Optional[str]:
        """Creator wallet when DexScreener exposes it"""
        return self.base_token.owner_address if self.base_token else None

    def to_token_data(self) -> Dict[str, Any]:
        """Column values for a new monitored_tokens row"""
        now = datetime.now(UTC)
        price = self.price_usd or 0.0
        return {
            "address": self.base_token.address,
            "pair_address": self.pair_address,
            "symbol": self.base_token.symbol,
            "name": self.base_token.name or self.base_token.symbol,
            "initial_price": price,
            "initial_market_cap": self.market_cap_usd,
            "dev_wallet": self.dev_wallet or UNKNOWN_DEV_WALLET,
            "achievements": [],
            "last_price": price,
            "last_market_cap": self.market_cap_usd,
            "created_at": self.created_at,
            "last_updated": now,
        }


@dataclass
class TokenDetails:
    """Current snapshot of a token (its most liquid pair)"""

    address: str
    name: str
    symbol: str
    price: float
    market_cap: float
    liquidity: float
    volume_24h: float
    pair_address: str
    created_at: datetime
    url: str

    @classmethod
    def from_pair(cls, pair: DexPair) -> "TokenDetails":
        return cls(
            address=pair.base_token.address,
            name=pair.base_token.name or pair.base_token.symbol or "",
            symbol=pair.base_token.symbol or "",
            price=pair.price_usd or 0.0,
            market_cap=pair.market_cap_usd,
            liquidity=pair.liquidity_usd,
            volume_24h=pair.volume_24h,
            pair_address=pair.pair_address or "",
            created_at=pair.created_at,
            url=pair.url or "",
        )


# ===========================
# VALIDATION
# ===========================


def parse_pair(raw: Any) -> Optional[DexPair]:
    """Parse a raw pair payload, None if malformed"""
    if not isinstance(raw, dict):
        return None
    try:
        return DexPair.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Malformed pair dropped: {e.error_count()} validation errors")
        return None


def is_valid_pair(pair: Optional[DexPair], min_liquidity_usd: float) -> bool:
    """
    Check required fields, creation timestamp and liquidity floor

    Pure: no state is touched.
    """
    if pair is None:
        return False

    if not pair.pair_address or not pair.base_token or not pair.quote_token:
        logger.debug(
            f"Invalid pair: missing required fields "
            f"(pairAddress={bool(pair.pair_address)}, baseToken={bool(pair.base_token)}, "
            f"quoteToken={bool(pair.quote_token)})"
        )
        return False

    base = pair.base_token
    if not base.address or not base.symbol or not base.name:
        logger.debug(f"Invalid pair {pair.pair_address}: missing base token address/symbol/name")
        return False

    if not pair.pair_created_at or not math.isfinite(pair.pair_created_at):
        logger.debug(f"Invalid pair {pair.pair_address}: creation timestamp {pair.pair_created_at}")
        return False

    if pair.liquidity_usd < min_liquidity_usd:
        logger.debug(
            f"Pair {base.symbol} below minimum liquidity: "
            f"${pair.liquidity_usd:,.0f} < ${min_liquidity_usd:,.0f}"
        )
        return False

    return True


# ===========================
# SERVICE
# ===========================


class DexScreenerService:
    """
    Source of newly listed pairs

    Features:
    - Bounded lookback fetch for the initial load
    - Incremental fetch of pairs created after the high-water mark
    - Seen-set so a pair is delivered at most once per process
    - Strict minimum interval between requests (requests/minute budget)
    - Fixed-delay retries for transient failures

    The seen-set and the high-water mark live in memory only: a restart
    re-derives them from the lookback window.
    """

    def __init__(
        self,
        api_url: str = DEXSCREENER_API_URL,
        search_query: str = DEXSCREENER_SEARCH_QUERY,
        rate_limit: int = DEXSCREENER_RATE_LIMIT,
        max_retries: int = DEXSCREENER_MAX_RETRIES,
        retry_delay_ms: int = DEXSCREENER_RETRY_DELAY,
        request_timeout: float = DEXSCREENER_REQUEST_TIMEOUT,
        lookback_hours: float = DEXSCREENER_INITIAL_LOOKBACK_HOURS,
        min_liquidity_usd: float = MIN_LIQUIDITY_USD,
    ):
        self.api_url = api_url.rstrip("/")
        self.search_query = search_query
        self.max_retries = max_retries
        self.retry_delay = retry_delay_ms / 1000
        self.request_timeout = request_timeout
        self.lookback_hours = lookback_hours
        self.min_liquidity_usd = min_liquidity_usd

        # Minimum delay between requests (seconds)
        self.min_interval = 60.0 / rate_limit

        self.seen_pairs: Set[str] = set()
        self.last_processed_timestamp: float = self._lookback_start()
        self._last_request_time: Optional[float] = None
        # Held across the check, the sleep and the timestamp update
        self._throttle_lock = asyncio.Lock()
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"DexScreenerService initialized with lookback of {lookback_hours} hours")

    @staticmethod
    def _now_ms() -> float:
        return time.time() * 1000

    def _lookback_start(self) -> float:
        return self._now_ms() - self.lookback_hours * 60 * 60 * 1000

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def close(self) -> None:
        """Close the shared HTTP session"""
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.info("DexScreener HTTP session closed")
        self._session = None

    async def _throttle(self) -> None:
        """Wait until min_interval has passed since the previous request"""
        async with self._throttle_lock:
            if self._last_request_time is not None:
                elapsed = time.monotonic() - self._last_request_time
                if elapsed < self.min_interval:
                    delay = self.min_interval - elapsed
                    logger.debug(f"Rate limiting: waiting {delay * 1000:.0f}ms before next API request")
                    await asyncio.sleep(delay)
            self._last_request_time = time.monotonic()

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        session = await self._get_session()
        logger.debug(f"API Request: GET {url} {params or ''}")

        async with session.get(url, params=params) as response:
            if response.status == 200:
                return await response.json()

            body = (await response.text())[:200]
            if response.status == 429 or response.status >= 500:
                raise TransientRequestError(f"DexScreener {response.status}: {body}")
            raise DexScreenerError(f"DexScreener {response.status}: {body}")

    async def _make_request(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Throttled GET with fixed-delay retries

        Retries up to max_retries times for:
        - ClientError (network/HTTP errors)
        - TimeoutError (request timeout)
        - 429 / 5xx responses

        Raises:
            The last error once retries are exhausted
        """
        url = f"{self.api_url}{endpoint}"

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(
                (aiohttp.ClientError, TimeoutError, TransientRequestError)
            ),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_fixed(self.retry_delay),
            before_sleep=before_sleep_log(std_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await self._throttle()
                return await self._get_json(url, params)

    async def _fetch_listed_pairs(self) -> List[DexPair]:
        """Fetch the listings search and keep only valid pairs"""
        response = await self._make_request("/search", params={"q": self.search_query})

        raw_pairs = response.get("pairs") if isinstance(response, dict) else None
        if not isinstance(raw_pairs, list):
            logger.warning("Invalid response format from DexScreener API: no pairs list")
            return []

        logger.debug(f"Total pairs received: {len(raw_pairs)}")

        pairs = []
        for raw in raw_pairs:
            pair = parse_pair(raw)
            if is_valid_pair(pair, self.min_liquidity_usd):
                pairs.append(pair)
        return pairs

    async def get_initial_pairs(self) -> List[DexPair]:
        """
        Fetch valid pairs created within the lookback window

        Returns:
            List of pairs (empty on any failure)
        """
        try:
            logger.info("Fetching initial pairs from DexScreener API...")
            pairs = await self._fetch_listed_pairs()
            lookback_time = self.last_processed_timestamp

            initial = []
            for pair in pairs:
                if pair.pair_address in self.seen_pairs:
                    continue
                if pair.pair_created_at >= lookback_time:
                    self.seen_pairs.add(pair.pair_address)
                    initial.append(pair)

            logger.info(
                f"Found {len(initial)} valid pairs from last {self.lookback_hours}h"
            )
            return initial

        except Exception as e:
            logger.error(f"Failed to fetch initial pairs: {e}")
            return []

    async def get_new_pairs(self) -> List[DexPair]:
        """
        Fetch valid pairs created after the last processed timestamp

        Pairs are returned once; the high-water mark only moves when new
        pairs are found.

        Returns:
            List of new pairs (empty on any failure)
        """
        try:
            pairs = await self._fetch_listed_pairs()

            new_pairs = []
            for pair in pairs:
                if pair.pair_address in self.seen_pairs:
                    continue
                if pair.pair_created_at > self.last_processed_timestamp:
                    self.seen_pairs.add(pair.pair_address)
                    new_pairs.append(pair)
                    logger.debug(f"New pair detected: {pair.base_token.symbol} ({pair.pair_address})")

            if new_pairs:
                self.last_processed_timestamp = max(p.pair_created_at for p in new_pairs)
                logger.info(f"Found {len(new_pairs)} new pairs")

            return new_pairs

        except Exception as e:
            logger.error(f"Error fetching new pairs: {e}")
            return []

    async def get_token_details(self, address: str) -> Optional[TokenDetails]:
        """
        Get current data for a token from its most liquid pair

        Args:
            address: Token contract address

        Returns:
            TokenDetails or None if unknown / unavailable after retries
        """
        try:
            logger.debug(f"Fetching token details for: {address}")
            response = await self._make_request(f"/tokens/{address}")

            raw_pairs = response.get("pairs") if isinstance(response, dict) else None
            pairs = [p for p in (parse_pair(raw) for raw in raw_pairs or []) if p and p.base_token]
            if not pairs:
                logger.debug(f"No data found for token: {address}")
                return None

            main_pair = max(pairs, key=lambda p: p.liquidity_usd)
            details = TokenDetails.from_pair(main_pair)

            logger.debug(
                f"Token details retrieved for {details.symbol}: "
                f"price={details.price}, market_cap={details.market_cap}, "
                f"liquidity={details.liquidity}"
            )
            return details

        except Exception as e:
            logger.error(f"Failed to get token details for {address}: {e}")
            return None

    def clear_cache(self) -> None:
        """Forget all seen pairs"""
        self.seen_pairs.clear()
        logger.info("DexScreener seen pairs cleared")

    def reset_last_processed_timestamp(self, timestamp: Optional[float] = None) -> None:
        """
        Move the high-water mark

        Args:
            timestamp: Epoch milliseconds; defaults to the start of the lookback window
        """
        self.last_processed_timestamp = timestamp if timestamp is not None else self._lookback_start()
        reset_to = datetime.fromtimestamp(self.last_processed_timestamp / 1000, tz=UTC)
        logger.info(f"Reset last processed timestamp to {reset_to.isoformat()}")
