"""Time-bounded caches for the FX rate and live market prices."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional, Protocol

from .config import AppSettings, get_settings
from .core.telemetry import market_data_fallbacks
from .providers import build_exchange_rate_client, build_quote_client

logger = logging.getLogger(__name__)

FX_CACHE_TTL_SECONDS = 60 * 60
PRICE_CACHE_TTL_SECONDS = 5 * 60
FALLBACK_FX_RATE = 1.35
PRICE_BATCH_SIZE = 10
PRICE_BATCH_DELAY_SECONDS = 0.1


class RateSource(Protocol):
    async def fetch_rate(self) -> float: ...


class PriceSource(Protocol):
    async def fetch_price(self, symbol: str) -> float: ...


@dataclass
class _Entry:
    value: float
    fetched_at: float


class MarketDataCache:
    """Caches the FX rate and per-symbol prices in front of their providers.

    The two failure policies differ: a failed FX fetch returns
    ``fallback_fx_rate`` even when an expired rate is cached, while a failed
    price fetch returns the last cached price (however old) or ``0``.
    """

    def __init__(
        self,
        fx_provider: RateSource,
        price_provider: PriceSource,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        fx_ttl: float = FX_CACHE_TTL_SECONDS,
        price_ttl: float = PRICE_CACHE_TTL_SECONDS,
        fallback_fx_rate: float = FALLBACK_FX_RATE,
        batch_size: int = PRICE_BATCH_SIZE,
        batch_delay: float = PRICE_BATCH_DELAY_SECONDS,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._fx_provider = fx_provider
        self._price_provider = price_provider
        self._clock = clock
        self._sleep = sleep
        self.fx_ttl = fx_ttl
        self.price_ttl = price_ttl
        self.fallback_fx_rate = fallback_fx_rate
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._fx: Optional[_Entry] = None
        self._prices: Dict[str, _Entry] = {}

    def _fresh(self, entry: _Entry, ttl: float) -> bool:
        return self._clock() - entry.fetched_at < ttl

    async def get_fx_rate(self) -> float:
        entry = self._fx
        if entry is not None and self._fresh(entry, self.fx_ttl):
            return entry.value
        try:
            rate = await self._fx_provider.fetch_rate()
        except Exception as exc:
            logger.warning("FX fetch failed, using fallback rate %s: %s", self.fallback_fx_rate, exc)
            market_data_fallbacks.add(1, {"source": "fx"})
            return self.fallback_fx_rate
        self._fx = _Entry(rate, self._clock())
        logger.info("Fetched USD to CAD rate %s", rate)
        return rate

    async def get_price(self, symbol: str) -> float:
        cached = self._prices.get(symbol)
        if cached is not None and self._fresh(cached, self.price_ttl):
            return cached.value
        try:
            price = await self._price_provider.fetch_price(symbol)
        except Exception as exc:
            market_data_fallbacks.add(1, {"source": "price"})
            if cached is not None:
                logger.warning("Price fetch for %s failed, using stale price %s: %s", symbol, cached.value, exc)
                return cached.value
            logger.warning("Price fetch for %s failed with nothing cached: %s", symbol, exc)
            return 0.0
        self._prices[symbol] = _Entry(price, self._clock())
        return price

    async def _price_or_zero(self, symbol: str) -> float:
        try:
            return await self.get_price(symbol)
        except Exception:
            logger.exception("Unexpected error pricing %s", symbol)
            return 0.0

    async def get_prices(self, symbols: Iterable[str]) -> Dict[str, float]:
        """Price ``symbols`` in throttled batches; one symbol's failure yields ``0`` for it alone."""

        unique = list(dict.fromkeys(symbols))
        prices: Dict[str, float] = {}
        for start in range(0, len(unique), self.batch_size):
            if start:
                await self._sleep(self.batch_delay)
            batch = unique[start : start + self.batch_size]
            results = await asyncio.gather(*(self._price_or_zero(symbol) for symbol in batch))
            prices.update(zip(batch, results))
        return prices

    def clear(self) -> None:
        self._fx = None
        self._prices.clear()


def build_market_data_cache(settings: AppSettings | None = None) -> MarketDataCache:
    """Wire the configured HTTP providers into a cache."""

    settings = settings or get_settings()
    return MarketDataCache(
        build_exchange_rate_client(settings),
        build_quote_client(settings),
        fx_ttl=settings.fx_cache_ttl_seconds,
        price_ttl=settings.price_cache_ttl_seconds,
        fallback_fx_rate=settings.fallback_fx_rate,
        batch_size=settings.price_batch_size,
        batch_delay=settings.price_batch_delay_seconds,
    )


__all__ = [
    "FALLBACK_FX_RATE",
    "FX_CACHE_TTL_SECONDS",
    "MarketDataCache",
    "PRICE_BATCH_DELAY_SECONDS",
    "PRICE_BATCH_SIZE",
    "PRICE_CACHE_TTL_SECONDS",
    "PriceSource",
    "RateSource",
    "build_market_data_cache",
]
