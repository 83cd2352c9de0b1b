import pytest

from wealthscope.cache import MarketDataCache
from wealthscope.providers import ProviderError
from stubs import FakeClock, StubQuotes, StubRates, no_sleep


def _cache(rates=None, quotes=None, clock=None, sleep=no_sleep, **kwargs):
    return MarketDataCache(
        rates or StubRates(1.35),
        quotes or StubQuotes(),
        clock=clock or FakeClock(),
        sleep=sleep,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fx_rate_is_cached_for_an_hour():
    rates = StubRates(1.30, 1.40)
    clock = FakeClock()
    cache = _cache(rates=rates, clock=clock)

    assert await cache.get_fx_rate() == 1.30
    clock.advance(3599)
    assert await cache.get_fx_rate() == 1.30
    assert rates.calls == 1

    clock.advance(1)
    assert await cache.get_fx_rate() == 1.40
    assert rates.calls == 2


@pytest.mark.asyncio
async def test_fx_failure_uses_fallback_rather_than_stale_rate():
    rates = StubRates(1.30, ProviderError("boom"))
    clock = FakeClock()
    cache = _cache(rates=rates, clock=clock)

    assert await cache.get_fx_rate() == 1.30
    clock.advance(3600)

    assert await cache.get_fx_rate() == 1.35


@pytest.mark.asyncio
async def test_fx_failure_without_cache_uses_configured_fallback():
    cache = _cache(rates=StubRates(RuntimeError("offline")), fallback_fx_rate=1.4)

    assert await cache.get_fx_rate() == 1.4


@pytest.mark.asyncio
async def test_price_is_cached_for_five_minutes():
    quotes = StubQuotes({"AAPL": 190.0})
    clock = FakeClock()
    cache = _cache(quotes=quotes, clock=clock)

    assert await cache.get_price("AAPL") == 190.0
    clock.advance(299)
    quotes.prices["AAPL"] = 195.0
    assert await cache.get_price("AAPL") == 190.0
    assert quotes.calls == ["AAPL"]

    clock.advance(1)
    assert await cache.get_price("AAPL") == 195.0
    assert quotes.calls == ["AAPL", "AAPL"]


@pytest.mark.asyncio
async def test_price_failure_returns_stale_cached_price():
    quotes = StubQuotes({"AAPL": 190.0})
    clock = FakeClock()
    cache = _cache(quotes=quotes, clock=clock)

    await cache.get_price("AAPL")
    clock.advance(24 * 3600)
    quotes.prices["AAPL"] = ProviderError("rate limited")

    assert await cache.get_price("AAPL") == 190.0


@pytest.mark.asyncio
async def test_price_failure_without_cache_returns_zero():
    cache = _cache(quotes=StubQuotes({"AAPL": ProviderError("unknown symbol")}))

    assert await cache.get_price("AAPL") == 0.0


@pytest.mark.asyncio
async def test_get_prices_batches_with_delay_between_batches():
    symbols = [f"SYM{i}" for i in range(25)]
    quotes = StubQuotes({symbol: float(i + 1) for i, symbol in enumerate(symbols)})
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    cache = _cache(quotes=quotes, sleep=record_sleep)

    prices = await cache.get_prices(symbols)

    assert prices == {symbol: float(i + 1) for i, symbol in enumerate(symbols)}
    assert delays == [0.1, 0.1]
    assert quotes.max_in_flight == 10


@pytest.mark.asyncio
async def test_single_batch_does_not_sleep():
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    cache = _cache(quotes=StubQuotes({"AAPL": 1.0, "RY": 2.0}), sleep=record_sleep)

    await cache.get_prices(["AAPL", "RY"])

    assert delays == []


@pytest.mark.asyncio
async def test_one_failing_symbol_does_not_affect_others():
    quotes = StubQuotes({"AAPL": 190.0, "BAD": ProviderError("nope"), "RY": 130.0})
    cache = _cache(quotes=quotes)

    prices = await cache.get_prices(["AAPL", "BAD", "RY"])

    assert prices == {"AAPL": 190.0, "BAD": 0.0, "RY": 130.0}


@pytest.mark.asyncio
async def test_get_prices_fetches_duplicate_symbols_once():
    quotes = StubQuotes({"AAPL": 190.0})
    cache = _cache(quotes=quotes)

    prices = await cache.get_prices(["AAPL", "AAPL"])

    assert prices == {"AAPL": 190.0}
    assert quotes.calls == ["AAPL"]


@pytest.mark.asyncio
async def test_clear_forces_refetch():
    rates = StubRates(1.30, 1.31)
    cache = _cache(rates=rates)

    await cache.get_fx_rate()
    cache.clear()

    assert await cache.get_fx_rate() == 1.31


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        _cache(batch_size=0)
