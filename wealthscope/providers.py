"""HTTP clients for the FX-rate and market-quote providers."""

from __future__ import annotations

from typing import Any

import httpx

from .config import AppSettings, get_settings
from .fx import REPORTING_CURRENCY


class ProviderError(RuntimeError):
    """Raised when an upstream market data provider fails."""


async def _get_json(
    url: str,
    *,
    params: dict[str, Any] | None,
    timeout_seconds: float,
    client: httpx.AsyncClient | None,
    name: str,
) -> Any:
    try:
        if client is not None:
            response = await client.get(url, params=params, timeout=timeout_seconds)
        else:
            async with httpx.AsyncClient(timeout=timeout_seconds) as http:
                response = await http.get(url, params=params)
    except httpx.HTTPError as exc:
        raise ProviderError(f"Failed to reach {name}: {exc}") from exc

    if response.status_code >= 400:
        raise ProviderError(f"{name} error {response.status_code}: {response.text}")

    try:
        return response.json()
    except ValueError as exc:
        raise ProviderError(f"{name} returned invalid JSON payload") from exc


class ExchangeRateClient:
    """Fetch the USD to CAD rate from a ``{rates: {CAD: n}}`` endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._client = client

    async def fetch_rate(self) -> float:
        payload = await _get_json(
            self._url,
            params=None,
            timeout_seconds=self._timeout,
            client=self._client,
            name="FX provider",
        )
        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict) or rates.get(REPORTING_CURRENCY) is None:
            raise ProviderError(f"FX provider response is missing rates.{REPORTING_CURRENCY}")
        try:
            return float(rates[REPORTING_CURRENCY])
        except (TypeError, ValueError) as exc:
            raise ProviderError("FX provider returned a non-numeric rate") from exc


class QuoteClient:
    """Fetch current prices from a per-symbol quote endpoint."""

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        price_field: str = "c",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._price_field = price_field
        self._timeout = timeout_seconds
        self._client = client

    async def fetch_price(self, symbol: str) -> float:
        params: dict[str, Any] = {"symbol": symbol}
        if self._token:
            params["token"] = self._token
        payload = await _get_json(
            self._url,
            params=params,
            timeout_seconds=self._timeout,
            client=self._client,
            name="Quote provider",
        )
        if not isinstance(payload, dict) or payload.get(self._price_field) is None:
            raise ProviderError(f"Quote for {symbol} is missing field {self._price_field!r}")
        try:
            return float(payload[self._price_field])
        except (TypeError, ValueError) as exc:
            raise ProviderError(f"Quote for {symbol} has a non-numeric price") from exc


def build_exchange_rate_client(settings: AppSettings | None = None) -> ExchangeRateClient:
    settings = settings or get_settings()
    return ExchangeRateClient(settings.fx_provider_url, timeout_seconds=settings.http_timeout_seconds)


def build_quote_client(settings: AppSettings | None = None) -> QuoteClient:
    settings = settings or get_settings()
    return QuoteClient(
        settings.price_provider_url,
        token=settings.price_provider_token,
        price_field=settings.price_field,
        timeout_seconds=settings.http_timeout_seconds,
    )


__all__ = [
    "ExchangeRateClient",
    "ProviderError",
    "QuoteClient",
    "build_exchange_rate_client",
    "build_quote_client",
]
