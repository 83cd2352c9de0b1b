import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from httpx import ASGITransport, AsyncClient

from wealthscope.api.database import Database
from wealthscope.api.main import create_app
from wealthscope.config import AppSettings
from stubs import make_cache


def _client(tmp_path: Path, prices=None, rate=1.35):
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'test_api.db'}")
    settings = AppSettings(database_url=database.url, telemetry_enabled=False)
    app = create_app(database, market_data=make_cache(rate=rate, prices=prices), settings=settings)

    @asynccontextmanager
    async def _manager():
        async with app.router.lifespan_context(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client

    return app, _manager


def test_transaction_webhook_updates_holdings_and_summary(tmp_path: Path):
    _, client_manager = _client(tmp_path, prices={"AAPL": 200.0})

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.post(
                "/webhooks/transactions",
                json={
                    "symbol": "AAPL",
                    "account": "TFSA",
                    "shares": "10",
                    "average_price": "US$150.00",
                    "total_cost": "US$1,500.00",
                    "total_value": "US$1,500.00",
                    "type": "Buy",
                    "time": "09:31",
                },
            )
            assert response.status_code == 200
            assert response.json()["message"] == "Email processed successfully"

            holdings = (await api_client.get("/holdings")).json()
            assert len(holdings) == 1
            holding = holdings[0]
            assert holding["symbol"] == "AAPL"
            assert holding["avgBuyPrice"] == 150.0
            assert abs(holding["avgBuyPriceCAD"] - 202.5) < 1e-9
            assert abs(holding["marketValueCAD"] - 2700.0) < 1e-9
            assert "unrealizedGainLossPercentage" in holding
            assert "lastUpdated" in holding

            summary = (await api_client.get("/portfolio/summary")).json()
            assert summary["currency"] == "CAD"
            assert summary["totalDividendsYTD"] == 0.0
            assert abs(summary["totalInvested"] - 2025.0) < 1e-9
            assert abs(summary["gainLoss"] - 675.0) < 1e-9

            transactions = (await api_client.get("/transactions")).json()
            assert transactions[0]["symbol"] == "AAPL"
            assert transactions[0]["type"] == "Buy"
            assert transactions[0]["averagePrice"] == 150.0
            assert transactions[0]["currency"] == "USD"

    asyncio.run(_scenario())


def test_dividend_webhook_counts_towards_ytd(tmp_path: Path):
    _, client_manager = _client(tmp_path)

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.post(
                "/webhooks/dividends", json={"symbol": "AAPL", "amount": "US$25.50", "account": "TFSA"}
            )
            assert response.status_code == 200

            dividends = (await api_client.get("/dividends")).json()
            assert dividends[0]["symbol"] == "AAPL"
            assert dividends[0]["currency"] == "USD"
            assert "paymentDate" in dividends[0]

            summary = (await api_client.get("/portfolio/summary")).json()
            assert abs(summary["totalDividendsYTD"] - 34.425) < 1e-9

    asyncio.run(_scenario())


def test_exchange_rate_reports_currency_pair(tmp_path: Path):
    _, client_manager = _client(tmp_path, rate=1.3712)

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.get("/exchange-rate")
            assert response.status_code == 200
            payload = response.json()
            assert payload["rate"] == 1.3712
            assert payload["from"] == "USD"
            assert payload["to"] == "CAD"
            assert payload["timestamp"]

    asyncio.run(_scenario())


def test_exchange_rate_falls_back_when_provider_fails(tmp_path: Path):
    _, client_manager = _client(tmp_path, rate=RuntimeError("offline"))

    async def _scenario():
        async with client_manager() as api_client:
            payload = (await api_client.get("/exchange-rate")).json()
            assert payload["rate"] == 1.35

    asyncio.run(_scenario())


def test_maintenance_endpoints(tmp_path: Path):
    _, client_manager = _client(tmp_path, prices={"RY": 130.0})

    async def _scenario():
        async with client_manager() as api_client:
            empty = (await api_client.post("/holdings/refresh-prices")).json()
            assert empty["message"] == "No holdings to update"

            await api_client.post(
                "/webhooks/transactions",
                json={"symbol": "RY", "shares": 4, "average_price": 120, "type": "Buy"},
            )

            recalculated = (await api_client.post("/portfolio/recalculate")).json()
            assert recalculated["message"] == "Portfolio summary recalculated successfully"

            holdings = (await api_client.post("/holdings/recalculate")).json()
            assert holdings["count"] == 1

            backfill = (await api_client.post("/backfill")).json()
            assert backfill["message"] == "Historical data backfill completed successfully"

            refreshed = (await api_client.post("/holdings/refresh-prices")).json()
            assert refreshed["message"] == "Updated prices for 1 symbols"
            assert refreshed["count"] == 1

            health = await api_client.get("/health")
            assert health.json()["status"] == "ok"

    asyncio.run(_scenario())


def test_errors_are_returned_as_plain_text(tmp_path: Path):
    app, client_manager = _client(tmp_path)

    async def _broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    app.state.portfolio_service.repository.recent_transactions = _broken

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.get("/transactions")
            assert response.status_code == 500
            assert response.headers["content-type"].startswith("text/plain")
            assert response.text == "Error: database unavailable"

    asyncio.run(_scenario())


def test_errors_keep_cors_headers(tmp_path: Path):
    app, client_manager = _client(tmp_path)

    async def _broken(*args, **kwargs):
        raise RuntimeError("database unavailable")

    app.state.portfolio_service.repository.recent_transactions = _broken

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.get("/transactions", headers={"Origin": "http://localhost:5173"})
            assert response.status_code == 500
            assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    asyncio.run(_scenario())


def test_transaction_webhook_accepts_numeric_account_and_time(tmp_path: Path):
    _, client_manager = _client(tmp_path, prices={"AAPL": 200.0})

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.post(
                "/webhooks/transactions",
                json={
                    "symbol": "AAPL",
                    "account": 12345678,
                    "shares": "10",
                    "average_price": "US$150.00",
                    "total_cost": "US$1,500.00",
                    "type": "Buy",
                    "time": 1718000000,
                },
            )
            assert response.status_code == 200

            holdings = (await api_client.get("/holdings")).json()
            assert [h["symbol"] for h in holdings] == ["AAPL"]
            assert holdings[0]["quantity"] == 10.0

            transactions = (await api_client.get("/transactions")).json()
            assert transactions[0]["account"] == "12345678"
            assert transactions[0]["time"] == "1718000000"
            assert transactions[0]["currency"] == "USD"

    asyncio.run(_scenario())


def test_transaction_webhook_stores_malformed_fields(tmp_path: Path):
    _, client_manager = _client(tmp_path, prices={"RY": 130.0})

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.post(
                "/webhooks/transactions",
                json={
                    "symbol": "ry",
                    "shares": ["10"],
                    "average_price": {"amount": 120},
                    "total_cost": "N/A",
                    "total_value": True,
                    "type": 7,
                    "account": None,
                },
            )
            assert response.status_code == 200

            transaction = (await api_client.get("/transactions")).json()[0]
            assert transaction["symbol"] == "RY"
            assert transaction["type"] == "Buy"
            assert transaction["shares"] == 0.0
            assert transaction["averagePrice"] == 0.0
            assert transaction["totalCost"] is None
            assert transaction["totalValue"] is None
            assert transaction["account"] is None
            assert transaction["currency"] == "CAD"

    asyncio.run(_scenario())


def test_transaction_webhook_without_type_or_symbol_is_stored(tmp_path: Path):
    _, client_manager = _client(tmp_path)

    async def _scenario():
        async with client_manager() as api_client:
            response = await api_client.post("/webhooks/transactions", json={"shares": "3", "average_price": "$40"})
            assert response.status_code == 200

            transactions = (await api_client.get("/transactions")).json()
            assert len(transactions) == 1
            assert transactions[0]["symbol"] == ""
            assert transactions[0]["type"] == "Buy"
            assert transactions[0]["shares"] == 3.0
            assert transactions[0]["averagePrice"] == 40.0

    asyncio.run(_scenario())


def test_webhooks_treat_non_object_bodies_as_empty(tmp_path: Path):
    _, client_manager = _client(tmp_path)

    async def _scenario():
        async with client_manager() as api_client:
            listed = await api_client.post("/webhooks/transactions", json=["AAPL", 10])
            assert listed.status_code == 200
            garbled = await api_client.post(
                "/webhooks/dividends", content=b"symbol=AAPL", headers={"content-type": "application/json"}
            )
            assert garbled.status_code == 200
            assert garbled.json()["message"] == "Email processed successfully"

            transactions = (await api_client.get("/transactions")).json()
            assert len(transactions) == 1
            assert transactions[0]["shares"] == 0.0

            dividends = (await api_client.get("/dividends")).json()
            assert len(dividends) == 1
            assert dividends[0]["amount"] == 0.0
            assert dividends[0]["currency"] == "CAD"

    asyncio.run(_scenario())
