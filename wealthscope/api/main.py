"""Entrypoint for the WealthScope FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from ..cache import MarketDataCache, build_market_data_cache
from ..config import AppSettings, get_settings
from ..core.logging import setup_logging
from ..core.telemetry import setup_telemetry
from ..service import PortfolioService
from .database import Database
from .repository import PortfolioRepository
from .routes import get_portfolio_router
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI, db: Database):
    await db.create_all()
    yield
    await db.dispose()


def create_app(
    db: Database | None = None,
    market_data: MarketDataCache | None = None,
    settings: AppSettings | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)
    database_instance = db or Database(settings.database_url)
    service = PortfolioService(
        PortfolioRepository(database_instance),
        market_data or build_market_data_cache(settings),
    )

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lambda app: _lifespan(app, database_instance),
    )
    app.state.portfolio_service = service

    # Failures surface to callers as a plain-text 500 carrying the error detail
    @app.middleware("http")
    async def _plain_text_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("%s %s failed", request.method, request.url.path)
            return PlainTextResponse(f"Error: {exc}", status_code=500)

    # Added last so CORS stays outermost, error responses included
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(get_portfolio_router(service))

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service=settings.telemetry_service_name)

    setup_telemetry(app, settings, engine=database_instance.engine)
    logger.info("WealthScope configuration: %s", settings.dict_for_logging())
    return app


__all__ = ["create_app"]
