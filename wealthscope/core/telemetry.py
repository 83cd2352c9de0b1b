"""OpenTelemetry wiring and the portfolio service's own instruments.

The instruments below are created against the global API proxies, so they are
safe to use whether or not :func:`setup_telemetry` ever installs real
providers; without it every call is a no-op.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI
from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_NAMESPACE, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import Span
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import AppSettings

logger = logging.getLogger(__name__)

_EXPORT_INTERVAL_MS = 15000
_INSTRUMENTATION_SCOPE = "wealthscope"
_configured = False

_tracer = trace.get_tracer(_INSTRUMENTATION_SCOPE)
_meter = metrics.get_meter(_INSTRUMENTATION_SCOPE)

webhooks_received = _meter.create_counter(
    "wealthscope.webhooks.received",
    unit="1",
    description="Brokerage webhooks accepted, by kind",
)
market_data_fallbacks = _meter.create_counter(
    "wealthscope.market_data.fallbacks",
    unit="1",
    description="Provider failures answered from a fallback value, by source",
)
aggregation_duration = _meter.create_histogram(
    "wealthscope.aggregation.duration",
    unit="s",
    description="Wall time of portfolio aggregation and price refresh passes",
)


@contextmanager
def aggregation_span(operation: str) -> Iterator[Span]:
    """Trace one aggregation pass and record how long it took."""

    started = time.perf_counter()
    with _tracer.start_as_current_span(f"portfolio.{operation}") as span:
        try:
            yield span
        finally:
            aggregation_duration.record(time.perf_counter() - started, {"operation": operation})


def setup_telemetry(app: FastAPI, settings: AppSettings, engine: AsyncEngine | None = None) -> bool:
    """Install OTLP exporters for traces, metrics and logs, then instrument the app.

    Returns ``True`` when instrumentation is active after the call.
    """

    global _configured  # noqa: PLW0603 - configured once per process

    if _configured:
        return True
    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return False

    resource = Resource.create(
        {
            SERVICE_NAME: settings.telemetry_service_name or settings.app_name,
            SERVICE_NAMESPACE: "wealthscope",
        }
    )
    otlp = _otlp_options(settings)

    tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio)),
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**otlp)))
    trace.set_tracer_provider(tracer_provider)

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[
            PeriodicExportingMetricReader(OTLPMetricExporter(**otlp), export_interval_millis=_EXPORT_INTERVAL_MS)
        ],
    )
    metrics.set_meter_provider(meter_provider)

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(**otlp)))
    set_logger_provider(logger_provider)
    LoggingInstrumentor().instrument(set_logging_format=False)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider, meter_provider=meter_provider)
    # FX and quote lookups show up as children of the webhook that triggered them
    HTTPXClientInstrumentor().instrument()
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine, tracer_provider=tracer_provider)

    _configured = True
    logger.info("Telemetry exporting to %s", otlp.get("endpoint", "the default OTLP endpoint"))
    return True


def _otlp_options(settings: AppSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        options["endpoint"] = settings.telemetry_otlp_endpoint
    return options


__all__ = [
    "aggregation_duration",
    "aggregation_span",
    "market_data_fallbacks",
    "setup_telemetry",
    "webhooks_received",
]
