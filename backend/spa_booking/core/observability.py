"""Observability helpers for logging and tracing.

Environment knobs:

- LOG_LEVEL (default: INFO): root logger level
- ENABLE_CONSOLE_TRACING (default: 0): emit OTel spans to console
- OTEL_TRACES_SAMPLER_RATIO (default: 1.0): trace sampling ratio (0.0–1.0)
- OTEL_EXCLUDED_URLS: comma-separated URL patterns to exclude from tracing
"""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from pythonjsonlogger import jsonlogger

from .config import settings


def _parse_bool(value: str | bool | None, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def setup_logging() -> None:
    """Configure structured JSON logging."""
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter("%(levelname)s %(name)s %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    # Prefer process env, then Settings fallback (loaded from .env)
    level_name = (os.getenv("LOG_LEVEL") or settings.LOG_LEVEL).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    # Quiet Uvicorn's access logger (HTTP request lines) when not debugging
    access_logger = logging.getLogger("uvicorn.access")
    if _parse_bool(os.getenv("DISABLE_ACCESS_LOG"), root.level >= logging.WARNING):
        access_logger.handlers = []
        access_logger.propagate = False
        access_logger.disabled = True
    else:
        access_logger.setLevel(root.level)


def _sampling_ratio() -> float:
    ratio_env = os.getenv("OTEL_TRACES_SAMPLER_RATIO")
    try:
        ratio = float(ratio_env) if ratio_env is not None else 1.0
    except ValueError:
        return 1.0
    return 0.0 if ratio < 0 else (1.0 if ratio > 1 else ratio)


def setup_tracer(app) -> None:
    """Attach an OpenTelemetry tracer to the FastAPI app."""
    resource = Resource(attributes={"service.name": "spa-booking-api"})
    provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(_sampling_ratio())),
    )

    enable_console = _parse_bool(os.getenv("ENABLE_CONSOLE_TRACING"), settings.ENABLE_CONSOLE_TRACING)
    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)

    # Allow excluding noisy endpoints (health probes) from tracing
    excluded = [s.strip() for s in os.getenv("OTEL_EXCLUDED_URLS", "").split(",") if s.strip()]
    if settings.OTEL_EXCLUDE_HEALTH:
        excluded.append("/healthz")
    excluded_urls = ",".join(dict.fromkeys(excluded)) if excluded else None

    FastAPIInstrumentor.instrument_app(app, excluded_urls=excluded_urls, tracer_provider=provider)
