"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: explore / ranking latency, engagement actions,
    post creation, notification failures

Metrics are module globals registered on import. Tracing is installed once
at startup and only when OTEL_ENABLED is set.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Histogram

from fitfeed.config import settings
from fitfeed.database import engine

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
EXPLORE_LATENCY = Histogram(
    "explore_latency_seconds",
    "End-to-end latency of the explore endpoints",
    ["page"],  # 'trending_posts' | 'following' | 'trending_routines'
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

RANKING_LATENCY = Histogram(
    "ranking_latency_seconds",
    "Time spent scoring a batch of records",
    ["kind"],  # 'comments' | 'posts' | 'routines'
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05],
)

POSTS_CREATED_TOTAL = Counter(
    "posts_created_total",
    "Total number of posts created",
)

ENGAGEMENT_ACTIONS_TOTAL = Counter(
    "engagement_actions_total",
    "Engagement writes by action",
    ["action"],  # e.g. 'post_like', 'post_unlike', 'follow', 'routine_save'
)

NOTIFICATION_FAILURES_TOTAL = Counter(
    "notification_failures_total",
    "Notifications that could not be recorded (request still succeeded)",
    ["type"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
_tracing_configured = False

# Paths FastAPIInstrumentor leaves untraced
UNTRACED_URLS = "health,metrics"


def _build_exporter() -> Optional[OTLPSpanExporter]:
    endpoint = settings.otel_exporter_otlp_endpoint
    try:
        exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)
    except Exception as exc:
        logger.warning("OTLP exporter unavailable at %s (%s); spans stay local", endpoint, exc)
        return None
    logger.info("Exporting spans to %s", endpoint)
    return exporter


def setup_tracing() -> bool:
    """
    Install the fitfeed tracer provider and instrument the DB engine and Redis.

    Returns True when tracing is active. Safe to call more than once; only
    the first call installs anything.
    """
    global _tracing_configured
    if not settings.otel_enabled:
        logger.info("OTel tracing disabled")
        return False
    if _tracing_configured:
        return True

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "service.namespace": "fitfeed",
                "deployment.environment": settings.environment,
            }
        )
    )
    exporter = _build_exporter()
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    RedisInstrumentor().instrument()
    logger.info("Instrumented SQLAlchemy engine (%s) and Redis", engine.url.get_backend_name())

    _tracing_configured = True
    return True


def instrument_app(app: FastAPI) -> None:
    """Add request spans to the app, skipping health and metrics routes."""
    if not _tracing_configured:
        return
    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)
