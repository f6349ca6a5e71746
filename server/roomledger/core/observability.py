"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from .config import Settings

# Prometheus metrics
REGISTRY = CollectorRegistry()

BOOKING_TRANSITIONS = Counter(
    'booking_transitions_total',
    'Booking state transitions applied',
    ['from_state', 'to_state'],
    registry=REGISTRY
)

INVENTORY_RESERVATIONS = Counter(
    'inventory_reservations_total',
    'Inventory reserve attempts by outcome',
    ['room_type', 'outcome'],
    registry=REGISTRY
)

INVENTORY_RELEASES = Counter(
    'inventory_releases_total',
    'Inventory releases',
    ['room_type'],
    registry=REGISTRY
)

AUDIT_RUNS = Counter(
    'night_audit_runs_total',
    'Night audit runs finished, by final status',
    ['status'],
    registry=REGISTRY
)

AUDIT_BOOKING_OUTCOMES = Counter(
    'night_audit_booking_outcomes_total',
    'Per-booking night audit outcomes',
    ['action', 'succeeded'],
    registry=REGISTRY
)

OCCUPANCY_RATE = Gauge(
    'night_audit_occupancy_rate',
    'Occupancy rate recorded by the latest completed night audit',
    registry=REGISTRY
)

AUDIT_LAG_DAYS = Gauge(
    'night_audit_lag_days',
    'Days between the business date and the latest completed audit, -1 if none',
    registry=REGISTRY
)


def setup_structured_logging(settings: Settings) -> None:
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib records (services log through logging with ``extra``) into structlog
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ExtraAdder(),
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level))


def setup_tracing(settings: Settings, app_name: str = "roomledger"):
    """Setup OpenTelemetry tracing."""
    resource = Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })

    trace.set_tracer_provider(TracerProvider(resource=resource))
    return trace.get_tracer(__name__)


def instrument_fastapi(app) -> None:
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine) -> None:
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_transition(from_state: str, to_state: str):
        """Record a booking state transition."""
        BOOKING_TRANSITIONS.labels(from_state=from_state, to_state=to_state).inc()

    @staticmethod
    def record_reservation(room_type: str, outcome: str):
        """Record a reserve attempt."""
        INVENTORY_RESERVATIONS.labels(room_type=room_type, outcome=outcome).inc()

    @staticmethod
    def record_release(room_type: str):
        """Record an inventory release."""
        INVENTORY_RELEASES.labels(room_type=room_type).inc()

    @staticmethod
    def record_audit_run(status: str):
        """Record a finished night audit run."""
        AUDIT_RUNS.labels(status=status).inc()

    @staticmethod
    def record_audit_outcome(action: str, succeeded: bool):
        """Record one booking processed by a night audit."""
        AUDIT_BOOKING_OUTCOMES.labels(action=action, succeeded=str(succeeded).lower()).inc()

    @staticmethod
    def set_occupancy_rate(rate: float):
        """Set occupancy rate of the latest completed audit."""
        OCCUPANCY_RATE.set(rate)

    @staticmethod
    def set_audit_lag(days: int):
        AUDIT_LAG_DAYS.set(days)


def get_prometheus_metrics() -> bytes:
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


metrics_collector = MetricsCollector()
