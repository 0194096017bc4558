"""OpenTelemetry + Prometheus fallback wiring for the session processor."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from chad import config

logger = logging.getLogger("chad.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_pass_counter: Any | None = None
_pass_latency_hist: Any | None = None
_sessions_counter: Any | None = None
_records_counter: Any | None = None
_errors_counter: Any | None = None
_resolution_counter: Any | None = None

_prom_enabled = False
_prom_pass_counter: Any | None = None
_prom_pass_latency_hist: Any | None = None
_prom_sessions_counter: Any | None = None
_prom_records_counter: Any | None = None
_prom_errors_counter: Any | None = None
_prom_resolution_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str | None) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _pass_counter, _pass_latency_hist, _sessions_counter, _records_counter
    global _errors_counter, _resolution_counter
    global _prom_enabled, _prom_pass_counter, _prom_pass_latency_hist, _prom_sessions_counter
    global _prom_records_counter, _prom_errors_counter, _prom_resolution_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CHAD_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "chad-session-capture"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "chad",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("chad.processor")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("chad.processor")

    _pass_counter = meter.create_counter(
        "chad_processing_passes_total",
        unit="1",
        description="Count of session processing passes",
    )
    _pass_latency_hist = meter.create_histogram(
        "chad_processing_pass_latency_ms",
        unit="ms",
        description="Duration of session processing passes",
    )
    _sessions_counter = meter.create_counter(
        "chad_sessions_created_total",
        unit="1",
        description="AI sessions created from raw record windows",
    )
    _records_counter = meter.create_counter(
        "chad_records_processed_total",
        unit="1",
        description="Raw records consumed by processing passes",
    )
    _errors_counter = meter.create_counter(
        "chad_processing_errors_total",
        unit="1",
        description="Window or fetch failures during processing passes",
    )
    _resolution_counter = meter.create_counter(
        "chad_identity_resolutions_total",
        unit="1",
        description="Project identity resolutions by reason",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_pass_counter = Counter(
                "chad_processing_passes_total",
                "Count of session processing passes",
                ["trigger", "result"],
            )
            _prom_pass_latency_hist = Histogram(
                "chad_processing_pass_latency_ms",
                "Duration of session processing passes",
                ["trigger"],
            )
            _prom_sessions_counter = Counter(
                "chad_sessions_created_total",
                "AI sessions created from raw record windows",
                ["trigger"],
            )
            _prom_records_counter = Counter(
                "chad_records_processed_total",
                "Raw records consumed by processing passes",
                ["trigger"],
            )
            _prom_errors_counter = Counter(
                "chad_processing_errors_total",
                "Window or fetch failures during processing passes",
                ["trigger"],
            )
            _prom_resolution_counter = Counter(
                "chad_identity_resolutions_total",
                "Project identity resolutions by reason",
                ["reason", "project"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:
        pass
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception:
        pass
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception:
        pass
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_pass(
    *,
    trigger: str,
    processed: int,
    sessions: int,
    errors: int,
    duration_ms: float,
) -> None:
    result = "error" if errors else "ok"
    labels = {"trigger": _label(trigger), "result": result}
    trigger_labels = {"trigger": _label(trigger)}
    if _enabled:
        if _pass_counter is not None:
            _pass_counter.add(1, labels)
        if _pass_latency_hist is not None:
            _pass_latency_hist.record(max(0.0, float(duration_ms)), trigger_labels)
        if _sessions_counter is not None and sessions > 0:
            _sessions_counter.add(sessions, trigger_labels)
        if _records_counter is not None and processed > 0:
            _records_counter.add(processed, trigger_labels)
        if _errors_counter is not None and errors > 0:
            _errors_counter.add(errors, trigger_labels)
    if _prom_enabled:
        if _prom_pass_counter is not None:
            _prom_pass_counter.labels(**labels).inc()
        if _prom_pass_latency_hist is not None:
            _prom_pass_latency_hist.labels(**trigger_labels).observe(max(0.0, float(duration_ms)))
        if _prom_sessions_counter is not None and sessions > 0:
            _prom_sessions_counter.labels(**trigger_labels).inc(sessions)
        if _prom_records_counter is not None and processed > 0:
            _prom_records_counter.labels(**trigger_labels).inc(processed)
        if _prom_errors_counter is not None and errors > 0:
            _prom_errors_counter.labels(**trigger_labels).inc(errors)


def record_resolution(reason: str, *, project_slug: str) -> None:
    labels = {"reason": _label(reason), "project": _label(project_slug)}
    if _enabled and _resolution_counter is not None:
        _resolution_counter.add(1, labels)
    if _prom_enabled and _prom_resolution_counter is not None:
        _prom_resolution_counter.labels(**labels).inc()
