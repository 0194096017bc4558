"""Observability helpers."""

from chad.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_pass,
    record_resolution,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_pass",
    "record_resolution",
]
