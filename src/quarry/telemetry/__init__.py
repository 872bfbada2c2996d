"""OpenTelemetry helpers for instrumentation."""

from typing import Optional

from opentelemetry import trace

from quarry.__version__ import __version__

__all__ = [
    "get_tracer",
]


def get_tracer(name: str, version: Optional[str] = None):
    """Return a tracer from the active OpenTelemetry provider."""
    return trace.get_tracer(name, version or __version__)
