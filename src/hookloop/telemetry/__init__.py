"""OpenTelemetry tracing of agent invocations."""

from .tracer import Tracer, get_tracer

__all__ = ["Tracer", "get_tracer"]
