"""Observability sub-package: tracing and logging."""

from backlog_gateway.observability.logging import bind_run_context, configure_logging
from backlog_gateway.observability.tracing import (
    configure_tracing,
    disable_tracing,
    get_tracer,
    traced_llm_call,
)

__all__ = [
    "bind_run_context",
    "configure_logging",
    "configure_tracing",
    "disable_tracing",
    "get_tracer",
    "traced_llm_call",
]
