"""OpenTelemetry tracing for provider calls."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from backlog_gateway.exceptions import ProviderError
from backlog_gateway.types import LLMResponse

logger = logging.getLogger(__name__)

# ── Optional OTEL imports ───────────────────────────────────────
try:
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    HAS_OTEL = True
except ImportError:
    HAS_OTEL = False

try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )

    HAS_OTLP = True
except ImportError:
    HAS_OTLP = False


# Module-level tracer (None if OTEL not installed/configured)
_tracer: Any = None


def configure_tracing(
    exporter: str = "none",
    endpoint: str = "http://localhost:4317",
    service_name: str = "backlog-gateway",
) -> None:
    """Configure OpenTelemetry tracing.

    Args:
        exporter: One of "none", "console", "otlp".
        endpoint: OTLP collector endpoint (only used when exporter="otlp").
        service_name: Service name for spans.
    """
    global _tracer

    if exporter == "none" or not HAS_OTEL:
        _tracer = None
        return

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if exporter == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter == "otlp":
        if not HAS_OTLP:
            logger.warning("OTLP exporter requested but opentelemetry-exporter-otlp not installed")
            _tracer = None
            return
        provider.add_span_processor(
            SimpleSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("backlog_gateway")
    logger.info("OTEL tracing configured: exporter=%s, service=%s", exporter, service_name)


def get_tracer() -> Any:
    """Return the configured tracer, or None if tracing is disabled."""
    return _tracer


def disable_tracing() -> None:
    """Disable tracing (useful for tests)."""
    global _tracer
    _tracer = None


SPAN_NAME = "backlog.llm_call"


def _annotate_response(span: Any, response: LLMResponse) -> None:
    usage = response.usage
    span.set_attribute("llm.response_model", response.model)
    span.set_attribute("llm.input_tokens", usage.input_tokens)
    span.set_attribute("llm.output_tokens", usage.output_tokens)
    span.set_attribute("llm.total_tokens", usage.total_tokens)
    span.set_attribute("llm.cost_usd", response.cost_usd)
    span.set_attribute("llm.latency_ms", response.latency_ms)


def _annotate_failure(span: Any, exc: BaseException) -> None:
    span.set_status(trace.StatusCode.ERROR, str(exc))
    span.record_exception(exc)
    if not isinstance(exc, ProviderError):
        return
    span.set_attribute("llm.error_class", type(exc).__name__)
    span.set_attribute("llm.retryable", exc.retryable)
    if exc.attempts is not None:
        span.set_attribute("llm.attempts", exc.attempts)


@asynccontextmanager
async def traced_llm_call(
    model: str | None,
    provider: str,
    operation: str = "default",
    run_id: str | None = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """Wrap one pipeline LLM call (retries included) in a span.

    Usage:
        async with traced_llm_call("gpt-4o-mini", "openai", "extract", run_id) as span_data:
            response = await retry.send(provider, request)
            span_data["response"] = response

    The span carries the pipeline step (``backlog.operation``) and run id
    next to the model and provider, so traces line up with the cost ledger.
    """
    span_data: dict[str, Any] = {}

    if _tracer is None:
        yield span_data
        return

    with _tracer.start_as_current_span(SPAN_NAME) as span:
        span.set_attribute("backlog.operation", operation)
        if run_id is not None:
            span.set_attribute("backlog.run_id", run_id)
        span.set_attribute("llm.model", model or "provider-default")
        span.set_attribute("llm.provider", provider)

        try:
            yield span_data
        except Exception as exc:
            _annotate_failure(span, exc)
            raise

        response = span_data.get("response")
        if isinstance(response, LLMResponse):
            _annotate_response(span, response)
