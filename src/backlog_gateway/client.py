"""LLMClient: the single class most pipeline steps import."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel

from backlog_gateway.config import GatewayConfig
from backlog_gateway.cost import CostTracker
from backlog_gateway.extraction import extract_model, extract_structured
from backlog_gateway.observability.logging import configure_logging
from backlog_gateway.observability.tracing import configure_tracing, traced_llm_call
from backlog_gateway.providers.base import LLMProvider
from backlog_gateway.registry import build_provider
from backlog_gateway.retry import RetryController
from backlog_gateway.types import CostEstimate, LLMRequest, LLMResponse

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class LLMClient:
    """Config-driven client that adds retries, tracing and cost tracking to a provider.

    Usage:
        # Reads LLM_* env vars automatically
        llm = LLMClient()

        # Or pick a provider explicitly
        llm = LLMClient(provider_name="ollama")

        # Or inject a provider (for testing)
        llm = LLMClient(provider_instance=FakeProvider(...))

        resp = await llm.send(
            LLMRequest(system_prompt="...", user_prompt="..."),
            operation="refine",
        )
        print(resp.content, resp.cost_usd)

    Falling back to another provider after a failure is left to the caller.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        provider_instance: LLMProvider | None = None,
        provider_name: str | None = None,
        tracker: CostTracker | None = None,
        retry: RetryController | None = None,
    ) -> None:
        self._config = config or GatewayConfig()
        self._provider = provider_instance or build_provider(self._config, provider_name)
        self._tracker = tracker or CostTracker(
            cost_limit_usd=self._config.cost_limit_usd,
            cost_warn_usd=self._config.cost_warn_usd,
        )
        self._retry = retry or self._default_retry()
        self._closed = False

        # Auto-configure observability
        configure_logging(
            level=self._config.log_level,
            fmt=self._config.log_format,
        )
        if self._config.trace_enabled:
            configure_tracing(
                exporter=self._config.trace_exporter,
                endpoint=self._config.trace_endpoint,
                service_name=self._config.trace_service_name,
            )

    def _default_retry(self) -> RetryController:
        try:
            section = self._config.provider_config(self._provider.name)
        except KeyError:
            return RetryController()
        return RetryController.from_config(section)

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def tracker(self) -> CostTracker:
        return self._tracker

    async def send(self, request: LLMRequest, operation: str = "default") -> LLMResponse:
        """Send a request with retries and record its cost under ``operation``.

        Raises:
            CostLimitExceededError: If cumulative cost reaches the limit.
            ProviderError: If the provider fails permanently or retries run out.
        """
        async with traced_llm_call(
            model=request.model,
            provider=self._provider.name,
            operation=operation,
            run_id=self._tracker.run_id,
        ) as span_data:
            response = await self._retry.send(self._provider, request)
            span_data["response"] = response

        self._tracker.record(response, operation=operation)

        logger.info(
            "LLM call completed",
            extra={
                "operation": operation,
                "provider": response.provider,
                "model": response.model,
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "cost_usd": response.cost_usd,
                "latency_ms": round(response.latency_ms, 1),
                "cumulative_cost_usd": self._tracker.total_cost_usd,
            },
        )

        return response

    async def send_structured(
        self,
        request: LLMRequest,
        operation: str = "default",
        response_model: type[M] | None = None,
    ) -> Any:
        """Send a request and recover a JSON value from the reply.

        With ``response_model`` the value is validated and returned as that model.

        Raises:
            StructuredOutputError: If no JSON value can be recovered.
            ResponseValidationError: If the value does not fit ``response_model``.
        """
        response = await self.send(request, operation=operation)
        if response_model is None:
            return extract_structured(response.content)
        return extract_model(response.content, response_model)

    def estimate_cost(self, request: LLMRequest, currency: str | None = None) -> CostEstimate:
        return self._provider.estimate_cost(request, currency or self._config.currency)

    @property
    def total_cost_usd(self) -> float:
        """Cumulative cost across all calls recorded by this client's tracker."""
        return self._tracker.total_cost_usd

    @property
    def call_count(self) -> int:
        return self._tracker.call_count

    def cost_summary(self) -> dict[str, Any]:
        """Return a summary dict of cost/token usage."""
        return self._tracker.summary()

    async def close(self) -> None:
        """Clean up provider resources."""
        if not self._closed:
            await self._provider.close()
            self._closed = True

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
