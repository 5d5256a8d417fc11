"""Anthropic provider, wrapping AsyncAnthropic."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from backlog_gateway.exceptions import (
    GenericProviderError,
    ProviderError,
    ProviderUnavailableError,
)
from backlog_gateway.providers.base import BaseProvider, classify_status, parse_retry_after
from backlog_gateway.types import LLMRequest, LLMResponse, ModelInfo, ModelPricing

try:
    import anthropic
    from anthropic import AsyncAnthropic

    HAS_ANTHROPIC = True
except ImportError:
    HAS_ANTHROPIC = False

if not HAS_ANTHROPIC:
    msg = (
        "Anthropic provider requires the 'anthropic' package. "
        "Install with: pip install anthropic"
    )
    raise ImportError(msg)

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig

logger = logging.getLogger(__name__)

PROVIDER_NAME = "anthropic"


def classify_error(exc: BaseException) -> ProviderError:
    """Map an Anthropic SDK or transport exception to the gateway taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(
        exc,
        (
            anthropic.APIConnectionError,
            httpx.TransportError,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return ProviderUnavailableError(PROVIDER_NAME, exc)
    if isinstance(exc, anthropic.APIStatusError):
        return classify_status(
            PROVIDER_NAME,
            exc.status_code,
            exc,
            retry_after=parse_retry_after(exc.response.headers),
        )
    return GenericProviderError(PROVIDER_NAME, exc)


class AnthropicProvider(BaseProvider):
    """LLM provider backed by the Anthropic Messages API."""

    name: ClassVar[str] = PROVIDER_NAME
    DEFAULT_MODEL: ClassVar[str] = "claude-3-5-haiku-20241022"

    # ── Pricing (USD per 1 million tokens) ──────────────────────
    PRICING: ClassVar[dict[str, ModelPricing]] = {
        "claude-3-5-sonnet-20241022": ModelPricing(input=3.00, output=15.00),
        "claude-3-5-haiku-20241022": ModelPricing(input=0.80, output=4.00),
        "claude-3-opus-20240229": ModelPricing(input=15.00, output=75.00),
        "claude-3-sonnet-20240229": ModelPricing(input=3.00, output=15.00),
        "claude-3-haiku-20240307": ModelPricing(input=0.25, output=1.25),
    }

    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        ModelInfo("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet",
                  "Most capable model for complex tasks", 200_000, 3.00, 15.00),
        ModelInfo("claude-3-5-haiku-20241022", "Claude 3.5 Haiku",
                  "Fast and cost-effective model", 200_000, 0.80, 4.00),
        ModelInfo("claude-3-opus-20240229", "Claude 3 Opus",
                  "Previous flagship model", 200_000, 15.00, 75.00, deprecated=True),
        ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet",
                  "Previous mid-tier model", 200_000, 3.00, 15.00, deprecated=True),
        ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku",
                  "Previous fast model", 200_000, 0.25, 1.25, deprecated=True),
    )

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(default_model=default_model, timeout_seconds=timeout_seconds)
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=self._timeout,
            max_retries=0,
        )

    @classmethod
    def from_config(cls, config: ProviderConfig) -> AnthropicProvider:
        """Factory method for the provider registry."""
        return cls(
            api_key=config.get_api_key(PROVIDER_NAME),
            base_url=config.endpoint,
            default_model=config.default_model,
            timeout_seconds=config.timeout_seconds,
        )

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Call the Messages API with the system prompt in its dedicated field."""
        model = self.resolve_model(request)
        start = time.monotonic()
        try:
            result = await self._client.messages.create(
                model=model,
                max_tokens=self.max_tokens_for(request),
                temperature=self.temperature_for(request),
                system=request.system_prompt,
                messages=[{"role": "user", "content": request.user_prompt}],
            )
        except Exception as exc:
            raise classify_error(exc) from exc

        latency_ms = (time.monotonic() - start) * 1000
        input_tokens, output_tokens = self._extract_usage(result)
        return LLMResponse(
            content=self._extract_text(result),
            usage=self.build_usage(model, input_tokens, output_tokens),
            model=model,
            provider=PROVIDER_NAME,
            latency_ms=latency_ms,
            raw=result,
        )

    @staticmethod
    def _extract_text(result: Any) -> str:
        blocks = getattr(result, "content", None) or []
        return "\n".join(
            block.text for block in blocks if getattr(block, "type", None) == "text"
        )

    @staticmethod
    def _extract_usage(result: Any) -> tuple[int, int]:
        usage = getattr(result, "usage", None)
        if usage is None:
            return 0, 0
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        return input_tokens, output_tokens

    async def _probe(self) -> None:
        try:
            await self._client.messages.create(
                model=self._default_model,
                max_tokens=1,
                messages=[{"role": "user", "content": "ping"}],
            )
        except Exception as exc:
            raise classify_error(exc) from exc

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()
