"""OpenAI and Azure OpenAI providers, wrapping the openai async clients."""

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
    import openai
    from openai import AsyncAzureOpenAI, AsyncOpenAI

    HAS_OPENAI = True
except ImportError:
    HAS_OPENAI = False

if not HAS_OPENAI:
    msg = "OpenAI providers require the 'openai' package. Install with: pip install openai"
    raise ImportError(msg)

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_AZURE_API_VERSION = "2024-08-01-preview"

# Reasoning models take max_completion_tokens and reject temperature.
REASONING_MODEL_PREFIXES = ("o1", "o3", "o4")


def classify_error(exc: BaseException, provider: str = "openai") -> ProviderError:
    """Map an openai SDK or transport exception to the gateway taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(
        exc,
        (
            openai.APIConnectionError,
            httpx.TransportError,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return ProviderUnavailableError(provider, exc)
    if isinstance(exc, openai.APIStatusError):
        return classify_status(
            provider,
            exc.status_code,
            exc,
            retry_after=parse_retry_after(exc.response.headers),
        )
    return GenericProviderError(provider, exc)


def is_reasoning_model(model: str) -> bool:
    return model.startswith(REASONING_MODEL_PREFIXES)


class OpenAIProvider(BaseProvider):
    """LLM provider backed by the OpenAI Chat Completions API."""

    name: ClassVar[str] = "openai"
    DEFAULT_MODEL: ClassVar[str] = "gpt-4o-mini"

    # ── Pricing (USD per 1 million tokens) ──────────────────────
    PRICING: ClassVar[dict[str, ModelPricing]] = {
        "gpt-4o": ModelPricing(input=2.50, output=10.00),
        "gpt-4o-mini": ModelPricing(input=0.15, output=0.60),
        "gpt-4-turbo": ModelPricing(input=10.00, output=30.00),
        "gpt-4-turbo-preview": ModelPricing(input=10.00, output=30.00),
        "gpt-4": ModelPricing(input=30.00, output=60.00),
        "gpt-3.5-turbo": ModelPricing(input=0.50, output=1.50),
        "gpt-3.5-turbo-0125": ModelPricing(input=0.50, output=1.50),
    }

    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        ModelInfo("gpt-4o", "GPT-4o", "Multimodal flagship model", 128_000, 2.50, 10.00),
        ModelInfo("gpt-4o-mini", "GPT-4o Mini", "Fast and affordable model", 128_000, 0.15, 0.60),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo",
                  "High-capability model with large context", 128_000, 10.00, 30.00),
        ModelInfo("gpt-4", "GPT-4", "Original GPT-4 model", 8_192, 30.00, 60.00),
        ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo",
                  "Fast and cost-effective legacy model", 16_385, 0.50, 1.50),
    )

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        organization: str | None = None,
        default_model: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(default_model=default_model, timeout_seconds=timeout_seconds)
        self._client: Any = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            timeout=self._timeout,
            max_retries=0,
        )

    @classmethod
    def from_config(cls, config: ProviderConfig) -> OpenAIProvider:
        """Factory method for the provider registry."""
        return cls(
            api_key=config.get_api_key("openai"),
            base_url=config.endpoint,
            organization=config.option("organization"),
            default_model=config.default_model,
            timeout_seconds=config.timeout_seconds,
        )

    def _wire_model(self, model: str) -> str:
        """Model (or deployment) name sent to the API."""
        return model

    def _reported_model(self, model: str) -> str:
        return model

    def _is_reasoning(self, model: str) -> bool:
        return is_reasoning_model(model)

    def _completion_kwargs(self, request: LLMRequest, model: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._wire_model(model),
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_prompt},
            ],
        }
        if self._is_reasoning(model):
            kwargs["max_completion_tokens"] = self.max_tokens_for(request)
        else:
            kwargs["max_tokens"] = self.max_tokens_for(request)
            kwargs["temperature"] = self.temperature_for(request)
        return kwargs

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Call Chat Completions with system and user messages."""
        model = self.resolve_model(request)
        start = time.monotonic()
        try:
            result = await self._client.chat.completions.create(
                **self._completion_kwargs(request, model)
            )
        except Exception as exc:
            raise classify_error(exc, self.name) from exc

        latency_ms = (time.monotonic() - start) * 1000
        input_tokens, output_tokens = self._extract_usage(result)
        return LLMResponse(
            content=self._extract_text(result),
            usage=self.build_usage(model, input_tokens, output_tokens),
            model=self._reported_model(model),
            provider=self.name,
            latency_ms=latency_ms,
            raw=result,
        )

    @staticmethod
    def _extract_text(result: Any) -> str:
        choices = getattr(result, "choices", None) or []
        if not choices:
            return ""
        return choices[0].message.content or ""

    @staticmethod
    def _extract_usage(result: Any) -> tuple[int, int]:
        usage = getattr(result, "usage", None)
        if usage is None:
            return 0, 0
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        return input_tokens, output_tokens

    async def _probe(self) -> None:
        try:
            await self._client.models.list()
        except Exception as exc:
            raise classify_error(exc, self.name) from exc

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()


class AzureOpenAIProvider(OpenAIProvider):
    """OpenAI models served from an Azure deployment.

    Requests are routed to ``deployment``; the request's model (or the
    configured default) only selects the pricing entry.
    """

    name: ClassVar[str] = "azure-openai"

    PRICING: ClassVar[dict[str, ModelPricing]] = {
        "gpt-4o": ModelPricing(input=2.50, output=10.00),
        "gpt-4o-mini": ModelPricing(input=0.15, output=0.60),
        "gpt-4-turbo": ModelPricing(input=10.00, output=30.00),
        "gpt-4": ModelPricing(input=30.00, output=60.00),
        "gpt-35-turbo": ModelPricing(input=0.50, output=1.50),
    }

    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        ModelInfo("gpt-4o", "GPT-4o (Azure)",
                  "Multimodal flagship model on Azure", 128_000, 2.50, 10.00),
        ModelInfo("gpt-4o-mini", "GPT-4o Mini (Azure)",
                  "Fast and affordable model on Azure", 128_000, 0.15, 0.60),
        ModelInfo("gpt-4-turbo", "GPT-4 Turbo (Azure)",
                  "High-capability model on Azure", 128_000, 10.00, 30.00),
        ModelInfo("gpt-4", "GPT-4 (Azure)", "Original GPT-4 model on Azure", 8_192, 30.00, 60.00),
        ModelInfo("gpt-35-turbo", "GPT-3.5 Turbo (Azure)",
                  "Legacy model on Azure", 16_385, 0.50, 1.50),
    )

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str = DEFAULT_AZURE_API_VERSION,
        default_model: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        BaseProvider.__init__(self, default_model=default_model, timeout_seconds=timeout_seconds)
        self._deployment = deployment
        self._client = AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
            timeout=self._timeout,
            max_retries=0,
        )

    @classmethod
    def from_config(cls, config: ProviderConfig) -> AzureOpenAIProvider:
        """Factory method for the provider registry."""
        if not config.endpoint:
            msg = "Azure OpenAI requires an endpoint (AZURE_OPENAI_ENDPOINT)"
            raise ValueError(msg)
        return cls(
            api_key=config.get_api_key("azure-openai"),
            endpoint=config.endpoint,
            deployment=config.option("deployment", "gpt-4o"),
            api_version=config.option("api_version", DEFAULT_AZURE_API_VERSION),
            default_model=config.default_model,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def deployment(self) -> str:
        return self._deployment

    def _wire_model(self, model: str) -> str:
        return self._deployment

    def _reported_model(self, model: str) -> str:
        return f"{self._deployment} ({model})"

    def _is_reasoning(self, model: str) -> bool:
        """Deployment names often carry the model family (e.g. ``o3-mini-prod``)."""
        return is_reasoning_model(model) or is_reasoning_model(self._deployment)

    async def _probe(self) -> None:
        reasoning = self._is_reasoning(self.default_model)
        limit_key = "max_completion_tokens" if reasoning else "max_tokens"
        try:
            await self._client.chat.completions.create(
                model=self._deployment,
                messages=[{"role": "user", "content": "ping"}],
                **{limit_key: 1},
            )
        except Exception as exc:
            raise classify_error(exc, self.name) from exc
