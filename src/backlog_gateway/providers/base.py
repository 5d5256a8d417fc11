"""LLM provider protocol and the shared adapter base classes."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import ClassVar, Literal, Protocol, runtime_checkable

from backlog_gateway.cost import build_token_usage, cost_for_tokens
from backlog_gateway.currency import get_exchange_rate
from backlog_gateway.exceptions import (
    GenericProviderError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
)
from backlog_gateway.types import (
    CostBreakdown,
    CostEstimate,
    LLMRequest,
    LLMResponse,
    ModelInfo,
    ModelPricing,
    TokenUsage,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_ESTIMATE_OUTPUT_TOKENS = 2048
DEFAULT_CURRENCY = "EUR"
CHARS_PER_TOKEN = 4


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol that all LLM providers must implement.

    ``send_message`` is the only operation that touches the network besides
    the ``is_available`` probe. Backend-specific types never cross this
    boundary.
    """

    name: str
    kind: Literal["online", "local"]

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Send one request and return a normalized response.

        Raises:
            ProviderError: One of its classified subclasses.
        """
        ...

    def estimate_cost(self, request: LLMRequest, currency: str = DEFAULT_CURRENCY) -> CostEstimate:
        """Approximate the cost of ``request`` without calling the backend."""
        ...

    async def is_available(self) -> bool:
        """Cheap reachability probe."""
        ...

    def supported_models(self) -> list[ModelInfo]:
        """Static model catalog."""
        ...

    async def close(self) -> None:
        """Clean up provider resources (HTTP sessions, etc.)."""
        ...


class BaseProvider(ABC):
    """Shared cost logic for online adapters.

    Subclasses declare ``PRICING`` and ``DEFAULT_MODEL`` and implement the
    network operations. Pricing lookups for unknown models fall back to the
    default model's price; they never raise.
    """

    name: ClassVar[str] = "base"
    kind: ClassVar[Literal["online", "local"]] = "online"
    PRICING: ClassVar[Mapping[str, ModelPricing]] = {}
    DEFAULT_MODEL: ClassVar[str] = ""
    MODELS: ClassVar[tuple[ModelInfo, ...]] = ()

    def __init__(self, default_model: str | None = None, timeout_seconds: float = 60.0) -> None:
        self._default_model = default_model or self.DEFAULT_MODEL
        self._timeout = float(timeout_seconds)

    @property
    def default_model(self) -> str:
        return self._default_model

    def resolve_model(self, request: LLMRequest) -> str:
        return request.model or self._default_model

    @staticmethod
    def max_tokens_for(request: LLMRequest) -> int:
        return request.max_tokens or DEFAULT_MAX_TOKENS

    @staticmethod
    def temperature_for(request: LLMRequest) -> float:
        return DEFAULT_TEMPERATURE if request.temperature is None else request.temperature

    # ── Pricing ─────────────────────────────────────────────────

    def pricing_for(self, model: str) -> ModelPricing | None:
        pricing = self.PRICING.get(model)
        if pricing is None:
            logger.debug(
                "No pricing for %s model %r, using %r pricing",
                self.name,
                model,
                self.DEFAULT_MODEL,
            )
            pricing = self.PRICING.get(self.DEFAULT_MODEL)
        return pricing

    def calculate_input_cost(self, model: str, input_tokens: int) -> float:
        pricing = self.pricing_for(model)
        return cost_for_tokens(pricing, input_tokens, 0)[0] if pricing else 0.0

    def calculate_output_cost(self, model: str, output_tokens: int) -> float:
        pricing = self.pricing_for(model)
        return cost_for_tokens(pricing, 0, output_tokens)[1] if pricing else 0.0

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """USD cost of a call to ``model`` with the given token counts."""
        return self.calculate_input_cost(model, input_tokens) + self.calculate_output_cost(
            model, output_tokens
        )

    def build_usage(self, model: str, input_tokens: int, output_tokens: int) -> TokenUsage:
        return build_token_usage(self.pricing_for(model), input_tokens, output_tokens)

    def estimate_cost(
        self, request: LLMRequest, currency: str = DEFAULT_CURRENCY
    ) -> CostEstimate:
        """Approximate cost from prompt length (about four characters per token).

        Raises:
            UnsupportedCurrencyError: If ``currency`` has no exchange rate.
        """
        rate = get_exchange_rate(currency)
        model = self.resolve_model(request)
        input_tokens = estimate_tokens(request)
        output_tokens = request.max_tokens or DEFAULT_ESTIMATE_OUTPUT_TOKENS

        input_cost = self.calculate_input_cost(model, input_tokens)
        output_cost = self.calculate_output_cost(model, output_tokens)
        total = input_cost + output_cost
        return CostEstimate(
            cost_usd=total,
            cost=total * rate,
            currency=currency,
            exchange_rate=rate,
            breakdown=CostBreakdown(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                input_cost_usd=input_cost,
                output_cost_usd=output_cost,
                input_cost=input_cost * rate,
                output_cost=output_cost * rate,
            ),
        )

    def supported_models(self) -> list[ModelInfo]:
        return list(self.MODELS)

    # ── Network operations ──────────────────────────────────────

    @abstractmethod
    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Send one request to the backend."""

    @abstractmethod
    async def _probe(self) -> None:
        """Issue the smallest request the backend accepts."""

    async def is_available(self) -> bool:
        """True if the backend answered, even if it rejected the credential."""
        try:
            await self._probe()
        except ProviderAuthError:
            return True
        except ProviderError as exc:
            logger.debug("%s unavailable: %s", self.name, exc)
            return False
        return True

    async def close(self) -> None:
        """Nothing to release by default."""


class LocalBaseProvider(BaseProvider):
    """Base for self-hosted backends. Every call costs exactly zero."""

    kind: ClassVar[Literal["online", "local"]] = "local"

    def pricing_for(self, model: str) -> ModelPricing | None:
        return None

    def estimate_cost(
        self, request: LLMRequest, currency: str = DEFAULT_CURRENCY
    ) -> CostEstimate:
        rate = get_exchange_rate(currency)
        return CostEstimate(cost_usd=0.0, cost=0.0, currency=currency, exchange_rate=rate)


def estimate_tokens(request: LLMRequest) -> int:
    """Character-count token heuristic; an order-of-magnitude figure only."""
    chars = len(request.system_prompt) + len(request.user_prompt)
    return math.ceil(chars / CHARS_PER_TOKEN)


# ── Shared classification helpers ───────────────────────────────


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Read a retry hint in seconds from ``retry-after-ms`` or ``retry-after``."""
    if not headers:
        return None
    millis = headers.get("retry-after-ms")
    if millis is not None:
        try:
            return float(millis) / 1000
        except ValueError:
            pass
    seconds = headers.get("retry-after")
    if seconds is not None:
        try:
            return float(seconds)
        except ValueError:
            return None
    return None


def classify_status(
    provider: str,
    status: int | None,
    exc: BaseException,
    retry_after: float | None = None,
) -> ProviderError:
    """Map an HTTP status code to the provider error taxonomy.

    Server errors stay generic; only throttling and connection failures
    are considered transient.
    """
    if status in (401, 403):
        return ProviderAuthError(provider, exc)
    if status == 429:
        return ProviderRateLimitError(provider, exc, retry_after=retry_after)
    return GenericProviderError(provider, exc)
