"""Core data types for backlog-gateway."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class LLMRequest:
    """A single text-generation request, independent of any backend.

    ``model``, ``max_tokens`` and ``temperature`` left as ``None`` mean
    "use the adapter's default".
    """

    system_prompt: str
    user_prompt: str
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts and associated costs for a single LLM call."""

    input_tokens: int = 0
    output_tokens: int = 0
    input_cost_usd: float = 0.0
    output_cost_usd: float = 0.0

    def __post_init__(self) -> None:
        if self.input_tokens < 0 or self.output_tokens < 0:
            msg = "Token counts must be non-negative"
            raise ValueError(msg)
        if self.input_cost_usd < 0 or self.output_cost_usd < 0:
            msg = "Costs must be non-negative"
            raise ValueError(msg)

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed."""
        return self.input_tokens + self.output_tokens

    @property
    def total_cost_usd(self) -> float:
        """Total cost in USD."""
        return self.input_cost_usd + self.output_cost_usd


@dataclass(frozen=True)
class LLMResponse:
    """Normalized response returned by every provider adapter.

    ``raw`` holds the backend's native response object for diagnostics only;
    nothing in the gateway reads it.
    """

    content: str
    usage: TokenUsage
    model: str
    provider: str
    latency_ms: float = 0.0
    raw: Any = None

    @property
    def cost_usd(self) -> float:
        """Cost of this call in USD."""
        return self.usage.total_cost_usd


@dataclass(frozen=True)
class ModelPricing:
    """USD price per one million tokens."""

    input: float
    output: float


@dataclass(frozen=True)
class ModelInfo:
    """Catalog entry describing a model an adapter can serve."""

    id: str
    name: str
    description: str = ""
    context_window: int = 0
    input_price_per_million: float = 0.0
    output_price_per_million: float = 0.0
    deprecated: bool = False


@dataclass(frozen=True)
class CostBreakdown:
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost_usd: float = 0.0
    output_cost_usd: float = 0.0
    input_cost: float = 0.0
    output_cost: float = 0.0


@dataclass(frozen=True)
class CostEstimate:
    """Pre-call cost estimate, in USD and in the requested currency.

    Token counts are approximated from prompt length and must not be
    treated as billing-accurate.
    """

    cost_usd: float
    cost: float
    currency: str
    exchange_rate: float
    breakdown: CostBreakdown = field(default_factory=CostBreakdown)
