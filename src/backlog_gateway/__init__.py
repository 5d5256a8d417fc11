"""backlog-gateway: provider-agnostic LLM access for the backlog refinement pipeline.

Usage:
    from backlog_gateway import LLMClient, LLMRequest

    llm = LLMClient()  # reads LLM_* env vars
    resp = await llm.send(LLMRequest(system_prompt, user_prompt), operation="refine")
"""

from __future__ import annotations

from backlog_gateway.client import LLMClient
from backlog_gateway.config import GatewayConfig, ProviderConfig
from backlog_gateway.cost import CostTracker, LedgerRow, UsageRecord, cost_for_tokens
from backlog_gateway.currency import (
    EXCHANGE_RATES,
    convert_from_usd,
    format_currency,
    get_exchange_rate,
    supported_currencies,
)
from backlog_gateway.exceptions import (
    CostLimitExceededError,
    GatewayError,
    GenericProviderError,
    ProviderAuthError,
    ProviderError,
    ProviderInitError,
    ProviderNotFoundError,
    ProviderRateLimitError,
    ProviderUnavailableError,
    ResponseValidationError,
    StructuredOutputError,
    UnsupportedCurrencyError,
)
from backlog_gateway.extraction import extract_model, extract_structured, extract_with_strategy
from backlog_gateway.ledger import append_ledger
from backlog_gateway.providers.base import BaseProvider, LLMProvider, LocalBaseProvider
from backlog_gateway.registry import (
    build_enabled_providers,
    build_provider,
    list_providers,
    register_provider,
)
from backlog_gateway.retry import RetryController
from backlog_gateway.types import (
    CostBreakdown,
    CostEstimate,
    LLMRequest,
    LLMResponse,
    ModelInfo,
    ModelPricing,
    TokenUsage,
)

__all__ = [
    # Core
    "LLMClient",
    "GatewayConfig",
    "ProviderConfig",
    # Types
    "LLMRequest",
    "LLMResponse",
    "TokenUsage",
    "ModelInfo",
    "ModelPricing",
    "CostEstimate",
    "CostBreakdown",
    # Provider
    "LLMProvider",
    "BaseProvider",
    "LocalBaseProvider",
    "register_provider",
    "build_provider",
    "build_enabled_providers",
    "list_providers",
    # Resilience
    "RetryController",
    "extract_structured",
    "extract_with_strategy",
    "extract_model",
    # Cost
    "CostTracker",
    "UsageRecord",
    "LedgerRow",
    "append_ledger",
    "cost_for_tokens",
    "EXCHANGE_RATES",
    "convert_from_usd",
    "format_currency",
    "get_exchange_rate",
    "supported_currencies",
    # Exceptions
    "GatewayError",
    "ProviderNotFoundError",
    "ProviderInitError",
    "ProviderError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderUnavailableError",
    "GenericProviderError",
    "UnsupportedCurrencyError",
    "CostLimitExceededError",
    "ResponseValidationError",
    "StructuredOutputError",
]
