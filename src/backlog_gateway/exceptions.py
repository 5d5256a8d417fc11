"""Exception hierarchy for backlog-gateway."""

from __future__ import annotations

from typing import ClassVar


class GatewayError(Exception):
    """Base exception for all backlog-gateway errors."""


class ProviderNotFoundError(GatewayError):
    """Raised when the requested provider is not registered."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            f"Provider '{provider}' is not registered. "
            f"Check LLM_DEFAULT_PROVIDER and installed SDKs."
        )


class ProviderInitError(GatewayError):
    """Raised when a provider fails to initialize."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        super().__init__(f"Failed to initialize provider '{provider}': {reason}")


class ProviderError(GatewayError):
    """Raised when a provider call fails.

    Adapters never raise this class directly; they raise one of the
    subclasses below so callers and the retry controller can branch on the
    failure class. ``attempts`` is filled in by the retry controller.
    """

    retryable: ClassVar[bool] = False

    def __init__(
        self,
        provider: str,
        original: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.provider = provider
        self.original = original
        self.attempts: int | None = None
        detail = message or (str(original) if original is not None else "unknown error")
        super().__init__(f"Provider '{provider}' error: {detail}")


class ProviderAuthError(ProviderError):
    """The backend rejected the credential (HTTP 401/403)."""


class ProviderRateLimitError(ProviderError):
    """The backend throttled the request (HTTP 429)."""

    retryable = True

    def __init__(
        self,
        provider: str,
        original: BaseException | None = None,
        message: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(provider, original, message)
        self.retry_after = retry_after


class ProviderUnavailableError(ProviderError):
    """Connection-level failure: refused, DNS, or timeout."""

    retryable = True


class GenericProviderError(ProviderError):
    """Any provider failure that is not classified more precisely."""


class UnsupportedCurrencyError(GatewayError, ValueError):
    """Raised when converting to a currency with no known exchange rate."""

    def __init__(self, currency: str, supported: list[str]) -> None:
        self.currency = currency
        super().__init__(
            f"Unsupported currency '{currency}'. Supported: {', '.join(supported)}"
        )


class CostLimitExceededError(GatewayError):
    """Raised when cumulative cost exceeds the configured limit."""

    def __init__(self, current: float, limit: float) -> None:
        self.current = current
        self.limit = limit
        super().__init__(
            f"Cost limit exceeded: ${current:.4f} >= ${limit:.4f}. "
            f"Increase LLM_COST_LIMIT_USD or start a new CostTracker."
        )


class ResponseValidationError(GatewayError):
    """Raised when extracted output cannot be validated against the model."""

    def __init__(self, model_name: str, reason: str) -> None:
        self.model_name = model_name
        super().__init__(
            f"Failed to validate response as {model_name}: {reason}"
        )


class StructuredOutputError(GatewayError):
    """Raised when no extraction strategy recovers a JSON value from text."""

    def __init__(self, text: str, strategies: list[str], preview_chars: int = 200) -> None:
        self.preview = text[:preview_chars]
        self.strategies = strategies
        super().__init__(
            f"Failed to parse structured output after {len(strategies)} strategies. "
            f"Content preview: {self.preview!r}"
        )
