"""Retry with exponential backoff for transient provider failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from backlog_gateway.exceptions import ProviderError, ProviderRateLimitError

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig
    from backlog_gateway.providers.base import LLMProvider
    from backlog_gateway.types import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Only rate limits and connection-level failures are worth retrying."""
    return isinstance(exc, ProviderError) and exc.retryable


class RetryController:
    """Wraps a single provider call with bounded exponential backoff.

    The delay before attempt ``n + 1`` is ``base_delay_seconds * 2 ** (n - 1)``.
    Authentication and generic failures propagate on the first attempt.
    Whatever error ends the call has its ``attempts`` attribute set.

    Args:
        max_retries: Retries after the first attempt.
        base_delay_seconds: Delay before the first retry.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        max_retries: int = 2,
        base_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            msg = f"max_retries must be >= 0, got {max_retries}"
            raise ValueError(msg)
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: ProviderConfig) -> RetryController:
        return cls(
            max_retries=config.max_retries,
            base_delay_seconds=config.retry_base_delay_seconds,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` until it succeeds, fails permanently, or attempts run out."""
        attempts = 0

        async def _attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await operation()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay_seconds, min=0),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            return await retrying(_attempt)
        except ProviderError as exc:
            exc.attempts = attempts
            if exc.retryable and attempts > 1:
                logger.error(
                    "%s failed after %d attempts: %s", exc.provider, attempts, exc
                )
            raise

    async def send(self, provider: LLMProvider, request: LLMRequest) -> LLMResponse:
        """Send ``request`` through ``provider`` with retries."""
        return await self.call(lambda: provider.send_message(request))

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        hint = ""
        if isinstance(exc, ProviderRateLimitError) and exc.retry_after is not None:
            hint = f" (server suggested {exc.retry_after:.1f}s)"
        logger.warning(
            "Attempt %d failed with %s, retrying in %.1fs%s",
            retry_state.attempt_number,
            type(exc).__name__,
            delay,
            hint,
        )
