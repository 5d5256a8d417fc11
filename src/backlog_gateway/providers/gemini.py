"""Google Gemini provider, wrapping google-generativeai."""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from backlog_gateway.exceptions import (
    GenericProviderError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from backlog_gateway.providers.base import BaseProvider, classify_status
from backlog_gateway.types import LLMRequest, LLMResponse, ModelInfo, ModelPricing

try:
    import google.generativeai as genai
    from google.api_core import exceptions as google_exceptions

    HAS_GEMINI = True
except ImportError:
    HAS_GEMINI = False

if not HAS_GEMINI:
    msg = (
        "Gemini provider requires the 'google-generativeai' package. "
        "Install with: pip install google-generativeai"
    )
    raise ImportError(msg)

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig

logger = logging.getLogger(__name__)

PROVIDER_NAME = "gemini"

_AUTH_STATUS_RE = re.compile(r"\b401\b")
_RATE_LIMIT_STATUS_RE = re.compile(r"\b429\b")


def classify_error(exc: BaseException) -> ProviderError:
    """Map a google-api-core or transport exception to the gateway taxonomy.

    Gemini reports an invalid key as HTTP 400, so the message is checked
    when the status code alone is not conclusive. A 503 is a server-side
    status like any other 5xx and is not retried; only the client-side
    deadline counts as unavailable.
    """
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(
        exc,
        (
            google_exceptions.DeadlineExceeded,
            httpx.TransportError,
            ConnectionError,
            TimeoutError,
        ),
    ):
        return ProviderUnavailableError(PROVIDER_NAME, exc)

    status = getattr(exc, "code", None) if isinstance(exc, google_exceptions.GoogleAPICallError) else None
    if status is not None and int(status) in (401, 403, 429):
        return classify_status(PROVIDER_NAME, int(status), exc)

    message = str(exc)
    if "API key" in message or _AUTH_STATUS_RE.search(message):
        return ProviderAuthError(PROVIDER_NAME, exc)
    if _RATE_LIMIT_STATUS_RE.search(message) or "quota" in message.lower():
        return ProviderRateLimitError(PROVIDER_NAME, exc)
    return GenericProviderError(PROVIDER_NAME, exc)


class GeminiProvider(BaseProvider):
    """LLM provider backed by the Gemini API.

    Gemini takes a single prompt here, so the system prompt is prepended
    to the user prompt.
    """

    name: ClassVar[str] = PROVIDER_NAME
    DEFAULT_MODEL: ClassVar[str] = "gemini-1.5-flash"

    # ── Pricing (USD per 1 million tokens) ──────────────────────
    PRICING: ClassVar[dict[str, ModelPricing]] = {
        "gemini-1.5-pro": ModelPricing(input=3.50, output=10.50),
        "gemini-1.5-flash": ModelPricing(input=0.075, output=0.30),
        "gemini-1.0-pro": ModelPricing(input=0.50, output=1.50),
    }

    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        ModelInfo("gemini-1.5-pro", "Gemini 1.5 Pro",
                  "Most capable model with 1M token context window", 1_000_000, 3.50, 10.50),
        ModelInfo("gemini-1.5-flash", "Gemini 1.5 Flash",
                  "Fast and efficient model with large context", 1_000_000, 0.075, 0.30),
        ModelInfo("gemini-1.0-pro", "Gemini 1.0 Pro",
                  "Legacy Gemini model", 32_000, 0.50, 1.50, deprecated=True),
    )

    def __init__(
        self,
        api_key: str,
        default_model: str | None = None,
        timeout_seconds: float = 60.0,
    ) -> None:
        super().__init__(default_model=default_model, timeout_seconds=timeout_seconds)
        # genai keeps the key in module state.
        genai.configure(api_key=api_key)
        self._models: dict[str, Any] = {}

    @classmethod
    def from_config(cls, config: ProviderConfig) -> GeminiProvider:
        """Factory method for the provider registry."""
        return cls(
            api_key=config.get_api_key(PROVIDER_NAME),
            default_model=config.default_model,
            timeout_seconds=config.timeout_seconds,
        )

    def _get_model(self, model_name: str) -> Any:
        """Lazily build and cache one GenerativeModel per model name."""
        model = self._models.get(model_name)
        if model is None:
            model = genai.GenerativeModel(model_name)
            self._models[model_name] = model
        return model

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        model_name = self.resolve_model(request)
        prompt = f"{request.system_prompt}\n\n{request.user_prompt}"
        start = time.monotonic()
        try:
            result = await self._get_model(model_name).generate_content_async(
                prompt,
                generation_config=genai.GenerationConfig(
                    max_output_tokens=self.max_tokens_for(request),
                    temperature=self.temperature_for(request),
                ),
                request_options={"timeout": self._timeout},
            )
        except Exception as exc:
            raise classify_error(exc) from exc

        latency_ms = (time.monotonic() - start) * 1000
        input_tokens, output_tokens = self._extract_usage(result)
        return LLMResponse(
            content=self._extract_text(result),
            usage=self.build_usage(model_name, input_tokens, output_tokens),
            model=model_name,
            provider=PROVIDER_NAME,
            latency_ms=latency_ms,
            raw=result,
        )

    @staticmethod
    def _extract_text(result: Any) -> str:
        candidates = getattr(result, "candidates", None) or []
        if not candidates:
            return ""
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        return "".join(
            part.text for part in parts if isinstance(getattr(part, "text", None), str)
        )

    @staticmethod
    def _extract_usage(result: Any) -> tuple[int, int]:
        usage = getattr(result, "usage_metadata", None)
        if usage is None:
            return 0, 0
        input_tokens = getattr(usage, "prompt_token_count", 0) or 0
        output_tokens = getattr(usage, "candidates_token_count", 0) or 0
        return input_tokens, output_tokens

    async def _probe(self) -> None:
        try:
            await self._get_model(self._default_model).generate_content_async(
                "ping",
                generation_config=genai.GenerationConfig(max_output_tokens=1),
                request_options={"timeout": self._timeout},
            )
        except Exception as exc:
            raise classify_error(exc) from exc
