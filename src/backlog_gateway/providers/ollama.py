"""Ollama provider for locally hosted models, over its OpenAI-compatible HTTP API."""

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
from backlog_gateway.providers.base import LocalBaseProvider, classify_status, parse_retry_after
from backlog_gateway.types import LLMRequest, LLMResponse, ModelInfo

if TYPE_CHECKING:
    from backlog_gateway.config import ProviderConfig

logger = logging.getLogger(__name__)

PROVIDER_NAME = "ollama"
DEFAULT_ENDPOINT = "http://localhost:11434"
PROBE_TIMEOUT_SECONDS = 5.0

# Transport failures that mean the daemon is not reachable.
_CONNECTION_ERROR_TYPES = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def classify_error(exc: BaseException, endpoint: str = DEFAULT_ENDPOINT) -> ProviderError:
    """Map an httpx exception from the Ollama API to the gateway taxonomy."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, _CONNECTION_ERROR_TYPES):
        return ProviderUnavailableError(
            PROVIDER_NAME,
            exc,
            message=f"Ollama is not running at {endpoint}. Start it with: ollama serve",
        )
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(
            PROVIDER_NAME,
            exc.response.status_code,
            exc,
            retry_after=parse_retry_after(exc.response.headers),
        )
    return GenericProviderError(PROVIDER_NAME, exc)


def _catalog_entry(model_id: str, name: str, description: str, context_window: int) -> ModelInfo:
    return ModelInfo(model_id, name, description, context_window, 0.0, 0.0)


class OllamaProvider(LocalBaseProvider):
    """LLM provider for a local Ollama daemon. No credential, zero cost."""

    name: ClassVar[str] = PROVIDER_NAME
    DEFAULT_MODEL: ClassVar[str] = "llama3.2:latest"

    MODELS: ClassVar[tuple[ModelInfo, ...]] = (
        _catalog_entry("llama3.2:latest", "Llama 3.2 Latest", "Latest Llama 3.2 model from Meta", 128_000),
        _catalog_entry("llama3.1:latest", "Llama 3.1 Latest", "Llama 3.1 model from Meta", 128_000),
        _catalog_entry("mistral:latest", "Mistral Latest", "Mistral 7B model", 32_000),
        _catalog_entry("mixtral:latest", "Mixtral Latest", "Mixtral 8x7B mixture of experts", 32_000),
        _catalog_entry("qwen2.5:latest", "Qwen 2.5 Latest", "Alibaba Qwen 2.5 model", 128_000),
        _catalog_entry("phi3:latest", "Phi-3 Latest", "Microsoft Phi-3 small model", 128_000),
        _catalog_entry("gemma2:latest", "Gemma 2 Latest", "Google Gemma 2 model", 8_192),
        _catalog_entry("deepseek-coder:latest", "DeepSeek Coder Latest", "Code-specialized model", 16_000),
        _catalog_entry("codellama:latest", "Code Llama Latest", "Meta Code Llama for coding tasks", 16_000),
    )

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        default_model: str | None = None,
        timeout_seconds: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(default_model=default_model, timeout_seconds=timeout_seconds)
        self._endpoint = endpoint.rstrip("/")
        self._http = http_client or httpx.AsyncClient(base_url=self._endpoint, timeout=self._timeout)

    @classmethod
    def from_config(cls, config: ProviderConfig) -> OllamaProvider:
        """Factory method for the provider registry."""
        return cls(
            endpoint=config.endpoint or DEFAULT_ENDPOINT,
            default_model=config.default_model,
            timeout_seconds=config.timeout_seconds,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, f"{self._endpoint}{path}", **kwargs)
            response.raise_for_status()
        except Exception as exc:
            raise classify_error(exc, self._endpoint) from exc
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise GenericProviderError(PROVIDER_NAME, exc, message="Malformed JSON from Ollama") from exc

    async def send_message(self, request: LLMRequest) -> LLMResponse:
        """Call the OpenAI-compatible chat completions endpoint."""
        model = self.resolve_model(request)
        start = time.monotonic()
        payload = await self._request_json(
            "POST",
            "/v1/chat/completions",
            json={
                "model": model,
                "messages": [
                    {"role": "system", "content": request.system_prompt},
                    {"role": "user", "content": request.user_prompt},
                ],
                "max_tokens": self.max_tokens_for(request),
                "temperature": self.temperature_for(request),
                "stream": False,
            },
        )
        latency_ms = (time.monotonic() - start) * 1000

        choices = payload.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        usage = payload.get("usage") or {}
        return LLMResponse(
            content=content or "",
            usage=self.build_usage(
                model,
                usage.get("prompt_tokens", 0) or 0,
                usage.get("completion_tokens", 0) or 0,
            ),
            model=model,
            provider=PROVIDER_NAME,
            latency_ms=latency_ms,
            raw=payload,
        )

    async def _probe(self) -> None:
        await self._request("GET", "/api/tags", timeout=PROBE_TIMEOUT_SECONDS)

    # ── Local-only operations ───────────────────────────────────

    async def list_installed_models(self) -> list[str]:
        """Names of the models currently pulled into the local daemon."""
        payload = await self._request_json("GET", "/api/tags")
        return [entry["name"] for entry in payload.get("models", [])]

    async def pull_model(self, model_name: str) -> None:
        """Download a model into the local daemon. Blocks until the pull completes."""
        logger.info("Pulling Ollama model %s", model_name)
        await self._request(
            "POST",
            "/api/pull",
            json={"name": model_name, "stream": False},
            timeout=None,
        )
        logger.info("Pulled Ollama model %s", model_name)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
