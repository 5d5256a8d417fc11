"""Tests for GeminiProvider."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.api_core import exceptions as google_exceptions

from backlog_gateway.config import ProviderConfig
from backlog_gateway.exceptions import (
    GenericProviderError,
    ProviderAuthError,
    ProviderRateLimitError,
    ProviderUnavailableError,
)
from backlog_gateway.providers.gemini import GeminiProvider, classify_error
from backlog_gateway.types import LLMRequest


def _result(texts: list[str], prompt_tokens: int = 2000, output_tokens: int = 1000):
    parts = [SimpleNamespace(text=t) for t in texts]
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens, candidates_token_count=output_tokens
        ),
    )


@pytest.mark.unit
class TestClassifyError:
    def test_invalid_key_message_is_auth(self) -> None:
        exc = google_exceptions.InvalidArgument("API key not valid. Please pass a valid API key.")
        assert isinstance(classify_error(exc), ProviderAuthError)

    def test_permission_denied_is_auth(self) -> None:
        assert isinstance(
            classify_error(google_exceptions.PermissionDenied("nope")), ProviderAuthError
        )

    def test_too_many_requests_is_rate_limit(self) -> None:
        assert isinstance(
            classify_error(google_exceptions.TooManyRequests("slow down")), ProviderRateLimitError
        )

    def test_quota_message_is_rate_limit(self) -> None:
        assert isinstance(
            classify_error(RuntimeError("Quota exceeded for project")), ProviderRateLimitError
        )

    @pytest.mark.parametrize(
        "exc",
        [
            google_exceptions.DeadlineExceeded("slow"),
            httpx.ConnectError("refused"),
            httpx.ReadError("connection reset by peer"),
            ConnectionError("reset"),
        ],
    )
    def test_transport_failures_are_unavailable(self, exc: Exception) -> None:
        assert isinstance(classify_error(exc), ProviderUnavailableError)

    def test_service_unavailable_is_generic(self) -> None:
        err = classify_error(google_exceptions.ServiceUnavailable("backend overloaded"))
        assert isinstance(err, GenericProviderError)
        assert not err.retryable

    def test_status_digits_inside_numbers_are_ignored(self) -> None:
        err = classify_error(RuntimeError("prompt has 4010 tokens, limit 14290"))
        assert isinstance(err, GenericProviderError)

    def test_bare_status_in_message(self) -> None:
        assert isinstance(classify_error(RuntimeError("HTTP 401 Unauthorized")), ProviderAuthError)
        assert isinstance(
            classify_error(RuntimeError("got 429 from upstream")), ProviderRateLimitError
        )

    def test_other_errors_are_generic(self) -> None:
        err = classify_error(google_exceptions.InvalidArgument("bad temperature"))
        assert isinstance(err, GenericProviderError)
        assert err.provider == "gemini"


@pytest.mark.unit
class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_send_message_joins_prompts(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            generate = AsyncMock(return_value=_result(["Hello", " world"]))
            mock_genai.GenerativeModel.return_value.generate_content_async = generate
            provider = GeminiProvider(api_key="g-key", timeout_seconds=15)

            resp = await provider.send_message(
                LLMRequest("You are terse.", "Summarize.", max_tokens=256)
            )

        mock_genai.configure.assert_called_once_with(api_key="g-key")
        mock_genai.GenerativeModel.assert_called_once_with("gemini-1.5-flash")
        assert generate.call_args.args[0] == "You are terse.\n\nSummarize."
        assert generate.call_args.kwargs["request_options"] == {"timeout": 15.0}
        mock_genai.GenerationConfig.assert_called_once_with(
            max_output_tokens=256, temperature=0.7
        )

        assert resp.content == "Hello world"
        assert resp.provider == "gemini"
        assert resp.model == "gemini-1.5-flash"
        assert resp.cost_usd == pytest.approx(2000 / 1e6 * 0.075 + 1000 / 1e6 * 0.30)

    @pytest.mark.asyncio
    async def test_models_are_cached_per_name(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                return_value=_result(["x"])
            )
            provider = GeminiProvider(api_key="k")
            await provider.send_message(LLMRequest("s", "u"))
            await provider.send_message(LLMRequest("s", "u"))
            await provider.send_message(LLMRequest("s", "u", model="gemini-1.5-pro"))

        assert mock_genai.GenerativeModel.call_count == 2

    @pytest.mark.asyncio
    async def test_empty_candidates(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                return_value=SimpleNamespace(candidates=[], usage_metadata=None)
            )
            resp = await GeminiProvider(api_key="k").send_message(LLMRequest("s", "u"))

        assert resp.content == ""
        assert resp.usage.total_tokens == 0

    @pytest.mark.asyncio
    async def test_error_is_classified(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                side_effect=google_exceptions.TooManyRequests("quota")
            )
            with pytest.raises(ProviderRateLimitError):
                await GeminiProvider(api_key="k").send_message(LLMRequest("s", "u"))

    @pytest.mark.asyncio
    async def test_is_available(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            model = MagicMock()
            model.generate_content_async = AsyncMock(return_value=_result(["p"]))
            mock_genai.GenerativeModel.return_value = model
            assert await GeminiProvider(api_key="k").is_available() is True

    @pytest.mark.asyncio
    async def test_unavailable_when_service_down(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                side_effect=google_exceptions.ServiceUnavailable("down")
            )
            assert await GeminiProvider(api_key="k").is_available() is False

    def test_from_config(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai") as mock_genai:
            provider = GeminiProvider.from_config(
                ProviderConfig(api_key="g", default_model="gemini-1.5-pro")
            )
        mock_genai.configure.assert_called_once_with(api_key="g")
        assert provider.default_model == "gemini-1.5-pro"

    def test_catalog(self) -> None:
        with patch("backlog_gateway.providers.gemini.genai"):
            models = {m.id: m for m in GeminiProvider(api_key="k").supported_models()}
        assert models["gemini-1.0-pro"].deprecated
        assert models["gemini-1.5-pro"].context_window == 1_000_000
