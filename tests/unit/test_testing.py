"""Tests for backlog_gateway.testing: the shipped FakeProvider."""

from __future__ import annotations

import pytest

from backlog_gateway.config import GatewayConfig
from backlog_gateway.exceptions import ProviderRateLimitError
from backlog_gateway.providers.base import LLMProvider
from backlog_gateway.registry import _PROVIDERS, build_provider, register_provider
from backlog_gateway.testing import FakeProvider
from backlog_gateway.types import LLMRequest


@pytest.mark.unit
class TestFakeProvider:
    """Tests for FakeProvider."""

    async def test_default_content(self, sample_request: LLMRequest) -> None:
        resp = await FakeProvider().send_message(sample_request)
        assert resp.content == "{}"
        assert resp.provider == "fake"
        assert resp.model == "fake-model"

    async def test_queue_is_consumed_in_order(self, sample_request: LLMRequest) -> None:
        fake = FakeProvider(default_content="fallback")
        fake.queue_response("first")
        fake.queue_error(ProviderRateLimitError("fake", retry_after=1.0))
        fake.queue_response("second")

        assert (await fake.send_message(sample_request)).content == "first"
        with pytest.raises(ProviderRateLimitError):
            await fake.send_message(sample_request)
        assert (await fake.send_message(sample_request)).content == "second"
        assert (await fake.send_message(sample_request)).content == "fallback"
        assert fake.call_count == 4

    async def test_response_factory(self) -> None:
        fake = FakeProvider(response_factory=lambda req: req.user_prompt.upper())
        resp = await fake.send_message(LLMRequest("s", "shout"))
        assert resp.content == "SHOUT"

    async def test_usage_is_priced(self, sample_request: LLMRequest) -> None:
        fake = FakeProvider(input_tokens=1_000_000, output_tokens=500_000)
        resp = await fake.send_message(sample_request)
        assert resp.usage.input_cost_usd == pytest.approx(1.0)
        assert resp.usage.output_cost_usd == pytest.approx(1.0)

    async def test_local_kind_is_free(self, sample_request: LLMRequest) -> None:
        fake = FakeProvider(kind="local")
        resp = await fake.send_message(sample_request)
        assert resp.cost_usd == 0.0
        assert resp.usage.total_tokens == 150

    def test_local_kind_estimate_is_free(self) -> None:
        estimate = FakeProvider(kind="local").estimate_cost(LLMRequest("s" * 400, "u" * 400))
        assert estimate.cost_usd == 0.0
        assert estimate.breakdown.input_tokens > 0

    def test_online_estimate_uses_catalog_price(self) -> None:
        fake = FakeProvider()
        estimate = fake.estimate_cost(LLMRequest("s" * 400, "u" * 400, max_tokens=1000))
        assert estimate.cost_usd == pytest.approx(
            fake.calculate_cost("fake-model", estimate.breakdown.input_tokens, 1000)
        )
        assert estimate.cost_usd > 0.0

    async def test_availability_is_scripted(self) -> None:
        assert await FakeProvider().is_available() is True
        assert await FakeProvider(available=False).is_available() is False

    async def test_close(self) -> None:
        fake = FakeProvider()
        await fake.close()
        assert fake.closed

    def test_satisfies_protocol(self) -> None:
        assert isinstance(FakeProvider(), LLMProvider)

    def test_registry_integration(self, test_config: GatewayConfig) -> None:
        register_provider("fake", FakeProvider.from_config)
        try:
            provider = build_provider(test_config, "fake")
        finally:
            _PROVIDERS.pop("fake", None)
        assert isinstance(provider, FakeProvider)
