"""Shared test fixtures for backlog-gateway."""

from __future__ import annotations

import pytest

from backlog_gateway.config import GatewayConfig
from backlog_gateway.testing import FakeProvider
from backlog_gateway.types import LLMRequest

_VENDOR_ENV_VARS = (
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT",
    "GOOGLE_API_KEY",
    "OLLAMA_ENDPOINT",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove vendor credentials so config tests start from a known state."""
    for var in _VENDOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("LLM_DEFAULT_PROVIDER", raising=False)
    monkeypatch.delenv("LLM_CURRENCY", raising=False)
    return monkeypatch


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Return a fresh FakeProvider."""
    return FakeProvider()


@pytest.fixture
def sample_request() -> LLMRequest:
    return LLMRequest(
        system_prompt="You refine backlog items.",
        user_prompt="Meeting notes: users want CSV export.",
    )


@pytest.fixture
def test_config(clean_env: pytest.MonkeyPatch) -> GatewayConfig:
    """Return a GatewayConfig with test defaults (no real API key needed)."""
    clean_env.setenv("LLM_DEFAULT_PROVIDER", "anthropic")
    clean_env.setenv("LLM_ANTHROPIC__API_KEY", "test-key-fake")
    clean_env.setenv("LLM_TRACE_ENABLED", "false")
    return GatewayConfig(_env_file=None)
