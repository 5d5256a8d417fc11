"""Integration tests that call real providers.

Run with: pytest -m integration
Requires actual API keys (or a running Ollama daemon) in the environment.
"""

from __future__ import annotations

import os

import pytest
from pydantic import BaseModel

from backlog_gateway import GatewayConfig, LLMClient, LLMRequest
from backlog_gateway.exceptions import ProviderUnavailableError
from backlog_gateway.providers.ollama import OllamaProvider

_REQUEST = LLMRequest(
    system_prompt='Reply with JSON only, shaped like {"greeting": "..."}.',
    user_prompt="Say hello in one word.",
    max_tokens=50,
    temperature=0.0,
)


class _SimpleAnswer(BaseModel):
    greeting: str


@pytest.mark.integration
@pytest.mark.parametrize(
    ("provider_name", "env_var"),
    [
        ("anthropic", "ANTHROPIC_API_KEY"),
        ("openai", "OPENAI_API_KEY"),
        ("gemini", "GOOGLE_API_KEY"),
        ("azure-openai", "AZURE_OPENAI_API_KEY"),
    ],
)
async def test_online_round_trip(provider_name: str, env_var: str) -> None:
    """Real API call with structured output and cost tracking."""
    if not os.environ.get(env_var):
        pytest.skip(f"{env_var} not set")

    config = GatewayConfig(cost_limit_usd=1.0)
    async with LLMClient(config=config, provider_name=provider_name) as client:
        answer = await client.send_structured(_REQUEST, response_model=_SimpleAnswer)
        assert answer.greeting
        assert client.call_count == 1
        assert client.total_cost_usd > 0


@pytest.mark.integration
async def test_ollama_round_trip() -> None:
    """Real call to a local Ollama daemon, which is free."""
    provider = OllamaProvider(endpoint=os.environ.get("OLLAMA_ENDPOINT", "http://localhost:11434"))
    if not await provider.is_available():
        await provider.close()
        pytest.skip("Ollama is not running")

    try:
        installed = await provider.list_installed_models()
    except ProviderUnavailableError:
        await provider.close()
        pytest.skip("Ollama is not running")
    if not installed:
        await provider.close()
        pytest.skip("No Ollama models installed")

    async with LLMClient(provider_instance=provider) as client:
        resp = await client.send(
            LLMRequest(_REQUEST.system_prompt, _REQUEST.user_prompt, model=installed[0])
        )
        assert resp.provider == "ollama"
        assert resp.cost_usd == 0.0
