"""Demonstrates provider switching and caller-side fallback.

Select the provider with env vars; the code is identical for each:

  LLM_DEFAULT_PROVIDER=anthropic      ANTHROPIC_API_KEY=sk-ant-...
  LLM_DEFAULT_PROVIDER=openai         OPENAI_API_KEY=sk-...
  LLM_DEFAULT_PROVIDER=azure-openai   AZURE_OPENAI_API_KEY=... AZURE_OPENAI_ENDPOINT=...
  LLM_DEFAULT_PROVIDER=gemini         GOOGLE_API_KEY=...
  LLM_DEFAULT_PROVIDER=ollama         (no key; run `ollama serve`)
"""

import asyncio

from backlog_gateway import GatewayConfig, LLMClient, LLMRequest, build_enabled_providers
from backlog_gateway.exceptions import ProviderError

REQUEST = LLMRequest(system_prompt="Answer in one word.", user_prompt="Say hello!")


async def main() -> None:
    config = GatewayConfig()
    providers = build_enabled_providers(config)

    for name, provider in providers.items():
        available = await provider.is_available()
        estimate = provider.estimate_cost(REQUEST)
        print(f"{name:13} available={available} estimate={estimate.cost:.6f} {estimate.currency}")

    # Try the default provider first, then fall back to the others in order.
    order = [config.default_provider] + [n for n in providers if n != config.default_provider]
    for name in order:
        provider = providers.get(name)
        if provider is None:
            continue
        client = LLMClient(config=config, provider_instance=provider)
        try:
            resp = await client.send(REQUEST)
        except ProviderError as exc:
            print(f"{name} failed: {exc}")
            continue
        print(f"{resp.provider}/{resp.model}: {resp.content}")
        break

    for provider in providers.values():
        await provider.close()


if __name__ == "__main__":
    asyncio.run(main())
