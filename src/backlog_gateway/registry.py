"""Provider registry: maps provider names to factory functions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from backlog_gateway.config import ProviderConfig
from backlog_gateway.exceptions import ProviderInitError, ProviderNotFoundError

if TYPE_CHECKING:
    from backlog_gateway.config import GatewayConfig
    from backlog_gateway.providers.base import LLMProvider

logger = logging.getLogger(__name__)

# Global registry: name → factory(provider config) → provider instance
_PROVIDERS: dict[str, Callable[["ProviderConfig"], "LLMProvider"]] = {}

# Providers that work without a credential.
_KEYLESS_PROVIDERS = frozenset({"ollama"})


def register_provider(
    name: str,
    factory: Callable[["ProviderConfig"], "LLMProvider"],
) -> None:
    """Register a provider factory.

    Args:
        name: Provider name (e.g. "anthropic", "azure-openai", "ollama").
        factory: Callable that takes a ProviderConfig and returns an LLMProvider.
    """
    _PROVIDERS[name] = factory
    logger.debug("Registered LLM provider: %s", name)


def build_provider(config: "GatewayConfig", name: str | None = None) -> "LLMProvider":
    """Build a provider instance from configuration.

    Triggers lazy registration of built-in providers on first call.

    Args:
        config: Gateway configuration.
        name: Provider to build; defaults to ``config.default_provider``.

    Returns:
        An initialized LLMProvider instance.

    Raises:
        ProviderNotFoundError: If the provider name is not registered.
        ProviderInitError: If the provider factory raises an error.
    """
    _ensure_builtins_registered()

    provider_name = name or config.default_provider
    factory = _PROVIDERS.get(provider_name)
    if factory is None:
        raise ProviderNotFoundError(provider_name)

    try:
        section = config.provider_config(provider_name)
    except KeyError:
        section = ProviderConfig()

    try:
        return factory(section)
    except Exception as exc:
        raise ProviderInitError(provider_name, str(exc)) from exc


def build_enabled_providers(config: "GatewayConfig") -> dict[str, "LLMProvider"]:
    """Build every enabled built-in provider that has the credentials it needs.

    Providers that fail to initialize are logged and skipped.
    """
    providers: dict[str, LLMProvider] = {}
    for name in list_providers():
        try:
            section = config.provider_config(name)
        except KeyError:
            continue
        if not section.enabled:
            continue
        if name not in _KEYLESS_PROVIDERS and section.api_key is None:
            logger.debug("Skipping provider %s: no API key configured", name)
            continue
        try:
            providers[name] = build_provider(config, name)
        except ProviderInitError as exc:
            logger.warning("Skipping provider %s: %s", name, exc)
    return providers


def list_providers() -> list[str]:
    """Return names of all registered providers."""
    _ensure_builtins_registered()
    return list(_PROVIDERS.keys())


# ── Lazy Registration ───────────────────────────────────────────

_builtins_registered = False


def _ensure_builtins_registered() -> None:
    """Lazily register built-in providers on first use.

    This avoids importing heavy SDKs at module load time. Import errors are
    caught; providers for uninstalled SDKs are simply not registered.
    """
    global _builtins_registered  # noqa: PLW0603
    if _builtins_registered:
        return
    _builtins_registered = True

    try:
        from backlog_gateway.providers.anthropic import AnthropicProvider

        register_provider("anthropic", AnthropicProvider.from_config)
    except ImportError:
        logger.debug("anthropic SDK not installed, provider not available")

    try:
        from backlog_gateway.providers.openai import AzureOpenAIProvider, OpenAIProvider

        register_provider("openai", OpenAIProvider.from_config)
        register_provider("azure-openai", AzureOpenAIProvider.from_config)
    except ImportError:
        logger.debug("openai SDK not installed, providers not available")

    try:
        from backlog_gateway.providers.gemini import GeminiProvider

        register_provider("gemini", GeminiProvider.from_config)
    except ImportError:
        logger.debug("google-generativeai not installed, provider not available")

    from backlog_gateway.providers.ollama import OllamaProvider

    register_provider("ollama", OllamaProvider.from_config)
