"""Tests for GatewayConfig and ProviderConfig."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from backlog_gateway.config import GatewayConfig, ProviderConfig


@pytest.mark.unit
class TestProviderConfig:
    def test_defaults(self) -> None:
        config = ProviderConfig()
        assert config.enabled
        assert config.timeout_seconds == 60.0
        assert config.max_retries == 2
        assert config.retry_base_delay_seconds == 1.0

    def test_get_api_key_raises_when_missing(self) -> None:
        with pytest.raises(ValueError, match="LLM_AZURE_OPENAI__API_KEY"):
            ProviderConfig().get_api_key("azure-openai")

    def test_api_key_is_secret(self) -> None:
        config = ProviderConfig(api_key="sk-secret")
        assert "sk-secret" not in repr(config)
        assert config.get_api_key() == "sk-secret"

    def test_extra_options(self) -> None:
        config = ProviderConfig(deployment="prod", organization="org-1")
        assert config.option("deployment") == "prod"
        assert config.option("api_version", "v1") == "v1"

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ProviderConfig(timeout_seconds=0)


@pytest.mark.unit
class TestGatewayConfig:
    def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        """Default config loads without errors."""
        config = GatewayConfig(_env_file=None)
        assert config.default_provider == "anthropic"
        assert config.currency == "EUR"
        assert config.anthropic.api_key is None
        assert config.cost_limit_usd is None
        assert config.ledger_path == "costs/cost-history.csv"

    def test_env_override(self, clean_env: pytest.MonkeyPatch) -> None:
        """LLM_ prefixed env vars override defaults."""
        clean_env.setenv("LLM_DEFAULT_PROVIDER", "ollama")
        clean_env.setenv("LLM_CURRENCY", "gbp")
        clean_env.setenv("LLM_OPENAI__DEFAULT_MODEL", "gpt-4o")
        clean_env.setenv("LLM_OPENAI__MAX_RETRIES", "5")
        config = GatewayConfig(_env_file=None)
        assert config.default_provider == "ollama"
        assert config.currency == "GBP"
        assert config.openai.default_model == "gpt-4o"
        assert config.openai.max_retries == 5

    def test_unsupported_currency_rejected(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LLM_CURRENCY", "JPY")
        with pytest.raises(ValidationError):
            GatewayConfig(_env_file=None)

    @pytest.mark.parametrize(
        ("env_var", "section"),
        [
            ("ANTHROPIC_API_KEY", "anthropic"),
            ("OPENAI_API_KEY", "openai"),
            ("AZURE_OPENAI_API_KEY", "azure_openai"),
            ("GOOGLE_API_KEY", "gemini"),
        ],
    )
    def test_vendor_key_fallback(
        self, clean_env: pytest.MonkeyPatch, env_var: str, section: str
    ) -> None:
        clean_env.setenv(env_var, "vendor-key")
        config = GatewayConfig(_env_file=None)
        assert config.provider_config(section).get_api_key() == "vendor-key"

    def test_prefixed_key_wins_over_vendor_key(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ANTHROPIC_API_KEY", "vendor-key")
        clean_env.setenv("LLM_ANTHROPIC__API_KEY", "prefixed-key")
        config = GatewayConfig(_env_file=None)
        assert config.anthropic.get_api_key() == "prefixed-key"

    def test_azure_env(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
        clean_env.setenv("AZURE_OPENAI_DEPLOYMENT", "prod-gpt4o")
        config = GatewayConfig(_env_file=None)
        assert config.azure_openai.endpoint == "https://example.openai.azure.com"
        assert config.azure_openai.option("deployment") == "prod-gpt4o"

    def test_azure_deployment_default(self, clean_env: pytest.MonkeyPatch) -> None:
        config = GatewayConfig(_env_file=None)
        assert config.azure_openai.option("deployment") == "gpt-4o"

    def test_ollama_endpoint(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("OLLAMA_ENDPOINT", "http://gpu-box:11434")
        config = GatewayConfig(_env_file=None)
        assert config.ollama.endpoint == "http://gpu-box:11434"

    def test_provider_config_accepts_dashed_names(self, clean_env: pytest.MonkeyPatch) -> None:
        config = GatewayConfig(_env_file=None)
        assert config.provider_config("azure-openai") is config.azure_openai

    def test_provider_config_unknown(self, clean_env: pytest.MonkeyPatch) -> None:
        config = GatewayConfig(_env_file=None)
        with pytest.raises(KeyError):
            config.provider_config("currency")

    def test_cost_guardrails(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("LLM_COST_LIMIT_USD", "10.0")
        clean_env.setenv("LLM_COST_WARN_USD", "5.0")
        config = GatewayConfig(_env_file=None)
        assert config.cost_limit_usd == 10.0
        assert config.cost_warn_usd == 5.0
