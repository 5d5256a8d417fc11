"""Gateway configuration via environment variables."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

from backlog_gateway.currency import get_exchange_rate


class ProviderConfig(BaseModel):
    """Settings for one provider adapter.

    Adapter-specific options (Azure ``deployment`` and ``api_version``,
    OpenAI ``organization``) are accepted as extra fields and read with
    :meth:`option`.
    """

    model_config = ConfigDict(extra="allow")

    enabled: bool = True
    api_key: SecretStr | None = None
    endpoint: str | None = None
    default_model: str | None = None
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)

    def get_api_key(self, provider: str = "provider") -> str:
        """Return the API key as a plain string.

        Raises:
            ValueError: If no API key is configured.
        """
        if self.api_key is None:
            msg = (
                f"No API key configured for provider '{provider}'. "
                f"Set LLM_{provider.upper().replace('-', '_')}__API_KEY "
                f"or the provider-specific env var."
            )
            raise ValueError(msg)
        return self.api_key.get_secret_value()

    def option(self, name: str, default: Any = None) -> Any:
        """Read an adapter-specific extra field."""
        extra = self.model_extra or {}
        value = extra.get(name)
        return default if value is None else value


class GatewayConfig(BaseSettings):
    """backlog-gateway configuration.

    All fields are read from environment variables with the ``LLM_`` prefix;
    provider sections use ``__`` as the nested delimiter.
    Example: ``LLM_OPENAI__DEFAULT_MODEL=gpt-4o`` sets
    ``openai.default_model="gpt-4o"``.
    """

    model_config = {
        "env_prefix": "LLM_",
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    # ── Provider selection ──────────────────────────────────────
    default_provider: str = Field(
        default="anthropic",
        description="Provider name: 'anthropic', 'openai', 'azure-openai', 'gemini', 'ollama'.",
    )
    currency: str = Field(default="EUR", description="Currency for cost estimates.")

    # ── Providers ───────────────────────────────────────────────
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    azure_openai: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)
    ollama: ProviderConfig = Field(default_factory=ProviderConfig)

    # ── Cost guardrails ─────────────────────────────────────────
    cost_limit_usd: float | None = Field(
        default=None,
        description="Max cumulative cost (USD) per CostTracker. None = no limit.",
    )
    cost_warn_usd: float | None = Field(
        default=None,
        description="Emit warning when cumulative cost exceeds this (USD).",
    )
    ledger_path: str = Field(default="costs/cost-history.csv")

    # ── Observability ───────────────────────────────────────────
    trace_enabled: bool = Field(default=False)
    trace_exporter: str = Field(
        default="none",
        description="Trace exporter: 'none', 'console', 'otlp'.",
    )
    trace_endpoint: str = Field(default="http://localhost:4317")
    trace_service_name: str = Field(default="backlog-gateway")

    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' or 'console'.",
    )

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value: str) -> str:
        code = value.upper()
        get_exchange_rate(code)
        return code

    @model_validator(mode="after")
    def _resolve_provider_env(self) -> GatewayConfig:
        """Fall back to the vendors' conventional env vars for unset fields."""
        key_fallbacks: dict[str, str] = {
            "anthropic": "ANTHROPIC_API_KEY",
            "openai": "OPENAI_API_KEY",
            "azure_openai": "AZURE_OPENAI_API_KEY",
            "gemini": "GOOGLE_API_KEY",
        }
        for section, env_var in key_fallbacks.items():
            provider = getattr(self, section)
            value = os.environ.get(env_var)
            if provider.api_key is None and value:
                provider.api_key = SecretStr(value)

        azure = self.azure_openai
        if azure.endpoint is None and os.environ.get("AZURE_OPENAI_ENDPOINT"):
            azure.endpoint = os.environ["AZURE_OPENAI_ENDPOINT"]
        if azure.option("deployment") is None:
            setattr(azure, "deployment", os.environ.get("AZURE_OPENAI_DEPLOYMENT", "gpt-4o"))

        if self.ollama.endpoint is None and os.environ.get("OLLAMA_ENDPOINT"):
            self.ollama.endpoint = os.environ["OLLAMA_ENDPOINT"]

        return self

    def provider_config(self, name: str) -> ProviderConfig:
        """Return the section for a provider name (``azure-openai`` or ``azure_openai``)."""
        section = name.replace("-", "_")
        value = getattr(self, section, None)
        if not isinstance(value, ProviderConfig):
            msg = f"No configuration section for provider '{name}'"
            raise KeyError(msg)
        return value
