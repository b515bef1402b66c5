"""Configuration: a pydantic schema wall with environment loading.

Settings are plain data injected into the Manager, registry and drivers; the
core never reads ambient global configuration on its own.

Example:
    settings = Settings.from_mapping(
        {
            "default": {"client": "openai"},
            "clients": {
                "openai": {"driver": "openai", "api_key": "sk-..."},
                "claude": {"driver": "claude", "api_key": "sk-ant-..."},
            },
            "fallback": {"enabled": True, "clients": "claude"},
        }
    )
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Literal

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from llm_orchestrator.errors import ConfigurationError, InvalidClientError

if TYPE_CHECKING:
    from collections.abc import Mapping

BUILTIN_DRIVERS: tuple[str, ...] = ("openai", "claude", "gemini")

#: Prices in USD per one million tokens, keyed by driver then model.
DEFAULT_PRICING: dict[str, dict[str, dict[str, Any]]] = {
    "openai": {
        "gpt-4o": {"name": "GPT-4o", "input": 2.50, "output": 10.00},
        "gpt-4o-mini": {"name": "GPT-4o Mini", "input": 0.15, "output": 0.60},
        "gpt-4.1": {"name": "GPT-4.1", "input": 2.00, "output": 8.00},
    },
    "claude": {
        "claude-3-5-sonnet-20241022": {
            "name": "Claude 3.5 Sonnet",
            "input": 3.00,
            "output": 15.00,
        },
        "claude-3-5-haiku-20241022": {
            "name": "Claude 3.5 Haiku",
            "input": 0.80,
            "output": 4.00,
        },
    },
    "gemini": {
        "gemini-1.5-pro": {"name": "Gemini 1.5 Pro", "input": 1.25, "output": 5.00},
        "gemini-1.5-flash": {"name": "Gemini 1.5 Flash", "input": 0.075, "output": 0.30},
    },
}

_CLIENT_ENV: dict[str, dict[str, Any]] = {
    "openai": {
        "prefix": "OPENAI",
        "base_url": "https://api.openai.com",
        "model": "gpt-4o-mini",
    },
    "claude": {
        "prefix": "CLAUDE",
        "base_url": "https://api.anthropic.com",
        "model": "claude-3-5-sonnet-20241022",
    },
    "gemini": {
        "prefix": "GEMINI",
        "base_url": "https://generativelanguage.googleapis.com",
        "model": "gemini-1.5-pro",
    },
}


class DefaultSettings(BaseModel):
    """Values applied to every client that does not override them."""

    model_config = ConfigDict(frozen=True)

    client: str = "openai"
    model: str = Field(default="gpt-4o-mini", min_length=1)
    max_tokens: int = Field(default=2000, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=3, ge=1)


class ClientSettings(BaseModel):
    """One named endpoint: credentials, base URL and per-client defaults.

    Unknown keys are preserved (e.g. ``anthropic_version``) and available to
    drivers through ``option()``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    driver: str = Field(min_length=1)
    #: Custom drivers only: ``"package.module:ClassName"`` or the class itself.
    via: Any = None
    api_key: SecretStr | None = None
    base_url: str | None = None
    model: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    timeout: float | None = Field(default=None, gt=0)
    max_retries: int | None = Field(default=None, ge=1)

    def resolve(self, defaults: DefaultSettings) -> ClientSettings:
        """Return a copy with unset values filled from *defaults*."""
        updates: dict[str, Any] = {}
        if self.model is None:
            updates["model"] = defaults.model
        if self.max_tokens is None:
            updates["max_tokens"] = defaults.max_tokens
        if self.timeout is None:
            updates["timeout"] = defaults.timeout
        if self.max_retries is None:
            updates["max_retries"] = defaults.max_retries
        return self.model_copy(update=updates) if updates else self

    def option(self, key: str, default: Any = None) -> Any:
        """Look up a driver-specific extra key."""
        extra = self.model_extra or {}
        return extra.get(key, default)

    def secret(self) -> str | None:
        return self.api_key.get_secret_value() if self.api_key is not None else None


class ModelPrice(BaseModel):
    """Per-million-token prices for one model."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    input: float = Field(default=0.0, ge=0)
    output: float = Field(default=0.0, ge=0)


class FallbackSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    clients: list[str] = Field(default_factory=list)

    @field_validator("clients", mode="before")
    @classmethod
    def split_client_list(cls, v: Any) -> Any:
        """Accept ``"claude,gemini"`` as well as a list."""
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v


class RecorderSettings(BaseModel):
    """Switches for execution logging or metrics aggregation."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    #: ``async`` hands records to a background worker thread.
    mechanism: Literal["sync", "async"] = "sync"


class ProcessRoute(BaseModel):
    """Preferred client and model for a named application process."""

    model_config = ConfigDict(frozen=True)

    client: str = Field(min_length=1)
    model: str = Field(min_length=1)


class Settings(BaseModel):
    """Top-level configuration for the orchestrator."""

    model_config = ConfigDict(frozen=True)

    default: DefaultSettings = Field(default_factory=DefaultSettings)
    clients: dict[str, ClientSettings] = Field(default_factory=dict)
    #: ``client_or_driver -> model -> price``.
    models: dict[str, dict[str, ModelPrice]] = Field(default_factory=dict)
    process_mappings: dict[str, ProcessRoute] = Field(default_factory=dict)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    logging: RecorderSettings = Field(default_factory=RecorderSettings)
    metrics: RecorderSettings = Field(default_factory=RecorderSettings)
    database_url: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Settings:
        """Validate a plain mapping, raising ``ConfigurationError`` on bad input."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = ".".join(str(part) for part in first.get("loc", ()))
            raise ConfigurationError(
                f"Invalid orchestrator settings: {loc or 'root'}: {first.get('msg', e)}",
                hint="Check the 'clients', 'default' and 'fallback' sections.",
            ) from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings for the built-in clients from environment variables.

        A ``.env`` file is loaded first when reading the process environment.
        Default pricing tables for the built-in models are included.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        env = _Env(environ)

        clients: dict[str, dict[str, Any]] = {}
        for name, known in _CLIENT_ENV.items():
            prefix = known["prefix"]
            api_key = env.str(f"{prefix}_API_KEY")
            if name == "claude" and api_key is None:
                api_key = env.str("ANTHROPIC_API_KEY")
            client: dict[str, Any] = {
                "driver": name,
                "api_key": api_key,
                "base_url": env.str(f"{prefix}_API_BASE_URL") or known["base_url"],
                "model": env.str(f"{prefix}_MODEL") or known["model"],
                "max_tokens": env.int(f"{prefix}_MAX_TOKENS"),
                "timeout": env.float(f"{prefix}_TIMEOUT"),
                "max_retries": env.int(f"{prefix}_MAX_RETRIES"),
            }
            if name == "claude":
                client["anthropic_version"] = (
                    env.str("CLAUDE_ANTHROPIC_VERSION") or "2023-06-01"
                )
            clients[name] = client

        default: dict[str, Any] = {
            key: value
            for key, value in {
                "client": env.str("LLM_DEFAULT_CLIENT"),
                "model": env.str("LLM_DEFAULT_MODEL"),
                "max_tokens": env.int("LLM_DEFAULT_MAX_TOKENS"),
                "timeout": env.float("LLM_DEFAULT_TIMEOUT"),
                "max_retries": env.int("LLM_DEFAULT_MAX_RETRIES"),
            }.items()
            if value is not None
        }

        return cls.from_mapping(
            {
                "default": default,
                "clients": clients,
                "models": DEFAULT_PRICING,
                "fallback": {
                    "enabled": env.bool("LLM_FALLBACK_ENABLED"),
                    "clients": env.str("LLM_FALLBACK_CLIENTS") or "claude,gemini",
                },
                "logging": {
                    "enabled": env.bool("LLM_LOGGING_ENABLED"),
                    "mechanism": env.str("LLM_LOGGING_MECHANISM") or "sync",
                },
                "metrics": {
                    "enabled": env.bool("LLM_METRICS_ENABLED"),
                    "mechanism": env.str("LLM_METRICS_MECHANISM") or "sync",
                },
                "database_url": env.str("LLM_DATABASE_URL"),
            }
        )

    def client(self, name: str) -> ClientSettings:
        """Return the named client's settings with defaults applied."""
        try:
            client = self.clients[name]
        except KeyError:
            raise InvalidClientError.for_client(name, list(self.clients)) from None
        return client.resolve(self.default)

    def prices_for(self, client: str, driver: str) -> dict[str, ModelPrice]:
        """Merge the pricing tables; entries under the client name win."""
        return {**self.models.get(driver, {}), **self.models.get(client, {})}


class _Env:
    """Typed reads from an environment mapping; blank values count as unset."""

    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ

    def str(self, key: str) -> str | None:
        value = self._environ.get(key)
        if value is None or not value.strip():
            return None
        return value.strip()

    def int(self, key: str) -> int | None:
        value = self.str(key)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(
                f"{key} must be an integer, got {value!r}",
                hint=f"Unset {key} or give it a whole number.",
            ) from None

    def float(self, key: str) -> float | None:
        value = self.str(key)
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            raise ConfigurationError(
                f"{key} must be a number, got {value!r}",
                hint=f"Unset {key} or give it a number of seconds.",
            ) from None

    def bool(self, key: str) -> bool:
        value = self.str(key)
        return value is not None and value.lower() in {"1", "true", "yes", "on"}
