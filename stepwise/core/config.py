"""
Configuration defaults and the layered configuration provider.

Built-in defaults come from Pydantic BaseSettings so deployments override
them through environment variables. On top of the defaults sit the
process-wide overrides set through ``configure`` and the options passed to
each bootstrap call. Every layer is merged shallowly: a later source
replaces a key wholesale, nested values are never combined.
"""

import os
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Built-in defaults with environment variable support.

    All settings can be overridden via environment variables with the
    APP_ prefix (e.g., APP_PORT, APP_ENV, APP_SESSION_SECRET).
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Paths
    root: str = Field(
        default_factory=os.getcwd,
        description="Service root directory other paths are resolved against",
    )

    translations: str = Field(
        default="translations",
        description="Translations directory, relative to root",
    )

    views: Optional[str] = Field(
        default=None,
        description="Additional view directory, relative to root",
    )

    assets: str = Field(
        default="public",
        description="Static assets directory, relative to root",
    )

    static_prefix: str = Field(
        default="/public",
        description="URL prefix static assets are served under",
    )

    theme: str = Field(
        default="default",
        description="Name of the registered theme",
    )

    # Environment Configuration
    env: Literal["development", "test", "ci", "staging", "production"] = Field(
        default="development",
        description="Service environment",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application logging level",
    )

    app_name: str = Field(
        default="stepwise",
        description="Service name used in logs and page titles",
    )

    ga_tag_id: Optional[str] = Field(
        default=None,
        description="Analytics tag exposed to templates",
    )

    # Listener Configuration
    start: bool = Field(
        default=True,
        description="Start listening as soon as the app is assembled",
    )

    protocol: Literal["http", "https"] = Field(
        default="http",
        description="Listener transport",
    )

    host: str = Field(
        default="0.0.0.0",
        description="Listener bind address",
    )

    port: int = Field(
        default=8080,
        ge=0,
        le=65535,
        description="Listener port, 0 binds an ephemeral port",
    )

    ssl_certfile: Optional[str] = Field(
        default=None,
        description="TLS certificate used when protocol is https",
    )

    ssl_keyfile: Optional[str] = Field(
        default=None,
        description="TLS private key used when protocol is https",
    )

    # Informational pages
    get_cookies: bool = Field(
        default=True,
        description="Serve the /cookies page",
    )

    get_terms: bool = Field(
        default=True,
        description="Serve the /terms-and-conditions page",
    )

    # Session Configuration
    session_name: str = Field(
        default="stepwise.sid",
        description="Session cookie name",
    )

    session_secret: str = Field(
        default="changethis",
        description="Secret used to sign the session cookie",
    )

    session_ttl: int = Field(
        default=1800,
        ge=1,
        description="Session lifetime in seconds",
    )

    session_store: Literal["memory", "redis"] = Field(
        default="memory",
        description="Server-side session store backend",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the redis session store",
    )

    # Translations
    languages: list[str] = Field(
        default=["en"],
        description="Languages loaded by the translator",
    )

    default_language: str = Field(
        default="en",
        description="Fallback language for missing translations",
    )

    translations_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds gated pages wait for translations to load",
    )

    middleware: list[Any] = Field(
        default_factory=list,
        description="HTTP middleware functions registered before static assets",
    )

    routes: list[Any] = Field(
        default_factory=list,
        description="Route definitions mounted by the step router",
    )

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str, info) -> str:
        """
        Reject the placeholder session secret in production.

        Raises:
            ValueError: If the default secret is used in production
        """
        environment = info.data.get("env", "development")
        if environment == "production" and v == "changethis":
            raise ValueError(
                "Default session secret cannot be used in production "
                "environment. Set APP_SESSION_SECRET environment variable."
            )
        return v

    @field_validator("languages", mode="before")
    @classmethod
    def parse_languages(cls, v) -> list[str]:
        """Parse languages from a comma separated string or list."""
        if isinstance(v, str):
            return [lang.strip() for lang in v.split(",") if lang.strip()]
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """
        Validate Redis URL format.

        Raises:
            ValueError: If Redis URL format is invalid
        """
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with 'redis://' or 'rediss://'")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Settings loaded from the environment
    """
    return Settings()


def is_development(config: Mapping[str, Any]) -> bool:
    """Check if an effective configuration runs in development."""
    return config.get("env") == "development"


class ConfigProvider:
    """
    Layered configuration: defaults, then overrides, then call options.

    A provider is created once and handed to each bootstrap call. Overrides
    set through ``configure`` persist for the provider's lifetime and apply
    to every configuration it produces afterwards.
    """

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        """
        Initialize the provider.

        Args:
            defaults: Built-in defaults (defaults to the environment settings)
        """
        if defaults is None:
            defaults = get_settings().model_dump()
        self._defaults: dict[str, Any] = dict(defaults)
        self._overrides: dict[str, Any] = {}

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    @property
    def overrides(self) -> dict[str, Any]:
        return dict(self._overrides)

    def configure(self, key, value: Any = ...) -> None:
        """
        Set process-wide overrides.

        Args:
            key: Option name, or a mapping of options merged at once
            value: Option value when ``key`` is a name

        Raises:
            TypeError: If called with neither a name and value nor a mapping
        """
        if isinstance(key, str) and value is not ...:
            self._overrides[key] = value
        elif isinstance(key, Mapping) and value is ...:
            self._overrides.update(key)
        else:
            raise TypeError(
                "configure() takes an option name and value, or a mapping of options"
            )

    def reset(self) -> None:
        """Drop every override."""
        self._overrides.clear()

    def get_effective_config(self, *partials: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        """
        Merge defaults, overrides and partials, later sources winning.

        Args:
            *partials: Option mappings applied in order; None is skipped

        Returns:
            A new dict holding the effective configuration
        """
        config: dict[str, Any] = {}
        config.update(self._defaults)
        config.update(self._overrides)
        for partial in partials:
            if partial:
                config.update(partial)
        return config


@lru_cache
def get_provider() -> ConfigProvider:
    """Get the process-wide configuration provider."""
    return ConfigProvider()


def configure(key, value: Any = ...) -> None:
    """Set overrides on the process-wide provider."""
    get_provider().configure(key, value)


def get_effective_config(*partials: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge against the process-wide provider."""
    return get_provider().get_effective_config(*partials)
