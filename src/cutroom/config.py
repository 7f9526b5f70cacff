"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta


def _env(key: str, default: str = "") -> str:
    """Read an environment variable, falling back to ``default``."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Read an integer environment variable, falling back to ``default``."""
    raw = _env(key)
    return int(raw) if raw.strip() else default


@dataclass(frozen=True)
class CosmosConfig:
    endpoint: str = field(default_factory=lambda: _env("COSMOS_ENDPOINT"))
    key: str = field(default_factory=lambda: _env("COSMOS_KEY"))
    database: str = field(default_factory=lambda: _env("COSMOS_DATABASE", "cutroom"))


@dataclass(frozen=True)
class ServiceBusConfig:
    connection_string: str = field(
        default_factory=lambda: _env("AZURE_SERVICEBUS_CONNECTION_STRING")
    )
    topic_name: str = field(
        default_factory=lambda: _env("SERVICEBUS_TOPIC_NAME", "project-events")
    )


@dataclass(frozen=True)
class StorageConfig:
    connection_string: str = field(
        default_factory=lambda: _env("AZURE_STORAGE_CONNECTION_STRING")
    )
    container: str = field(
        default_factory=lambda: _env("AZURE_STORAGE_CONTAINER", "videos")
    )


@dataclass(frozen=True)
class PolicyConfig:
    """Limits enforced by the download gate and assignment coordinator."""

    download_limit: int = field(default_factory=lambda: _env_int("DOWNLOAD_LIMIT", 10))
    assignment_window_minutes: int = field(
        default_factory=lambda: _env_int("ASSIGNMENT_WINDOW_MINUTES", 10)
    )
    download_url_ttl_minutes: int = field(
        default_factory=lambda: _env_int("DOWNLOAD_URL_TTL_MINUTES", 60)
    )

    @property
    def assignment_window(self) -> timedelta:
        return timedelta(minutes=self.assignment_window_minutes)

    @property
    def download_url_ttl(self) -> timedelta:
        return timedelta(minutes=self.download_url_ttl_minutes)


@dataclass(frozen=True)
class AppConfig:
    env: str = field(default_factory=lambda: _env("APP_ENV", "development"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    session_secret: str = field(
        default_factory=lambda: _env("SESSION_SECRET", "dev-session-secret")
    )

    @property
    def is_development(self) -> bool:
        return self.env == "development"


@dataclass(frozen=True)
class Settings:
    cosmos: CosmosConfig = field(default_factory=CosmosConfig)
    servicebus: ServiceBusConfig = field(default_factory=ServiceBusConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    app: AppConfig = field(default_factory=AppConfig)


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings()
