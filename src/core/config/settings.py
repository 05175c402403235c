# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the sync
engine. Settings are loaded from environment variables with sensible
defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.local_store.url)
    'sqlite+aiosqlite:///vidyalehar_local.db'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LocalStoreSettings(BaseSettings):
    """Local replica store configuration.

    The local replica is a SQLite file holding courses, student progress,
    profiles, the mutation queue and offline video blobs.

    Attributes:
        path: Filesystem path of the SQLite database file.
        echo: Whether SQLAlchemy should echo emitted SQL.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORE_",
        extra="ignore",
    )

    path: str = "vidyalehar_local.db"
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async SQLite URL from the file path."""
        return f"sqlite+aiosqlite:///{self.path}"


class RemoteSettings(BaseSettings):
    """Remote backend configuration.

    The remote backend is a PostgREST-style table API. Every request carries
    the project API key both as ``apikey`` and as a bearer token.

    Attributes:
        base_url: Base URL of the backend project.
        api_key: Anonymous/public API key.
        rest_path: Path prefix of the table API.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="REMOTE_",
        extra="ignore",
    )

    base_url: str = "http://localhost:54321"
    api_key: SecretStr = SecretStr("")
    rest_path: str = "/rest/v1"
    timeout: float = 30.0

    @property
    def rest_url(self) -> str:
        """Build the table API base URL."""
        return f"{self.base_url.rstrip('/')}/{self.rest_path.strip('/')}"

    @property
    def auth_headers(self) -> dict[str, str]:
        """Build authentication headers for API requests."""
        key = self.api_key.get_secret_value()
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
        }


class SyncSettings(BaseSettings):
    """Synchronization policy configuration.

    Attributes:
        max_attempts: Failed attempts after which a queued mutation is
            dead-lettered. None keeps retrying on every trigger.
        cascade_course_delete: Whether replaying a course deletion also
            removes remote lessons and progress entries that reference it.
        refresh_interval_seconds: Interval of the periodic sync cycle while
            online. None disables the periodic refresh.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        extra="ignore",
    )

    max_attempts: int | None = Field(default=None, ge=1)
    cascade_course_delete: bool = True
    refresh_interval_seconds: float | None = Field(default=None, gt=0)


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        local_store: Local replica store settings.
        remote: Remote backend settings.
        sync: Synchronization policy settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    local_store: LocalStoreSettings = Field(default_factory=LocalStoreSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production without a remote API key.
        """
        if self.environment == "production":
            if not self.remote.api_key.get_secret_value():
                raise ValueError(
                    "Remote API key must be set in production. "
                    "Set REMOTE_API_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
