# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for application settings."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config.settings import (
    LocalStoreSettings,
    RemoteSettings,
    Settings,
    SyncSettings,
    clear_settings_cache,
    get_settings,
)


class TestLocalStoreSettings:
    """Tests for LocalStoreSettings."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        settings = LocalStoreSettings()

        assert settings.path == "vidyalehar_local.db"
        assert settings.echo is False

    def test_url_property(self) -> None:
        """Test URL property builds the aiosqlite URL."""
        settings = LocalStoreSettings(path="/var/lib/app/replica.db")

        assert settings.url == "sqlite+aiosqlite:////var/lib/app/replica.db"

    def test_env_prefix(self) -> None:
        """Test values are read from LOCAL_STORE_ variables."""
        with patch.dict(os.environ, {"LOCAL_STORE_PATH": "env.db", "LOCAL_STORE_ECHO": "true"}):
            settings = LocalStoreSettings()

        assert settings.path == "env.db"
        assert settings.echo is True


class TestRemoteSettings:
    """Tests for RemoteSettings."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        settings = RemoteSettings()

        assert settings.base_url == "http://localhost:54321"
        assert settings.rest_path == "/rest/v1"
        assert settings.timeout == 30.0

    def test_rest_url_joins_without_double_slashes(self) -> None:
        """Test rest_url normalizes slashes."""
        settings = RemoteSettings(base_url="https://project.example.co/", rest_path="rest/v1/")

        assert settings.rest_url == "https://project.example.co/rest/v1"

    def test_auth_headers(self) -> None:
        """Test the key is sent as apikey and bearer token."""
        settings = RemoteSettings(api_key="anon-key")  # type: ignore[arg-type]

        assert settings.auth_headers == {
            "apikey": "anon-key",
            "Authorization": "Bearer anon-key",
        }

    def test_api_key_is_secret(self) -> None:
        """Test the key is hidden in the repr."""
        settings = RemoteSettings(api_key="anon-key")  # type: ignore[arg-type]

        assert "anon-key" not in repr(settings)


class TestSyncSettings:
    """Tests for SyncSettings."""

    def test_default_values(self) -> None:
        """Test retries are unlimited and periodic refresh is off by default."""
        settings = SyncSettings()

        assert settings.max_attempts is None
        assert settings.cascade_course_delete is True
        assert settings.refresh_interval_seconds is None

    def test_max_attempts_must_be_positive(self) -> None:
        """Test a zero attempt cap is rejected."""
        with pytest.raises(ValidationError):
            SyncSettings(max_attempts=0)

    def test_refresh_interval_must_be_positive(self) -> None:
        """Test a non-positive refresh interval is rejected."""
        with pytest.raises(ValidationError):
            SyncSettings(refresh_interval_seconds=0)

    def test_env_prefix(self) -> None:
        """Test values are read from SYNC_ variables."""
        with patch.dict(os.environ, {"SYNC_MAX_ATTEMPTS": "5"}):
            settings = SyncSettings()

        assert settings.max_attempts == 5


class TestSettings:
    """Tests for the aggregated Settings."""

    def test_environment_helpers(self) -> None:
        """Test is_development and is_production."""
        dev = Settings(environment="development")
        prod = Settings(
            environment="production",
            remote=RemoteSettings(api_key="key"),  # type: ignore[arg-type]
        )

        assert dev.is_development and not dev.is_production
        assert prod.is_production and not prod.is_development

    def test_production_requires_api_key(self) -> None:
        """Test production without a remote API key is rejected."""
        with pytest.raises(ValidationError, match="Remote API key"):
            Settings(environment="production", remote=RemoteSettings())

    def test_get_settings_is_cached(self) -> None:
        """Test get_settings returns the same instance until cleared."""
        clear_settings_cache()
        try:
            first = get_settings()
            assert get_settings() is first

            clear_settings_cache()
            assert get_settings() is not first
        finally:
            clear_settings_cache()
