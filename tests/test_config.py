"""Unit tests for Courier configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from courier.config import Settings
from courier.models import RetryPolicy


class TestSettings:
    """Tests for Settings model."""

    def test_default_settings(self):
        """Settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.env == "development"
        assert settings.storage_backend == "memory"
        assert settings.qdrant_url == "http://localhost:6333"
        assert settings.collection_prefix == "courier"
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"
        assert settings.default_timeout_ms == 30_000
        assert settings.default_retry_policy == RetryPolicy()
        assert settings.signature_tolerance_ms == 300_000
        assert settings.export_version == "1.0"

    def test_env_override(self):
        """Environment variables should override defaults."""
        env = {
            "COURIER_STORAGE_BACKEND": "qdrant",
            "COURIER_QDRANT_URL": "http://qdrant:6333",
            "COURIER_MAX_CONCURRENT_DELIVERIES": "25",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.storage_backend == "qdrant"
        assert settings.qdrant_url == "http://qdrant:6333"
        assert settings.max_concurrent_deliveries == 25

    def test_nested_retry_policy_from_env(self):
        """Nested retry policy fields use the __ delimiter."""
        env = {
            "COURIER_DEFAULT_RETRY_POLICY__MAX_ATTEMPTS": "5",
            "COURIER_DEFAULT_RETRY_POLICY__INITIAL_DELAY_MS": "250",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        assert settings.default_retry_policy.max_attempts == 5
        assert settings.default_retry_policy.initial_delay_ms == 250
        assert settings.default_retry_policy.backoff_multiplier == 2.0

    def test_invalid_retry_policy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(default_retry_policy={"initial_delay_ms": 5000, "max_delay_ms": 10})

    def test_invalid_storage_backend(self):
        with pytest.raises(ValidationError):
            Settings(storage_backend="redis")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_concurrent_deliveries": 0},
            {"default_timeout_ms": 0},
            {"url_probe_timeout_ms": 0},
            {"health_poll_interval_s": 0},
            {"storage_max_scroll_limit": 10},
        ],
    )
    def test_bounds(self, overrides):
        with pytest.raises(ValidationError):
            Settings(**overrides)

    def test_production_memory_storage_warns(self):
        """In-memory storage in production should warn."""
        with pytest.warns(UserWarning, match="In-memory storage"):
            Settings(env="production", storage_backend="memory")

    def test_production_qdrant_does_not_warn(self, recwarn):
        Settings(env="production", storage_backend="qdrant")

        assert not [w for w in recwarn if issubclass(w.category, UserWarning)]
