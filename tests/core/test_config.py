"""Tests for biodid.core.config - CoreSettings and global config management.

Tests cover:
- Settings loading with defaults
- Environment variable overrides
- Validation of content store backend and token TTL
- Singleton behavior (get_config / set_config / clear_config_cache)
- Computed properties (database_url, connection_params, pool_config)
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from biodid.core.config import (
    CoreSettings,
    clear_config_cache,
    get_config,
    set_config,
)

# ============================================================================
# CoreSettings - Default Values
# ============================================================================


class TestCoreSettingsDefaults:
    """Test that CoreSettings loads with correct default values."""

    def test_database_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.db_host == "localhost"
        assert settings.db_port == 5432
        assert settings.db_name == "biodid"
        assert settings.db_user == "biodid"
        assert settings.db_password == ""
        assert settings.db_pool_min == 5
        assert settings.db_pool_max == 20
        assert settings.db_acquire_timeout == 30.0

    def test_content_store_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.content_store == "ipfs"
        assert settings.ipfs_api_url == "http://127.0.0.1:5001"
        assert settings.ipfs_timeout == 30.0

    def test_token_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.service_did == "did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK"
        assert settings.token_ttl_seconds == 86400
        assert settings.storage_endpoint == "https://ipfs.bio-did-seq.example/api"
        assert "{}" in settings.external_url_template

    def test_logging_defaults(self, clean_env):
        settings = CoreSettings()

        assert settings.log_level == "INFO"
        assert settings.log_format == ""
        assert settings.log_file is None


# ============================================================================
# CoreSettings - Environment Variable Overrides
# ============================================================================


class TestCoreSettingsEnvOverrides:
    """Test that environment variables properly override settings."""

    def test_database_env_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("BIODID_DB_HOST", "db.example.com")
        monkeypatch.setenv("BIODID_DB_PORT", "5433")
        monkeypatch.setenv("BIODID_DB_NAME", "test_db")
        monkeypatch.setenv("BIODID_DB_USER", "test_user")
        monkeypatch.setenv("BIODID_DB_PASSWORD", "secret123")

        settings = CoreSettings()

        assert settings.db_host == "db.example.com"
        assert settings.db_port == 5433
        assert settings.db_name == "test_db"
        assert settings.db_user == "test_user"
        assert settings.db_password == "secret123"

    def test_pool_env_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("BIODID_DB_POOL_MIN", "2")
        monkeypatch.setenv("BIODID_DB_POOL_MAX", "8")
        monkeypatch.setenv("BIODID_DB_ACQUIRE_TIMEOUT", "1.5")

        settings = CoreSettings()

        assert settings.pool_config == {"min_size": 2, "max_size": 8}
        assert settings.db_acquire_timeout == 1.5

    def test_content_store_env_is_case_insensitive(self, monkeypatch, clean_env):
        monkeypatch.setenv("BIODID_CONTENT_STORE", "LOCAL")
        monkeypatch.setenv("BIODID_CONTENT_PATH", "/var/lib/biodid")

        settings = CoreSettings()

        assert settings.content_store == "local"
        assert settings.content_path == "/var/lib/biodid"

    def test_token_env_overrides(self, monkeypatch, clean_env):
        monkeypatch.setenv("BIODID_SERVICE_DID", "did:key:z6MkService")
        monkeypatch.setenv("BIODID_TOKEN_TTL_SECONDS", "600")

        settings = CoreSettings()

        assert settings.service_did == "did:key:z6MkService"
        assert settings.token_ttl_seconds == 600


# ============================================================================
# CoreSettings - Validation
# ============================================================================


class TestCoreSettingsValidation:
    def test_rejects_unknown_content_store(self, clean_env):
        with pytest.raises(PydanticValidationError):
            CoreSettings(content_store="s3")

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_rejects_non_positive_ttl(self, clean_env, ttl):
        with pytest.raises(PydanticValidationError):
            CoreSettings(token_ttl_seconds=ttl)

    def test_accepts_field_names(self, clean_env):
        settings = CoreSettings(content_store="memory", db_port=6543)

        assert settings.content_store == "memory"
        assert settings.db_port == 6543


# ============================================================================
# Computed properties
# ============================================================================


class TestComputedProperties:
    def test_connection_params(self, clean_env):
        settings = CoreSettings(db_host="pg", db_port=5555, db_name="n", db_user="u", db_password="p")

        assert settings.connection_params == {
            "host": "pg",
            "port": 5555,
            "database": "n",
            "user": "u",
            "password": "p",
        }

    def test_database_url(self, clean_env):
        settings = CoreSettings(db_host="pg", db_port=5555, db_name="n", db_user="u", db_password="p")

        assert settings.database_url == "postgresql://u:p@pg:5555/n"


# ============================================================================
# Global config singleton
# ============================================================================


class TestGlobalConfig:
    def test_get_config_returns_singleton(self, clean_env):
        assert get_config() is get_config()

    def test_clear_config_cache_reloads(self, monkeypatch, clean_env):
        first = get_config()
        monkeypatch.setenv("BIODID_DB_HOST", "changed")
        clear_config_cache()

        second = get_config()

        assert second is not first
        assert second.db_host == "changed"

    def test_set_config(self, clean_env):
        custom = CoreSettings(db_host="custom")
        set_config(custom)

        assert get_config() is custom
