# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized config for the biodid package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from biodid.core.config import get_config
    config = get_config()

    # Access settings
    db_host = config.db_host
    log_level = config.log_level
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONTENT_STORE_BACKENDS = ("memory", "local", "ipfs")


class CoreSettings(BaseSettings):
    """Core configuration settings for biodid.

    Settings can be configured via environment variables with the
    BIODID_ prefix, or through a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # DATABASE SETTINGS
    # ==========================================================================

    db_host: str = Field(
        default="localhost",
        description="Database host",
        validation_alias="BIODID_DB_HOST",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
        validation_alias="BIODID_DB_PORT",
    )
    db_name: str = Field(
        default="biodid",
        description="Database name",
        validation_alias="BIODID_DB_NAME",
    )
    db_user: str = Field(
        default="biodid",
        description="Database user",
        validation_alias="BIODID_DB_USER",
    )
    db_password: str = Field(
        default="",
        description="Database password",
        validation_alias="BIODID_DB_PASSWORD",
    )

    # Connection pool settings
    db_pool_min: int = Field(
        default=5,
        description="Minimum pool connections",
        validation_alias="BIODID_DB_POOL_MIN",
    )
    db_pool_max: int = Field(
        default=20,
        description="Maximum pool connections",
        validation_alias="BIODID_DB_POOL_MAX",
    )
    db_acquire_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a free pooled connection",
        validation_alias="BIODID_DB_ACQUIRE_TIMEOUT",
    )

    # ==========================================================================
    # CONTENT STORE SETTINGS
    # ==========================================================================

    content_store: str = Field(
        default="ipfs",
        description="Content store backend: 'memory', 'local' or 'ipfs'",
        validation_alias="BIODID_CONTENT_STORE",
    )
    content_path: str = Field(
        default="./data/content",
        description="Directory for the local content store",
        validation_alias="BIODID_CONTENT_PATH",
    )
    ipfs_api_url: str = Field(
        default="http://127.0.0.1:5001",
        description="Base URL of the IPFS HTTP API",
        validation_alias="BIODID_IPFS_API_URL",
    )
    ipfs_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for IPFS API calls",
        validation_alias="BIODID_IPFS_TIMEOUT",
    )

    # ==========================================================================
    # IDENTITY & TOKEN SETTINGS
    # ==========================================================================

    service_did: str = Field(
        default="did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK",
        description="Identity the token service issues root grants as",
        validation_alias="BIODID_SERVICE_DID",
    )
    token_ttl_seconds: int = Field(
        default=86400,
        description="Default capability token lifetime",
        validation_alias="BIODID_TOKEN_TTL_SECONDS",
    )
    storage_endpoint: str = Field(
        default="https://ipfs.bio-did-seq.example/api",
        description="Endpoint advertised by the default storage service entry",
        validation_alias="BIODID_STORAGE_ENDPOINT",
    )
    external_url_template: str = Field(
        default="https://dataverse.harvard.edu/dataset.xhtml?persistentId={}",
        description="Display URL for a linked dataset-repository identifier",
        validation_alias="BIODID_EXTERNAL_URL_TEMPLATE",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="BIODID_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="BIODID_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="BIODID_LOG_FILE",
    )

    @field_validator("content_store")
    @classmethod
    def _check_content_store(cls, value: str) -> str:
        value = value.lower()
        if value not in CONTENT_STORE_BACKENDS:
            raise ValueError(f"content_store must be one of {CONTENT_STORE_BACKENDS}, got {value!r}")
        return value

    @field_validator("token_ttl_seconds")
    @classmethod
    def _check_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("token_ttl_seconds must be positive")
        return value

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def database_url(self) -> str:
        """Construct database URL."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def connection_params(self) -> dict[str, str | int]:
        """Get asyncpg connection parameters dict."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "database": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }

    @property
    def pool_config(self) -> dict[str, int]:
        """Get connection pool configuration."""
        return {
            "min_size": self.db_pool_min,
            "max_size": self.db_pool_max,
        }


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def set_config(config: CoreSettings) -> None:
    """Set the global configuration instance.

    Useful for testing or custom configuration.

    Args:
        config: The CoreSettings instance to use.
    """
    global _config
    _config = config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
