"""Application settings using pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from couch_cache_core.constants import (
    DEFAULT_COLLECTION,
    DEFAULT_COUCHDB_HOST,
    DEFAULT_COUCHDB_PORT,
)


class Settings(BaseSettings):
    """Central configuration for couch-cache."""

    model_config = SettingsConfigDict(env_prefix="CC_", env_file=".env")

    # --- Store ---
    store_backend: Literal["couchdb", "memory"] = Field(
        default="couchdb",
        description="Document store backend: 'couchdb' for a server, 'memory' for zero-infra",
    )
    collection: str = Field(
        default=DEFAULT_COLLECTION,
        description="Database (collection) holding the cache documents",
    )

    # --- CouchDB ---
    couchdb_host: str = Field(
        default=DEFAULT_COUCHDB_HOST,
        description="CouchDB host including scheme",
    )
    couchdb_port: int = Field(
        default=DEFAULT_COUCHDB_PORT,
        description="CouchDB HTTP port",
    )
    couchdb_username: str = Field(
        default="Admin",
        description="CouchDB username",
    )
    couchdb_password: SecretStr | None = Field(
        default=None,
        description="CouchDB password",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout per store request in seconds",
    )

    # --- Cache ---
    default_ttl_seconds: int | None = Field(
        default=None,
        gt=0,
        description="TTL applied by the CLI when --ttl is not given (None = no expiry)",
    )

    # --- Logging ---
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer",
    )

    @field_validator("couchdb_host")
    @classmethod
    def validate_host_scheme(cls, value: str) -> str:
        """Require an explicit http(s) scheme and drop any trailing slash."""
        if not value.startswith(("http://", "https://")):
            msg = "couchdb_host must start with http:// or https://"
            raise ValueError(msg)
        return value.rstrip("/")

    @field_validator("couchdb_port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        """Reject ports outside the TCP range."""
        if not 0 < value < 65536:
            msg = "couchdb_port must be between 1 and 65535"
            raise ValueError(msg)
        return value

    @property
    def couchdb_url(self) -> str:
        """Base URL of the CouchDB server."""
        return f"{self.couchdb_host}:{self.couchdb_port}"
