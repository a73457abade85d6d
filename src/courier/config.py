"""Configuration management for Courier."""

import logging
import warnings
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from courier.models.endpoint import RetryPolicy

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Courier configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the COURIER_ prefix. For example:
        COURIER_STORAGE_BACKEND=qdrant
        COURIER_QDRANT_URL=http://localhost:6333
        COURIER_DEFAULT_RETRY_POLICY__MAX_ATTEMPTS=5
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    storage_backend: Literal["memory", "qdrant"] = Field(
        default="memory",
        description="Where endpoints and deliveries are persisted",
    )
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="courier",
        description="Prefix for Qdrant collection names",
    )
    storage_max_scroll_limit: int = Field(
        default=10000,
        ge=100,
        le=100000,
        description="Maximum records fetched by a single list operation",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # Delivery
    max_concurrent_deliveries: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Maximum delivery attempts running at the same time",
    )
    user_agent: str = Field(
        default="Courier-Webhooks/0.1",
        description="User-Agent header sent with every attempt",
    )
    response_body_max_chars: int = Field(
        default=1000,
        ge=0,
        le=100_000,
        description="Response bodies are truncated to this length in attempt logs",
    )
    default_timeout_ms: int = Field(
        default=30_000,
        ge=1,
        le=300_000,
        description="Per-attempt timeout for endpoints created without one",
    )
    default_retry_policy: RetryPolicy = Field(
        default_factory=RetryPolicy,
        description="Retry policy for endpoints created without one",
    )

    # Security
    signature_tolerance_ms: int = Field(
        default=300_000,
        ge=0,
        description="Maximum timestamp age accepted when verifying inbound signatures",
    )

    # Health checks and URL validation
    url_probe_timeout_ms: int = Field(
        default=5000,
        ge=1,
        le=60_000,
        description="Timeout for the reachability probe of validate_url",
    )
    health_poll_interval_s: float = Field(
        default=30.0,
        gt=0,
        description="How often the health monitor looks for due checks",
    )

    # Analytics
    recent_failures_limit: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Number of failed attempts listed in analytics",
    )
    top_endpoints_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of endpoints listed as top performers",
    )

    # Export
    export_version: str = Field(
        default="1.0",
        description="Format version stamped on exported endpoint bundles",
    )

    model_config = {
        "env_prefix": "COURIER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def validate_storage_settings(self) -> "Settings":
        """Warn when production runs on the volatile in-memory store."""
        if self.env == "production" and self.storage_backend == "memory":
            warnings.warn(
                "In-memory storage in production loses every endpoint and delivery "
                "on restart. Set COURIER_STORAGE_BACKEND=qdrant.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("In-memory storage selected in production")
        return self


# Global settings instance
settings = Settings()
