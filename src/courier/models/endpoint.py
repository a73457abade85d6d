"""Webhook endpoint models.

An endpoint is a registered destination URL plus its delivery policy,
signing configuration, running delivery statistics and health-check state.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import Literal
from urllib.parse import urlparse

import validators
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .base import generate_id, utc_now

SignatureMethod = Literal["sha256", "sha1"]
HealthStatus = Literal["success", "failure", "timeout"]
HealthCheckMethod = Literal["GET", "HEAD", "POST"]

DEFAULT_SIGNATURE_HEADER = "X-Webhook-Signature"
DEFAULT_TIMESTAMP_HEADER = "X-Webhook-Timestamp"


def generate_secret() -> str:
    """Generate a fresh endpoint signing secret."""
    return f"whsec_{secrets.token_hex(32)}"


# RFC 9110 token characters allowed in a header name
_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


def check_header(name: str, value: str = "") -> str | None:
    """Check that a header can be sent on the wire.

    Returns:
        None when the name is a token and the value is printable ASCII,
        otherwise the reason it was rejected.
    """
    if not name or not set(name) <= _TOKEN_CHARS:
        return f"invalid header name {name!r}"
    if any(not (ch == "\t" or " " <= ch <= "~") for ch in value):
        return f"header {name} must be printable ASCII"
    return None


def check_webhook_url(url: str) -> str | None:
    """Statically validate a webhook URL.

    Returns:
        None when the URL is an absolute http(s) URL, otherwise the reason
        it was rejected.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return "URL must use http or https"
    if not parsed.netloc:
        return "URL must be absolute"
    if not validators.url(url, simple_host=True):
        return "URL is not valid"
    return None


class RetryPolicy(BaseModel):
    """Exponential backoff policy for failed delivery attempts.

    Attributes:
        enabled: Whether failed deliveries are retried at all.
        max_attempts: Total attempts per delivery, including the first.
        initial_delay_ms: Delay before the second attempt.
        backoff_multiplier: Factor applied to the delay after each attempt.
        max_delay_ms: Upper bound on any single delay.
        retry_on_status: HTTP statuses that trigger a retry.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Retry failed deliveries")
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Total attempts per delivery, including the first",
    )
    initial_delay_ms: int = Field(default=1000, ge=1, description="Delay before the second attempt")
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Factor applied to the delay after each attempt",
    )
    max_delay_ms: int = Field(default=300_000, ge=1, description="Upper bound on any single delay")
    retry_on_status: list[int] = Field(
        default_factory=lambda: [408, 429, 500, 502, 503, 504],
        description="HTTP statuses that trigger a retry",
    )

    @model_validator(mode="after")
    def validate_delay_bounds(self) -> RetryPolicy:
        """Reject a maximum delay below the initial delay."""
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"initial_delay_ms ({self.initial_delay_ms})"
            )
        return self


class SecurityConfig(BaseModel):
    """Per-endpoint signing configuration.

    Header names are explicit per endpoint so endpoints can be migrated
    between signing conventions independently.
    """

    model_config = ConfigDict(extra="forbid")

    secret_key: str = Field(
        default_factory=generate_secret,
        min_length=16,
        description="Shared secret for HMAC signatures",
    )
    signature_method: SignatureMethod = Field(default="sha256", description="HMAC digest")
    signature_header: str = Field(default=DEFAULT_SIGNATURE_HEADER, min_length=1)
    timestamp_header: str = Field(default=DEFAULT_TIMESTAMP_HEADER, min_length=1)

    @field_validator("signature_header", "timestamp_header")
    @classmethod
    def validate_header_name(cls, value: str) -> str:
        problem = check_header(value)
        if problem is not None:
            raise ValueError(problem)
        return value


class DeliveryStats(BaseModel):
    """Running delivery counters for one endpoint.

    Only mutated while holding the endpoint's lock.
    """

    model_config = ConfigDict(extra="forbid")

    total_deliveries: int = Field(default=0, ge=0)
    successful_deliveries: int = Field(default=0, ge=0)
    failed_deliveries: int = Field(default=0, ge=0)
    last_delivery_at: datetime | None = None
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    average_response_time: float = Field(default=0.0, ge=0.0, description="Mean attempt ms")
    sampled_attempts: int = Field(default=0, ge=0, description="Attempts in the running mean")

    def record_created(self) -> None:
        """Count a newly created delivery."""
        self.total_deliveries += 1

    def record_attempt(self, success: bool, duration_ms: int, at: datetime) -> None:
        """Fold one attempt into the running latency mean and timestamps."""
        self.sampled_attempts += 1
        self.average_response_time += (
            duration_ms - self.average_response_time
        ) / self.sampled_attempts
        self.last_delivery_at = at
        if success:
            self.last_success_at = at
        else:
            self.last_failure_at = at

    def record_outcome(self, status: str) -> None:
        """Count a delivery that just reached delivered or failed."""
        if status == "delivered":
            self.successful_deliveries += 1
        elif status == "failed":
            self.failed_deliveries += 1

    def record_retry_reset(self) -> None:
        """Un-count a failed delivery that was manually retried."""
        self.failed_deliveries = max(0, self.failed_deliveries - 1)


class HealthCheckConfig(BaseModel):
    """Out-of-band reachability probe configuration and last result."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=False)
    interval_ms: int = Field(default=300_000, ge=1000, description="Time between probes")
    timeout_ms: int = Field(default=5000, ge=1, le=60_000, description="Probe timeout")
    expected_status_codes: list[int] = Field(default_factory=lambda: [200], min_length=1)
    method: HealthCheckMethod = Field(default="GET")
    path: str | None = Field(default=None, description="Appended to the endpoint URL")
    last_check: datetime | None = None
    last_check_status: HealthStatus | None = None
    last_response_time_ms: int | None = None


class WebhookEndpoint(BaseModel):
    """A registered webhook destination.

    Attributes:
        id: Unique identifier for this endpoint.
        name: Human-readable name.
        url: Absolute http(s) URL receiving deliveries.
        events: Event types this endpoint subscribes to.
        description: Optional description.
        is_active: Inactive endpoints receive no new deliveries.
        timeout_ms: Max wait for a single attempt's response.
        retry_policy: Backoff policy for failed attempts.
        security: Signing configuration.
        headers: Static headers sent with every attempt.
        delivery_stats: Derived running counters.
        health_check: Probe configuration and last result.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    name: str = Field(min_length=1, max_length=200)
    url: str = Field(description="Absolute http(s) URL")
    events: list[str] = Field(min_length=1, description="Subscribed event types")
    description: str | None = None
    is_active: bool = True
    timeout_ms: int = Field(default=30_000, ge=1, le=300_000)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    headers: dict[str, str] = Field(default_factory=dict)
    delivery_stats: DeliveryStats = Field(default_factory=DeliveryStats)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        problem = check_webhook_url(value)
        if problem is not None:
            raise ValueError(problem)
        return value

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: list[str]) -> list[str]:
        events = [event.strip() for event in value]
        if any(not event for event in events):
            raise ValueError("event types must be non-empty strings")
        return list(dict.fromkeys(events))

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, value: dict[str, str]) -> dict[str, str]:
        for name, header_value in value.items():
            problem = check_header(name, header_value)
            if problem is not None:
                raise ValueError(problem)
        return value

    def subscribes_to(self, event_type: str) -> bool:
        """Check if this endpoint should receive the given event type."""
        return self.is_active and event_type in self.events

    def touch(self) -> None:
        self.updated_at = utc_now()


class RetryPolicyUpdate(BaseModel):
    """Partial retry policy; unset fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    max_attempts: int | None = None
    initial_delay_ms: int | None = None
    backoff_multiplier: float | None = None
    max_delay_ms: int | None = None
    retry_on_status: list[int] | None = None


class SecurityUpdate(BaseModel):
    """Partial security configuration."""

    model_config = ConfigDict(extra="forbid")

    secret_key: str | None = None
    signature_method: SignatureMethod | None = None
    signature_header: str | None = None
    timestamp_header: str | None = None


class HealthCheckUpdate(BaseModel):
    """Partial health-check configuration. Probe results are not writable."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    interval_ms: int | None = None
    timeout_ms: int | None = None
    expected_status_codes: list[int] | None = None
    method: HealthCheckMethod | None = None
    path: str | None = None


class CreateWebhookData(BaseModel):
    """Input for registering an endpoint."""

    model_config = ConfigDict(extra="forbid")

    name: str
    url: str
    events: list[str]
    description: str | None = None
    is_active: bool = True
    timeout_ms: int | None = None
    retry_policy: RetryPolicyUpdate | None = None
    security: SecurityUpdate | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    health_check: HealthCheckUpdate | None = None


class UpdateWebhookData(BaseModel):
    """Partial endpoint update; unset fields are left unchanged."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    url: str | None = None
    events: list[str] | None = None
    description: str | None = None
    is_active: bool | None = None
    timeout_ms: int | None = None
    retry_policy: RetryPolicyUpdate | None = None
    security: SecurityUpdate | None = None
    headers: dict[str, str] | None = None
    health_check: HealthCheckUpdate | None = None


class ImportWebhookData(CreateWebhookData):
    """An endpoint configuration being imported, optionally with its old id."""

    id: str | None = None


__all__ = [
    "DEFAULT_SIGNATURE_HEADER",
    "DEFAULT_TIMESTAMP_HEADER",
    "CreateWebhookData",
    "DeliveryStats",
    "HealthCheckConfig",
    "HealthCheckMethod",
    "HealthCheckUpdate",
    "HealthStatus",
    "ImportWebhookData",
    "RetryPolicy",
    "RetryPolicyUpdate",
    "SecurityConfig",
    "SecurityUpdate",
    "SignatureMethod",
    "UpdateWebhookData",
    "WebhookEndpoint",
    "check_header",
    "check_webhook_url",
    "generate_secret",
]
