"""Data models for Courier.

Endpoints:
    - WebhookEndpoint: Destination URL plus delivery policy and security config
    - RetryPolicy, SecurityConfig, HealthCheckConfig, DeliveryStats: Endpoint parts
    - CreateWebhookData, UpdateWebhookData, ImportWebhookData: Endpoint inputs

Events and deliveries:
    - WebhookEvent: Ephemeral domain event
    - WebhookDelivery: One event to one endpoint, with every attempt
    - DeliveryAttempt: One HTTP call within a delivery
"""

from .base import JsonMap, canonical_json, generate_id, to_unix_ms, utc_now
from .delivery import (
    TERMINAL_STATUSES,
    DeliveryAttempt,
    DeliveryStatus,
    EndpointSnapshot,
    WebhookDelivery,
)
from .endpoint import (
    DEFAULT_SIGNATURE_HEADER,
    DEFAULT_TIMESTAMP_HEADER,
    CreateWebhookData,
    DeliveryStats,
    HealthCheckConfig,
    HealthCheckUpdate,
    HealthStatus,
    ImportWebhookData,
    RetryPolicy,
    RetryPolicyUpdate,
    SecurityConfig,
    SecurityUpdate,
    SignatureMethod,
    UpdateWebhookData,
    WebhookEndpoint,
    check_header,
    check_webhook_url,
    generate_secret,
)
from .event import TEST_EVENT_TYPE, EventSnapshot, EventTypeInfo, WebhookEvent

__all__ = [
    # Base helpers
    "JsonMap",
    "canonical_json",
    "generate_id",
    "to_unix_ms",
    "utc_now",
    # Endpoints
    "DEFAULT_SIGNATURE_HEADER",
    "DEFAULT_TIMESTAMP_HEADER",
    "CreateWebhookData",
    "DeliveryStats",
    "HealthCheckConfig",
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
    # Events
    "TEST_EVENT_TYPE",
    "EventSnapshot",
    "EventTypeInfo",
    "WebhookEvent",
    # Deliveries
    "TERMINAL_STATUSES",
    "DeliveryAttempt",
    "DeliveryStatus",
    "EndpointSnapshot",
    "WebhookDelivery",
]
