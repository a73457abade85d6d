"""Courier: signed, retried webhook delivery.

Turns domain events into HMAC-signed HTTP deliveries to registered
endpoints, retries failures with exponential backoff, and answers
analytics and health questions about what was delivered.

Quick Start:
    from courier.service import WebhookService

    async with WebhookService.create() as courier:
        # Register an endpoint
        endpoint = await courier.create_webhook(
            {
                "name": "Billing",
                "url": "https://example.com/hooks/billing",
                "events": ["invoice.paid"],
            }
        )

        # Deliver an event to every subscriber
        result = await courier.send_event("invoice.paid", {"invoice_id": "inv_1"})

Receivers verify deliveries with courier.webhooks.verify_webhook().

Records:
    - WebhookEndpoint: Destination URL, retry policy, signing config, stats
    - WebhookDelivery: One event to one endpoint, with every attempt
    - DeliveryAttempt: One HTTP call within a delivery
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Context Manager
from .context import courier_context, get_current_service

# Exceptions
from .exceptions import (
    ConfigurationError,
    CourierError,
    DeliveryError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    delivery_log_context,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryAttempt,
    RetryPolicy,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "CourierError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "DeliveryError",
    "StorageError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    "delivery_log_context",
    # Context Manager
    "courier_context",
    "get_current_service",
    # Models
    "RetryPolicy",
    "WebhookEndpoint",
    "WebhookEvent",
    "WebhookDelivery",
    "DeliveryAttempt",
]
