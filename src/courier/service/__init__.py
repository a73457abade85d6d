"""Courier service layer.

Provides the high-level WebhookService facade.

Example:
    ```python
    from courier.service import WebhookService

    async with WebhookService.create() as courier:
        await courier.create_webhook(
            {"name": "CRM", "url": "https://crm.example.com/hooks", "events": ["user.registered"]}
        )
        await courier.send_event("user.registered", {"user_id": "usr_1"})
    ```
"""

from .base import WebhookService
from .models import (
    BulkError,
    BulkResult,
    BulkTestItem,
    BulkTestResult,
    DeliveryActionResult,
    DeliveryPage,
    EndpointPage,
    ExportBundle,
    FailureReason,
    HealthCheckResult,
    ImportFailure,
    ImportResult,
    Pagination,
    SendEventResult,
    SystemStats,
    TestWebhookResult,
    UrlValidationResult,
    WebhookStats,
)

__all__ = [
    "BulkError",
    "BulkResult",
    "BulkTestItem",
    "BulkTestResult",
    "DeliveryActionResult",
    "DeliveryPage",
    "EndpointPage",
    "ExportBundle",
    "FailureReason",
    "HealthCheckResult",
    "ImportFailure",
    "ImportResult",
    "Pagination",
    "SendEventResult",
    "SystemStats",
    "TestWebhookResult",
    "UrlValidationResult",
    "WebhookService",
    "WebhookStats",
]
