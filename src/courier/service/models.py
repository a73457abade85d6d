"""Service layer models for Courier.

Result types returned by WebhookService operations:
- Pagination, EndpointPage, DeliveryPage: Paginated listings
- SendEventResult, TestWebhookResult, DeliveryActionResult: Dispatch outcomes
- HealthCheckResult, UrlValidationResult: Probe outcomes
- BulkResult, BulkTestResult: Per-id outcomes of bulk operations
- ExportBundle, ImportResult: Configuration transfer
- WebhookStats, SystemStats: Derived statistics
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from courier.models import HealthStatus, WebhookDelivery, WebhookEndpoint


class Pagination(BaseModel):
    """Page position within a filtered listing."""

    model_config = ConfigDict(extra="forbid")

    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class EndpointPage(BaseModel):
    """One page of endpoints."""

    model_config = ConfigDict(extra="forbid")

    webhooks: list[WebhookEndpoint]
    pagination: Pagination


class DeliveryPage(BaseModel):
    """One page of deliveries, newest first."""

    model_config = ConfigDict(extra="forbid")

    deliveries: list[WebhookDelivery]
    pagination: Pagination


class SendEventResult(BaseModel):
    """Outcome of fanning an event out to subscribers.

    Attributes:
        success: Whether the event was accepted. An event with no
            subscribers is still accepted; invalid events raise instead.
        event_id: ID of the dispatched event.
        subscriber_count: Active endpoints subscribed when the event arrived.
        deliveries_created: Deliveries actually enqueued. Can be lower than
            subscriber_count if an endpoint was removed mid-dispatch.
        delivery_ids: IDs of the created deliveries.
        message: Human-readable summary.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool
    event_id: str
    subscriber_count: int = 0
    deliveries_created: int = 0
    delivery_ids: list[str] = Field(default_factory=list)
    message: str


class TestWebhookResult(BaseModel):
    """Outcome of a synchronous test delivery."""

    model_config = ConfigDict(extra="forbid")

    __test__ = False

    success: bool
    delivery: WebhookDelivery
    message: str


class DeliveryActionResult(BaseModel):
    """Outcome of a manual retry or cancel."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    delivery: WebhookDelivery


class HealthCheckResult(BaseModel):
    """Outcome of one health probe."""

    model_config = ConfigDict(extra="forbid")

    webhook_id: str
    status: HealthStatus
    response_time_ms: int
    http_status: int
    error: str | None = None
    checked_at: datetime


class UrlValidationResult(BaseModel):
    """Static validity and live reachability of a candidate URL."""

    model_config = ConfigDict(extra="forbid")

    valid: bool
    reachable: bool
    response_time_ms: int | None = None
    http_status: int | None = None
    error: str | None = None


class BulkError(BaseModel):
    """Failure of one id within a bulk operation."""

    model_config = ConfigDict(extra="forbid")

    id: str
    error: str


class BulkResult(BaseModel):
    """Outcome of bulk_toggle or bulk_delete."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    updated_count: int = 0
    deleted_count: int = 0
    errors: list[BulkError] = Field(default_factory=list)


class BulkTestItem(BaseModel):
    """Outcome of testing one endpoint within bulk_test."""

    model_config = ConfigDict(extra="forbid")

    id: str
    success: bool
    delivery_id: str | None = None
    error: str | None = None


class BulkTestResult(BaseModel):
    """Outcome of bulk_test."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    tested_count: int = 0
    errors: list[BulkError] = Field(default_factory=list)
    results: list[BulkTestItem] = Field(default_factory=list)


class ExportBundle(BaseModel):
    """Endpoint configurations with their secrets removed."""

    model_config = ConfigDict(extra="forbid")

    webhooks: list[dict[str, Any]]
    exported_at: datetime
    version: str


class ImportFailure(BaseModel):
    """Failure of one item within an import."""

    model_config = ConfigDict(extra="forbid")

    webhook: str
    error: str


class ImportResult(BaseModel):
    """Outcome of import_webhooks."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    imported: int = 0
    skipped: int = 0
    errors: list[ImportFailure] = Field(default_factory=list)


class FailureReason(BaseModel):
    """A failure reason and how often it occurred."""

    model_config = ConfigDict(extra="forbid")

    reason: str
    count: int


class WebhookStats(BaseModel):
    """Statistics for one endpoint."""

    model_config = ConfigDict(extra="forbid")

    webhook: WebhookEndpoint
    total_deliveries: int
    success_rate: float = Field(ge=0.0, le=1.0)
    average_response_time: float
    recent_deliveries: list[WebhookDelivery] = Field(default_factory=list)
    failure_reasons: list[FailureReason] = Field(default_factory=list)


class QueueStatus(BaseModel):
    """Delivery backlog.

    Attributes:
        pending: Deliveries in the pending state.
        processing: Attempts currently in flight.
        queued: Deliveries waiting on a retry timer.
    """

    model_config = ConfigDict(extra="forbid")

    pending: int = 0
    processing: int = 0
    queued: int = 0


class PerformanceSummary(BaseModel):
    """Delivery performance over the last 24 hours."""

    model_config = ConfigDict(extra="forbid")

    average_response_time: float = 0.0
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    deliveries_per_hour: float = 0.0


class HealthSummary(BaseModel):
    """Endpoint health according to the latest probes."""

    model_config = ConfigDict(extra="forbid")

    healthy_endpoints: int = 0
    unhealthy_endpoints: int = 0
    last_health_check: datetime | None = None


class SystemStats(BaseModel):
    """System-wide view of endpoints, backlog, performance and health."""

    model_config = ConfigDict(extra="forbid")

    total_endpoints: int = 0
    active_endpoints: int = 0
    queue_status: QueueStatus = Field(default_factory=QueueStatus)
    performance: PerformanceSummary = Field(default_factory=PerformanceSummary)
    health: HealthSummary = Field(default_factory=HealthSummary)


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
    "HealthSummary",
    "ImportFailure",
    "ImportResult",
    "Pagination",
    "PerformanceSummary",
    "QueueStatus",
    "SendEventResult",
    "SystemStats",
    "TestWebhookResult",
    "UrlValidationResult",
    "WebhookStats",
]
