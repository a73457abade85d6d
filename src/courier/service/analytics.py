"""Analytics mixin for WebhookService.

Loads a window of records from the store and hands them to the pure
aggregation functions in courier.webhooks.analytics. Test deliveries are
left out of every figure.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from courier.models import WebhookDelivery, utc_now
from courier.webhooks.analytics import (
    GroupBy,
    WebhookAnalytics,
    compute_analytics,
    failure_reasons,
    latency_summary,
    success_rate,
)

from .models import (
    FailureReason,
    HealthSummary,
    PerformanceSummary,
    QueueStatus,
    SystemStats,
    WebhookStats,
)

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.storage import WebhookStore
    from courier.webhooks.scheduler import DeliveryScheduler

RECENT_DELIVERIES_LIMIT = 10
PERFORMANCE_WINDOW = timedelta(hours=24)


def _real(deliveries: list[WebhookDelivery]) -> list[WebhookDelivery]:
    return [d for d in deliveries if not d.is_test]


class AnalyticsMixin:
    """Mixin providing analytics and statistics.

    Expects these attributes/methods from the base class:
    - store: WebhookStore
    - settings: Settings
    - scheduler: DeliveryScheduler
    - _require_endpoint(webhook_id) -> WebhookEndpoint
    """

    store: WebhookStore
    settings: Settings
    scheduler: DeliveryScheduler
    _require_endpoint: Any

    async def get_analytics(
        self,
        webhook_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        group_by: GroupBy = "day",
    ) -> WebhookAnalytics:
        """Aggregate deliveries in a window, optionally for one endpoint.

        Args:
            webhook_id: Restrict to one endpoint.
            start_date: Only deliveries created at or after this time.
            end_date: Only deliveries created at or before this time.
            group_by: Timeline granularity: day, week or month.

        Returns:
            WebhookAnalytics for the window.
        """
        deliveries = _real(
            await self.store.list_deliveries(
                webhook_id=webhook_id,
                start=start_date,
                end=end_date,
            )
        )
        endpoints = await self.store.list_endpoints()
        if webhook_id is not None:
            endpoints = [e for e in endpoints if e.id == webhook_id]

        return compute_analytics(
            endpoints,
            deliveries,
            group_by=group_by,
            top_limit=self.settings.top_endpoints_limit,
            failures_limit=self.settings.recent_failures_limit,
        )

    async def get_webhook_stats(self, webhook_id: str) -> WebhookStats:
        """Statistics for one endpoint.

        Totals come from the endpoint's delivery_stats; failure reasons are
        counted over its recorded attempts.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        endpoint = await self._require_endpoint(webhook_id)
        deliveries = _real(await self.store.list_deliveries(webhook_id=webhook_id))
        stats = endpoint.delivery_stats

        return WebhookStats(
            webhook=endpoint,
            total_deliveries=stats.total_deliveries,
            success_rate=success_rate(stats.successful_deliveries, stats.total_deliveries),
            average_response_time=round(stats.average_response_time, 2),
            recent_deliveries=deliveries[:RECENT_DELIVERIES_LIMIT],
            failure_reasons=[
                FailureReason(reason=reason, count=count)
                for reason, count in failure_reasons(deliveries)
            ],
        )

    async def get_system_stats(self) -> SystemStats:
        """System-wide endpoint, backlog, performance and health figures.

        Performance covers deliveries created in the last 24 hours.
        """
        now = utc_now()
        endpoints = await self.store.list_endpoints()
        pending = _real(await self.store.list_deliveries(status="pending"))
        recent = _real(await self.store.list_deliveries(start=now - PERFORMANCE_WINDOW))

        delivered = sum(1 for d in recent if d.status == "delivered")
        hours = PERFORMANCE_WINDOW.total_seconds() / 3600

        checks = [e.health_check for e in endpoints if e.health_check.last_check is not None]
        last_checks = [c.last_check for c in checks if c.last_check is not None]

        return SystemStats(
            total_endpoints=len(endpoints),
            active_endpoints=sum(1 for e in endpoints if e.is_active),
            queue_status=QueueStatus(
                pending=len(pending),
                processing=self.scheduler.in_flight_count,
                queued=self.scheduler.scheduled_count,
            ),
            performance=PerformanceSummary(
                average_response_time=latency_summary(recent).average,
                success_rate=success_rate(delivered, len(recent)),
                deliveries_per_hour=round(len(recent) / hours, 2),
            ),
            health=HealthSummary(
                healthy_endpoints=sum(1 for c in checks if c.last_check_status == "success"),
                unhealthy_endpoints=sum(1 for c in checks if c.last_check_status != "success"),
                last_health_check=max(last_checks) if last_checks else None,
            ),
        )


__all__ = ["AnalyticsMixin"]
