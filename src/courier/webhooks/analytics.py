"""Delivery analytics.

Pure functions over lists of endpoints and deliveries. Nothing here touches
storage, so every figure can be recomputed from any window of records.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from courier.models import WebhookDelivery, WebhookEndpoint, utc_now

GroupBy = Literal["day", "week", "month"]


class EventDistributionEntry(BaseModel):
    """Share of deliveries for one event type."""

    model_config = ConfigDict(extra="forbid")

    event_type: str
    count: int
    percentage: float


class EndpointPerformance(BaseModel):
    """Success rate and latency of one endpoint within the window."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    success_rate: float = Field(ge=0.0, le=1.0)
    average_response_time: float
    total_deliveries: int


class RecentFailure(BaseModel):
    """A failed attempt with its proximate error."""

    model_config = ConfigDict(extra="forbid")

    delivery_id: str
    webhook_id: str
    webhook_name: str
    event_type: str
    error: str
    http_status: int
    timestamp: datetime


class TimelineBucket(BaseModel):
    """Delivery counts for one day, week or month."""

    model_config = ConfigDict(extra="forbid")

    period: str
    total: int = 0
    successful: int = 0
    failed: int = 0


class LatencySummary(BaseModel):
    """Attempt latency over completed deliveries, in milliseconds."""

    model_config = ConfigDict(extra="forbid")

    average: float = 0.0
    fastest: int = 0
    slowest: int = 0
    samples: int = 0


class WebhookAnalytics(BaseModel):
    """Aggregate view over a window of deliveries."""

    model_config = ConfigDict(extra="forbid")

    total_endpoints: int = 0
    active_endpoints: int = 0
    total_deliveries: int = 0
    successful_deliveries: int = 0
    failed_deliveries: int = 0
    pending_deliveries: int = 0
    cancelled_deliveries: int = 0
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    average_response_time: float = 0.0
    fastest_response: int = 0
    slowest_response: int = 0
    deliveries_today: int = 0
    deliveries_this_week: int = 0
    event_distribution: list[EventDistributionEntry] = Field(default_factory=list)
    top_performing_endpoints: list[EndpointPerformance] = Field(default_factory=list)
    recent_failures: list[RecentFailure] = Field(default_factory=list)
    timeline: list[TimelineBucket] = Field(default_factory=list)


def success_rate(successful: int, total: int) -> float:
    """successful / total, or 0.0 when there is nothing to divide."""
    if total <= 0:
        return 0.0
    return min(1.0, max(0.0, successful / total))


def latency_summary(deliveries: list[WebhookDelivery]) -> LatencySummary:
    """Summarize attempt durations of deliveries that are no longer pending."""
    durations = [
        attempt.duration_ms
        for delivery in deliveries
        if delivery.status != "pending"
        for attempt in delivery.attempts
    ]
    if not durations:
        return LatencySummary()
    return LatencySummary(
        average=round(sum(durations) / len(durations), 2),
        fastest=min(durations),
        slowest=max(durations),
        samples=len(durations),
    )


def event_distribution(deliveries: list[WebhookDelivery]) -> list[EventDistributionEntry]:
    """Count and percentage per event type, most frequent first."""
    counts = Counter(delivery.event.event_type for delivery in deliveries)
    total = sum(counts.values())
    return [
        EventDistributionEntry(
            event_type=event_type,
            count=count,
            percentage=round(count * 100 / total, 2),
        )
        for event_type, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def endpoint_performance(deliveries: list[WebhookDelivery]) -> list[EndpointPerformance]:
    """Per-endpoint performance, best first.

    Ranked by success rate descending, then average response time ascending.
    """
    grouped: dict[str, list[WebhookDelivery]] = defaultdict(list)
    for delivery in deliveries:
        grouped[delivery.endpoint.id].append(delivery)

    results = []
    for endpoint_id, items in grouped.items():
        delivered = sum(1 for d in items if d.status == "delivered")
        durations = [a.duration_ms for d in items for a in d.attempts]
        results.append(
            EndpointPerformance(
                id=endpoint_id,
                name=items[-1].endpoint.name,
                success_rate=success_rate(delivered, len(items)),
                average_response_time=(
                    round(sum(durations) / len(durations), 2) if durations else 0.0
                ),
                total_deliveries=len(items),
            )
        )
    results.sort(key=lambda p: (-p.success_rate, p.average_response_time, p.id))
    return results


def recent_failures(deliveries: list[WebhookDelivery], limit: int = 10) -> list[RecentFailure]:
    """The newest failed attempts across all endpoints."""
    failures = [
        RecentFailure(
            delivery_id=delivery.id,
            webhook_id=delivery.endpoint.id,
            webhook_name=delivery.endpoint.name,
            event_type=delivery.event.event_type,
            error=attempt.failure_reason,
            http_status=attempt.http_status,
            timestamp=attempt.timestamp,
        )
        for delivery in deliveries
        for attempt in delivery.attempts
        if not attempt.success
    ]
    failures.sort(key=lambda f: f.timestamp, reverse=True)
    return failures[:limit]


def failure_reasons(deliveries: list[WebhookDelivery]) -> list[tuple[str, int]]:
    """Failed attempts counted by error string, most common first."""
    counts = Counter(
        attempt.failure_reason
        for delivery in deliveries
        for attempt in delivery.attempts
        if not attempt.success
    )
    return counts.most_common()


def period_key(moment: datetime, group_by: GroupBy) -> str:
    """Bucket label: 2024-03-05 (day), 2024-W10 (ISO week) or 2024-03 (month)."""
    if group_by == "day":
        return moment.strftime("%Y-%m-%d")
    if group_by == "week":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    return moment.strftime("%Y-%m")


def timeline(deliveries: list[WebhookDelivery], group_by: GroupBy = "day") -> list[TimelineBucket]:
    """Delivery counts per period, oldest period first."""
    buckets: dict[str, TimelineBucket] = {}
    for delivery in deliveries:
        key = period_key(delivery.created_at, group_by)
        bucket = buckets.setdefault(key, TimelineBucket(period=key))
        bucket.total += 1
        if delivery.status == "delivered":
            bucket.successful += 1
        elif delivery.status == "failed":
            bucket.failed += 1
    return [buckets[key] for key in sorted(buckets)]


def compute_analytics(
    endpoints: list[WebhookEndpoint],
    deliveries: list[WebhookDelivery],
    group_by: GroupBy = "day",
    now: datetime | None = None,
    top_limit: int = 5,
    failures_limit: int = 10,
) -> WebhookAnalytics:
    """Aggregate a window of endpoints and deliveries.

    Args:
        endpoints: Endpoints in scope.
        deliveries: Deliveries in scope.
        group_by: Timeline granularity.
        now: Reference time for "today" and "this week".
        top_limit: Number of top performing endpoints to return.
        failures_limit: Number of recent failures to return.

    Returns:
        WebhookAnalytics for the window.
    """
    now = now or utc_now()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_week = start_of_day - timedelta(days=start_of_day.weekday())

    statuses = Counter(delivery.status for delivery in deliveries)
    total = len(deliveries)
    latency = latency_summary(deliveries)

    return WebhookAnalytics(
        total_endpoints=len(endpoints),
        active_endpoints=sum(1 for endpoint in endpoints if endpoint.is_active),
        total_deliveries=total,
        successful_deliveries=statuses["delivered"],
        failed_deliveries=statuses["failed"],
        pending_deliveries=statuses["pending"],
        cancelled_deliveries=statuses["cancelled"],
        success_rate=success_rate(statuses["delivered"], total),
        average_response_time=latency.average,
        fastest_response=latency.fastest,
        slowest_response=latency.slowest,
        deliveries_today=sum(1 for d in deliveries if d.created_at >= start_of_day),
        deliveries_this_week=sum(1 for d in deliveries if d.created_at >= start_of_week),
        event_distribution=event_distribution(deliveries),
        top_performing_endpoints=endpoint_performance(deliveries)[:top_limit],
        recent_failures=recent_failures(deliveries, limit=failures_limit),
        timeline=timeline(deliveries, group_by),
    )


__all__ = [
    "EndpointPerformance",
    "EventDistributionEntry",
    "GroupBy",
    "LatencySummary",
    "RecentFailure",
    "TimelineBucket",
    "WebhookAnalytics",
    "compute_analytics",
    "endpoint_performance",
    "event_distribution",
    "failure_reasons",
    "latency_summary",
    "period_key",
    "recent_failures",
    "success_rate",
    "timeline",
]
