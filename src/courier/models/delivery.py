"""Delivery models and lifecycle transitions.

A delivery is the record of attempting to deliver one event to one
endpoint. Its lifecycle:

    pending -> delivered | failed | cancelled

delivered, failed and cancelled are terminal. The only way back to pending
is an explicit manual retry of a failed delivery, which keeps the attempt
history intact.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from courier.exceptions import InvalidStateError

from .base import generate_id, utc_now
from .endpoint import WebhookEndpoint
from .event import EventSnapshot

DeliveryStatus = Literal["pending", "delivered", "failed", "cancelled"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "failed", "cancelled"})


class EndpointSnapshot(BaseModel):
    """Endpoint identity as it was when the delivery was created."""

    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    url: str

    @classmethod
    def of(cls, endpoint: WebhookEndpoint) -> EndpointSnapshot:
        return cls(id=endpoint.id, name=endpoint.name, url=endpoint.url)


class DeliveryAttempt(BaseModel):
    """One HTTP call within a delivery.

    Attributes:
        attempt_number: 1-based position in the delivery's attempt log.
        timestamp: When the attempt started.
        http_status: Response status, 0 when no response was received.
        response_body: Response body, truncated.
        response_headers: Response headers.
        duration_ms: Wall time of the attempt.
        error: Proximate failure reason, None on success.
        success: Whether the endpoint accepted the delivery.
    """

    model_config = ConfigDict(extra="forbid")

    attempt_number: int = Field(ge=1)
    timestamp: datetime = Field(default_factory=utc_now)
    http_status: int = Field(default=0, ge=0)
    response_body: str | None = None
    response_headers: dict[str, str] = Field(default_factory=dict)
    duration_ms: int = Field(default=0, ge=0)
    error: str | None = None
    success: bool = False

    @property
    def failure_reason(self) -> str:
        """Error string for reporting, falling back to the HTTP status."""
        if self.error:
            return self.error
        if self.http_status:
            return f"HTTP {self.http_status}"
        return "Unknown error"


class WebhookDelivery(BaseModel):
    """Record of delivering one event to one endpoint, across all attempts.

    Attributes:
        id: Unique identifier for this delivery.
        endpoint: Endpoint snapshot taken at creation.
        event: Event snapshot taken at creation.
        status: Lifecycle status.
        attempts: Ordered attempt log; never truncated.
        total_attempts: Always equal to len(attempts).
        next_retry_at: Set only while pending with an attempt scheduled.
        last_attempt_at: When the most recent attempt started.
        delivered_at: When the endpoint accepted the delivery.
        finalized_at: When the delivery reached a terminal status.
        signature: Signature header value of the most recent attempt.
        timestamp: Timestamp header value (unix ms) of the most recent attempt.
        is_test: Test deliveries are excluded from stats and analytics.
        retry_count: Number of manual retries performed.
        cycle_offset: total_attempts at the last manual retry; the retry
            budget counts attempts after this offset.
        cancel_reason: Why the delivery was cancelled.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    endpoint: EndpointSnapshot
    event: EventSnapshot
    status: DeliveryStatus = "pending"
    attempts: list[DeliveryAttempt] = Field(default_factory=list)
    total_attempts: int = Field(default=0, ge=0)
    next_retry_at: datetime | None = None
    last_attempt_at: datetime | None = None
    delivered_at: datetime | None = None
    finalized_at: datetime | None = None
    signature: str | None = None
    timestamp: int | None = None
    is_test: bool = False
    retry_count: int = Field(default=0, ge=0)
    cycle_offset: int = Field(default=0, ge=0)
    cancel_reason: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def next_attempt_number(self) -> int:
        return self.total_attempts + 1

    @property
    def cycle_attempts(self) -> int:
        """Attempts made since creation or the last manual retry."""
        return self.total_attempts - self.cycle_offset

    @property
    def last_attempt(self) -> DeliveryAttempt | None:
        return self.attempts[-1] if self.attempts else None

    def record_attempt(
        self,
        attempt: DeliveryAttempt,
        retry_delay_ms: int,
        signature: str | None = None,
        timestamp: int | None = None,
        now: datetime | None = None,
    ) -> WebhookDelivery:
        """Append a completed attempt and advance the lifecycle.

        Args:
            attempt: The finished attempt.
            retry_delay_ms: Delay chosen by the retry policy; 0 means the
                delivery fails if this attempt failed.
            signature: Signature header value that was sent.
            timestamp: Timestamp header value that was sent.
            now: Reference time for the retry schedule.

        Raises:
            InvalidStateError: If the delivery already finished. A cancelled
                delivery accepts the result of an attempt that was in flight
                when it was cancelled, without changing status.
        """
        if self.status in ("delivered", "failed"):
            raise InvalidStateError("delivery", self.id, self.status, "record an attempt on")

        now = now or utc_now()
        self.attempts.append(attempt)
        self.total_attempts = len(self.attempts)
        self.last_attempt_at = attempt.timestamp
        if signature is not None:
            self.signature = signature
        if timestamp is not None:
            self.timestamp = timestamp
        self.updated_at = now

        if self.status == "cancelled":
            self.next_retry_at = None
            return self

        if attempt.success:
            self.status = "delivered"
            self.delivered_at = now
            self.finalized_at = now
            self.next_retry_at = None
        elif retry_delay_ms > 0:
            self.next_retry_at = now + timedelta(milliseconds=retry_delay_ms)
        else:
            self.status = "failed"
            self.finalized_at = now
            self.next_retry_at = None
        return self

    def cancel(self, reason: str | None = None, now: datetime | None = None) -> WebhookDelivery:
        """Cancel a pending delivery.

        Raises:
            InvalidStateError: If the delivery is not pending.
        """
        if self.status != "pending":
            raise InvalidStateError("delivery", self.id, self.status, "cancel")
        now = now or utc_now()
        self.status = "cancelled"
        self.cancel_reason = reason
        self.next_retry_at = None
        self.finalized_at = now
        self.updated_at = now
        return self

    def reset_for_retry(self, now: datetime | None = None) -> WebhookDelivery:
        """Move a failed delivery back to pending with a fresh retry budget.

        Raises:
            InvalidStateError: If the delivery has not failed.
        """
        if self.status != "failed":
            raise InvalidStateError("delivery", self.id, self.status, "retry")
        now = now or utc_now()
        self.status = "pending"
        self.retry_count += 1
        self.cycle_offset = self.total_attempts
        self.next_retry_at = now
        self.finalized_at = None
        self.updated_at = now
        return self


__all__ = [
    "TERMINAL_STATUSES",
    "DeliveryAttempt",
    "DeliveryStatus",
    "EndpointSnapshot",
    "WebhookDelivery",
]
