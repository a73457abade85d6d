"""Deliveries mixin for WebhookService.

Runs the attempt pipeline and the delivery control plane (listing, manual
retry, cancellation).

One attempt goes through these steps, never holding two locks at once:

1. Read the delivery; stop unless it is pending.
2. Under the endpoint lock, re-read the endpoint and sign the request with
   its current secret.
3. Send the request with no lock held.
4. Under the delivery lock, re-read the delivery and record the attempt.
   A delivery cancelled meanwhile keeps the attempt but stays cancelled.
5. Under the endpoint lock, fold the attempt into delivery_stats.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from courier.exceptions import NotFoundError, ValidationError
from courier.logging import delivery_log_context, get_logger
from courier.models import (
    DeliveryAttempt,
    DeliveryStatus,
    WebhookDelivery,
    WebhookEndpoint,
    to_unix_ms,
    utc_now,
)
from courier.webhooks.retry import retry_delay_for
from courier.webhooks.signature import SignedPayload, sign_payload

from .helpers import paginate
from .models import DeliveryActionResult, DeliveryPage

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.storage import WebhookStore
    from courier.webhooks.locks import KeyedLocks
    from courier.webhooks.scheduler import DeliveryScheduler
    from courier.webhooks.transport import WebhookTransport

logger = get_logger(__name__)

ENDPOINT_DELETED = "Webhook endpoint was deleted"
ENDPOINT_INACTIVE = "Webhook endpoint is inactive"
CANCELLED_BY_USER = "Cancelled by user"


class DeliveriesMixin:
    """Mixin providing the attempt pipeline and delivery operations.

    Expects these attributes from the base class:
    - store: WebhookStore
    - transport: WebhookTransport
    - settings: Settings
    - scheduler: DeliveryScheduler
    - _endpoint_locks, _delivery_locks: KeyedLocks
    """

    store: WebhookStore
    transport: WebhookTransport
    settings: Settings
    scheduler: DeliveryScheduler
    _endpoint_locks: KeyedLocks
    _delivery_locks: KeyedLocks

    # ------------------------------------------------------------------
    # Attempt pipeline
    # ------------------------------------------------------------------

    async def run_attempt(self, delivery_id: str) -> None:
        """Perform the next attempt of a pending delivery.

        Called by the scheduler, at most once at a time per delivery.
        Schedules the following attempt when the retry policy asks for one.
        """
        delivery = await self.store.get_delivery(delivery_id)
        if delivery is None or delivery.status != "pending":
            return

        with delivery_log_context(
            delivery.id, delivery.endpoint.id, delivery.event.event_type
        ):
            await self._execute_attempt(delivery, allow_retry=True)

    async def _execute_attempt(
        self,
        delivery: WebhookDelivery,
        allow_retry: bool,
    ) -> tuple[WebhookDelivery | None, int]:
        """Sign, send and record one attempt.

        Returns:
            The delivery after recording (None if it vanished or was
            cancelled for lack of a usable endpoint) and the retry delay
            chosen for it.
        """
        async with self._endpoint_locks.hold(delivery.endpoint.id):
            endpoint = await self.store.get_endpoint(delivery.endpoint.id)
            if endpoint is None:
                reason: str | None = ENDPOINT_DELETED
            elif not endpoint.is_active and not delivery.is_test:
                reason = ENDPOINT_INACTIVE
            else:
                reason = None
                headers, signed = self._build_request(endpoint, delivery)

        if reason is not None or endpoint is None:
            await self._cancel_orphaned(delivery.id, reason or ENDPOINT_DELETED)
            return None, 0

        attempt = await self.transport.deliver(
            url=delivery.endpoint.url,
            body=signed.body,
            headers=headers,
            timeout_ms=endpoint.timeout_ms,
            attempt_number=delivery.next_attempt_number,
        )

        delay_ms = 0
        if not attempt.success and allow_retry and not delivery.is_test:
            delay_ms = retry_delay_for(
                delivery.cycle_attempts + 1,
                attempt.http_status,
                endpoint.retry_policy,
            )

        recorded = await self._record_attempt(delivery.id, attempt, delay_ms, signed)
        if recorded is not None and not recorded.is_test:
            await self._record_endpoint_stats(recorded, attempt)
        return recorded, delay_ms

    def _build_request(
        self,
        endpoint: WebhookEndpoint,
        delivery: WebhookDelivery,
    ) -> tuple[dict[str, str], SignedPayload]:
        """Sign the delivery body and assemble the attempt headers."""
        security = endpoint.security
        signed = sign_payload(
            delivery.event.to_body(),
            security.secret_key,
            security.signature_method,
        )
        headers = {
            **endpoint.headers,
            "Content-Type": "application/json",
            "X-Webhook-Event": delivery.event.event_type,
            "X-Webhook-Delivery-Id": delivery.id,
            "X-Webhook-Attempt": str(delivery.next_attempt_number),
            security.signature_header: signed.signature,
            security.timestamp_header: str(signed.timestamp),
        }
        return headers, signed

    async def _record_attempt(
        self,
        delivery_id: str,
        attempt: DeliveryAttempt,
        delay_ms: int,
        signed: SignedPayload,
    ) -> WebhookDelivery | None:
        async with self._delivery_locks.hold(delivery_id):
            delivery = await self.store.get_delivery(delivery_id)
            if delivery is None:
                return None
            delivery.record_attempt(
                attempt,
                retry_delay_ms=delay_ms,
                signature=signed.signature,
                timestamp=signed.timestamp,
            )
            await self.store.save_delivery(delivery)
            if delivery.status == "pending" and delay_ms > 0:
                self.scheduler.schedule(delivery_id, delay_ms)

        logger.info(
            "Delivery attempt recorded",
            delivery_id=delivery.id,
            webhook_id=delivery.endpoint.id,
            event_type=delivery.event.event_type,
            attempt=attempt.attempt_number,
            http_status=attempt.http_status,
            status=delivery.status,
            retry_in_ms=delay_ms if delivery.status == "pending" else None,
        )
        return delivery

    async def _record_endpoint_stats(
        self,
        delivery: WebhookDelivery,
        attempt: DeliveryAttempt,
    ) -> None:
        async with self._endpoint_locks.hold(delivery.endpoint.id):
            endpoint = await self.store.get_endpoint(delivery.endpoint.id)
            if endpoint is None:
                return
            stats = endpoint.delivery_stats
            stats.record_attempt(attempt.success, attempt.duration_ms, attempt.timestamp)
            if delivery.status in ("delivered", "failed"):
                stats.record_outcome(delivery.status)
            await self.store.save_endpoint(endpoint)

    async def _cancel_orphaned(self, delivery_id: str, reason: str) -> None:
        """Cancel a pending delivery whose endpoint can no longer receive it."""
        async with self._delivery_locks.hold(delivery_id):
            delivery = await self.store.get_delivery(delivery_id)
            if delivery is None or delivery.status != "pending":
                return
            delivery.cancel(reason=reason)
            await self.store.save_delivery(delivery)
        self.scheduler.cancel(delivery_id)
        logger.warning(
            "Delivery cancelled",
            delivery_id=delivery_id,
            webhook_id=delivery.endpoint.id,
            reason=reason,
        )

    async def resume_pending_deliveries(self) -> int:
        """Re-arm pending deliveries found in the store.

        Due deliveries are attempted immediately, the others at their
        next_retry_at.

        Returns:
            Number of deliveries resumed.
        """
        now = utc_now()
        resumed = 0
        for delivery in await self.store.list_deliveries(status="pending"):
            if self.scheduler.is_in_flight(delivery.id) or self.scheduler.is_scheduled(delivery.id):
                continue
            if delivery.next_retry_at is None or delivery.next_retry_at <= now:
                self.scheduler.submit(delivery.id)
            else:
                delay_ms = to_unix_ms(delivery.next_retry_at) - to_unix_ms(now)
                self.scheduler.schedule(delivery.id, delay_ms)
            resumed += 1

        if resumed:
            logger.info("Resumed pending deliveries", count=resumed)
        return resumed

    # ------------------------------------------------------------------
    # Control plane
    # ------------------------------------------------------------------

    async def _require_delivery(self, delivery_id: str) -> WebhookDelivery:
        delivery = await self.store.get_delivery(delivery_id)
        if delivery is None:
            raise NotFoundError("delivery", delivery_id)
        return delivery

    async def get_delivery(self, delivery_id: str) -> WebhookDelivery:
        """Get a delivery with its full attempt history.

        Raises:
            NotFoundError: If the delivery doesn't exist.
        """
        return await self._require_delivery(delivery_id)

    async def list_deliveries(
        self,
        webhook_id: str | None = None,
        status: DeliveryStatus | None = None,
        event_type: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> DeliveryPage:
        """List deliveries matching every given filter, newest first.

        Raises:
            ValidationError: If the page or limit is out of range.
        """
        deliveries = await self.store.list_deliveries(
            webhook_id=webhook_id,
            status=status,
            event_type=event_type,
            start=start_date,
            end=end_date,
        )
        items, pagination = paginate(deliveries, page, limit)
        return DeliveryPage(deliveries=items, pagination=pagination)

    async def get_recent_deliveries(self, limit: int = 50) -> list[WebhookDelivery]:
        """The newest deliveries across all endpoints."""
        if limit < 1:
            raise ValidationError("limit", "must be >= 1")
        deliveries = await self.store.list_deliveries()
        return deliveries[:limit]

    async def retry_delivery(self, delivery_id: str) -> DeliveryActionResult:
        """Manually retry a failed delivery.

        The delivery returns to pending with its attempt history intact and
        a fresh retry budget; an attempt starts immediately.

        Raises:
            NotFoundError: If the delivery doesn't exist.
            InvalidStateError: If the delivery has not failed.
        """
        async with self._delivery_locks.hold(delivery_id):
            delivery = await self._require_delivery(delivery_id)
            delivery.reset_for_retry()
            await self.store.save_delivery(delivery)

        if not delivery.is_test:
            async with self._endpoint_locks.hold(delivery.endpoint.id):
                endpoint = await self.store.get_endpoint(delivery.endpoint.id)
                if endpoint is not None:
                    endpoint.delivery_stats.record_retry_reset()
                    await self.store.save_endpoint(endpoint)

        self.scheduler.submit_when_idle(delivery_id)
        logger.info(
            "Delivery retry requested",
            delivery_id=delivery_id,
            webhook_id=delivery.endpoint.id,
            retry_count=delivery.retry_count,
        )
        return DeliveryActionResult(
            success=True,
            message="Delivery queued for retry",
            delivery=delivery,
        )

    async def cancel_delivery(self, delivery_id: str) -> DeliveryActionResult:
        """Cancel a pending delivery and pre-empt its scheduled retry.

        An attempt already in flight completes and is recorded, but no
        further attempt is made.

        Raises:
            NotFoundError: If the delivery doesn't exist.
            InvalidStateError: If the delivery is not pending.
        """
        async with self._delivery_locks.hold(delivery_id):
            delivery = await self._require_delivery(delivery_id)
            delivery.cancel(reason=CANCELLED_BY_USER)
            await self.store.save_delivery(delivery)
            self.scheduler.cancel(delivery_id)

        logger.info("Delivery cancelled", delivery_id=delivery_id, webhook_id=delivery.endpoint.id)
        return DeliveryActionResult(success=True, message="Delivery cancelled", delivery=delivery)


__all__ = ["CANCELLED_BY_USER", "ENDPOINT_DELETED", "ENDPOINT_INACTIVE", "DeliveriesMixin"]
