"""Events mixin for WebhookService.

Provides event dispatch, test deliveries and the event type catalog.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from courier.exceptions import ValidationError
from courier.logging import get_logger
from courier.models import (
    TEST_EVENT_TYPE,
    EndpointSnapshot,
    EventTypeInfo,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
)
from courier.webhooks import catalog

from .helpers import to_validation_error
from .models import SendEventResult, TestWebhookResult

if TYPE_CHECKING:
    from courier.storage import WebhookStore
    from courier.webhooks.locks import KeyedLocks
    from courier.webhooks.scheduler import DeliveryScheduler

logger = get_logger(__name__)


class EventsMixin:
    """Mixin providing event dispatch.

    Expects these attributes/methods from the base class:
    - store: WebhookStore
    - scheduler: DeliveryScheduler
    - _endpoint_locks: KeyedLocks
    - get_webhook(webhook_id) -> WebhookEndpoint
    - _execute_attempt(delivery, allow_retry) -> (delivery, delay_ms)
    """

    store: WebhookStore
    scheduler: DeliveryScheduler
    _endpoint_locks: KeyedLocks
    get_webhook: Any
    _execute_attempt: Any

    async def send_event(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SendEventResult:
        """Fan an event out to every active endpoint subscribed to its type.

        One delivery is created per subscriber and its first attempt starts
        in the background; this call does not wait for any HTTP request.

        Args:
            event_type: Dotted event name, e.g. "invoice.paid".
            payload: Event-specific JSON data.
            metadata: Producer-supplied JSON context.

        Returns:
            SendEventResult with subscriber and delivery counts.

        Raises:
            ValidationError: If the event type is empty or the payload is
                not JSON-compatible.

        Example:
            ```python
            result = await courier.send_event("invoice.paid", {"invoice_id": "inv_1"})
            print(f"{result.deliveries_created} deliveries for {result.event_id}")
            ```
        """
        event = self._build_event(event_type, payload, metadata)
        endpoints = await self.store.list_endpoints()
        subscribers = [e for e in endpoints if e.subscribes_to(event.event_type)]

        delivery_ids: list[str] = []
        for subscriber in subscribers:
            delivery = await self._create_delivery(subscriber.id, event)
            if delivery is None:
                continue
            delivery_ids.append(delivery.id)
            self.scheduler.submit(delivery.id)

        if subscribers:
            message = f"Event sent to {len(delivery_ids)} webhook(s)"
        else:
            message = f"No active webhooks subscribed to {event.event_type}"

        logger.info(
            "Event dispatched",
            event_id=event.id,
            event_type=event.event_type,
            subscriber_count=len(subscribers),
            deliveries_created=len(delivery_ids),
        )
        return SendEventResult(
            success=True,
            event_id=event.id,
            subscriber_count=len(subscribers),
            deliveries_created=len(delivery_ids),
            delivery_ids=delivery_ids,
            message=message,
        )

    @staticmethod
    def _build_event(
        event_type: str,
        payload: dict[str, Any] | None,
        metadata: dict[str, Any] | None,
    ) -> WebhookEvent:
        event_type = event_type.strip()
        if not event_type:
            raise ValidationError("event_type", "must not be empty")
        try:
            return WebhookEvent(
                event_type=event_type,
                payload=payload or {},
                metadata=metadata or {},
            )
        except PydanticValidationError as e:
            raise to_validation_error(e) from e

    async def _create_delivery(
        self,
        endpoint_id: str,
        event: WebhookEvent,
    ) -> WebhookDelivery | None:
        """Create a delivery and count it, if the endpoint still subscribes."""
        async with self._endpoint_locks.hold(endpoint_id):
            endpoint = await self.store.get_endpoint(endpoint_id)
            if endpoint is None or not endpoint.subscribes_to(event.event_type):
                return None
            delivery = WebhookDelivery(
                endpoint=EndpointSnapshot.of(endpoint),
                event=event.snapshot(),
            )
            await self.store.save_delivery(delivery)
            endpoint.delivery_stats.record_created()
            await self.store.save_endpoint(endpoint)
        return delivery

    async def test_webhook(
        self,
        webhook_id: str,
        payload: dict[str, Any] | None = None,
    ) -> TestWebhookResult:
        """Send one synchronous test delivery to an endpoint.

        Works on inactive endpoints too. Test deliveries are never retried
        and do not count toward delivery_stats or analytics.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        endpoint: WebhookEndpoint = await self.get_webhook(webhook_id)
        if payload is None:
            sample = catalog.get_event_type(TEST_EVENT_TYPE)
            payload = dict(sample.sample_payload) if sample is not None else {}

        event = self._build_event(TEST_EVENT_TYPE, payload, {"test": True})
        delivery = WebhookDelivery(
            endpoint=EndpointSnapshot.of(endpoint),
            event=event.snapshot(),
            is_test=True,
        )
        await self.store.save_delivery(delivery)

        recorded, _ = await self._execute_attempt(delivery, allow_retry=False)
        if recorded is None:
            recorded = await self.store.get_delivery(delivery.id) or delivery

        success = recorded.status == "delivered"
        last = recorded.last_attempt
        if success and last is not None:
            message = f"Test delivery succeeded (HTTP {last.http_status})"
        elif last is not None:
            message = f"Test delivery failed: {last.failure_reason}"
        else:
            message = f"Test delivery {recorded.status}: {recorded.cancel_reason}"

        logger.info(
            "Test delivery finished",
            delivery_id=recorded.id,
            webhook_id=webhook_id,
            status=recorded.status,
        )
        return TestWebhookResult(success=success, delivery=recorded, message=message)

    def list_event_types(self, category: str | None = None) -> list[EventTypeInfo]:
        """Event types producers emit, with sample payloads."""
        return catalog.list_event_types(category)


__all__ = ["EventsMixin"]
