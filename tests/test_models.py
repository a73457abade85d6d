"""Unit tests for Courier data models."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from courier.exceptions import InvalidStateError
from courier.models import (
    DeliveryAttempt,
    DeliveryStats,
    EndpointSnapshot,
    HealthCheckConfig,
    SecurityConfig,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookEvent,
    canonical_json,
    check_webhook_url,
    generate_id,
    to_unix_ms,
)

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=UTC)


def make_endpoint(**overrides) -> WebhookEndpoint:
    data = {
        "name": "Billing",
        "url": "https://hooks.example.com/billing",
        "events": ["invoice.paid"],
    }
    data.update(overrides)
    return WebhookEndpoint(**data)


def make_delivery(**overrides) -> WebhookDelivery:
    endpoint = make_endpoint()
    event = WebhookEvent(event_type="invoice.paid", payload={"invoice_id": "inv_1"})
    return WebhookDelivery(
        endpoint=EndpointSnapshot.of(endpoint),
        event=event.snapshot(),
        **overrides,
    )


def attempt(number: int, success: bool = False, status: int = 500) -> DeliveryAttempt:
    return DeliveryAttempt(
        attempt_number=number,
        http_status=200 if success else status,
        duration_ms=25,
        success=success,
        error=None if success else f"HTTP {status}",
    )


class TestBaseHelpers:
    """Tests for id, time and JSON helpers."""

    def test_generate_id_prefix(self):
        webhook_id = generate_id("whk")
        assert webhook_id.startswith("whk_")
        assert len(webhook_id) == 16

    def test_to_unix_ms(self):
        assert to_unix_ms(datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)) == 1000

    def test_canonical_json_is_compact_and_ordered(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"b":1,"a":[1,2]}'

    def test_canonical_json_keeps_unicode(self):
        assert canonical_json({"name": "Zoë"}) == '{"name":"Zoë"}'

    def test_canonical_json_renders_datetimes(self):
        assert canonical_json({"at": NOW}) == '{"at":"2024-03-05T12:00:00+00:00"}'


class TestWebhookEndpoint:
    """Tests for endpoint validation."""

    def test_defaults(self):
        endpoint = make_endpoint()

        assert endpoint.id.startswith("whk_")
        assert endpoint.is_active
        assert endpoint.timeout_ms == 30_000
        assert endpoint.security.signature_method == "sha256"
        assert endpoint.security.secret_key.startswith("whsec_")
        assert endpoint.delivery_stats.total_deliveries == 0
        assert not endpoint.health_check.enabled

    def test_each_endpoint_gets_its_own_secret(self):
        assert make_endpoint().security.secret_key != make_endpoint().security.secret_key

    @pytest.mark.parametrize(
        "url",
        ["ftp://example.com/hook", "example.com/hook", "https://", "not a url"],
    )
    def test_invalid_urls_rejected(self, url):
        with pytest.raises(ValidationError):
            make_endpoint(url=url)

    def test_url_is_stripped(self):
        assert make_endpoint(url="  https://example.com/h  ").url == "https://example.com/h"

    def test_localhost_url_accepted(self):
        assert make_endpoint(url="http://localhost:8080/hooks").url == "http://localhost:8080/hooks"

    def test_events_required(self):
        with pytest.raises(ValidationError):
            make_endpoint(events=[])

    def test_blank_event_rejected(self):
        with pytest.raises(ValidationError):
            make_endpoint(events=["invoice.paid", "  "])

    def test_events_deduplicated_in_order(self):
        endpoint = make_endpoint(events=["b.x", "a.y", "b.x"])
        assert endpoint.events == ["b.x", "a.y"]

    @pytest.mark.parametrize("timeout_ms", [0, 300_001])
    def test_timeout_bounds(self, timeout_ms):
        with pytest.raises(ValidationError):
            make_endpoint(timeout_ms=timeout_ms)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            make_endpoint(owner="someone")

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            SecurityConfig(secret_key="short")

    def test_health_check_needs_expected_status(self):
        with pytest.raises(ValidationError):
            HealthCheckConfig(expected_status_codes=[])

    def test_subscribes_to(self):
        endpoint = make_endpoint(events=["invoice.paid", "invoice.generated"])

        assert endpoint.subscribes_to("invoice.paid")
        assert not endpoint.subscribes_to("payment.completed")

    def test_inactive_endpoint_subscribes_to_nothing(self):
        assert not make_endpoint(is_active=False).subscribes_to("invoice.paid")

    def test_check_webhook_url_reasons(self):
        assert check_webhook_url("https://example.com/h") is None
        assert check_webhook_url("ftp://example.com") == "URL must use http or https"
        assert check_webhook_url("http:///path") == "URL must be absolute"


class TestDeliveryStats:
    """Tests for running delivery counters."""

    def test_running_average(self):
        stats = DeliveryStats()
        stats.record_attempt(True, 100, NOW)
        stats.record_attempt(False, 300, NOW + timedelta(seconds=1))

        assert stats.sampled_attempts == 2
        assert stats.average_response_time == pytest.approx(200.0)
        assert stats.last_success_at == NOW
        assert stats.last_failure_at == NOW + timedelta(seconds=1)
        assert stats.last_delivery_at == NOW + timedelta(seconds=1)

    def test_outcomes(self):
        stats = DeliveryStats()
        stats.record_created()
        stats.record_created()
        stats.record_outcome("delivered")
        stats.record_outcome("failed")
        stats.record_outcome("cancelled")

        assert stats.total_deliveries == 2
        assert stats.successful_deliveries == 1
        assert stats.failed_deliveries == 1

    def test_retry_reset_never_goes_negative(self):
        stats = DeliveryStats()
        stats.record_retry_reset()
        assert stats.failed_deliveries == 0


class TestEventSnapshot:
    """Tests for the event envelope."""

    def test_body_envelope(self):
        event = WebhookEvent(
            id="evt_1",
            event_type="invoice.paid",
            payload={"invoice_id": "inv_1"},
            metadata={"source": "billing"},
            created_at=NOW,
        )

        body = json.loads(event.snapshot().to_body())

        assert body == {
            "id": "evt_1",
            "event_type": "invoice.paid",
            "created_at": "2024-03-05T12:00:00+00:00",
            "payload": {"invoice_id": "inv_1"},
            "metadata": {"source": "billing"},
        }

    def test_body_is_stable(self):
        snapshot = WebhookEvent(event_type="a.b", payload={"n": 1}).snapshot()
        assert snapshot.to_body() == snapshot.to_body()

    def test_non_json_payload_rejected(self):
        with pytest.raises(ValidationError):
            WebhookEvent(event_type="a.b", payload={"bad": object()})


class TestDeliveryLifecycle:
    """Tests for WebhookDelivery transitions."""

    def test_new_delivery_is_pending(self):
        delivery = make_delivery()

        assert delivery.status == "pending"
        assert delivery.total_attempts == 0
        assert delivery.next_attempt_number == 1
        assert not delivery.is_terminal

    def test_success_delivers(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1, success=True), retry_delay_ms=0, now=NOW)

        assert delivery.status == "delivered"
        assert delivery.delivered_at == NOW
        assert delivery.finalized_at == NOW
        assert delivery.next_retry_at is None
        assert delivery.total_attempts == 1

    def test_failure_with_delay_stays_pending(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), retry_delay_ms=2000, now=NOW)

        assert delivery.status == "pending"
        assert delivery.next_retry_at == NOW + timedelta(milliseconds=2000)

    def test_failure_without_delay_fails(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), retry_delay_ms=0, now=NOW)

        assert delivery.status == "failed"
        assert delivery.finalized_at == NOW
        assert delivery.next_retry_at is None

    def test_signature_and_timestamp_recorded(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), 100, signature="sha256=ab", timestamp=123)

        assert delivery.signature == "sha256=ab"
        assert delivery.timestamp == 123

    def test_cannot_record_after_terminal(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1, success=True), 0)

        with pytest.raises(InvalidStateError):
            delivery.record_attempt(attempt(2, success=True), 0)

    def test_cancelled_delivery_keeps_late_attempt(self):
        """An attempt in flight during cancellation is logged, status stays."""
        delivery = make_delivery()
        delivery.cancel("Cancelled by user")
        delivery.record_attempt(attempt(1, success=True), 0)

        assert delivery.status == "cancelled"
        assert delivery.total_attempts == 1
        assert delivery.delivered_at is None

    def test_cancel_only_pending(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), 0)

        with pytest.raises(InvalidStateError) as exc_info:
            delivery.cancel()
        assert exc_info.value.state == "failed"

    def test_cancel_clears_schedule(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), 1000)
        delivery.cancel("stop", now=NOW)

        assert delivery.status == "cancelled"
        assert delivery.cancel_reason == "stop"
        assert delivery.next_retry_at is None
        assert delivery.finalized_at == NOW

    def test_reset_for_retry_starts_fresh_cycle(self):
        delivery = make_delivery()
        delivery.record_attempt(attempt(1), 0)
        delivery.reset_for_retry(now=NOW)

        assert delivery.status == "pending"
        assert delivery.retry_count == 1
        assert delivery.cycle_offset == 1
        assert delivery.cycle_attempts == 0
        assert delivery.next_attempt_number == 2
        assert delivery.finalized_at is None
        assert len(delivery.attempts) == 1

    @pytest.mark.parametrize("status", ["pending", "delivered", "cancelled"])
    def test_reset_only_failed(self, status):
        delivery = make_delivery(status=status)
        with pytest.raises(InvalidStateError):
            delivery.reset_for_retry()

    def test_failure_reason_fallbacks(self):
        assert DeliveryAttempt(attempt_number=1, error="boom").failure_reason == "boom"
        assert DeliveryAttempt(attempt_number=1, http_status=503).failure_reason == "HTTP 503"
        assert DeliveryAttempt(attempt_number=1).failure_reason == "Unknown error"
