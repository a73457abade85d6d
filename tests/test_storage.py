"""Unit tests for Courier storage backends.

Every test runs against the in-memory store and against QdrantWebhookStore
in qdrant-client's local in-memory mode. No external Qdrant server is
required.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import wait_none

from courier.config import Settings
from courier.exceptions import ConfigurationError
from courier.models import (
    EndpointSnapshot,
    EventSnapshot,
    WebhookDelivery,
    WebhookEndpoint,
)
from courier.storage import InMemoryWebhookStore, QdrantWebhookStore, WebhookStore, get_store
from courier.storage.retry import is_transient_error

BASE = datetime(2024, 3, 5, 12, 0, tzinfo=UTC)


def make_endpoint(name: str = "Billing", minutes: int = 0) -> WebhookEndpoint:
    return WebhookEndpoint(
        name=name,
        url=f"https://{name.lower()}.example.com/hook",
        events=["invoice.paid"],
        created_at=BASE + timedelta(minutes=minutes),
    )


def make_delivery(
    endpoint_id: str = "whk_a",
    event_type: str = "invoice.paid",
    status: str = "pending",
    minutes: int = 0,
) -> WebhookDelivery:
    created_at = BASE + timedelta(minutes=minutes)
    return WebhookDelivery(
        endpoint=EndpointSnapshot(id=endpoint_id, name="A", url="https://a.example.com"),
        event=EventSnapshot(id="evt_1", event_type=event_type, created_at=created_at),
        status=status,
        created_at=created_at,
    )


@pytest.fixture(params=["memory", "qdrant"])
async def store(request):
    """An initialized store of each backend."""
    if request.param == "memory":
        backend: WebhookStore = InMemoryWebhookStore()
    else:
        backend = QdrantWebhookStore(prefix="test", location=":memory:")
    await backend.initialize()

    yield backend

    await backend.close()


class TestEndpoints:
    """Tests for endpoint persistence."""

    async def test_save_and_get(self, store):
        endpoint = make_endpoint()

        assert await store.save_endpoint(endpoint) == endpoint.id
        assert await store.get_endpoint(endpoint.id) == endpoint

    async def test_get_missing(self, store):
        assert await store.get_endpoint("whk_missing") is None

    async def test_save_replaces(self, store):
        endpoint = make_endpoint()
        await store.save_endpoint(endpoint)

        endpoint.name = "Renamed"
        endpoint.delivery_stats.record_created()
        await store.save_endpoint(endpoint)

        stored = await store.get_endpoint(endpoint.id)
        assert stored.name == "Renamed"
        assert stored.delivery_stats.total_deliveries == 1
        assert len(await store.list_endpoints()) == 1

    async def test_returned_models_are_copies(self, store):
        endpoint = make_endpoint()
        await store.save_endpoint(endpoint)

        fetched = await store.get_endpoint(endpoint.id)
        fetched.name = "Changed"
        endpoint.name = "Also changed"

        assert (await store.get_endpoint(endpoint.id)).name == "Billing"

    async def test_delete(self, store):
        endpoint = make_endpoint()
        await store.save_endpoint(endpoint)

        assert await store.delete_endpoint(endpoint.id)
        assert not await store.delete_endpoint(endpoint.id)
        assert await store.get_endpoint(endpoint.id) is None

    async def test_list_oldest_first(self, store):
        late = make_endpoint("Late", minutes=5)
        early = make_endpoint("Early", minutes=1)
        await store.save_endpoint(late)
        await store.save_endpoint(early)

        assert [e.name for e in await store.list_endpoints()] == ["Early", "Late"]


class TestDeliveries:
    """Tests for delivery persistence and filtering."""

    async def test_save_and_get(self, store):
        delivery = make_delivery()

        assert await store.save_delivery(delivery) == delivery.id
        assert await store.get_delivery(delivery.id) == delivery
        assert await store.get_delivery("dlv_missing") is None

    async def test_list_newest_first(self, store):
        old = make_delivery(minutes=1)
        new = make_delivery(minutes=2)
        await store.save_delivery(old)
        await store.save_delivery(new)

        assert [d.id for d in await store.list_deliveries()] == [new.id, old.id]

    async def test_filters(self, store):
        a_paid = make_delivery("whk_a", "invoice.paid", "delivered", minutes=1)
        a_failed = make_delivery("whk_a", "payment.failed", "failed", minutes=2)
        b_paid = make_delivery("whk_b", "invoice.paid", "pending", minutes=3)
        for delivery in (a_paid, a_failed, b_paid):
            await store.save_delivery(delivery)

        assert {d.id for d in await store.list_deliveries(webhook_id="whk_a")} == {
            a_paid.id,
            a_failed.id,
        }
        assert [d.id for d in await store.list_deliveries(status="pending")] == [b_paid.id]
        assert [d.id for d in await store.list_deliveries(event_type="payment.failed")] == [
            a_failed.id
        ]
        assert [
            d.id for d in await store.list_deliveries(webhook_id="whk_a", event_type="invoice.paid")
        ] == [a_paid.id]

    async def test_date_range_is_inclusive(self, store):
        deliveries = [make_delivery(minutes=m) for m in (0, 10, 20)]
        for delivery in deliveries:
            await store.save_delivery(delivery)

        window = await store.list_deliveries(
            start=BASE + timedelta(minutes=10),
            end=BASE + timedelta(minutes=20),
        )
        before = await store.list_deliveries(end=BASE + timedelta(minutes=5))

        assert [d.id for d in window] == [deliveries[2].id, deliveries[1].id]
        assert [d.id for d in before] == [deliveries[0].id]

    async def test_status_update_is_visible_to_filters(self, store):
        delivery = make_delivery()
        await store.save_delivery(delivery)

        delivery.cancel("stop")
        await store.save_delivery(delivery)

        assert await store.list_deliveries(status="pending") == []
        assert len(await store.list_deliveries(status="cancelled")) == 1


class TestQdrantStore:
    """Qdrant-specific behavior."""

    async def test_collections_are_prefixed(self):
        async with QdrantWebhookStore(prefix="unit", location=":memory:") as store:
            collections = await store.client.get_collections()
            names = {c.name for c in collections.collections}

        assert names == {"unit_webhook_endpoints", "unit_webhook_deliveries"}

    def test_point_ids_are_deterministic_uuids(self):
        first = QdrantWebhookStore._key_to_point_id("whk_abc")

        assert first == QdrantWebhookStore._key_to_point_id("whk_abc")
        assert first != QdrantWebhookStore._key_to_point_id("whk_abd")
        assert [len(part) for part in first.split("-")] == [8, 4, 4, 4, 12]

    def test_client_requires_initialize(self):
        store = QdrantWebhookStore(location=":memory:")

        with pytest.raises(RuntimeError):
            _ = store.client

    async def test_scroll_limit_caps_listing(self):
        async with QdrantWebhookStore(prefix="cap", location=":memory:", max_scroll=2) as store:
            for minutes in range(4):
                await store.save_delivery(make_delivery(minutes=minutes))

            assert len(await store.list_deliveries()) == 2


class TestGetStore:
    """Tests for backend selection."""

    def test_memory_backend(self):
        assert isinstance(get_store(Settings(storage_backend="memory")), InMemoryWebhookStore)

    def test_qdrant_backend(self):
        store = get_store(Settings(storage_backend="qdrant", collection_prefix="svc"))

        assert isinstance(store, QdrantWebhookStore)
        assert store._prefix == "svc"

    def test_unknown_backend(self):
        settings = Settings()
        settings.storage_backend = "redis"  # type: ignore[assignment]

        with pytest.raises(ConfigurationError):
            get_store(settings)


class TestQdrantRetry:
    """Tests for retrying transient Qdrant failures."""

    @pytest.fixture(autouse=True)
    def no_backoff(self, monkeypatch):
        monkeypatch.setattr(QdrantWebhookStore._upsert.retry, "wait", wait_none())

    def make_store(self, upsert: AsyncMock) -> QdrantWebhookStore:
        store = QdrantWebhookStore(location=":memory:")
        store._client = MagicMock()
        store._client.upsert = upsert
        return store

    async def test_transient_error_is_retried(self):
        upsert = AsyncMock(side_effect=[httpx.ConnectError("down"), None])
        store = self.make_store(upsert)

        await store.save_endpoint(make_endpoint())

        assert upsert.await_count == 2

    async def test_gives_up_after_three_attempts(self):
        upsert = AsyncMock(side_effect=httpx.ConnectError("down"))
        store = self.make_store(upsert)

        with pytest.raises(httpx.ConnectError):
            await store.save_endpoint(make_endpoint())

        assert upsert.await_count == 3

    async def test_other_errors_are_not_retried(self):
        upsert = AsyncMock(side_effect=ValueError("bad payload"))
        store = self.make_store(upsert)

        with pytest.raises(ValueError):
            await store.save_endpoint(make_endpoint())

        assert upsert.await_count == 1

    async def test_rejected_request_is_not_retried(self):
        upsert = AsyncMock(side_effect=qdrant_response(400))
        store = self.make_store(upsert)

        with pytest.raises(UnexpectedResponse):
            await store.save_endpoint(make_endpoint())

        assert upsert.await_count == 1


def qdrant_response(status: int) -> UnexpectedResponse:
    return UnexpectedResponse(
        status_code=status,
        reason_phrase="",
        content=b"{}",
        headers=httpx.Headers(),
    )


class TestIsTransientError:
    """Tests for classifying storage failures."""

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("down"),
            httpx.ReadTimeout("slow"),
            httpx.RemoteProtocolError("reset"),
        ],
    )
    def test_network_errors(self, exc):
        assert is_transient_error(exc)

    @pytest.mark.parametrize(("status", "expected"), [(500, True), (503, True), (429, True)])
    def test_retryable_responses(self, status, expected):
        assert is_transient_error(qdrant_response(status)) is expected

    @pytest.mark.parametrize("status", [400, 404, 422])
    def test_client_errors(self, status):
        assert not is_transient_error(qdrant_response(status))

    def test_other_exceptions(self):
        assert not is_transient_error(ValueError("bad payload"))
