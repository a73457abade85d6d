"""Qdrant-backed store for endpoints and deliveries.

Records are stored as payload-only points: the vector is a single zero,
since nothing here needs similarity search. Point ids are derived from
record ids, so saving a record twice overwrites it in place.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from courier.config import settings
from courier.logging import get_logger
from courier.models import DeliveryStatus, WebhookDelivery, WebhookEndpoint

from .base import WebhookStore
from .retry import qdrant_retry

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", WebhookEndpoint, WebhookDelivery)

# Collection suffixes by record kind
COLLECTION_NAMES = {
    "endpoints": "webhook_endpoints",
    "deliveries": "webhook_deliveries",
}

# Payload-only collections still need a vector
_VECTOR_SIZE = 1
_ZERO_VECTOR = [0.0] * _VECTOR_SIZE

_SCROLL_PAGE = 256


class QdrantWebhookStore(WebhookStore):
    """WebhookStore persisting to Qdrant collections.

    Args:
        url: Qdrant server URL. Defaults to settings.qdrant_url.
        api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
        prefix: Collection name prefix. Defaults to settings.collection_prefix.
        location: Passed to AsyncQdrantClient instead of url, e.g. ":memory:".
        max_scroll: Upper bound on records returned by a list operation.

    Example:
        ```python
        async with QdrantWebhookStore(location=":memory:") as store:
            await store.save_endpoint(endpoint)
        ```
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        location: str | None = None,
        max_scroll: int | None = None,
    ) -> None:
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._location = location
        self._max_scroll = max_scroll or settings.storage_max_scroll_limit
        self._client: AsyncQdrantClient | None = None

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Connect and ensure both collections exist."""
        if self._location is not None:
            self._client = AsyncQdrantClient(location=self._location)
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()
        logger.info("Qdrant store initialized", prefix=self._prefix)

    async def close(self) -> None:
        """Close the Qdrant connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _collection_name(self, kind: str) -> str:
        """Get full collection name with prefix."""
        return f"{self._prefix}_{COLLECTION_NAMES[kind]}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert a record id to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the id to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}
        for kind in COLLECTION_NAMES:
            collection_name = self._collection_name(kind)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=_VECTOR_SIZE,
                    distance=models.Distance.DOT,
                ),
            )
            await self._create_indexes(kind, collection_name)

    async def _create_indexes(self, kind: str, collection_name: str) -> None:
        """Create payload indexes for the fields list_deliveries filters on."""
        if kind != "deliveries":
            return
        for field_name in ("endpoint.id", "event.event_type", "status"):
            await self.client.create_payload_index(
                collection_name=collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        await self.client.create_payload_index(
            collection_name=collection_name,
            field_name="created_at_ts",
            field_schema=models.PayloadSchemaType.FLOAT,
        )

    @staticmethod
    def _record_to_payload(record: BaseModel) -> dict[str, Any]:
        data = record.model_dump(mode="json")
        created_at = getattr(record, "created_at", None)
        if isinstance(created_at, datetime):
            data["created_at_ts"] = created_at.timestamp()
        return data

    @staticmethod
    def _payload_to_record(payload: dict[str, Any], record_class: type[RecordT]) -> RecordT:
        payload = dict(payload)
        payload.pop("created_at_ts", None)
        return record_class.model_validate(payload)

    @qdrant_retry
    async def _upsert(self, kind: str, record_id: str, record: BaseModel) -> None:
        await self.client.upsert(
            collection_name=self._collection_name(kind),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(record_id),
                    vector=_ZERO_VECTOR,
                    payload=self._record_to_payload(record),
                )
            ],
        )

    @qdrant_retry
    async def _retrieve(self, kind: str, record_id: str) -> dict[str, Any] | None:
        results = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._key_to_point_id(record_id)],
            with_payload=True,
        )
        if not results:
            return None
        return results[0].payload

    @qdrant_retry
    async def _scroll_all(
        self,
        kind: str,
        scroll_filter: models.Filter | None = None,
    ) -> list[dict[str, Any]]:
        """Scroll through every matching point, up to the scroll limit."""
        payloads: list[dict[str, Any]] = []
        offset: Any = None
        while len(payloads) < self._max_scroll:
            batch, offset = await self.client.scroll(
                collection_name=self._collection_name(kind),
                scroll_filter=scroll_filter,
                limit=min(_SCROLL_PAGE, self._max_scroll - len(payloads)),
                offset=offset,
                with_payload=True,
                with_vectors=False,
            )
            payloads.extend(point.payload for point in batch if point.payload is not None)
            if offset is None:
                break
        return payloads

    async def save_endpoint(self, endpoint: WebhookEndpoint) -> str:
        await self._upsert("endpoints", endpoint.id, endpoint)
        return endpoint.id

    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        payload = await self._retrieve("endpoints", endpoint_id)
        if payload is None:
            return None
        return self._payload_to_record(payload, WebhookEndpoint)

    @qdrant_retry
    async def delete_endpoint(self, endpoint_id: str) -> bool:
        point_id = self._key_to_point_id(endpoint_id)
        collection = self._collection_name("endpoints")
        existing = await self.client.retrieve(collection_name=collection, ids=[point_id])
        if not existing:
            return False
        await self.client.delete(
            collection_name=collection,
            points_selector=models.PointIdsList(points=[point_id]),
        )
        return True

    async def list_endpoints(self) -> list[WebhookEndpoint]:
        payloads = await self._scroll_all("endpoints")
        endpoints = [self._payload_to_record(p, WebhookEndpoint) for p in payloads]
        endpoints.sort(key=lambda e: e.created_at)
        return endpoints

    async def save_delivery(self, delivery: WebhookDelivery) -> str:
        await self._upsert("deliveries", delivery.id, delivery)
        return delivery.id

    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        payload = await self._retrieve("deliveries", delivery_id)
        if payload is None:
            return None
        return self._payload_to_record(payload, WebhookDelivery)

    async def list_deliveries(
        self,
        webhook_id: str | None = None,
        status: DeliveryStatus | None = None,
        event_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[WebhookDelivery]:
        filters: list[models.FieldCondition] = []
        if webhook_id is not None:
            filters.append(
                models.FieldCondition(key="endpoint.id", match=models.MatchValue(value=webhook_id))
            )
        if status is not None:
            filters.append(
                models.FieldCondition(key="status", match=models.MatchValue(value=status))
            )
        if event_type is not None:
            filters.append(
                models.FieldCondition(
                    key="event.event_type",
                    match=models.MatchValue(value=event_type),
                )
            )
        if start is not None or end is not None:
            filters.append(
                models.FieldCondition(
                    key="created_at_ts",
                    range=models.Range(
                        gte=start.timestamp() if start is not None else None,
                        lte=end.timestamp() if end is not None else None,
                    ),
                )
            )

        scroll_filter = models.Filter(must=filters) if filters else None
        payloads = await self._scroll_all("deliveries", scroll_filter)
        deliveries = [self._payload_to_record(p, WebhookDelivery) for p in payloads]
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries


__all__ = ["COLLECTION_NAMES", "QdrantWebhookStore"]
