"""Storage backends for Courier.

Example:
    ```python
    from courier.storage import get_store

    async with get_store(settings) as store:
        await store.save_endpoint(endpoint)
        failed = await store.list_deliveries(status="failed")
    ```
"""

from __future__ import annotations

from courier.config import Settings
from courier.exceptions import ConfigurationError

from .base import WebhookStore
from .memory import InMemoryWebhookStore
from .qdrant import QdrantWebhookStore


def get_store(settings: Settings) -> WebhookStore:
    """Build the store selected by settings.storage_backend.

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    if settings.storage_backend == "memory":
        return InMemoryWebhookStore()
    if settings.storage_backend == "qdrant":
        return QdrantWebhookStore(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefix=settings.collection_prefix,
            max_scroll=settings.storage_max_scroll_limit,
        )
    raise ConfigurationError(f"Unknown storage backend: {settings.storage_backend}")


__all__ = ["InMemoryWebhookStore", "QdrantWebhookStore", "WebhookStore", "get_store"]
