"""Test helpers for waiting on background delivery work."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from courier.models import DeliveryStatus, WebhookDelivery
from courier.service import WebhookService


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    timeout: float = 3.0,
    interval: float = 0.01,
) -> None:
    """Poll an async predicate until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not await predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


async def wait_for_status(
    service: WebhookService,
    delivery_id: str,
    status: DeliveryStatus,
    timeout: float = 3.0,
) -> WebhookDelivery:
    """Wait for a delivery to reach a status, then let in-flight work settle."""

    async def _reached() -> bool:
        delivery = await service.store.get_delivery(delivery_id)
        return delivery is not None and delivery.status == status

    await wait_until(_reached, timeout=timeout)
    await service.scheduler.drain()
    return await service.get_delivery(delivery_id)
