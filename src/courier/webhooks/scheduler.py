"""Attempt scheduling for deliveries.

Each delivery attempt runs as its own asyncio task. Retries are deferred
re-invocations armed with loop.call_later, so a pending retry costs a timer
handle rather than a sleeping task.

Attempts of a single delivery never overlap: a delivery with an attempt in
flight cannot be submitted again until that attempt finishes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from courier.logging import get_logger

logger = get_logger(__name__)

# Re-check interval when a timer fires while the previous attempt is
# still finishing.
_BUSY_RECHECK_MS = 10


class DeliveryScheduler:
    """Runs delivery attempts now or after a delay.

    Args:
        runner: Coroutine function performing one attempt for a delivery id.
        max_concurrent: Maximum attempts running at the same time.

    Example:
        ```python
        scheduler = DeliveryScheduler(pipeline.run_attempt, max_concurrent=10)
        scheduler.submit("dlv_123")             # attempt now
        scheduler.schedule("dlv_456", 2000)     # attempt in 2s
        scheduler.cancel("dlv_456")             # pre-empt the timer
        await scheduler.shutdown()
        ```
    """

    def __init__(
        self,
        runner: Callable[[str], Awaitable[None]],
        max_concurrent: int = 10,
    ) -> None:
        self._runner = runner
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    @property
    def scheduled_count(self) -> int:
        """Deliveries waiting on a retry timer."""
        return len(self._timers)

    @property
    def in_flight_count(self) -> int:
        """Deliveries with an attempt task currently running."""
        return len(self._in_flight)

    def is_scheduled(self, delivery_id: str) -> bool:
        return delivery_id in self._timers

    def is_in_flight(self, delivery_id: str) -> bool:
        return delivery_id in self._in_flight

    def submit(self, delivery_id: str) -> bool:
        """Start an attempt for a delivery immediately.

        Returns:
            False if the scheduler is closed or an attempt is already in
            flight for this delivery.
        """
        if self._closed or delivery_id in self._in_flight:
            return False
        self._disarm(delivery_id)
        task = asyncio.create_task(self._run(delivery_id), name=f"delivery:{delivery_id}")
        self._in_flight[delivery_id] = task
        task.add_done_callback(lambda _t: self._in_flight.pop(delivery_id, None))
        return True

    def submit_when_idle(self, delivery_id: str) -> None:
        """Start an attempt now, or right after the attempt in flight finishes.

        Used when a delivery re-enters pending while its previous attempt
        task may still be wrapping up.
        """
        if not self.submit(delivery_id):
            self.schedule(delivery_id, 0)

    def schedule(self, delivery_id: str, delay_ms: int) -> None:
        """Arm a timer that submits an attempt after `delay_ms`.

        Replaces any timer already armed for the delivery.
        """
        if self._closed:
            return
        self._disarm(delivery_id)
        loop = asyncio.get_running_loop()
        self._timers[delivery_id] = loop.call_later(
            max(delay_ms, 0) / 1000, self._fire, delivery_id
        )
        logger.debug("Attempt scheduled", delivery_id=delivery_id, delay_ms=delay_ms)

    def cancel(self, delivery_id: str) -> bool:
        """Cancel a scheduled (not yet fired) attempt.

        An attempt already in flight is not interrupted.

        Returns:
            True if a timer was cancelled.
        """
        return self._disarm(delivery_id)

    async def drain(self) -> None:
        """Wait until no attempt task is running.

        Attempts submitted while draining are awaited as well. Armed timers
        are left alone.
        """
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every timer and wait for in-flight attempts to finish."""
        self._closed = True
        for delivery_id in list(self._timers):
            self._disarm(delivery_id)
        await self.drain()

    def _disarm(self, delivery_id: str) -> bool:
        handle = self._timers.pop(delivery_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def _fire(self, delivery_id: str) -> None:
        self._timers.pop(delivery_id, None)
        if delivery_id in self._in_flight:
            self.schedule(delivery_id, _BUSY_RECHECK_MS)
            return
        self.submit(delivery_id)

    async def _run(self, delivery_id: str) -> None:
        async with self._semaphore:
            try:
                await self._runner(delivery_id)
            except Exception:
                logger.exception("Delivery attempt crashed", delivery_id=delivery_id)


__all__ = ["DeliveryScheduler"]
