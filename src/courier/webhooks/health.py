"""Endpoint health checks.

Health probes are out-of-band: they update an endpoint's health_check
fields and never its delivery_stats.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from courier.logging import get_logger
from courier.models import HealthCheckConfig, HealthStatus, WebhookEndpoint

from .transport import ProbeResult

if TYPE_CHECKING:
    from courier.service import WebhookService

logger = get_logger(__name__)


def probe_url(endpoint: WebhookEndpoint) -> str:
    """URL probed for an endpoint: its url, plus the configured path if any."""
    path = endpoint.health_check.path
    if not path:
        return endpoint.url
    return f"{endpoint.url.rstrip('/')}/{path.lstrip('/')}"


def classify_probe(result: ProbeResult, config: HealthCheckConfig) -> HealthStatus:
    """Map a probe result to success, failure or timeout."""
    if result.timed_out:
        return "timeout"
    if result.responded and result.http_status in config.expected_status_codes:
        return "success"
    return "failure"


def is_check_due(endpoint: WebhookEndpoint, now: datetime) -> bool:
    """Whether the periodic monitor should probe this endpoint now."""
    config = endpoint.health_check
    if not (endpoint.is_active and config.enabled):
        return False
    if config.last_check is None:
        return True
    return now - config.last_check >= timedelta(milliseconds=config.interval_ms)


class HealthMonitor:
    """Background loop that re-probes endpoints whose interval has elapsed.

    Example:
        ```python
        monitor = HealthMonitor(service, poll_interval_s=30)
        monitor.start()
        ...
        await monitor.stop()
        ```
    """

    def __init__(self, service: WebhookService, poll_interval_s: float = 30.0) -> None:
        self._service = service
        self._poll_interval_s = poll_interval_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the monitor loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="courier-health-monitor")
        logger.info("Health monitor started", poll_interval_s=self._poll_interval_s)

    async def stop(self) -> None:
        """Stop the monitor loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Health monitor stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self._service.run_due_health_checks()
            except Exception:
                logger.exception("Health check sweep failed")
            await asyncio.sleep(self._poll_interval_s)


__all__ = ["HealthMonitor", "classify_probe", "is_check_due", "probe_url"]
