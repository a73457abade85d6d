"""Health mixin for WebhookService.

Provides on-demand and periodic endpoint health probes.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from courier.exceptions import CourierError
from courier.logging import get_logger
from courier.models import utc_now
from courier.webhooks.health import HealthMonitor, classify_probe, is_check_due, probe_url

from .models import HealthCheckResult

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.storage import WebhookStore
    from courier.webhooks.locks import KeyedLocks
    from courier.webhooks.transport import WebhookTransport

logger = get_logger(__name__)


class HealthMixin:
    """Mixin providing health checks.

    Expects these attributes/methods from the base class:
    - store: WebhookStore
    - transport: WebhookTransport
    - settings: Settings
    - _endpoint_locks: KeyedLocks
    - _health_monitor: HealthMonitor | None
    - _require_endpoint(webhook_id) -> WebhookEndpoint
    """

    store: WebhookStore
    transport: WebhookTransport
    settings: Settings
    _endpoint_locks: KeyedLocks
    _health_monitor: HealthMonitor | None
    _require_endpoint: Any

    async def trigger_health_check(self, webhook_id: str) -> HealthCheckResult:
        """Probe an endpoint now and record the result on its health_check.

        The probe uses the configured method, path and timeout. Delivery
        statistics are never touched.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        endpoint = await self._require_endpoint(webhook_id)
        config = endpoint.health_check
        probe = await self.transport.probe(config.method, probe_url(endpoint), config.timeout_ms)
        status = classify_probe(probe, config)
        checked_at = utc_now()

        async with self._endpoint_locks.hold(webhook_id):
            current = await self._require_endpoint(webhook_id)
            current.health_check.last_check = checked_at
            current.health_check.last_check_status = status
            current.health_check.last_response_time_ms = probe.response_time_ms
            await self.store.save_endpoint(current)

        logger.info(
            "Health check completed",
            webhook_id=webhook_id,
            status=status,
            http_status=probe.http_status,
            response_time_ms=probe.response_time_ms,
        )
        error = probe.error
        if error is None and status == "failure":
            error = f"Unexpected status {probe.http_status}"
        return HealthCheckResult(
            webhook_id=webhook_id,
            status=status,
            response_time_ms=probe.response_time_ms,
            http_status=probe.http_status,
            error=error,
            checked_at=checked_at,
        )

    async def run_due_health_checks(self) -> list[HealthCheckResult]:
        """Probe every active endpoint whose check interval has elapsed.

        Endpoints deleted mid-sweep are skipped.
        """
        now = utc_now()
        due = [e for e in await self.store.list_endpoints() if is_check_due(e, now)]
        if not due:
            return []

        outcomes = await asyncio.gather(
            *(self.trigger_health_check(e.id) for e in due),
            return_exceptions=True,
        )
        results: list[HealthCheckResult] = []
        for endpoint, outcome in zip(due, outcomes, strict=True):
            if isinstance(outcome, CourierError):
                logger.warning("Health check skipped", webhook_id=endpoint.id, error=outcome.message)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

    def start_health_monitor(self) -> HealthMonitor:
        """Start the periodic health monitor if it is not running."""
        if self._health_monitor is None:
            self._health_monitor = HealthMonitor(self, self.settings.health_poll_interval_s)  # type: ignore[arg-type]
        self._health_monitor.start()
        return self._health_monitor

    async def stop_health_monitor(self) -> None:
        """Stop the periodic health monitor."""
        if self._health_monitor is not None:
            await self._health_monitor.stop()


__all__ = ["HealthMixin"]
