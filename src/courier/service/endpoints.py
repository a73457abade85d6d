"""Endpoints mixin for WebhookService.

Provides endpoint registration, partial updates, activation, secret
rotation and listing. Every read-modify-write of an endpoint happens under
its lock, so concurrent updates and delivery statistics never overwrite
each other.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from courier.exceptions import NotFoundError
from courier.logging import get_logger
from courier.models import (
    CreateWebhookData,
    HealthCheckConfig,
    HealthCheckUpdate,
    SecurityConfig,
    SecurityUpdate,
    UpdateWebhookData,
    WebhookEndpoint,
    check_webhook_url,
    generate_secret,
    utc_now,
)

from .helpers import merge_changes, paginate, to_validation_error, validate_model
from .models import EndpointPage, UrlValidationResult

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.storage import WebhookStore
    from courier.webhooks.locks import KeyedLocks
    from courier.webhooks.transport import WebhookTransport

logger = get_logger(__name__)


class EndpointsMixin:
    """Mixin providing the endpoint registry.

    Expects these attributes from the base class:
    - store: WebhookStore
    - transport: WebhookTransport
    - settings: Settings
    - _endpoint_locks: KeyedLocks
    """

    store: WebhookStore
    transport: WebhookTransport
    settings: Settings
    _endpoint_locks: KeyedLocks

    def _validate_endpoint(self, data: dict[str, Any]) -> WebhookEndpoint:
        try:
            return WebhookEndpoint.model_validate(data)
        except PydanticValidationError as e:
            raise to_validation_error(e) from e

    def _build_endpoint(self, data: CreateWebhookData) -> WebhookEndpoint:
        """Fill unset configuration from settings defaults and validate."""
        defaults: dict[str, Any] = {
            "timeout_ms": self.settings.default_timeout_ms,
            "retry_policy": self.settings.default_retry_policy.model_dump(),
            "security": SecurityConfig().model_dump(),
            "health_check": HealthCheckConfig().model_dump(),
        }
        return self._validate_endpoint(merge_changes(defaults, data.model_dump(exclude_none=True)))

    async def _require_endpoint(self, webhook_id: str) -> WebhookEndpoint:
        endpoint = await self.store.get_endpoint(webhook_id)
        if endpoint is None:
            raise NotFoundError("webhook", webhook_id)
        return endpoint

    async def _apply_changes(self, webhook_id: str, changes: dict[str, Any]) -> WebhookEndpoint:
        """Merge changes into an endpoint under its lock and persist.

        Nothing is saved if the merged endpoint fails validation.
        """
        async with self._endpoint_locks.hold(webhook_id):
            current = await self._require_endpoint(webhook_id)
            merged = merge_changes(current.model_dump(), changes)
            merged["id"] = current.id
            merged["updated_at"] = utc_now()
            endpoint = self._validate_endpoint(merged)
            await self.store.save_endpoint(endpoint)
        return endpoint

    async def create_webhook(self, data: CreateWebhookData | dict[str, Any]) -> WebhookEndpoint:
        """Register a new endpoint.

        Unset timeout and retry policy fall back to the settings defaults;
        a signing secret is generated unless one is supplied.

        Args:
            data: Endpoint configuration.

        Returns:
            The stored endpoint.

        Raises:
            ValidationError: If the URL or any configuration value is
                invalid. Nothing is persisted in that case.

        Example:
            ```python
            endpoint = await courier.create_webhook(
                {"name": "Billing", "url": "https://example.com/hooks", "events": ["invoice.paid"]}
            )
            ```
        """
        create = validate_model(CreateWebhookData, data)
        endpoint = self._build_endpoint(create)
        await self.store.save_endpoint(endpoint)
        logger.info("Webhook created", webhook_id=endpoint.id, url=endpoint.url)
        return endpoint

    async def get_webhook(self, webhook_id: str) -> WebhookEndpoint:
        """Get an endpoint by id.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        return await self._require_endpoint(webhook_id)

    async def update_webhook(
        self,
        webhook_id: str,
        data: UpdateWebhookData | dict[str, Any],
    ) -> WebhookEndpoint:
        """Apply a partial update; nested partials are merged field by field.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
            ValidationError: If the merged configuration is invalid.
        """
        update = validate_model(UpdateWebhookData, data)
        endpoint = await self._apply_changes(webhook_id, update.model_dump(exclude_unset=True))
        logger.info("Webhook updated", webhook_id=webhook_id)
        return endpoint

    async def delete_webhook(self, webhook_id: str) -> None:
        """Delete an endpoint. Its delivery history is kept.

        Pending deliveries to the endpoint are cancelled when their next
        attempt comes due.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        async with self._endpoint_locks.hold(webhook_id):
            if not await self.store.delete_endpoint(webhook_id):
                raise NotFoundError("webhook", webhook_id)
        logger.info("Webhook deleted", webhook_id=webhook_id)

    async def toggle_webhook(self, webhook_id: str, is_active: bool) -> WebhookEndpoint:
        """Activate or deactivate an endpoint.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        endpoint = await self._apply_changes(webhook_id, {"is_active": is_active})
        logger.info("Webhook toggled", webhook_id=webhook_id, is_active=is_active)
        return endpoint

    async def regenerate_secret(self, webhook_id: str) -> tuple[WebhookEndpoint, str]:
        """Replace an endpoint's signing secret.

        Attempts signed after this call use the new secret. Signatures
        already recorded on deliveries are left as they were sent.

        Returns:
            The updated endpoint and the new secret.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
        """
        secret = generate_secret()
        endpoint = await self._apply_changes(webhook_id, {"security": {"secret_key": secret}})
        logger.info("Webhook secret regenerated", webhook_id=webhook_id)
        return endpoint, secret

    async def update_security(
        self,
        webhook_id: str,
        data: SecurityUpdate | dict[str, Any],
    ) -> WebhookEndpoint:
        """Partially update an endpoint's signing configuration.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
            ValidationError: If the resulting configuration is invalid.
        """
        update = validate_model(SecurityUpdate, data)
        endpoint = await self._apply_changes(
            webhook_id, {"security": update.model_dump(exclude_unset=True)}
        )
        logger.info("Webhook security updated", webhook_id=webhook_id)
        return endpoint

    async def update_health_check(
        self,
        webhook_id: str,
        data: HealthCheckUpdate | dict[str, Any],
    ) -> WebhookEndpoint:
        """Partially update an endpoint's health-check configuration.

        Probe results (last_check and friends) are not writable here.

        Raises:
            NotFoundError: If the endpoint doesn't exist.
            ValidationError: If the resulting configuration is invalid.
        """
        update = validate_model(HealthCheckUpdate, data)
        endpoint = await self._apply_changes(
            webhook_id, {"health_check": update.model_dump(exclude_unset=True)}
        )
        logger.info("Webhook health check updated", webhook_id=webhook_id)
        return endpoint

    async def list_webhooks(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        is_active: bool | None = None,
        events: list[str] | None = None,
    ) -> EndpointPage:
        """List endpoints, oldest first.

        Args:
            page: 1-based page number.
            limit: Page size (1-100).
            search: Case-insensitive substring of name, url or description.
            is_active: Only endpoints with this activation state.
            events: Only endpoints subscribed to any of these event types.

        Raises:
            ValidationError: If the page or limit is out of range.
        """
        endpoints = await self.store.list_endpoints()

        if search:
            needle = search.lower()
            endpoints = [
                e
                for e in endpoints
                if needle in e.name.lower()
                or needle in e.url.lower()
                or needle in (e.description or "").lower()
            ]
        if is_active is not None:
            endpoints = [e for e in endpoints if e.is_active == is_active]
        if events:
            wanted = set(events)
            endpoints = [e for e in endpoints if wanted.intersection(e.events)]

        items, pagination = paginate(endpoints, page, limit)
        return EndpointPage(webhooks=items, pagination=pagination)

    async def validate_url(self, url: str) -> UrlValidationResult:
        """Check a candidate webhook URL statically, then probe it.

        Any HTTP response counts as reachable, whatever its status.
        """
        url = url.strip()
        problem = check_webhook_url(url)
        if problem is not None:
            return UrlValidationResult(valid=False, reachable=False, error=problem)

        probe = await self.transport.probe("HEAD", url, self.settings.url_probe_timeout_ms)
        return UrlValidationResult(
            valid=True,
            reachable=probe.responded,
            response_time_ms=probe.response_time_ms,
            http_status=probe.http_status if probe.responded else None,
            error=probe.error,
        )


__all__ = ["EndpointsMixin"]
