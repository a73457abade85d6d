"""Transfer mixin for WebhookService.

Exports endpoint configurations without their secrets, and imports them
back with skip or overwrite semantics.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from courier.exceptions import CourierError
from courier.logging import get_logger
from courier.models import ImportWebhookData, WebhookEndpoint, utc_now

from .helpers import validate_model
from .models import ExportBundle, ImportFailure, ImportResult

if TYPE_CHECKING:
    from courier.config import Settings
    from courier.storage import WebhookStore

logger = get_logger(__name__)

# Derived fields present in exports that an import never takes over
_DERIVED_FIELDS = ("delivery_stats", "created_at", "updated_at")
_HEALTH_RESULT_FIELDS = ("last_check", "last_check_status", "last_response_time_ms")


def export_view(endpoint: WebhookEndpoint) -> dict[str, Any]:
    """JSON-ready endpoint configuration with the secret removed."""
    data = endpoint.model_dump(mode="json")
    data["security"].pop("secret_key", None)
    return data


def strip_derived(item: dict[str, Any]) -> dict[str, Any]:
    """Drop statistics, timestamps and probe results from an exported item."""
    data = {k: v for k, v in item.items() if k not in _DERIVED_FIELDS}
    health_check = data.get("health_check")
    if isinstance(health_check, dict):
        data["health_check"] = {
            k: v for k, v in health_check.items() if k not in _HEALTH_RESULT_FIELDS
        }
    return data


def _label(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("name", "url", "id"):
            if item.get(key):
                return str(item[key])
    return "<unknown>"


class TransferMixin:
    """Mixin providing export and import.

    Expects these attributes/methods from the base class:
    - store: WebhookStore
    - settings: Settings
    - _build_endpoint(data) -> WebhookEndpoint
    - _apply_changes(webhook_id, changes) -> WebhookEndpoint
    """

    store: WebhookStore
    settings: Settings
    _build_endpoint: Any
    _apply_changes: Any

    async def export_webhooks(self, ids: list[str] | None = None) -> ExportBundle:
        """Export endpoint configurations, all of them or the given ids.

        Unknown ids are ignored. Secrets are never exported.
        """
        endpoints = await self.store.list_endpoints()
        if ids is not None:
            wanted = set(ids)
            endpoints = [e for e in endpoints if e.id in wanted]
        return ExportBundle(
            webhooks=[export_view(e) for e in endpoints],
            exported_at=utc_now(),
            version=self.settings.export_version,
        )

    async def import_webhooks(
        self,
        webhooks: list[dict[str, Any]],
        overwrite_existing: bool = False,
    ) -> ImportResult:
        """Import endpoint configurations.

        Each item matches an existing endpoint by id, falling back to url
        when the item has no id or its id is unknown here. Matches are skipped, or overwritten when
        overwrite_existing is set; an overwrite keeps the existing secret
        unless the item supplies one, along with statistics and health
        history. Unmatched items become new endpoints. Invalid items are
        reported in errors and never abort the import.

        Args:
            webhooks: Items as produced by export_webhooks, or
                CreateWebhookData-shaped dicts.
            overwrite_existing: Replace the configuration of matches.
        """
        existing = await self.store.list_endpoints()
        by_id = {e.id: e for e in existing}
        by_url = {e.url: e for e in existing}

        imported = 0
        skipped = 0
        errors: list[ImportFailure] = []
        for item in webhooks:
            if not isinstance(item, dict):
                errors.append(ImportFailure(webhook=_label(item), error="Item must be a mapping"))
                continue
            try:
                data = validate_model(ImportWebhookData, strip_derived(item))
                match = by_id.get(data.id) if data.id else None
                if match is None:
                    match = by_url.get(data.url.strip())
                if match is not None and not overwrite_existing:
                    skipped += 1
                    continue

                if match is not None:
                    changes = data.model_dump(exclude_unset=True, exclude={"id"})
                    endpoint = await self._apply_changes(match.id, changes)
                else:
                    endpoint = self._build_endpoint(data)
                    await self.store.save_endpoint(endpoint)
            except CourierError as e:
                errors.append(ImportFailure(webhook=_label(item), error=e.message))
                continue

            by_id[endpoint.id] = endpoint
            by_url[endpoint.url] = endpoint
            imported += 1

        logger.info(
            "Webhooks imported",
            imported=imported,
            skipped=skipped,
            failed=len(errors),
            overwrite_existing=overwrite_existing,
        )
        return ImportResult(success=not errors, imported=imported, skipped=skipped, errors=errors)


__all__ = ["TransferMixin", "export_view", "strip_derived"]
