"""Bulk mixin for WebhookService.

Bulk operations process each id on its own: a failure for one id is
reported in the result and never stops the others.
"""

from __future__ import annotations

from typing import Any

from courier.exceptions import CourierError
from courier.logging import get_logger

from .helpers import dedupe_ids
from .models import BulkError, BulkResult, BulkTestItem, BulkTestResult

logger = get_logger(__name__)


def _describe(exc: Exception) -> str:
    return exc.message if isinstance(exc, CourierError) else str(exc)


class BulkMixin:
    """Mixin providing bulk toggle, delete and test.

    Expects these methods from the base class:
    - toggle_webhook(webhook_id, is_active)
    - delete_webhook(webhook_id)
    - test_webhook(webhook_id, payload)
    """

    toggle_webhook: Any
    delete_webhook: Any
    test_webhook: Any

    async def bulk_toggle(self, ids: list[str], is_active: bool) -> BulkResult:
        """Activate or deactivate many endpoints."""
        updated = 0
        errors: list[BulkError] = []
        for webhook_id in dedupe_ids(ids):
            try:
                await self.toggle_webhook(webhook_id, is_active)
            except Exception as e:
                logger.warning("Bulk toggle failed", webhook_id=webhook_id, error=_describe(e))
                errors.append(BulkError(id=webhook_id, error=_describe(e)))
            else:
                updated += 1
        return BulkResult(success=not errors, updated_count=updated, errors=errors)

    async def bulk_delete(self, ids: list[str]) -> BulkResult:
        """Delete many endpoints."""
        deleted = 0
        errors: list[BulkError] = []
        for webhook_id in dedupe_ids(ids):
            try:
                await self.delete_webhook(webhook_id)
            except Exception as e:
                logger.warning("Bulk delete failed", webhook_id=webhook_id, error=_describe(e))
                errors.append(BulkError(id=webhook_id, error=_describe(e)))
            else:
                deleted += 1
        return BulkResult(success=not errors, deleted_count=deleted, errors=errors)

    async def bulk_test(
        self,
        ids: list[str],
        payload: dict[str, Any] | None = None,
    ) -> BulkTestResult:
        """Send a test delivery to many endpoints, one after another.

        An endpoint that answered with a failure is a result, not an error;
        errors are reserved for ids that could not be tested at all.
        """
        tested = 0
        errors: list[BulkError] = []
        results: list[BulkTestItem] = []
        for webhook_id in dedupe_ids(ids):
            try:
                outcome = await self.test_webhook(webhook_id, payload)
            except Exception as e:
                logger.warning("Bulk test failed", webhook_id=webhook_id, error=_describe(e))
                errors.append(BulkError(id=webhook_id, error=_describe(e)))
                results.append(BulkTestItem(id=webhook_id, success=False, error=_describe(e)))
                continue
            tested += 1
            results.append(
                BulkTestItem(
                    id=webhook_id,
                    success=outcome.success,
                    delivery_id=outcome.delivery.id,
                    error=None if outcome.success else outcome.message,
                )
            )
        return BulkTestResult(success=not errors, tested_count=tested, errors=errors, results=results)


__all__ = ["BulkMixin"]
