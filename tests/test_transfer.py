"""Tests for endpoint export and import."""

from __future__ import annotations

from utils import wait_for_status

from courier.service.transfer import export_view, strip_derived


class TestExport:
    """Tests for export_webhooks."""

    async def test_exports_without_secrets(self, service, make_endpoint, settings):
        endpoint = await make_endpoint(headers={"Authorization": "Bearer abc"})

        bundle = await service.export_webhooks()

        assert bundle.version == settings.export_version
        assert bundle.exported_at is not None
        assert len(bundle.webhooks) == 1
        item = bundle.webhooks[0]
        assert item["id"] == endpoint.id
        assert item["headers"] == {"Authorization": "Bearer abc"}
        assert "secret_key" not in item["security"]
        assert item["security"]["signature_method"] == "sha256"

    async def test_export_selected_ids(self, service, make_endpoint):
        a = await make_endpoint(name="a", url="https://a.example.com")
        await make_endpoint(name="b", url="https://b.example.com")

        bundle = await service.export_webhooks([a.id, "whk_missing"])

        assert [item["id"] for item in bundle.webhooks] == [a.id]

    async def test_export_is_json_ready(self, service, make_endpoint):
        await make_endpoint()

        bundle = await service.export_webhooks()

        assert isinstance(bundle.webhooks[0]["created_at"], str)


class TestStripDerived:
    """Tests for strip_derived."""

    def test_removes_stats_timestamps_and_probe_results(self):
        item = {
            "name": "x",
            "delivery_stats": {"total_deliveries": 4},
            "created_at": "2024-01-01T00:00:00Z",
            "updated_at": "2024-01-01T00:00:00Z",
            "health_check": {"enabled": True, "last_check": "2024-01-01T00:00:00Z"},
        }

        assert strip_derived(item) == {"name": "x", "health_check": {"enabled": True}}


class TestImport:
    """Tests for import_webhooks."""

    async def test_round_trip_into_empty_service(self, service, make_endpoint):
        endpoint = await make_endpoint(description="Invoices")
        bundle = await service.export_webhooks()
        await service.delete_webhook(endpoint.id)

        result = await service.import_webhooks(bundle.webhooks)

        assert result.success
        assert result.imported == 1
        imported = await service.get_webhook(endpoint.id)
        assert imported.description == "Invoices"
        assert imported.security.secret_key != endpoint.security.secret_key
        assert imported.delivery_stats.total_deliveries == 0

    async def test_existing_endpoints_are_skipped(self, service, make_endpoint):
        endpoint = await make_endpoint()
        bundle = await service.export_webhooks()

        result = await service.import_webhooks(bundle.webhooks)

        assert result.success
        assert result.imported == 0
        assert result.skipped == 1
        assert (await service.get_webhook(endpoint.id)).name == endpoint.name

    async def test_match_by_url_when_no_id(self, service, make_endpoint):
        await make_endpoint()

        result = await service.import_webhooks(
            [{"name": "Other", "url": "https://hooks.example.com/billing", "events": ["a.b"]}]
        )

        assert result.skipped == 1
        assert (await service.list_webhooks()).pagination.total == 1

    async def test_unknown_id_falls_back_to_url(self, service, make_endpoint):
        await make_endpoint()
        item = {
            "id": "whk_from_elsewhere",
            "name": "Other",
            "url": "https://hooks.example.com/billing",
            "events": ["a.b"],
        }

        result = await service.import_webhooks([item])

        assert result.skipped == 1
        assert result.imported == 0
        assert (await service.list_webhooks()).pagination.total == 1

    async def test_overwrite_by_url_keeps_local_id(self, service, make_endpoint):
        endpoint = await make_endpoint()
        item = {
            "id": "whk_from_elsewhere",
            "name": "Renamed",
            "url": "https://hooks.example.com/billing",
            "events": ["invoice.paid"],
        }

        result = await service.import_webhooks([item], overwrite_existing=True)

        assert result.imported == 1
        webhooks = (await service.list_webhooks()).webhooks
        assert [(w.id, w.name) for w in webhooks] == [(endpoint.id, "Renamed")]

    async def test_overwrite_keeps_secret_and_stats(self, service, make_endpoint):
        endpoint = await make_endpoint()
        sent = await service.send_event("invoice.paid")
        await wait_for_status(service, sent.delivery_ids[0], "delivered")
        item = export_view(endpoint) | {"name": "Renamed", "timeout_ms": 2000}

        result = await service.import_webhooks([item], overwrite_existing=True)

        assert result.imported == 1
        current = await service.get_webhook(endpoint.id)
        assert current.name == "Renamed"
        assert current.timeout_ms == 2000
        assert current.security.secret_key == endpoint.security.secret_key
        assert current.delivery_stats.total_deliveries == 1

    async def test_new_items_are_created(self, service):
        result = await service.import_webhooks(
            [
                {"name": "A", "url": "https://a.example.com", "events": ["x.y"]},
                {"name": "B", "url": "https://b.example.com", "events": ["x.y"], "id": "whk_fixed"},
            ]
        )

        assert result.imported == 2
        assert (await service.get_webhook("whk_fixed")).name == "B"

    async def test_invalid_items_do_not_abort(self, service):
        result = await service.import_webhooks(
            [
                {"name": "Bad", "url": "ftp://bad.example.com", "events": ["x.y"]},
                "not a mapping",
                {"name": "Good", "url": "https://good.example.com", "events": ["x.y"]},
            ]
        )

        assert not result.success
        assert result.imported == 1
        assert [(e.webhook, e.error) for e in result.errors] == [
            ("Bad", "url: Value error, URL must use http or https"),
            ("<unknown>", "Item must be a mapping"),
        ]

    async def test_duplicates_within_one_import(self, service):
        item = {"name": "A", "url": "https://a.example.com", "events": ["x.y"]}

        result = await service.import_webhooks([item, dict(item)])

        assert result.imported == 1
        assert result.skipped == 1
