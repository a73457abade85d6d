"""Built-in catalog of event types with sample payloads.

The catalog documents what producers emit. Dispatch does not require an
event type to be listed here.
"""

from __future__ import annotations

from courier.models import TEST_EVENT_TYPE, EventTypeInfo

EVENT_CATALOG: tuple[EventTypeInfo, ...] = (
    EventTypeInfo(
        name="subscription.created",
        description="A customer started a subscription",
        category="subscriptions",
        sample_payload={
            "subscription_id": "sub_123",
            "customer_id": "cus_456",
            "plan_id": "plan_pro_monthly",
            "status": "active",
        },
    ),
    EventTypeInfo(
        name="subscription.cancelled",
        description="A subscription was cancelled",
        category="subscriptions",
        sample_payload={
            "subscription_id": "sub_123",
            "customer_id": "cus_456",
            "cancelled_at": "2024-01-31T12:00:00Z",
            "reason": "customer_request",
        },
    ),
    EventTypeInfo(
        name="contract.signed",
        description="All parties signed a contract",
        category="contracts",
        sample_payload={
            "contract_id": "ctr_123",
            "template_id": "tpl_msa",
            "signed_by": ["cus_456"],
        },
    ),
    EventTypeInfo(
        name="invoice.generated",
        description="An invoice was issued",
        category="billing",
        sample_payload={
            "invoice_id": "inv_123",
            "customer_id": "cus_456",
            "amount": 4900,
            "currency": "USD",
            "due_date": "2024-02-15",
        },
    ),
    EventTypeInfo(
        name="invoice.paid",
        description="An invoice was paid in full",
        category="billing",
        sample_payload={
            "invoice_id": "inv_123",
            "customer_id": "cus_456",
            "amount_paid": 4900,
            "currency": "USD",
        },
    ),
    EventTypeInfo(
        name="payment.completed",
        description="A payment succeeded",
        category="payments",
        sample_payload={
            "payment_id": "pay_123",
            "invoice_id": "inv_123",
            "amount": 4900,
            "currency": "USD",
            "method": "card",
        },
    ),
    EventTypeInfo(
        name="payment.failed",
        description="A payment attempt was declined or errored",
        category="payments",
        sample_payload={
            "payment_id": "pay_124",
            "invoice_id": "inv_123",
            "amount": 4900,
            "currency": "USD",
            "failure_code": "card_declined",
        },
    ),
    EventTypeInfo(
        name="user.registered",
        description="A new user account was created",
        category="users",
        sample_payload={"user_id": "usr_123", "email": "jane@example.com"},
    ),
    EventTypeInfo(
        name="user.updated",
        description="A user profile changed",
        category="users",
        sample_payload={"user_id": "usr_123", "fields_changed": ["email"]},
    ),
    EventTypeInfo(
        name="system.alert",
        description="An operational alert was raised",
        category="system",
        sample_payload={"severity": "warning", "message": "Queue depth above threshold"},
    ),
    EventTypeInfo(
        name=TEST_EVENT_TYPE,
        description="Sent by test deliveries",
        category="system",
        sample_payload={"message": "This is a test webhook"},
    ),
)


def list_event_types(category: str | None = None) -> list[EventTypeInfo]:
    """Catalog entries, optionally restricted to one category."""
    return [
        info.model_copy(deep=True)
        for info in EVENT_CATALOG
        if category is None or info.category == category
    ]


def get_event_type(name: str) -> EventTypeInfo | None:
    """Look up a catalog entry by event name."""
    for info in EVENT_CATALOG:
        if info.name == name:
            return info.model_copy(deep=True)
    return None


__all__ = ["EVENT_CATALOG", "get_event_type", "list_event_types"]
