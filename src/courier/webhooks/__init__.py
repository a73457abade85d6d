"""Webhook delivery machinery for Courier.

Provides HMAC-signed payloads, exponential backoff retry evaluation,
attempt scheduling, HTTP transport, health checks and analytics.

Example:
    ```python
    from courier.webhooks import sign_payload, verify_webhook

    signed = sign_payload({"invoice_id": "inv_1"}, secret)
    result = verify_webhook(
        {"X-Webhook-Signature": signed.signature, "X-Webhook-Timestamp": str(signed.timestamp)},
        signed.body,
        secret,
    )
    assert result.valid
    ```
"""

from .retry import is_retryable_status, next_delay_ms, retry_delay_for
from .signature import (
    SignedPayload,
    VerificationResult,
    compute_signature,
    generate_secret,
    parse_webhook_event,
    sign_payload,
    verify_signature,
    verify_webhook,
)

__all__ = [
    "SignedPayload",
    "VerificationResult",
    "compute_signature",
    "generate_secret",
    "is_retryable_status",
    "next_delay_ms",
    "parse_webhook_event",
    "retry_delay_for",
    "sign_payload",
    "verify_signature",
    "verify_webhook",
]
