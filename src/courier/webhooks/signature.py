"""Webhook payload signing and verification.

The signed message is "<timestamp>.<body>", where timestamp is unix
milliseconds and body is the exact request body. The header value has the
form "<method>=<hex digest>", e.g. "sha256=5d41...".

Verification is meant to run directly at an HTTP boundary, so it never
raises: malformed headers and bodies are reported in the result.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from courier.models import (
    DEFAULT_SIGNATURE_HEADER,
    DEFAULT_TIMESTAMP_HEADER,
    SignatureMethod,
    canonical_json,
    generate_secret,
)

_DIGESTS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


@dataclass(frozen=True)
class SignedPayload:
    """Body and headers values produced by sign_payload."""

    body: str
    signature: str
    timestamp: int


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying an inbound webhook request.

    Attributes:
        valid: True only if the signature matches the body and timestamp.
        payload: Parsed JSON body, or the raw string if it is not JSON.
        signature: Signature header value, if present.
        timestamp: Timestamp header value, if present and numeric.
        error: Why verification failed.
    """

    valid: bool
    payload: Any
    signature: str | None = None
    timestamp: int | None = None
    error: str | None = None


def compute_signature(
    body: str,
    secret: str,
    timestamp: int,
    method: SignatureMethod = "sha256",
) -> str:
    """Compute the HMAC signature for a webhook body.

    Args:
        body: Exact request body.
        secret: Endpoint secret.
        timestamp: Unix milliseconds sent alongside the body.
        method: Digest algorithm, "sha256" or the legacy "sha1".

    Returns:
        Signature in format "<method>=<hex_digest>".
    """
    digestmod = _DIGESTS[method]
    message = f"{timestamp}.{body}"
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=message.encode("utf-8"),
        digestmod=digestmod,
    ).hexdigest()
    return f"{method}={digest}"


def sign_payload(
    payload: Mapping[str, Any] | str,
    secret: str,
    method: SignatureMethod = "sha256",
    timestamp: int | None = None,
) -> SignedPayload:
    """Serialize (if needed) and sign a payload.

    Args:
        payload: JSON map, or an already-serialized body.
        secret: Endpoint secret.
        method: Digest algorithm.
        timestamp: Unix milliseconds; defaults to now.

    Returns:
        SignedPayload with the body to send and the header values.
    """
    body = payload if isinstance(payload, str) else canonical_json(dict(payload))
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return SignedPayload(
        body=body,
        signature=compute_signature(body, secret, timestamp, method),
        timestamp=timestamp,
    )


def verify_signature(body: str, secret: str, signature: str, timestamp: int) -> bool:
    """Verify a signature in constant time.

    The digest algorithm is taken from the signature prefix.

    Returns:
        True if the signature is valid, False otherwise.
    """
    method, sep, _ = signature.partition("=")
    if not sep or method not in _DIGESTS:
        return False
    expected = compute_signature(body, secret, timestamp, method)  # type: ignore[arg-type]
    # compare_digest only accepts ASCII str, so compare encoded bytes
    return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "replace"))


def _parse_timestamp(raw: str | None) -> int | None:
    """Parse a unix-ms header value, None unless it is plain ASCII digits."""
    if raw is None:
        return None
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    return int(raw)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _parse_body(raw_body: str | bytes) -> tuple[str, Any]:
    text = raw_body.decode("utf-8", errors="replace") if isinstance(raw_body, bytes) else raw_body
    try:
        return text, json.loads(text)
    except ValueError:
        return text, text


def parse_webhook_event(
    headers: Mapping[str, str],
    raw_body: str | bytes,
    signature_header: str = DEFAULT_SIGNATURE_HEADER,
    timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
) -> dict[str, Any]:
    """Extract signature, timestamp and payload without verifying.

    Returns:
        Dict with "signature", "timestamp" (int or None) and "payload".
    """
    _, payload = _parse_body(raw_body)
    timestamp = _parse_timestamp(_header(headers, timestamp_header))
    return {
        "signature": _header(headers, signature_header),
        "timestamp": timestamp,
        "payload": payload,
    }


def verify_webhook(
    headers: Mapping[str, str],
    raw_body: str | bytes,
    secret: str,
    signature_header: str = DEFAULT_SIGNATURE_HEADER,
    timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
    tolerance_ms: int | None = None,
    now_ms: int | None = None,
) -> VerificationResult:
    """Verify an inbound webhook request.

    Args:
        headers: Request headers (matched case-insensitively).
        raw_body: Request body exactly as received.
        secret: Endpoint secret.
        signature_header: Header carrying the signature.
        timestamp_header: Header carrying the unix-ms timestamp.
        tolerance_ms: Reject timestamps further than this from now.
        now_ms: Reference time for the tolerance check; defaults to now.

    Returns:
        VerificationResult; never raises.
    """
    body, payload = _parse_body(raw_body)
    signature = _header(headers, signature_header)
    raw_timestamp = _header(headers, timestamp_header)

    if not signature:
        return VerificationResult(valid=False, payload=payload, error="Missing signature header")
    if raw_timestamp is None:
        return VerificationResult(
            valid=False, payload=payload, signature=signature, error="Missing timestamp header"
        )
    timestamp = _parse_timestamp(raw_timestamp)
    if timestamp is None:
        return VerificationResult(
            valid=False, payload=payload, signature=signature, error="Malformed timestamp header"
        )

    if tolerance_ms is not None:
        reference = now_ms if now_ms is not None else int(time.time() * 1000)
        if abs(reference - timestamp) > tolerance_ms:
            return VerificationResult(
                valid=False,
                payload=payload,
                signature=signature,
                timestamp=timestamp,
                error="Timestamp outside tolerance",
            )

    if not verify_signature(body, secret, signature, timestamp):
        return VerificationResult(
            valid=False,
            payload=payload,
            signature=signature,
            timestamp=timestamp,
            error="Signature mismatch",
        )

    return VerificationResult(valid=True, payload=payload, signature=signature, timestamp=timestamp)


__all__ = [
    "SignedPayload",
    "VerificationResult",
    "compute_signature",
    "generate_secret",
    "parse_webhook_event",
    "sign_payload",
    "verify_signature",
    "verify_webhook",
]
