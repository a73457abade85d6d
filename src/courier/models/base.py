"""Base helpers and shared types for Courier models."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import JsonValue

# Opaque JSON map used for event payloads and metadata.
# Dicts keep insertion order, so serialization is deterministic.
JsonMap = dict[str, JsonValue]


def generate_id(prefix: str) -> str:
    """Generate a unique ID with the given prefix.

    Examples:
        generate_id("whk") -> "whk_a1b2c3d4e5f6"
        generate_id("dlv") -> "dlv_a1b2c3d4e5f6"
    """
    return f"{prefix}_{uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def to_unix_ms(moment: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch."""
    return int(moment.timestamp() * 1000)


def canonical_json(value: Any) -> str:
    """Serialize a JSON-compatible value the same way every time.

    Compact separators, insertion order, UTF-8 kept as-is. Datetimes are
    rendered in ISO 8601.
    """
    return json.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
