"""Helper functions for the service layer.

Contains utility functions used across the service:
- paginate: Slice a listing and describe the page
- dedupe_ids: Order-preserving id de-duplication for bulk operations
- to_validation_error: Translate pydantic errors into Courier errors
- merge_changes: Apply a partial update onto a model dump
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from courier.exceptions import ValidationError

from .models import Pagination

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_PAGE_SIZE = 100

# Fields that may be explicitly cleared with None
NULLABLE_FIELDS = frozenset({"description", "path"})


def paginate(items: Sequence[T], page: int, limit: int) -> tuple[list[T], Pagination]:
    """Return one page of items and its Pagination.

    Raises:
        ValidationError: If page < 1 or limit is outside 1..MAX_PAGE_SIZE.
    """
    if page < 1:
        raise ValidationError("page", "must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
    start = (page - 1) * limit
    return list(items[start : start + limit]), Pagination.build(page, limit, len(items))


def dedupe_ids(ids: Iterable[str]) -> list[str]:
    """Drop repeated ids, keeping first occurrences in order."""
    return list(dict.fromkeys(ids))


def to_validation_error(exc: PydanticValidationError) -> ValidationError:
    """Convert the first pydantic error into a ValidationError."""
    errors = exc.errors()
    if not errors:
        return ValidationError("input", str(exc))
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "input"
    return ValidationError(field, first.get("msg", "invalid value"))


def validate_model(model_class: type[ModelT], data: Any) -> ModelT:
    """Validate input into a model, raising ValidationError on failure."""
    if isinstance(data, model_class):
        return data
    try:
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        return model_class.model_validate(data)
    except PydanticValidationError as e:
        raise to_validation_error(e) from e


def merge_changes(current: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """Merge a partial update into a model dump.

    Nested maps are merged key by key. A None value leaves the current value
    alone unless the field is in NULLABLE_FIELDS. The static `headers` map
    is replaced as a whole.
    """
    merged = dict(current)
    for key, value in changes.items():
        if value is None and key not in NULLABLE_FIELDS:
            continue
        existing = merged.get(key)
        if key != "headers" and isinstance(value, dict) and isinstance(existing, dict):
            merged[key] = merge_changes(existing, value)
        else:
            merged[key] = value
    return merged


__all__ = [
    "MAX_PAGE_SIZE",
    "dedupe_ids",
    "merge_changes",
    "paginate",
    "to_validation_error",
    "validate_model",
]
