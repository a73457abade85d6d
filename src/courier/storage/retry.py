"""Retrying transient Qdrant failures.

Endpoint and delivery writes happen on the delivery path, so a brief Qdrant
hiccup is retried with exponential backoff instead of losing an attempt
record. Requests Qdrant rejected as invalid are never retried.
"""

from __future__ import annotations

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from courier.logging import get_logger

logger = get_logger(__name__)

STORAGE_RETRY_ATTEMPTS = 3


def is_transient_error(exc: BaseException) -> bool:
    """Whether a storage failure is worth retrying.

    Network failures, 5xx and 429 responses are transient; other 4xx
    responses mean the request itself is wrong.
    """
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, UnexpectedResponse):
        status = exc.status_code or 0
        return status >= 500 or status == 429
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "Retrying Qdrant operation",
        operation=retry_state.fn.__name__ if retry_state.fn else "unknown",
        attempt=retry_state.attempt_number,
        error=str(outcome.exception()) if outcome else None,
    )


qdrant_retry = retry(
    stop=stop_after_attempt(STORAGE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
    retry=retry_if_exception(is_transient_error),
    before_sleep=_log_retry,
    reraise=True,
)
