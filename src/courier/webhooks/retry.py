"""Retry policy evaluation.

Pure exponential backoff without jitter:

    delay(n) = min(initial_delay_ms * backoff_multiplier ** (n - 1), max_delay_ms)

where n is the number of the attempt that just failed. Jitter, if ever
needed, belongs here and nowhere else.
"""

from __future__ import annotations

from courier.models import RetryPolicy

# Status recorded for attempts that never got a response (timeout,
# connection refused, DNS failure).
NO_RESPONSE_STATUS = 0


def next_delay_ms(attempt_number: int, policy: RetryPolicy) -> int:
    """Delay before the attempt following `attempt_number`.

    Args:
        attempt_number: 1-based number of the attempt that just failed.
        policy: Endpoint retry policy.

    Returns:
        Milliseconds to wait, or 0 if no further attempt should be made.
    """
    if not policy.enabled or attempt_number >= policy.max_attempts:
        return 0
    delay = policy.initial_delay_ms * policy.backoff_multiplier ** (attempt_number - 1)
    return int(min(delay, policy.max_delay_ms))


def is_retryable_status(http_status: int, policy: RetryPolicy) -> bool:
    """Whether a failed attempt with this status may be retried.

    Attempts without any response are always retryable; responses are
    retryable only if their status is listed in the policy.
    """
    if http_status == NO_RESPONSE_STATUS:
        return True
    return http_status in policy.retry_on_status


def retry_delay_for(attempt_number: int, http_status: int, policy: RetryPolicy) -> int:
    """Delay after a failed attempt, taking its HTTP status into account.

    Returns:
        Milliseconds to wait, or 0 if the delivery should fail now.
    """
    if not is_retryable_status(http_status, policy):
        return 0
    return next_delay_ms(attempt_number, policy)


__all__ = ["NO_RESPONSE_STATUS", "is_retryable_status", "next_delay_ms", "retry_delay_for"]
