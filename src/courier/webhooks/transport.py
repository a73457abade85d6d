"""HTTP transport for delivery attempts and probes.

This is the only module that talks HTTP. Transport failures never escape
it: deliver() always returns a DeliveryAttempt and probe() always returns
a ProbeResult.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from courier.exceptions import DeliveryError
from courier.logging import get_logger
from courier.models import DeliveryAttempt, utc_now

from .retry import NO_RESPONSE_STATUS

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a health or reachability probe."""

    http_status: int
    response_time_ms: int
    error: str | None = None
    timed_out: bool = False

    @property
    def responded(self) -> bool:
        return self.http_status != NO_RESPONSE_STATUS


class WebhookTransport:
    """Sends signed webhook bodies and probes endpoints over httpx.

    One AsyncClient is shared by all attempts; per-request timeouts come
    from the endpoint configuration.

    Args:
        user_agent: User-Agent header for every request.
        response_body_max_chars: Response bodies are truncated to this length.
        transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
    """

    def __init__(
        self,
        user_agent: str = "Courier-Webhooks/0.1",
        response_body_max_chars: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._max_body = response_body_max_chars
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={"User-Agent": self._user_agent},
                follow_redirects=False,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(
        self,
        method: str,
        url: str,
        timeout_ms: int,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one request, translating transport failures to DeliveryError."""
        try:
            request = self.client.build_request(
                method,
                url,
                content=content,
                headers=headers,
                timeout=timeout_ms / 1000,
            )
        except httpx.InvalidURL as e:
            raise DeliveryError(f"Invalid URL: {e}") from e
        except ValueError as e:
            # Header values httpx cannot encode, among others
            raise DeliveryError(f"Invalid request: {e}") from e
        try:
            return await self.client.send(request)
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Request timeout after {timeout_ms}ms") from e
        except httpx.InvalidURL as e:
            raise DeliveryError(f"Invalid URL: {e}") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Connection error: {e}") from e

    async def deliver(
        self,
        url: str,
        body: str,
        headers: dict[str, str],
        timeout_ms: int,
        attempt_number: int,
    ) -> DeliveryAttempt:
        """POST a webhook body and record the outcome as an attempt.

        An attempt succeeds when the endpoint answers 2xx within timeout_ms.

        Returns:
            The attempt record; failures are data, never exceptions.
        """
        started_at = utc_now()
        start = time.perf_counter()
        try:
            response = await self._send("POST", url, timeout_ms, content=body, headers=headers)
        except DeliveryError as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info("Webhook attempt failed", url=url, attempt=attempt_number, error=e.message)
            return DeliveryAttempt(
                attempt_number=attempt_number,
                timestamp=started_at,
                http_status=NO_RESPONSE_STATUS,
                duration_ms=duration_ms,
                error=e.message,
                success=False,
            )

        duration_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code
        error: str | None = None
        success = 200 <= status < 300
        if not success:
            error = f"HTTP {status}"
        elif duration_ms > timeout_ms:
            success = False
            error = f"Response took {duration_ms}ms, over the {timeout_ms}ms timeout"

        text = response.text
        return DeliveryAttempt(
            attempt_number=attempt_number,
            timestamp=started_at,
            http_status=status,
            response_body=text[: self._max_body] if text else None,
            response_headers=dict(response.headers),
            duration_ms=duration_ms,
            error=error,
            success=success,
        )

    async def probe(self, method: str, url: str, timeout_ms: int) -> ProbeResult:
        """Issue a bodiless probe request and time it."""
        start = time.perf_counter()
        try:
            response = await self._send(method, url, timeout_ms)
        except DeliveryError as e:
            elapsed = int((time.perf_counter() - start) * 1000)
            timed_out = isinstance(e.__cause__, httpx.TimeoutException)
            return ProbeResult(
                http_status=NO_RESPONSE_STATUS,
                response_time_ms=elapsed,
                error=e.message,
                timed_out=timed_out,
            )
        elapsed = int((time.perf_counter() - start) * 1000)
        return ProbeResult(http_status=response.status_code, response_time_ms=elapsed)


__all__ = ["ProbeResult", "WebhookTransport"]
