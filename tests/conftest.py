"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

from courier.config import Settings
from courier.models import RetryPolicy
from courier.service import WebhookService
from courier.storage import InMemoryWebhookStore

# Add tests directory to path so utils can be imported
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))


class Receiver:
    """Scripted webhook receiver behind httpx.MockTransport.

    Each request consumes the next scripted response; the last one repeats.
    A scripted exception is raised instead of answering.
    """

    def __init__(self, *responses: int | Exception) -> None:
        self.responses: list[int | Exception] = list(responses) or [200]
        self.requests: list[httpx.Request] = []

    def script(self, *responses: int | Exception) -> None:
        """Replace the scripted responses."""
        self.responses = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, text="ok" if outcome < 300 else "error")

    def posts(self) -> list[httpx.Request]:
        """Delivery requests, leaving out probes."""
        return [r for r in self.requests if r.method == "POST"]


@pytest.fixture
def settings() -> Settings:
    """Test settings with fast retries."""
    return Settings(
        env="test",
        storage_backend="memory",
        log_format="text",
        default_retry_policy=RetryPolicy(
            max_attempts=3,
            initial_delay_ms=10,
            backoff_multiplier=2.0,
            max_delay_ms=100,
        ),
    )


@pytest.fixture
def receiver() -> Receiver:
    """A receiver that accepts every delivery."""
    return Receiver()


@pytest.fixture
async def service(settings: Settings, receiver: Receiver):
    """An initialized WebhookService delivering to the scripted receiver."""
    svc = WebhookService.create(settings, http_transport=httpx.MockTransport(receiver.handler))
    await svc.initialize()

    yield svc

    await svc.close()


@pytest.fixture
def store() -> InMemoryWebhookStore:
    """An empty in-memory store."""
    return InMemoryWebhookStore()


def endpoint_data(**overrides: Any) -> dict[str, Any]:
    """CreateWebhookData-shaped input with sensible defaults."""
    data: dict[str, Any] = {
        "name": "Billing",
        "url": "https://hooks.example.com/billing",
        "events": ["invoice.paid"],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_endpoint(service: WebhookService):
    """Factory registering an endpoint on the service."""

    async def _make(**overrides: Any):
        return await service.create_webhook(endpoint_data(**overrides))

    return _make
