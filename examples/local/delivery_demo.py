#!/usr/bin/env python3
"""Webhook delivery demo.

Demonstrates Courier's delivery pipeline end to end:

- Registering endpoints and fanning an event out to subscribers
- Verifying the HMAC signature the way a receiver would
- Exponential backoff retries until the receiver recovers
- Analytics and system stats over what was delivered

No external dependencies required - the receiver is an in-process
httpx.MockTransport and storage is in memory.
"""

import asyncio

import httpx

from courier import courier_context
from courier.config import Settings
from courier.webhooks import verify_webhook

# Secret of the "Billing" endpoint, filled in after registration
SECRETS: dict[str, str] = {}

# The flaky receiver fails this many times before accepting
FLAKY_FAILURES = 2


class DemoReceiver:
    """Two receivers behind one transport: a reliable and a flaky one."""

    def __init__(self) -> None:
        self.flaky_calls = 0
        self.log: list[str] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        attempt = request.headers["X-Webhook-Attempt"]

        if host == "billing.example.com":
            result = verify_webhook(request.headers, request.content, SECRETS["billing"])
            self.log.append(f"  billing  attempt {attempt}: signature valid={result.valid}")
            return httpx.Response(200, json={"received": True})

        self.flaky_calls += 1
        if self.flaky_calls <= FLAKY_FAILURES:
            self.log.append(f"  flaky    attempt {attempt}: 503")
            return httpx.Response(503, text="busy")
        self.log.append(f"  flaky    attempt {attempt}: 200")
        return httpx.Response(200)


async def wait_settled(courier, delivery_ids: list[str]) -> None:
    for _ in range(200):
        deliveries = [await courier.get_delivery(d) for d in delivery_ids]
        if all(d.status != "pending" for d in deliveries):
            await courier.scheduler.drain()
            return
        await asyncio.sleep(0.02)


async def main() -> None:
    print("=" * 70)
    print("Courier Webhook Delivery Demo")
    print("=" * 70)

    settings = Settings(
        storage_backend="memory",
        log_level="WARNING",
        log_format="text",
        default_retry_policy={"max_attempts": 4, "initial_delay_ms": 50, "max_delay_ms": 400},
    )
    receiver = DemoReceiver()

    async with courier_context(
        settings, http_transport=httpx.MockTransport(receiver.handle)
    ) as courier:
        # =====================================================================
        # Part 1: Registration
        # =====================================================================
        print("\n1. REGISTERING ENDPOINTS")
        print("-" * 70)

        billing = await courier.create_webhook(
            {
                "name": "Billing",
                "url": "https://billing.example.com/hooks",
                "events": ["invoice.paid", "payment.completed"],
            }
        )
        flaky = await courier.create_webhook(
            {
                "name": "Flaky",
                "url": "https://flaky.example.com/hooks",
                "events": ["invoice.paid"],
            }
        )
        SECRETS["billing"] = billing.security.secret_key

        for endpoint in (billing, flaky):
            print(f"  {endpoint.id}  {endpoint.name:<8} {endpoint.url}")

        # =====================================================================
        # Part 2: Fan-out and retries
        # =====================================================================
        print("\n2. SENDING invoice.paid")
        print("-" * 70)

        result = await courier.send_event("invoice.paid", {"invoice_id": "inv_1001"})
        print(f"  {result.message}")
        await wait_settled(courier, result.delivery_ids)
        print("\n".join(receiver.log))

        for delivery_id in result.delivery_ids:
            delivery = await courier.get_delivery(delivery_id)
            statuses = [a.http_status for a in delivery.attempts]
            print(f"  {delivery.endpoint.name:<8} {delivery.status:<10} attempts={statuses}")

        # =====================================================================
        # Part 3: Analytics
        # =====================================================================
        print("\n3. ANALYTICS")
        print("-" * 70)

        stats = await courier.get_system_stats()
        print(f"  endpoints:    {stats.active_endpoints}/{stats.total_endpoints} active")
        print(f"  success rate: {stats.performance.success_rate:.0%}")
        print(f"  backlog:      {stats.queue_status.pending} pending")

        for endpoint in (billing, flaky):
            endpoint_stats = await courier.get_webhook_stats(endpoint.id)
            print(
                f"  {endpoint.name:<8} deliveries={endpoint_stats.total_deliveries} "
                f"success_rate={endpoint_stats.success_rate:.0%} "
                f"avg_ms={endpoint_stats.average_response_time:.1f}"
            )

    print("\n" + "=" * 70)


if __name__ == "__main__":
    asyncio.run(main())
