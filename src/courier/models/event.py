"""Event models.

Events are ephemeral: they exist only as the snapshot carried by each
delivery they spawn.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .base import JsonMap, canonical_json, generate_id, utc_now

TEST_EVENT_TYPE = "webhook.test"


class WebhookEvent(BaseModel):
    """A domain event to be delivered to subscribed endpoints.

    Attributes:
        id: Unique identifier for this event.
        event_type: Dotted event name (e.g. "invoice.paid").
        payload: Event-specific JSON data.
        metadata: Producer-supplied JSON context.
        created_at: When the event was produced.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("evt"))
    event_type: str = Field(min_length=1, max_length=200)
    payload: JsonMap = Field(default_factory=dict)
    metadata: JsonMap = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    def snapshot(self) -> EventSnapshot:
        """Freeze this event for embedding in a delivery record."""
        return EventSnapshot(
            id=self.id,
            event_type=self.event_type,
            payload=self.payload,
            metadata=self.metadata,
            created_at=self.created_at,
        )


class EventSnapshot(BaseModel):
    """The event as it was when a delivery was created."""

    model_config = ConfigDict(extra="forbid")

    id: str
    event_type: str
    payload: JsonMap = Field(default_factory=dict)
    metadata: JsonMap = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    def to_body(self) -> str:
        """Render the JSON envelope sent as the request body.

        Every attempt of a delivery sends byte-identical bodies.
        """
        return canonical_json(
            {
                "id": self.id,
                "event_type": self.event_type,
                "created_at": self.created_at.isoformat(),
                "payload": self.payload,
                "metadata": self.metadata,
            }
        )


class EventTypeInfo(BaseModel):
    """Catalog entry describing an event type endpoints can subscribe to."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str
    category: str
    sample_payload: JsonMap = Field(default_factory=dict)


__all__ = ["TEST_EVENT_TYPE", "EventSnapshot", "EventTypeInfo", "WebhookEvent"]
