"""Event manager for Server-Sent Events (SSE)."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ticketpilot.orchestrator import ProgressEvent


class EventType(str, Enum):
    """Types of events that can be emitted."""

    NO_TICKETS = "no_tickets"
    STARTED = "started"
    PROCESSING = "processing"
    TICKET_COMPLETED = "ticket_completed"
    TICKET_FAILED = "ticket_failed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    TICKET_UPDATED = "ticket_updated"
    HEARTBEAT = "heartbeat"


@dataclass
class Event:
    """An event to be sent via SSE."""

    event_type: EventType
    data: dict[str, Any]

    @property
    def ticket_id(self) -> str | None:
        """Ticket the event is about; None for run-level events."""
        if "ticket_id" in self.data:
            return self.data["ticket_id"]
        ticket = self.data.get("ticket")
        return ticket.get("id") if isinstance(ticket, dict) else None

    def to_sse(self) -> str:
        return f"event: {self.event_type.value}\ndata: {json.dumps(self.data)}\n\n"


@dataclass
class Subscriber:
    """A client of the event stream.

    ``loop`` is the event loop the subscriber was created on, if any; events
    emitted from other threads are handed to that loop. A subscriber watching
    one ticket still receives run-level events such as ``started``.
    """

    id: str
    queue: asyncio.Queue[Event]
    loop: asyncio.AbstractEventLoop | None = None
    ticket_id: str | None = None

    @classmethod
    def create(cls, ticket_id: str | None = None) -> Subscriber:
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        return cls(id=str(uuid4()), queue=asyncio.Queue(), loop=loop, ticket_id=ticket_id)

    def wants(self, event: Event) -> bool:
        if self.ticket_id is None or event.ticket_id is None:
            return True
        return event.ticket_id.lower() == self.ticket_id.lower()

    def deliver(self, event: Event) -> None:
        """Queue an event, crossing threads when needed."""
        if not self.wants(event):
            return
        try:
            current: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if self.loop is None or self.loop is current or self.loop.is_closed():
            self.queue.put_nowait(event)
        else:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event)


@dataclass
class EventManager:
    """Fans autopilot progress and ticket updates out to SSE clients."""

    _subscribers: dict[str, Subscriber] = field(default_factory=dict)
    heartbeat_interval: float = 30.0  # seconds

    def subscribe(self, ticket_id: str | None = None) -> Subscriber:
        """Register a client, optionally only for events about one ticket."""
        subscriber = Subscriber.create(ticket_id)
        self._subscribers[subscriber.id] = subscriber
        return subscriber

    def unsubscribe(self, subscriber_id: str) -> None:
        self._subscribers.pop(subscriber_id, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def emit(self, event: Event) -> None:
        for subscriber in list(self._subscribers.values()):
            if subscriber.wants(event):
                await subscriber.queue.put(event)

    def emit_sync(self, event: Event) -> None:
        """Emit from any thread, including the autopilot worker."""
        for subscriber in list(self._subscribers.values()):
            subscriber.deliver(event)

    def emit_progress(self, progress: ProgressEvent) -> None:
        """Forward an autopilot progress event to subscribers."""
        self.emit_sync(Event(event_type=EventType(progress.type), data=progress.to_dict()))

    def emit_ticket_updated(self, ticket_id: str, status: str) -> None:
        self.emit_sync(
            Event(
                event_type=EventType.TICKET_UPDATED,
                data={"ticket_id": ticket_id, "status": status},
            )
        )

    def create_heartbeat_event(self) -> Event:
        return Event(
            event_type=EventType.HEARTBEAT,
            data={"timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z")},
        )

    async def stream(self, ticket_id: str | None = None) -> AsyncIterator[str]:
        """Yield SSE frames until the client goes away.

        A heartbeat frame is sent whenever ``heartbeat_interval`` passes
        without an event.
        """
        subscriber = self.subscribe(ticket_id)
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        subscriber.queue.get(), timeout=self.heartbeat_interval
                    )
                except TimeoutError:
                    event = self.create_heartbeat_event()
                yield event.to_sse()
        finally:
            self.unsubscribe(subscriber.id)
