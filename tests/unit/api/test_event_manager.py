"""Unit tests for EventManager and events."""

import asyncio
import json
import threading

import pytest

from ticketpilot.api.events import Event, EventManager, EventType
from ticketpilot.orchestrator import AutopilotRun, Cancelled, Completed, Processing, TicketRef


@pytest.fixture
def event_manager():
    """Create an EventManager instance."""
    return EventManager()


@pytest.mark.unit
class TestEventManagerSubscribe:
    """Tests for subscribe and unsubscribe."""

    def test_subscribe(self, event_manager: EventManager) -> None:
        """Client can subscribe."""
        subscriber = event_manager.subscribe()

        assert subscriber.id is not None
        assert subscriber.queue is not None
        assert event_manager.subscriber_count == 1

    def test_unsubscribe(self, event_manager: EventManager) -> None:
        subscriber = event_manager.subscribe()

        event_manager.unsubscribe(subscriber.id)

        assert event_manager.subscriber_count == 0

    def test_unsubscribe_nonexistent(self, event_manager: EventManager) -> None:
        """Unsubscribing an unknown client doesn't fail."""
        event_manager.unsubscribe("nonexistent-id")

        assert event_manager.subscriber_count == 0


@pytest.mark.unit
class TestEventManagerEmit:
    """Tests for emit and emit_sync."""

    @pytest.mark.asyncio
    async def test_emit_to_all(self, event_manager: EventManager) -> None:
        """Event reaches all subscribers."""
        sub1 = event_manager.subscribe()
        sub2 = event_manager.subscribe()

        event = Event(event_type=EventType.TICKET_UPDATED, data={"ticket_id": "T-1"})
        await event_manager.emit(event)

        event1 = await asyncio.wait_for(sub1.queue.get(), timeout=1.0)
        event2 = await asyncio.wait_for(sub2.queue.get(), timeout=1.0)
        assert event1.event_type == EventType.TICKET_UPDATED
        assert event2.event_type == EventType.TICKET_UPDATED

    @pytest.mark.asyncio
    async def test_emit_sync_from_worker_thread(self, event_manager: EventManager) -> None:
        """Events emitted off the loop thread are delivered on the subscriber's loop."""
        sub = event_manager.subscribe()
        event = Event(event_type=EventType.HEARTBEAT, data={})

        thread = threading.Thread(target=event_manager.emit_sync, args=(event,))
        thread.start()
        thread.join()

        received = await asyncio.wait_for(sub.queue.get(), timeout=1.0)
        assert received is event

    def test_emit_sync_without_loop(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe()

        event_manager.emit_ticket_updated("T-1", "closed")

        event = sub.queue.get_nowait()
        assert event.event_type == EventType.TICKET_UPDATED
        assert event.data == {"ticket_id": "T-1", "status": "closed"}

    def test_no_subscribers(self, event_manager: EventManager) -> None:
        """Emit doesn't fail with no subscribers."""
        event_manager.emit_sync(Event(event_type=EventType.HEARTBEAT, data={}))


@pytest.mark.unit
class TestProgressEvents:
    """Tests for forwarding autopilot progress."""

    def test_processing(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe()

        event_manager.emit_progress(
            Processing(current=1, total=2, ticket=TicketRef(id="T-1", name="Login"))
        )

        event = sub.queue.get_nowait()
        assert event.event_type == EventType.PROCESSING
        assert event.data["current"] == 1
        assert event.data["total"] == 2
        assert event.data["ticket"] == {"id": "T-1", "name": "Login"}

    def test_cancelled(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe()

        event_manager.emit_progress(Cancelled(processed=2, remaining=3))

        event = sub.queue.get_nowait()
        assert event.event_type == EventType.CANCELLED
        assert event.data == {"type": "cancelled", "processed": 2, "remaining": 3}

    def test_completed(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe()

        event_manager.emit_progress(Completed(result=AutopilotRun(cancelled=True)))

        event = sub.queue.get_nowait()
        assert event.event_type == EventType.COMPLETED
        assert event.data["result"]["cancelled"] is True
        assert event.data["result"]["completed"] == []


@pytest.mark.unit
class TestEventFormat:
    """Tests for event formatting."""

    def test_to_sse(self) -> None:
        event = Event(event_type=EventType.TICKET_UPDATED, data={"ticket_id": "T-1"})

        sse = event.to_sse()

        assert sse.startswith("event: ticket_updated\n")
        assert sse.endswith("\n\n")
        data_line = sse.split("\n")[1]
        assert json.loads(data_line.removeprefix("data: ")) == {"ticket_id": "T-1"}

    def test_heartbeat(self, event_manager: EventManager) -> None:
        event = event_manager.create_heartbeat_event()

        assert event.event_type == EventType.HEARTBEAT
        assert event.data["timestamp"].endswith("Z")


@pytest.mark.unit
class TestTicketFilter:
    """Tests for subscribers watching a single ticket."""

    def test_other_tickets_dropped(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe("t-1")

        event_manager.emit_ticket_updated("T-2", "working")
        event_manager.emit_ticket_updated("T-1", "working")

        assert sub.queue.get_nowait().data["ticket_id"] == "T-1"
        assert sub.queue.empty()

    def test_progress_matched_by_ticket(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe("T-2")

        event_manager.emit_progress(
            Processing(current=1, total=2, ticket=TicketRef(id="T-1", name="T-1"))
        )
        event_manager.emit_progress(
            Processing(current=2, total=2, ticket=TicketRef(id="T-2", name="T-2"))
        )

        assert sub.queue.get_nowait().data["current"] == 2
        assert sub.queue.empty()

    def test_run_level_events_always_sent(self, event_manager: EventManager) -> None:
        sub = event_manager.subscribe("T-1")

        event_manager.emit_progress(Cancelled(processed=0, remaining=1))

        assert sub.queue.get_nowait().event_type == EventType.CANCELLED


@pytest.mark.unit
class TestStream:
    """Tests for the SSE frame generator."""

    @pytest.mark.asyncio
    async def test_yields_events(self, event_manager: EventManager) -> None:
        stream = event_manager.stream()
        first = asyncio.ensure_future(anext(stream))
        await asyncio.sleep(0)
        assert event_manager.subscriber_count == 1

        event_manager.emit_ticket_updated("T-1", "closed")
        frame = await asyncio.wait_for(first, timeout=1.0)

        assert frame.startswith("event: ticket_updated\n")
        await stream.aclose()
        assert event_manager.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_heartbeat_when_idle(self) -> None:
        event_manager = EventManager(heartbeat_interval=0.01)
        stream = event_manager.stream()

        frame = await asyncio.wait_for(anext(stream), timeout=1.0)

        assert frame.startswith("event: heartbeat\n")
        await stream.aclose()
