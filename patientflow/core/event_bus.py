"""
Queue event bus.

The queue manager publishes one QueueEvent after each committed change.
Subscribers (the SQL event log, notifiers) react to them; the bounded
history is the in-memory trail used when the store keeps no event log.
"""

import asyncio
import logging
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from patientflow.models.events import EventType, QueueEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[QueueEvent], Any]


class EventBus:
    """
    In-process pub/sub for queue events.

    Subscribers may be plain functions or coroutines. A subscriber that
    raises is logged and skipped; the change it reacts to is already
    committed, so the publisher never sees the failure.
    """

    def __init__(self, max_history: int = 1000):
        self._by_type: Dict[EventType, List[Subscriber]] = {event_type: [] for event_type in EventType}
        self._catch_all: List[Subscriber] = []
        self._history: Deque[QueueEvent] = deque(maxlen=max_history)
        self._is_running = True

        logger.info(f"EventBus initialized (history={max_history})")

    async def publish(self, event: QueueEvent) -> None:
        """Record an event and deliver it to every matching subscriber."""
        if not self._is_running:
            logger.warning(f"EventBus is stopped, dropping {event.event_type.value} for {event.entry_id}")
            return

        self._history.append(event)
        logger.debug(
            f"{event.event_type.value} {event.department} entry={event.entry_id} "
            f"{event.from_status.value if event.from_status else '-'} -> "
            f"{event.to_status.value if event.to_status else '-'}"
        )

        subscribers = self._by_type[event.event_type] + self._catch_all
        if subscribers:
            await asyncio.gather(*(self._deliver(subscriber, event) for subscriber in subscribers))

    async def _deliver(self, subscriber: Subscriber, event: QueueEvent) -> None:
        try:
            result = subscriber(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Subscriber {getattr(subscriber, '__qualname__', subscriber)} failed on {event.id}: {e}", exc_info=True)

    def subscribe(self, event_type: EventType, callback: Subscriber) -> None:
        """Receive events of one type."""
        subscribers = self._by_type[EventType(event_type)]
        if callback not in subscribers:
            subscribers.append(callback)

    def subscribe_all(self, callback: Subscriber) -> None:
        """Receive every event."""
        if callback not in self._catch_all:
            self._catch_all.append(callback)

    def unsubscribe_all(self, callback: Subscriber) -> None:
        """Remove a callback wherever it is subscribed."""
        for subscribers in [self._catch_all, *self._by_type.values()]:
            while callback in subscribers:
                subscribers.remove(callback)

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        entry_id: Optional[str] = None,
        department: Optional[str] = None,
        limit: int = 100
    ) -> List[QueueEvent]:
        """
        Recorded events, most recent first.

        Args:
            event_type: Only events of this type
            entry_id: Only events about this queue entry
            department: Only events of this department
            limit: Maximum number of events to return
        """
        matches = []
        for event in reversed(self._history):
            if event_type and event.event_type != event_type:
                continue
            if entry_id and event.entry_id != entry_id:
                continue
            if department and event.department != department:
                continue
            matches.append(event)
            if len(matches) >= limit:
                break
        return matches

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Event history cleared")

    def stop(self) -> None:
        """Stop recording and delivering events."""
        self._is_running = False
        logger.info("EventBus stopped")

    def start(self) -> None:
        self._is_running = True
        logger.info("EventBus started")


def create_event_id() -> str:
    """Generate a unique event ID."""
    return f"evt_{uuid.uuid4().hex[:12]}"
