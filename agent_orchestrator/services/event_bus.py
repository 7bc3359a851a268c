"""
Event Bus - observer registry for orchestrator events

The coordinator, pool and monitor receive one EventBus at construction and
publish through it. Delivery is synchronous and in publish order, so every
subscriber sees the status changes of one agent in the order they happened.
A failing subscriber is logged and skipped; it never breaks scheduling.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from ..models.events import Event, EventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]


class EventBus:
    """
    Observer registry.

    Example:
        bus = EventBus()
        unsubscribe = bus.subscribe(print, {EventType.TASK_COMPLETED})
        bus.publish(EventType.TASK_COMPLETED, {"task_id": "a"})
        unsubscribe()
    """

    def __init__(self, history_size: int = 1000):
        self._handlers: List[tuple] = []
        self._history: Deque[Event] = deque(maxlen=history_size)

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: called with each matching Event
            event_types: only these types; all types when None

        Returns:
            A function that removes the subscription
        """
        types: Optional[Set[EventType]] = set(event_types) if event_types else None
        entry = (handler, types)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    def publish(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> Event:
        event = Event(type=event_type, payload=payload or {})
        self._history.append(event)

        for handler, types in list(self._handlers):
            if types is not None and event_type not in types:
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {event_type.value}")

        return event

    def recent(self, count: int = 100, event_type: Optional[EventType] = None) -> List[Event]:
        """Most recent events, oldest first"""
        events = [e for e in self._history if event_type is None or e.type == event_type]
        return events[-count:] if count > 0 else []

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
