"""
Pipeline event log and subscriber channel.

Runners record what happened to each work item here. Subscribers receive
every event as it is appended; the committer's ``MUTATIONS_APPLIED``
events are how downstream consumers (a UI, a projection) learn about
canonical changes.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Callable

from patchway.models.events import EventType, PipelineEvent
from patchway.utils.logger import get_logger

Subscriber = Callable[[PipelineEvent], None]

logger = get_logger(__name__)


class EventLog:
    """
    Bounded in-memory event history with fan-out to subscribers.

    Example:
        >>> events = EventLog()
        >>> unsubscribe = events.subscribe(lambda e: print(e.type))
        >>> events.append(EventType.GOAL_ENQUEUED, thread_id="t1")
        EventType.GOAL_ENQUEUED
        >>> unsubscribe()
    """

    def __init__(self, max_history: int = 1000):
        """
        Initialize the event log.

        Args:
            max_history: Number of events retained for inspection
        """
        self._lock = threading.Lock()
        self._history: deque[PipelineEvent] = deque(maxlen=max_history)
        self._subscribers: list[Subscriber] = []

    def append(self, event_type: EventType, **data: Any) -> PipelineEvent:
        """
        Record an event and notify subscribers.

        A subscriber that raises is logged and skipped; it cannot affect
        the pipeline or the other subscribers.

        Args:
            event_type: Kind of event
            **data: Event details

        Returns:
            The recorded event
        """
        event = PipelineEvent(type=event_type, data=data)
        with self._lock:
            self._history.append(event)
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception(f"Subscriber failed on {event.type.value}")
        return event

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a subscriber.

        Args:
            callback: Called with every appended event

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def history(
        self,
        event_type: EventType | None = None,
        limit: int | None = None,
    ) -> list[PipelineEvent]:
        """
        Get recorded events, oldest first.

        Args:
            event_type: Only events of this type
            limit: Only the most recent ``limit`` events

        Returns:
            List of events
        """
        with self._lock:
            events = [e for e in self._history if event_type is None or e.type == event_type]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear(self) -> None:
        """Drop the recorded history."""
        with self._lock:
            self._history.clear()
