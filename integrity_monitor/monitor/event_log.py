"""
Event Log - Append-only, time-ordered store of integrity events
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

from .events import IntegrityEvent

logger = logging.getLogger(__name__)


@dataclass
class EventLog:
    """
    Append-only sequence of events for one session run.

    Insertion order is emission order and is non-decreasing in
    session_elapsed_seconds. Views are tuples, so callers cannot
    mutate the underlying order.
    """

    session_id: str
    _events: List[IntegrityEvent] = field(default_factory=list)

    def append(self, event: IntegrityEvent):
        """
        Append a newly emitted event.

        Raises:
            ValueError: if the event would break time ordering or reuse an id
        """
        if self._events:
            last = self._events[-1]
            if event.session_elapsed_seconds < last.session_elapsed_seconds:
                raise ValueError(
                    f"Event {event.id} at {event.session_elapsed_seconds}s is older than "
                    f"last event at {last.session_elapsed_seconds}s"
                )
            if event.id <= last.id:
                raise ValueError(f"Event id {event.id} is not after {last.id}")

        self._events.append(event)

    def all(self) -> Tuple[IntegrityEvent, ...]:
        """Events in emission order"""
        return tuple(self._events)

    def reversed_view(self) -> Tuple[IntegrityEvent, ...]:
        """Events most-recent-first, for display"""
        return tuple(reversed(self._events))

    def count(self) -> int:
        return len(self._events)

    def clear(self):
        """Drop all events; only a session start does this"""
        if self._events:
            logger.debug(f"Clearing {len(self._events)} events for session {self.session_id}")
        self._events = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[IntegrityEvent]:
        return iter(tuple(self._events))
