"""
Events Module - Observability events for the chat core
======================================================

The core reports what happens to sessions as a stream of events
written to an append-only sink. The default sink keeps them in memory
and mirrors each one to the debug log; tests inject their own.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .logging import get_logger

logger = get_logger("events")


class EventKind(Enum):
    """The six kinds of event the core emits."""
    SESSION_OPENED = "session_opened"
    UTTERANCE_RECEIVED = "utterance_received"
    REPLY_EMITTED = "reply_emitted"
    SESSION_CLOSED = "session_closed"
    INTENT_MATCHED = "intent_matched"
    RATE_LIMIT_HIT = "rate_limit_hit"


@dataclass(frozen=True)
class Event:
    """
    A single recorded event.

    Attributes:
        kind (EventKind): What happened
        session_id (str): Session the event concerns
        timestamp (float): Unix time the event was created
        data (dict): Kind-specific payload (intent id, reply length, ...)
    """
    kind: EventKind
    session_id: str
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "kind": self.kind.value,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


class EventSink(ABC):
    """Append-only destination for events."""

    @abstractmethod
    def append(self, event: Event) -> None:
        """Record an event. Must be safe to call from many threads."""
        pass

    def emit(self, kind: EventKind, session_id: str, **data: Any) -> Event:
        """Build an event and append it."""
        event = Event(kind=kind, session_id=session_id, data=data)
        self.append(event)
        return event


class EventLog(EventSink):
    """
    Thread-safe in-memory event log.

    Events are only ever appended. Readers get snapshots.

    Example:
        log = EventLog()
        log.emit(EventKind.SESSION_OPENED, session_id)
        assert log.count(EventKind.SESSION_OPENED) == 1
    """

    def __init__(self):
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def append(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)
        logger.debug(f"{event.kind.value} session={event.session_id} {event.data}")

    def events(self, kind: Optional[EventKind] = None) -> List[Event]:
        """
        Get a snapshot of recorded events.

        Args:
            kind: Only return events of this kind (optional)

        Returns:
            Events in the order they were appended
        """
        with self._lock:
            snapshot = list(self._events)
        if kind is None:
            return snapshot
        return [e for e in snapshot if e.kind is kind]

    def count(self, kind: Optional[EventKind] = None) -> int:
        """Count events, optionally of a single kind."""
        return len(self.events(kind))

    def counts(self) -> Dict[str, int]:
        """Count events per kind, keyed by the kind's value."""
        with self._lock:
            tally = Counter(e.kind.value for e in self._events)
        return {kind.value: tally.get(kind.value, 0) for kind in EventKind}

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
