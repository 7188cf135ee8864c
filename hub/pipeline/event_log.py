"""
Event Log

Append-only record of every normalized event, plus a bounded, lock-guarded
history of pipeline run summaries with per-source counters. The full record
backs task -> event references; the bounded history backs the recent-events
view.
"""

import threading
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from ..common.schemas import Event, PipelineStage

DEFAULT_CAPACITY = 100


@dataclass(frozen=True)
class EventLogEntry:
    event: Event
    stage: PipelineStage
    triage_tier: str
    task_ids: tuple
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event.id,
            "source": self.event.source.value,
            "kind": self.event.kind,
            "occurred_at": self.event.occurred_at.isoformat(),
            "received_at": self.event.received_at.isoformat(),
            "stage": self.stage.value,
            "triage_tier": self.triage_tier,
            "task_ids": list(self.task_ids),
            "error_count": self.error_count,
            "degraded": self.event.degraded,
        }


class EventLog:
    """
    Events are kept for the life of the log (until clear()). Run summaries
    are most recent first; older summaries fall off past capacity.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._events: Dict[str, Event] = {}
        self._entries: Deque[EventLogEntry] = deque(maxlen=capacity)
        self._by_source: Counter = Counter()
        self._by_tier: Counter = Counter()
        self._last_received: Optional[datetime] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __contains__(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._events

    def append(self, event: Event) -> None:
        """Add a normalized event; called before any task can reference it"""
        with self._lock:
            if event.id in self._events:
                return
            self._events[event.id] = event
            self._by_source[event.source.value] += 1
            self._last_received = event.received_at

    def get(self, event_id: str) -> Optional[Event]:
        with self._lock:
            return self._events.get(event_id)

    def events(self) -> List[Event]:
        """All events in arrival order"""
        with self._lock:
            return list(self._events.values())

    def record(self, entry: EventLogEntry) -> None:
        """Store the summary of a finished (or stopped) pipeline run"""
        with self._lock:
            self._entries.append(entry)
            if entry.triage_tier:
                self._by_tier[entry.triage_tier] += 1

    def recent(self, limit: int = 10) -> List[EventLogEntry]:
        with self._lock:
            entries = list(self._entries)
        entries.reverse()
        return entries[:max(0, limit)]

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_events": len(self._events),
                "by_source": dict(self._by_source),
                "by_tier": dict(self._by_tier),
                "last_event_at": self._last_received.isoformat() if self._last_received else None,
            }

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._entries.clear()
            self._by_source.clear()
            self._by_tier.clear()
            self._last_received = None
