"""
Follow-on Actions

Rule-based proposal of actions for tasks, and their execution through
outbound collaborators.
"""

from .engine import ActionContext, ActionEngine
from .executor import ActionExecutor
from .collaborators import (
    ExternalTracker,
    MeetingScheduler,
    ReminderScheduler,
    PersistenceSink,
    CalendarPlanner,
    NotionTracker,
    LocalCalendarPlanner,
    InMemoryReminderQueue,
    NullSink,
    JsonlSink,
    TimeSlot,
    priority_tier,
)

__all__ = [
    "ActionContext",
    "ActionEngine",
    "ActionExecutor",
    "ExternalTracker",
    "MeetingScheduler",
    "ReminderScheduler",
    "PersistenceSink",
    "CalendarPlanner",
    "NotionTracker",
    "LocalCalendarPlanner",
    "InMemoryReminderQueue",
    "NullSink",
    "JsonlSink",
    "TimeSlot",
    "priority_tier",
]
