"""
Pipeline Record Schemas

Event -> TriageResult -> Task -> ProposedAction -> ActionResult.

Events, triage results and tasks are frozen: a record is replaced, never
edited in place, so a snapshot handed to a reader cannot change under it.
"""

import itertools
import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Constants
# ============================================================================

URGENCY_MIN = 1
URGENCY_MAX = 5

_event_counter = itertools.count(1)
_task_counter = itertools.count(1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def clamp_urgency(value: int) -> int:
    """Urgency outside [1, 5] is clamped, not rejected"""
    return max(URGENCY_MIN, min(URGENCY_MAX, int(value)))


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dedupe(values: List[str]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order"""
    seen = set()
    result = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


# ============================================================================
# Enums
# ============================================================================

class EventSource(str, Enum):
    """Kinds of external system an event can come from"""
    CHAT = "chat"
    EMAIL = "email"
    CALENDAR = "calendar"
    TRANSCRIPT = "transcript"
    DOCUMENT = "document"


# Vendor names accepted at intake
SOURCE_ALIASES = {
    "slack": EventSource.CHAT,
    "gmail": EventSource.EMAIL,
    "mail": EventSource.EMAIL,
    "google_calendar": EventSource.CALENDAR,
    "gcal": EventSource.CALENDAR,
    "fireflies": EventSource.TRANSCRIPT,
    "meeting": EventSource.TRANSCRIPT,
    "notion": EventSource.DOCUMENT,
    "drive": EventSource.DOCUMENT,
    "gdrive": EventSource.DOCUMENT,
    "docs": EventSource.DOCUMENT,
}


def resolve_source(value: Any) -> Optional[EventSource]:
    """Resolve a canonical source name or vendor alias"""
    if isinstance(value, EventSource):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    try:
        return EventSource(key)
    except ValueError:
        return SOURCE_ALIASES.get(key)


class Category(str, Enum):
    """Triage category"""
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    NOTIFICATION = "notification"
    UPDATE = "update"


class TaskStatus(str, Enum):
    """Task lifecycle; completed tasks may be reopened"""
    PENDING = "pending"
    COMPLETED = "completed"


class ActionType(str, Enum):
    """Follow-on action variants"""
    CALENDAR_EVENT = "calendar_event"
    NOTION_SYNC = "notion_sync"
    FOLLOW_UP = "follow_up"
    OTHER = "other"


class ActionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PipelineStage(str, Enum):
    """Per-event pipeline states, linear and terminal-only"""
    RECEIVED = "received"
    NORMALIZED = "normalized"
    TRIAGED = "triaged"
    TASKS_SYNTHESIZED = "tasks_synthesized"
    ACTIONS_PROPOSED = "actions_proposed"
    ACTIONS_EXECUTED = "actions_executed"
    DONE = "done"


# ============================================================================
# Event
# ============================================================================

class Truncation(BaseModel):
    """A payload field that was cut or redacted at intake"""
    model_config = ConfigDict(frozen=True)

    path: str
    original_bytes: int
    marker: str


class Event(BaseModel):
    """Normalized record of something happening in an external system"""
    model_config = ConfigDict(frozen=True)

    id: str
    source: EventSource
    kind: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime
    received_at: datetime
    truncations: List[Truncation] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True when intake had to cut or redact part of the payload"""
        return bool(self.truncations)


def generate_event_id() -> str:
    return f"evt-{next(_event_counter)}-{secrets.token_hex(4)}"


# ============================================================================
# Triage
# ============================================================================

class TriageResult(BaseModel):
    """Structured classification of one event"""
    model_config = ConfigDict(frozen=True)

    urgency: int = URGENCY_MIN
    actionable: bool = False
    summary: str = ""
    action_items: List[str] = Field(default_factory=list)
    key_people: List[str] = Field(default_factory=list)
    deadline: Optional[datetime] = None
    category: Category = Category.NOTIFICATION
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("urgency")
    @classmethod
    def _clamp_urgency(cls, v: int) -> int:
        return clamp_urgency(v)

    @field_validator("action_items")
    @classmethod
    def _strip_items(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]

    @field_validator("key_people", "tags")
    @classmethod
    def _dedupe(cls, v: List[str]) -> List[str]:
        return dedupe(v)

    @field_validator("deadline")
    @classmethod
    def _utc_deadline(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


# ============================================================================
# Task
# ============================================================================

class Task(BaseModel):
    """A unit of work synthesized from one action item"""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    source_event_id: str
    source: EventSource
    urgency: int
    category: Category
    summary: str = ""
    key_people: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    deadline: Optional[datetime] = None
    confidence: float = 0.5
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: TaskStatus = TaskStatus.PENDING
    ai_generated: bool = False
    external_ref: Optional[str] = None

    @field_validator("urgency")
    @classmethod
    def _clamp_urgency(cls, v: int) -> int:
        return clamp_urgency(v)

    @property
    def rank_key(self) -> tuple:
        """(urgency, created_at); sort descending"""
        return (self.urgency, self.created_at)


def generate_task_id() -> str:
    """Process-unique id: monotonic counter plus random suffix"""
    return f"task-{next(_task_counter)}-{secrets.token_hex(4)}"


# ============================================================================
# Actions
# ============================================================================

class ProposedAction(BaseModel):
    """A suggested follow-on effect derived from a task"""
    type: ActionType
    priority: ActionPriority = ActionPriority.MEDIUM
    description: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    auto_execute: bool = False
    task_id: Optional[str] = None


class ActionResult(BaseModel):
    """Outcome of executing one proposed action"""
    success: bool
    message: str = ""
    error: Optional[str] = None
    action_type: Optional[ActionType] = None
    task_id: Optional[str] = None
    external_ref: Optional[str] = None


# ============================================================================
# Pipeline result
# ============================================================================

class ItemError(BaseModel):
    """A per-task or per-action failure recorded without aborting the run"""
    stage: PipelineStage
    message: str
    task_id: Optional[str] = None
    action_type: Optional[ActionType] = None


class PipelineResult(BaseModel):
    """Full bundle for one event; every field present even when empty"""
    event: Event
    triage_result: TriageResult
    triage_tier: str = ""
    tasks: List[Task] = Field(default_factory=list)
    proposed_actions: List[ProposedAction] = Field(default_factory=list)
    action_results: List[ActionResult] = Field(default_factory=list)
    errors: List[ItemError] = Field(default_factory=list)
    stage: PipelineStage = PipelineStage.TRIAGED
