"""
Hub Pipeline Schemas

Records that flow through the triage pipeline.
"""

from .records import (
    Event,
    EventSource,
    Truncation,
    TriageResult,
    Category,
    Task,
    TaskStatus,
    ProposedAction,
    ActionType,
    ActionPriority,
    ActionResult,
    ItemError,
    PipelineResult,
    PipelineStage,
    SOURCE_ALIASES,
    URGENCY_MIN,
    URGENCY_MAX,
    clamp_urgency,
    dedupe,
    ensure_utc,
    generate_event_id,
    generate_task_id,
    resolve_source,
    utc_now,
)
from .templates import render_context_summary, render_task_line

__all__ = [
    "Event",
    "EventSource",
    "Truncation",
    "TriageResult",
    "Category",
    "Task",
    "TaskStatus",
    "ProposedAction",
    "ActionType",
    "ActionPriority",
    "ActionResult",
    "ItemError",
    "PipelineResult",
    "PipelineStage",
    "SOURCE_ALIASES",
    "URGENCY_MIN",
    "URGENCY_MAX",
    "clamp_urgency",
    "dedupe",
    "ensure_utc",
    "generate_event_id",
    "generate_task_id",
    "resolve_source",
    "utc_now",
    "render_context_summary",
    "render_task_line",
]
