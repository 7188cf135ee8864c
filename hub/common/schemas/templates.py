"""
Text Templates

Renders tasks into the short context strings that travel with external
tracker records and reminders.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .records import Event, Task


CONTEXT_TEMPLATE = """{summary}
Source: {source} ({kind}) | Urgency: {urgency}/5 | Confidence: {confidence:.0%}
People: {people}
Deadline: {deadline}
Tags: {tags}"""

# Notion rich_text blocks cap at 2000 characters
CONTEXT_MAX_CHARS = 2000


def format_deadline(task: "Task") -> str:
    if task.deadline is None:
        return "none"
    return task.deadline.strftime("%Y-%m-%d %H:%M UTC")


def render_context_summary(task: "Task", event: Optional["Event"] = None) -> str:
    """Render the generated context summary for a task"""
    text = CONTEXT_TEMPLATE.format(
        summary=task.summary or task.title,
        source=task.source.value,
        kind=event.kind if event is not None and event.kind else "event",
        urgency=task.urgency,
        confidence=task.confidence,
        people=", ".join(task.key_people) or "(none)",
        deadline=format_deadline(task),
        tags=", ".join(task.tags) or "(none)",
    )
    if event is not None and event.degraded:
        text += "\nNote: source payload was truncated at intake"
    return text[:CONTEXT_MAX_CHARS]


def render_task_line(task: "Task") -> str:
    """One-line display form used in logs and the replay script"""
    marker = "x" if task.status.value == "completed" else " "
    return f"[{marker}] ({task.urgency}) {task.title} <{task.id}>"
