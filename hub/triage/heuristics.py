"""
Heuristic Triage

Local, rule-based classification used when no reasoning backend answers.
Never fails and never calls out.

Signals (strongest wins):
- Urgency lexicon (urgent, asap, critical, emergency) -> urgency 5
- Chat direct message -> urgency >= 4; chat mention -> urgency >= 3
- Action language -> urgency >= 3 for email/chat, >= 2 otherwise
- Transcript action items, calendar events with attendees -> actionable
- No signal -> not actionable, urgency 1
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common.schemas import Category, Event, EventSource, TriageResult, dedupe
from ..intake.base import parse_timestamp

HEURISTIC_CONFIDENCE = 0.5

URGENCY_WORDS = ("urgent", "asap", "critical", "emergency")
URGENCY_PATTERN = re.compile(r"\b(" + "|".join(URGENCY_WORDS) + r")\b", re.IGNORECASE)

ACTION_PHRASES = (
    "please",
    "can you",
    "could you",
    "would you",
    "need to",
    "needs to",
    "todo",
    "to do",
    "action item",
    "follow up",
    "follow-up",
    "review",
    "deadline",
    "due",
    "fix",
    "schedule",
    "reply",
    "respond",
    "approve",
    "sign off",
    "by eod",
    "by end of day",
    "by tomorrow",
)
ACTION_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(p) for p in ACTION_PHRASES) + r")\b", re.IGNORECASE
)

SUMMARY_TEXT_CHARS = 80


@dataclass
class Signals:
    """What the rules found in an event"""
    text: str = ""
    urgency_words: List[str] = field(default_factory=list)
    action_phrases: List[str] = field(default_factory=list)
    direct_message: bool = False
    mentioned: bool = False

    @property
    def has_action_language(self) -> bool:
        return bool(self.action_phrases)


def _text(payload: Dict[str, Any], *keys: str) -> str:
    parts = []
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            parts.extend(str(v) for v in value if v)
        elif value:
            parts.append(str(value))
    return "\n".join(parts)


def _clip(text: str, limit: int = SUMMARY_TEXT_CHARS) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


SCAN_KEYS = {
    EventSource.EMAIL: ("subject", "snippet", "body"),
    EventSource.CHAT: ("text",),
    EventSource.CALENDAR: ("summary", "description"),
    EventSource.TRANSCRIPT: ("title", "gist", "overview", "action_items"),
    EventSource.DOCUMENT: ("title", "body"),
}


def extract_signals(event: Event) -> Signals:
    payload = event.payload
    text = _text(payload, *SCAN_KEYS.get(event.source, ("text", "body", "title", "summary")))

    signals = Signals(
        text=text,
        urgency_words=dedupe([m.lower() for m in URGENCY_PATTERN.findall(text)]),
        action_phrases=dedupe([m.lower() for m in ACTION_PATTERN.findall(text)]),
    )
    if event.source == EventSource.CHAT:
        signals.direct_message = bool(payload.get("is_direct_message"))
        signals.mentioned = bool(payload.get("mentions")) or "<@" in text
    return signals


def key_people(event: Event) -> List[str]:
    payload = event.payload
    source = event.source
    if source == EventSource.EMAIL:
        people = [payload.get("from_name") or payload.get("from_address") or payload.get("from") or ""]
    elif source == EventSource.CHAT:
        people = [payload.get("user") or ""]
    elif source == EventSource.CALENDAR:
        people = list(payload.get("attendees") or [])
    elif source == EventSource.TRANSCRIPT:
        people = list(payload.get("participants") or [])
    elif source == EventSource.DOCUMENT:
        people = [] if payload.get("editor_is_bot") else [payload.get("editor") or ""]
    else:
        people = []
    return dedupe([str(p) for p in people if p])


def categorize(event: Event, signals: Signals) -> Category:
    if event.source == EventSource.EMAIL:
        return Category.EMAIL
    if event.source in (EventSource.CALENDAR, EventSource.TRANSCRIPT):
        return Category.MEETING
    if event.source == EventSource.DOCUMENT:
        return Category.UPDATE
    if event.source == EventSource.CHAT and signals.has_action_language:
        return Category.TASK
    return Category.NOTIFICATION


def summarize(event: Event, signals: Signals) -> str:
    payload = event.payload
    source = event.source

    if source == EventSource.EMAIL:
        sender = payload.get("from_name") or payload.get("from_address") or "unknown sender"
        return f"Email from {sender}: {payload.get('subject') or '(no subject)'}"
    if source == EventSource.CHAT:
        label = "DM" if signals.direct_message else "mention" if signals.mentioned else "message"
        return f"Slack {label} from {payload.get('user') or 'unknown'}: {_clip(signals.text)}"
    if source == EventSource.CALENDAR:
        return f"Calendar event {event.kind or 'updated'}: {payload.get('summary') or '(untitled)'}"
    if source == EventSource.TRANSCRIPT:
        gist = payload.get("gist") or payload.get("overview")
        title = payload.get("title") or "meeting"
        return f"Transcript ready for {title}" + (f": {_clip(gist)}" if gist else "")
    if source == EventSource.DOCUMENT:
        return f"Document {event.kind or 'updated'}: {payload.get('title') or '(untitled)'}"
    return f"{source.value} event"


def action_items(event: Event) -> List[str]:
    """Per-source work items for an actionable event"""
    payload = event.payload
    source = event.source

    if source == EventSource.EMAIL:
        return [f"Reply to email: {payload.get('subject') or '(no subject)'}"]
    if source == EventSource.CHAT:
        user = payload.get("user")
        return [f"Respond to message from {user}" if user else "Respond to chat message"]
    if source == EventSource.CALENDAR:
        return [f"Prepare for {payload.get('summary') or 'meeting'}"]
    if source == EventSource.TRANSCRIPT:
        items = [str(i) for i in payload.get("action_items") or [] if i]
        return items or [f"Follow up on meeting: {payload.get('title') or 'untitled'}"]
    if source == EventSource.DOCUMENT:
        return [f"Review document: {payload.get('title') or '(untitled)'}"]
    return [f"Review {source.value} activity"]


def heuristic_triage(event: Event) -> TriageResult:
    """
    Classify an event with local rules only.

    Args:
        event: Normalized event

    Returns:
        TriageResult with confidence fixed at 0.5
    """
    signals = extract_signals(event)
    payload = event.payload
    source = event.source

    urgency = 1
    actionable = False
    deadline: Optional[Any] = None

    if signals.urgency_words:
        urgency = 5
        actionable = True

    if signals.direct_message:
        urgency = max(urgency, 4)
        actionable = True
    elif signals.mentioned:
        urgency = max(urgency, 3)
        actionable = True

    if signals.has_action_language:
        urgency = max(urgency, 3 if source in (EventSource.EMAIL, EventSource.CHAT) else 2)
        actionable = True

    if source == EventSource.EMAIL and payload.get("is_important"):
        urgency = max(urgency, 3)
        actionable = True

    if source == EventSource.TRANSCRIPT and payload.get("action_items"):
        urgency = max(urgency, 3)
        actionable = True

    if source == EventSource.CALENDAR:
        if event.kind == "cancelled" or payload.get("status") == "cancelled":
            actionable = False
            urgency = max(urgency, 2)
        elif payload.get("attendees"):
            urgency = max(urgency, 3)
            actionable = True
            deadline = parse_timestamp(payload.get("start"))

    if source == EventSource.DOCUMENT and payload.get("editor_is_bot") and not signals.urgency_words:
        actionable = False
        urgency = 1

    tags = list(signals.urgency_words)
    if signals.has_action_language:
        tags.append("action")
    if signals.direct_message:
        tags.append("dm")
    tags.append(source.value)

    return TriageResult(
        urgency=urgency,
        actionable=actionable,
        summary=summarize(event, signals),
        action_items=action_items(event) if actionable else [],
        key_people=key_people(event),
        deadline=deadline,
        category=categorize(event, signals),
        tags=tags,
        confidence=HEURISTIC_CONFIDENCE,
    )
