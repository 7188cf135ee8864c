"""
Triage Prompts

The prompt is built only from the event's source, kind, payload and
occurrence time, with keys sorted, so the same event always produces the
same prompt text.
"""

import json

from ..common.schemas import Event


TRIAGE_SYSTEM = """You triage workplace events (chat messages, emails, calendar changes, meeting transcripts, document edits) for a busy professional.

For each event decide how urgent it is, whether it requires the user to do something, and what exactly needs doing.

Respond with a single JSON object only. No prose before or after it."""


TRIAGE_PROMPT = """Analyze this workplace event and provide actionable insights:

EVENT:
Source: {source}
Type: {kind}
Data: {data}
Timestamp: {timestamp}

Respond with JSON in this format:
{{
  "urgency": 1-5,
  "actionable": true/false,
  "summary": "Brief description",
  "actionItems": ["specific action 1", "specific action 2"],
  "keyPeople": ["person1", "person2"],
  "deadline": "ISO 8601 date or null",
  "category": "email|meeting|task|notification|update",
  "tags": ["tag1", "tag2"],
  "confidence": 0.1-1.0
}}

Focus on:
1. What actions need to be taken?
2. How urgent is this (1=low, 5=critical)?
3. Who needs to be involved?
4. Are there deadlines?
5. What category best fits this event?

Be specific and actionable. Use an empty actionItems list when nothing needs doing."""


def build_triage_prompt(event: Event) -> str:
    """Render the triage prompt for an event"""
    return TRIAGE_PROMPT.format(
        source=event.source.value,
        kind=event.kind or "unknown",
        data=json.dumps(event.payload, indent=2, sort_keys=True, ensure_ascii=False, default=str),
        timestamp=event.occurred_at.isoformat(),
    )
