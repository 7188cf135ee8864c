"""
Fireflies Handler

Handles transcript-ready notifications. Accepts the webhook shape
({"meetingId", "eventType"}) and the full transcript resource the adapter
fetches afterwards ({"title", "participants", "summary": {...}, "sentences"}).
"""

import re
from typing import Any, Dict, List

from ..common.schemas import EventSource
from .base import BaseHandler, ParsedPayload, as_dict, as_list, as_str, parse_timestamp

BULLET_PATTERN = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")
# Fireflies groups action items under bold owner headings: **Jane Doe**
OWNER_HEADING_PATTERN = re.compile(r"^\*\*(.+?)\*\*$")


def split_action_items(value: Any) -> List[str]:
    """Normalize Fireflies action items (list, or newline text with headings)"""
    if isinstance(value, list):
        lines = [as_str(v) for v in value]
    else:
        lines = as_str(value).splitlines()

    items = []
    for line in lines:
        line = line.strip()
        if not line or OWNER_HEADING_PATTERN.match(line):
            continue
        line = BULLET_PATTERN.sub("", line).strip()
        if line:
            items.append(line)
    return items


class FirefliesHandler(BaseHandler):
    """Handler for meeting transcripts"""

    def __init__(self):
        super().__init__(EventSource.TRANSCRIPT)

    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        transcript = as_dict(raw.get("transcript")) if isinstance(raw.get("transcript"), dict) else raw
        summary = as_dict(transcript.get("summary"))

        payload = {
            "meeting_id": as_str(transcript.get("id") or raw.get("meetingId")),
            "title": as_str(transcript.get("title")),
            "participants": [as_str(p) for p in as_list(transcript.get("participants")) if p],
            "organizer": as_str(transcript.get("organizer_email") or transcript.get("host_email")),
            "gist": as_str(summary.get("gist") or summary.get("short_summary")),
            "overview": as_str(summary.get("overview")),
            "action_items": split_action_items(summary.get("action_items")),
            "keywords": [as_str(k) for k in as_list(summary.get("keywords"))],
            "url": as_str(transcript.get("transcript_url") or transcript.get("url")),
            "transcript_text": self._sentences_text(transcript),
        }

        return ParsedPayload(
            kind="transcript_ready",
            payload=payload,
            occurred_at=parse_timestamp(transcript.get("date") or raw.get("timestamp")),
        )

    def _sentences_text(self, transcript: Dict[str, Any]) -> str:
        lines = []
        for sentence in as_list(transcript.get("sentences")):
            sentence = as_dict(sentence)
            speaker = as_str(sentence.get("speaker_name"))
            text = as_str(sentence.get("text"))
            if text:
                lines.append(f"{speaker}: {text}" if speaker else text)
        return "\n".join(lines)
