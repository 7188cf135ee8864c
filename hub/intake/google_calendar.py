"""
Google Calendar Handler

Handles calendar change notifications carrying a Google Calendar event
resource, either bare or wrapped as {"change_type": ..., "event": {...}}.
"""

from typing import Any, Dict, List

from ..common.schemas import EventSource
from .base import BaseHandler, ParsedPayload, as_dict, as_list, as_str, parse_timestamp


class CalendarHandler(BaseHandler):
    """
    Handler for calendar changes.

    Kind is "created", "updated" or "cancelled". When the adapter does not
    say, it is inferred from the resource: cancelled status wins, otherwise
    matching created/updated stamps mean a new event.
    """

    def __init__(self):
        super().__init__(EventSource.CALENDAR)

    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        event = as_dict(raw.get("event")) if isinstance(raw.get("event"), dict) else raw
        status = as_str(event.get("status"))

        start = self._event_time(event.get("start"))
        end = self._event_time(event.get("end"))

        payload = {
            "calendar_event_id": as_str(event.get("id")),
            "summary": as_str(event.get("summary")),
            "description": as_str(event.get("description")),
            "location": as_str(event.get("location")),
            "start": start.isoformat() if start else "",
            "end": end.isoformat() if end else "",
            "attendees": self._attendees(event),
            "organizer": self._person(as_dict(event.get("organizer"))),
            "status": status,
            "link": as_str(event.get("htmlLink")),
            "conference_link": as_str(event.get("hangoutLink")),
        }

        return ParsedPayload(
            kind=self._kind(raw, event, status),
            payload=payload,
            occurred_at=parse_timestamp(event.get("updated") or event.get("created")),
        )

    def _kind(self, raw: Dict[str, Any], event: Dict[str, Any], status: str) -> str:
        declared = as_str(raw.get("change_type") or raw.get("action")).lower()
        if declared:
            return declared
        if status == "cancelled":
            return "cancelled"
        if event.get("created") and event.get("created") == event.get("updated"):
            return "created"
        return "updated"

    def _event_time(self, value: Any):
        """Timed events use dateTime, all-day events use date"""
        value = as_dict(value)
        return parse_timestamp(value.get("dateTime") or value.get("date"))

    def _attendees(self, event: Dict[str, Any]) -> List[str]:
        people = []
        for attendee in as_list(event.get("attendees")):
            attendee = as_dict(attendee)
            if attendee.get("resource"):
                continue
            person = self._person(attendee)
            if person:
                people.append(person)
        return people

    def _person(self, obj: Dict[str, Any]) -> str:
        return as_str(obj.get("displayName") or obj.get("email"))
