"""
Event Intake

Source handlers plus the normalizer that turns provider payloads into
Events. Each handler converts a source-specific payload into a common
kind / payload / occurred_at triple.

Available Handlers:
- SlackHandler: chat messages (Slack Events API)
- GmailHandler: email arrivals
- CalendarHandler: Google Calendar changes
- FirefliesHandler: meeting transcripts
- NotionHandler: document-store changes
"""

from .base import BaseHandler, ParsedPayload, parse_timestamp
from .slack import SlackHandler
from .gmail import GmailHandler
from .google_calendar import CalendarHandler
from .fireflies import FirefliesHandler
from .notion import NotionHandler
from .normalizer import EventNormalizer, NOISE_FIELDS

__all__ = [
    "BaseHandler",
    "ParsedPayload",
    "parse_timestamp",
    "SlackHandler",
    "GmailHandler",
    "CalendarHandler",
    "FirefliesHandler",
    "NotionHandler",
    "EventNormalizer",
    "NOISE_FIELDS",
]
