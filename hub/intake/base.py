"""
Base Handler

Abstract base class for source-specific payload handlers.
Provides a common interface for turning a provider payload into the
kind / occurred_at / payload triple that becomes an Event.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..common.schemas import EventSource, ensure_utc


@dataclass
class ParsedPayload:
    """Source-independent view of a provider payload"""
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: Optional[datetime] = None


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse provider timestamps into aware UTC datetimes.

    Accepts epoch seconds (Slack "1706799600.123456"), epoch milliseconds
    (Gmail internalDate, Fireflies date) and ISO 8601 strings (Notion,
    Google Calendar). Returns None when the value is missing or unreadable.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            try:
                return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
            except ValueError:
                return None
    else:
        return None

    # Millisecond epochs are 13 digits
    if seconds > 1e11:
        seconds /= 1000.0
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class BaseHandler(ABC):
    """
    Abstract base class for source handlers.

    Each handler must implement:
    - parse: Convert a raw provider payload to a ParsedPayload

    Handlers read with .get() and type guards throughout. A payload that is
    still too malformed to read is handled by the normalizer's generic
    fallback.
    """

    def __init__(self, source: EventSource):
        """
        Initialize handler.

        Args:
            source: Canonical source this handler covers
        """
        self.source = source

    @abstractmethod
    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        """
        Parse raw provider data into a ParsedPayload.

        Args:
            raw: Raw payload from the source

        Returns:
            ParsedPayload with kind, clean payload and occurrence time
        """
        pass
