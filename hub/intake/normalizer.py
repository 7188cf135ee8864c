"""
Event Normalizer

Converts raw provider payloads into uniform, size-bounded Events.

Key Rules:
- Never throws on a malformed payload; missing fields default to empty
- occurred_at defaults to normalization time
- Oversized fields are replaced by a marker and recorded on the Event
- Only an unresolvable source is rejected
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..common.errors import RejectedEventError
from ..common.schemas import (
    Event,
    EventSource,
    Truncation,
    generate_event_id,
    resolve_source,
    utc_now,
)
from .base import BaseHandler, ParsedPayload
from .fireflies import FirefliesHandler
from .gmail import GmailHandler
from .google_calendar import CalendarHandler
from .notion import NotionHandler
from .slack import SlackHandler

logger = logging.getLogger("hub.intake.normalizer")

# High-volume fields that carry no triage signal
NOISE_FIELDS = frozenset({
    "raw",
    "raw_html",
    "html",
    "body_html",
    "attachment_data",
    "thumbnail",
    "content_bytes",
})

TRUNCATION_MARKER = "...[truncated {dropped} of {total} bytes]"
REDACTION_MARKER = "[redacted {field}: {total} bytes]"


def default_handlers() -> Dict[EventSource, BaseHandler]:
    return {
        EventSource.CHAT: SlackHandler(),
        EventSource.EMAIL: GmailHandler(),
        EventSource.CALENDAR: CalendarHandler(),
        EventSource.TRANSCRIPT: FirefliesHandler(),
        EventSource.DOCUMENT: NotionHandler(),
    }


def _byte_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    try:
        return len(json.dumps(value, default=str).encode("utf-8"))
    except (TypeError, ValueError):
        return len(str(value).encode("utf-8"))


class EventNormalizer:
    """
    Turns (source, raw payload) into an Event.

    Pipeline:
    1. Resolve the source name (vendor aliases allowed)
    2. Parse with the source handler, or fall back to a generic payload
    3. Bound the payload: redact noise fields, truncate long strings
    4. Stamp id, occurred_at and received_at
    """

    def __init__(
        self,
        max_field_bytes: int = 8192,
        noise_threshold_bytes: int = 1024,
        handlers: Optional[Dict[EventSource, BaseHandler]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize normalizer.

        Args:
            max_field_bytes: UTF-8 byte cap for any single string value
            noise_threshold_bytes: Noise fields larger than this are redacted
            handlers: Source handlers (default: one per EventSource)
            clock: Time source for received_at and the occurred_at default
        """
        self._max_field_bytes = max_field_bytes
        self._noise_threshold_bytes = noise_threshold_bytes
        self._handlers = handlers if handlers is not None else default_handlers()
        self._clock = clock

    def normalize(self, source: Any, raw_payload: Any) -> Event:
        """
        Normalize a raw provider payload.

        Args:
            source: Canonical source name, vendor alias or EventSource
            raw_payload: Provider payload (any shape)

        Returns:
            Immutable Event

        Raises:
            RejectedEventError: source cannot be resolved
        """
        resolved = resolve_source(source)
        if resolved is None:
            raise RejectedEventError(f"Unknown event source: {source!r}")

        now = self._clock()
        parsed = self._parse(resolved, raw_payload)
        payload, truncations = self._bound(parsed.payload)

        if truncations:
            logger.warning(
                "Bounded %d oversized field(s) in %s payload: %s",
                len(truncations),
                resolved.value,
                ", ".join(t.path for t in truncations),
            )

        return Event(
            id=generate_event_id(),
            source=resolved,
            kind=parsed.kind,
            payload=payload,
            occurred_at=parsed.occurred_at or now,
            received_at=now,
            truncations=truncations,
        )

    def _parse(self, source: EventSource, raw_payload: Any) -> ParsedPayload:
        if not isinstance(raw_payload, dict):
            logger.warning("Non-mapping %s payload (%s), wrapping as text", source.value, type(raw_payload).__name__)
            text = "" if raw_payload is None else str(raw_payload)
            return ParsedPayload(kind="unknown", payload={"text": text})

        handler = self._handlers.get(source)
        if handler is None:
            return self._generic(raw_payload)

        try:
            return handler.parse(raw_payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("%s handler could not read payload (%s), using generic payload", source.value, e)
            return self._generic(raw_payload)

    def _generic(self, raw_payload: Dict[str, Any]) -> ParsedPayload:
        kind = raw_payload.get("type") or raw_payload.get("kind")
        return ParsedPayload(
            kind=kind if isinstance(kind, str) and kind else "unknown",
            payload=dict(raw_payload),
        )

    def _bound(self, payload: Dict[str, Any]) -> Tuple[Dict[str, Any], List[Truncation]]:
        truncations: List[Truncation] = []
        bounded = self._bound_value(payload, "", truncations)
        return bounded, truncations

    def _bound_value(self, value: Any, path: str, truncations: List[Truncation]) -> Any:
        if isinstance(value, dict):
            result = {}
            for key, item in value.items():
                key = str(key)
                child_path = f"{path}.{key}" if path else key
                if key in NOISE_FIELDS:
                    result[key] = self._redact_noise(key, item, child_path, truncations)
                else:
                    result[key] = self._bound_value(item, child_path, truncations)
            return result

        if isinstance(value, list):
            return [self._bound_value(item, f"{path}[{i}]", truncations) for i, item in enumerate(value)]

        if isinstance(value, str):
            encoded = value.encode("utf-8")
            if len(encoded) <= self._max_field_bytes:
                return value
            kept = encoded[:self._max_field_bytes].decode("utf-8", errors="ignore")
            marker = TRUNCATION_MARKER.format(
                dropped=len(encoded) - len(kept.encode("utf-8")),
                total=len(encoded),
            )
            truncations.append(Truncation(path=path, original_bytes=len(encoded), marker=marker))
            return kept + marker

        return value

    def _redact_noise(self, key: str, value: Any, path: str, truncations: List[Truncation]) -> Any:
        size = _byte_size(value)
        if size <= self._noise_threshold_bytes:
            return value
        marker = REDACTION_MARKER.format(field=key, total=size)
        truncations.append(Truncation(path=path, original_bytes=size, marker=marker))
        return marker
