"""Tests for EventNormalizer: source resolution, fallbacks and payload bounding."""

import logging
from datetime import datetime, timezone

import pytest

from hub.common.errors import RejectedEventError
from hub.common.schemas import EventSource
from hub.intake import EventNormalizer, SlackHandler
from hub.intake.base import BaseHandler, ParsedPayload

FIXED_NOW = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def normalizer():
    return EventNormalizer(max_field_bytes=64, noise_threshold_bytes=32, clock=lambda: FIXED_NOW)


class ExplodingHandler(BaseHandler):
    def __init__(self):
        super().__init__(EventSource.CHAT)

    def parse(self, raw):
        raise KeyError("event")


class TestSourceResolution:
    @pytest.mark.parametrize("source,expected", [
        ("chat", EventSource.CHAT),
        ("slack", EventSource.CHAT),
        ("Gmail", EventSource.EMAIL),
        ("google_calendar", EventSource.CALENDAR),
        ("fireflies", EventSource.TRANSCRIPT),
        ("notion", EventSource.DOCUMENT),
        (EventSource.DOCUMENT, EventSource.DOCUMENT),
    ])
    def test_aliases(self, normalizer, source, expected):
        assert normalizer.normalize(source, {}).source == expected

    @pytest.mark.parametrize("source", ["fax", "", None, 42])
    def test_unknown_source_rejected(self, normalizer, source):
        with pytest.raises(RejectedEventError):
            normalizer.normalize(source, {"text": "hi"})


class TestNeverThrows:
    def test_empty_payload_defaults(self, normalizer):
        event = normalizer.normalize("email", {})
        assert event.kind == "new_email"
        assert event.payload["subject"] == ""
        assert event.occurred_at == FIXED_NOW
        assert event.received_at == FIXED_NOW
        assert not event.degraded

    def test_non_mapping_payload_wrapped(self, normalizer):
        event = normalizer.normalize("chat", "plain text body")
        assert event.kind == "unknown"
        assert event.payload == {"text": "plain text body"}

    def test_none_payload(self, normalizer):
        event = normalizer.normalize("document", None)
        assert event.payload == {"text": ""}

    def test_handler_failure_falls_back_to_generic(self, caplog):
        normalizer = EventNormalizer(handlers={EventSource.CHAT: ExplodingHandler()}, clock=lambda: FIXED_NOW)
        with caplog.at_level(logging.WARNING, logger="hub.intake.normalizer"):
            event = normalizer.normalize("chat", {"type": "reaction_added", "user": "U1"})
        assert event.kind == "reaction_added"
        assert event.payload == {"type": "reaction_added", "user": "U1"}
        assert "using generic payload" in caplog.text

    def test_handler_occurred_at_kept(self, normalizer):
        event = normalizer.normalize("slack", {"text": "hi", "ts": "1706799600.0"})
        assert event.occurred_at == datetime(2024, 2, 1, 15, 0, tzinfo=timezone.utc)

    def test_event_ids_unique(self, normalizer):
        ids = {normalizer.normalize("chat", {"text": str(i)}).id for i in range(20)}
        assert len(ids) == 20


class TestBounding:
    def test_long_string_truncated_with_marker(self, normalizer):
        event = normalizer.normalize("email", {"subject": "s", "body": "x" * 200})
        body = event.payload["body"]
        assert body.startswith("x" * 64)
        assert "[truncated 136 of 200 bytes]" in body
        assert event.degraded
        assert [t.path for t in event.truncations] == ["body"]
        assert event.truncations[0].original_bytes == 200

    def test_multibyte_cut_is_utf8_safe(self):
        normalizer = EventNormalizer(max_field_bytes=5, clock=lambda: FIXED_NOW)
        event = normalizer.normalize("chat", {"text": "ééééé"})
        text = event.payload["text"]
        assert text.startswith("éé")
        text.encode("utf-8")

    def test_noise_field_redacted(self, normalizer):
        event = normalizer.normalize("email", {"subject": "s", "body_html": "<p>" + "y" * 100 + "</p>"})
        assert event.payload["body_html"].startswith("[redacted body_html:")
        assert event.truncations[0].path == "body_html"

    def test_small_noise_field_kept(self, normalizer):
        event = normalizer.normalize("email", {"subject": "s", "body_html": "<p>hi</p>"})
        assert event.payload["body_html"] == "<p>hi</p>"
        assert not event.degraded

    def test_nested_attachment_path(self, normalizer):
        raw = {"subject": "s", "attachments": [{"filename": "a.bin", "data": "A" * 100}]}
        event = normalizer.normalize("email", raw)
        assert [t.path for t in event.truncations] == ["attachments[0].attachment_data"]

    def test_short_values_untouched(self, normalizer):
        event = normalizer.normalize("chat", {"text": "short"})
        assert event.payload["text"] == "short"
        assert event.truncations == []


class TestCustomHandlers:
    def test_injected_handler_used(self):
        class EchoHandler(BaseHandler):
            def __init__(self):
                super().__init__(EventSource.CHAT)

            def parse(self, raw):
                return ParsedPayload(kind="echo", payload={"echo": raw.get("text", "")})

        normalizer = EventNormalizer(handlers={EventSource.CHAT: EchoHandler()})
        event = normalizer.normalize("chat", {"text": "hi"})
        assert event.kind == "echo"
        assert event.payload == {"echo": "hi"}

    def test_missing_handler_uses_generic(self):
        normalizer = EventNormalizer(handlers={EventSource.CHAT: SlackHandler()})
        event = normalizer.normalize("email", {"kind": "digest", "n": 3})
        assert event.kind == "digest"
