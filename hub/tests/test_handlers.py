"""Tests for source payload handlers."""

import base64
from datetime import datetime, timezone

import pytest

from hub.intake import (
    CalendarHandler,
    FirefliesHandler,
    GmailHandler,
    NotionHandler,
    SlackHandler,
    parse_timestamp,
)
from hub.intake.fireflies import split_action_items
from hub.intake.gmail import decode_body, split_address


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


class TestParseTimestamp:
    def test_slack_epoch_string(self):
        ts = parse_timestamp("1706799600.123456")
        assert ts.year == 2024
        assert ts.tzinfo is not None

    def test_millisecond_epoch(self):
        assert parse_timestamp(1706799600000) == datetime(2024, 2, 1, 15, 0, tzinfo=timezone.utc)

    def test_iso_with_z(self):
        assert parse_timestamp("2024-02-01T15:00:00Z") == datetime(2024, 2, 1, 15, 0, tzinfo=timezone.utc)

    def test_naive_iso_treated_as_utc(self):
        assert parse_timestamp("2024-02-01T15:00:00").tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "yesterday", {"a": 1}, True])
    def test_unreadable_returns_none(self, value):
        assert parse_timestamp(value) is None


class TestSlackHandler:
    @pytest.fixture
    def handler(self):
        return SlackHandler()

    def test_event_callback_message(self, handler):
        raw = {
            "type": "event_callback",
            "team_id": "T1",
            "event": {
                "type": "message",
                "text": "Hey <@U12345678> can you review the PR?",
                "user": "U999",
                "channel": "C42",
                "channel_type": "channel",
                "ts": "1706799600.000100",
            },
        }
        parsed = handler.parse(raw)
        assert parsed.kind == "message"
        assert parsed.payload["mentions"] == ["U12345678"]
        assert parsed.payload["is_direct_message"] is False
        assert parsed.payload["url"] == "https://slack.com/archives/C42/p1706799600000100"
        assert parsed.occurred_at.year == 2024

    def test_direct_message_flag(self, handler):
        parsed = handler.parse({"event": {"type": "message", "text": "ping", "channel_type": "im"}})
        assert parsed.payload["is_direct_message"] is True

    def test_bare_event(self, handler):
        parsed = handler.parse({"text": "hello", "user": "U1"})
        assert parsed.kind == "message"
        assert parsed.payload["user"] == "U1"

    def test_message_changed_uses_inner_message(self, handler):
        raw = {"event": {
            "type": "message",
            "subtype": "message_changed",
            "channel": "C1",
            "message": {"text": "edited text", "user": "U2", "ts": "1706799600.1"},
        }}
        parsed = handler.parse(raw)
        assert parsed.kind == "message_changed"
        assert parsed.payload["text"] == "edited text"
        assert parsed.payload["user"] == "U2"

    def test_blocks_text_fallback(self, handler):
        raw = {"event": {"type": "message", "bot_id": "B1", "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": "Deploy finished"}},
        ]}}
        parsed = handler.parse(raw)
        assert parsed.payload["text"] == "Deploy finished"
        assert parsed.payload["is_bot"] is True

    def test_url_verification(self, handler):
        parsed = handler.parse({"type": "url_verification", "challenge": "abc"})
        assert parsed.kind == "url_verification"
        assert parsed.payload == {"challenge": "abc"}


class TestGmailHandler:
    @pytest.fixture
    def handler(self):
        return GmailHandler()

    def test_split_address(self):
        assert split_address('"Jane Doe" <jane@example.com>') == ("Jane Doe", "jane@example.com")
        assert split_address("ops@example.com") == ("", "ops@example.com")

    def test_decode_body_bad_data(self):
        assert decode_body("") == ""
        assert decode_body(_b64("hi there")) == "hi there"

    def test_gmail_resource(self, handler):
        raw = {
            "id": "m1",
            "threadId": "t1",
            "snippet": "Server is down",
            "labelIds": ["INBOX", "IMPORTANT"],
            "internalDate": "1706799600000",
            "payload": {
                "mimeType": "multipart/mixed",
                "headers": [
                    {"name": "Subject", "value": "URGENT: fix outage"},
                    {"name": "From", "value": "Ops Team <ops@example.com>"},
                    {"name": "To", "value": "me@example.com"},
                ],
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": _b64("Production is down.")}},
                    {"mimeType": "application/pdf", "filename": "log.pdf", "body": {"size": 10, "data": "AAAA"}},
                ],
            },
        }
        parsed = handler.parse(raw)
        assert parsed.kind == "new_email"
        assert parsed.payload["subject"] == "URGENT: fix outage"
        assert parsed.payload["from_name"] == "Ops Team"
        assert parsed.payload["from_address"] == "ops@example.com"
        assert parsed.payload["body"] == "Production is down."
        assert parsed.payload["is_important"] is True
        assert parsed.payload["attachments"][0]["filename"] == "log.pdf"
        assert parsed.occurred_at == datetime(2024, 2, 1, 15, 0, tzinfo=timezone.utc)

    def test_simple_shape(self, handler):
        parsed = handler.parse({"subject": "Invoice", "from": "billing@vendor.com", "body": "Attached."})
        assert parsed.kind == "new_email"
        assert parsed.payload["from_address"] == "billing@vendor.com"
        assert parsed.payload["labels"] == []
        assert parsed.occurred_at is None


class TestCalendarHandler:
    @pytest.fixture
    def handler(self):
        return CalendarHandler()

    def test_event_with_attendees(self, handler):
        raw = {
            "id": "ev1",
            "summary": "Q3 planning",
            "status": "confirmed",
            "created": "2024-02-01T10:00:00Z",
            "updated": "2024-02-01T10:00:00Z",
            "start": {"dateTime": "2024-02-02T15:00:00Z"},
            "end": {"dateTime": "2024-02-02T16:00:00Z"},
            "attendees": [
                {"email": "alice@example.com", "displayName": "Alice"},
                {"email": "bob@example.com"},
                {"email": "room-1@resource.calendar.google.com", "resource": True},
            ],
            "organizer": {"email": "alice@example.com"},
        }
        parsed = handler.parse(raw)
        assert parsed.kind == "created"
        assert parsed.payload["attendees"] == ["Alice", "bob@example.com"]
        assert parsed.payload["start"] == "2024-02-02T15:00:00+00:00"

    def test_cancelled_event(self, handler):
        parsed = handler.parse({"event": {"id": "ev2", "status": "cancelled"}})
        assert parsed.kind == "cancelled"

    def test_declared_change_type(self, handler):
        parsed = handler.parse({"change_type": "Updated", "event": {"id": "ev3"}})
        assert parsed.kind == "updated"


class TestFirefliesHandler:
    def test_split_action_items(self):
        text = "**Alice**\n- Send the deck\n* Book the venue\n**Bob**\n1. Draft budget\n"
        assert split_action_items(text) == ["Send the deck", "Book the venue", "Draft budget"]

    def test_transcript_resource(self):
        raw = {
            "id": "mtg1",
            "title": "Weekly sync",
            "participants": ["alice@example.com", "bob@example.com"],
            "date": 1706799600000,
            "summary": {
                "gist": "Planning the launch",
                "action_items": ["Alice to send the deck", "Bob to draft budget"],
            },
            "sentences": [{"speaker_name": "Alice", "text": "Let's launch Monday."}],
        }
        parsed = FirefliesHandler().parse(raw)
        assert parsed.kind == "transcript_ready"
        assert parsed.payload["action_items"] == ["Alice to send the deck", "Bob to draft budget"]
        assert parsed.payload["transcript_text"] == "Alice: Let's launch Monday."

    def test_webhook_shape(self):
        parsed = FirefliesHandler().parse({"meetingId": "abc", "eventType": "Transcription completed"})
        assert parsed.payload["meeting_id"] == "abc"
        assert parsed.payload["action_items"] == []


class TestNotionHandler:
    def test_page_updated(self):
        raw = {
            "type": "page.updated",
            "data": {
                "id": "page1",
                "last_edited_time": "2024-02-01T15:00:00.000Z",
                "last_edited_by": {"name": "Carol", "type": "person"},
                "parent": {"type": "database_id", "database_id": "db9"},
                "properties": {"Name": {"type": "title", "title": [{"plain_text": "Launch plan"}]}},
            },
            "blocks": [{"type": "paragraph", "paragraph": {"rich_text": [{"plain_text": "Please review"}]}}],
        }
        parsed = NotionHandler().parse(raw)
        assert parsed.kind == "updated"
        assert parsed.payload["title"] == "Launch plan"
        assert parsed.payload["body"] == "Please review"
        assert parsed.payload["parent"] == "db:db9"
        assert parsed.payload["editor_is_bot"] is False

    def test_bot_edit_flagged(self):
        raw = {"type": "page.created", "data": {"id": "p2", "created_by": {"id": "bot1", "type": "bot"}}}
        parsed = NotionHandler().parse(raw)
        assert parsed.kind == "created"
        assert parsed.payload["editor_is_bot"] is True

    def test_generic_document_store(self):
        parsed = NotionHandler().parse({"name": "Contract.docx", "content": "Sign by Friday", "action": "shared"})
        assert parsed.kind == "shared"
        assert parsed.payload["title"] == "Contract.docx"
        assert parsed.payload["body"] == "Sign by Friday"
