"""
Slack Handler

Handles Slack Events API payloads (event_callback envelopes or bare events).
"""

import re
from typing import Any, Dict, List

from ..common.schemas import EventSource
from .base import BaseHandler, ParsedPayload, as_dict, as_list, as_str, parse_timestamp

# Slack mentions format: <@U12345678>
MENTION_PATTERN = re.compile(r"<@([UW][A-Z0-9]+)>")


class SlackHandler(BaseHandler):
    """
    Handler for Slack events.

    Processes:
    - message events (new messages in channels and DMs)
    - message_changed events (edited messages)
    - app_mention events

    Bot authorship is recorded in the payload rather than filtered, since
    the pipeline must produce an Event for every delivered payload.
    """

    def __init__(self):
        super().__init__(EventSource.CHAT)

    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        if raw.get("type") == "url_verification":
            return ParsedPayload(kind="url_verification", payload={"challenge": as_str(raw.get("challenge"))})

        # Event callback envelope or a bare event
        event = as_dict(raw.get("event")) if "event" in raw else raw
        event_type = as_str(event.get("type")) or "message"
        subtype = as_str(event.get("subtype"))

        if event_type == "message" and subtype == "message_changed":
            return self._parse_message_changed(event, raw)

        return self._parse_message(event, raw, event_type)

    def _parse_message(self, event: Dict[str, Any], raw: Dict[str, Any], kind: str) -> ParsedPayload:
        text = as_str(event.get("text")) or self._blocks_text(event)
        channel = as_str(event.get("channel"))
        ts = as_str(event.get("ts"))
        channel_type = as_str(event.get("channel_type"))

        return ParsedPayload(
            kind=kind,
            payload={
                "text": text,
                "user": as_str(event.get("user") or event.get("username")),
                "channel": channel,
                "channel_type": channel_type,
                "is_direct_message": channel_type == "im",
                "thread_ts": as_str(event.get("thread_ts")),
                "mentions": self._extract_mentions(text),
                "is_bot": bool(event.get("bot_id")) or event.get("subtype") == "bot_message",
                "url": self._build_url(raw, channel, ts),
                "team_id": as_str(raw.get("team_id")),
            },
            occurred_at=parse_timestamp(ts or raw.get("event_time")),
        )

    def _parse_message_changed(self, event: Dict[str, Any], raw: Dict[str, Any]) -> ParsedPayload:
        message = as_dict(event.get("message"))
        text = as_str(message.get("text"))
        channel_type = as_str(event.get("channel_type"))

        return ParsedPayload(
            kind="message_changed",
            payload={
                "text": text,
                "user": as_str(message.get("user")),
                "channel": as_str(event.get("channel")),
                "channel_type": channel_type,
                "is_direct_message": channel_type == "im",
                "thread_ts": as_str(message.get("thread_ts")),
                "mentions": self._extract_mentions(text),
                "is_bot": bool(message.get("bot_id")),
                "url": "",
                "team_id": as_str(raw.get("team_id")),
            },
            occurred_at=parse_timestamp(message.get("ts") or event.get("event_ts")),
        )

    def _extract_mentions(self, text: str) -> List[str]:
        """Extract user mentions from text"""
        return MENTION_PATTERN.findall(text)

    def _build_url(self, raw: Dict[str, Any], channel: str, ts: str) -> str:
        if raw.get("team_id") and channel and ts:
            return f"https://slack.com/archives/{channel}/p{ts.replace('.', '')}"
        return ""

    def _blocks_text(self, event: Dict[str, Any]) -> str:
        """Concatenate section text from Block Kit blocks (bot summaries)"""
        parts = []
        for block in as_list(event.get("blocks")):
            block = as_dict(block)
            text = as_dict(block.get("text")).get("text")
            if text:
                parts.append(as_str(text))
        return "\n".join(parts)
