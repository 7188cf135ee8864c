"""
Gmail Handler

Handles Gmail API message resources and the simplified
{subject, from, to, body} shape used by push notifications after the
adapter has fetched the message.
"""

import base64
import binascii
import re
from typing import Any, Dict, List, Tuple

from ..common.schemas import EventSource
from .base import BaseHandler, ParsedPayload, as_dict, as_list, as_str, parse_timestamp

ADDRESS_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
DISPLAY_NAME_PATTERN = re.compile(r'^\s*"?([^"<]+?)"?\s*<')


def decode_body(data: str) -> str:
    """Decode a base64url Gmail body part; undecodable data yields ''"""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def split_address(header: str) -> Tuple[str, str]:
    """'Jane Doe <jane@x.com>' -> ('Jane Doe', 'jane@x.com')"""
    address_match = ADDRESS_PATTERN.search(header)
    address = address_match.group(0) if address_match else ""
    name_match = DISPLAY_NAME_PATTERN.match(header)
    name = name_match.group(1).strip() if name_match else ""
    return name, address


class GmailHandler(BaseHandler):
    """
    Handler for email arrivals.

    The Gmail resource nests headers and MIME parts under "payload"; the
    simplified shape carries them at the top level. Both produce the same
    clean payload.
    """

    def __init__(self):
        super().__init__(EventSource.EMAIL)

    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        if isinstance(raw.get("payload"), dict) and "headers" in raw["payload"]:
            return self._parse_gmail_resource(raw)
        return self._parse_simple(raw)

    def _parse_gmail_resource(self, raw: Dict[str, Any]) -> ParsedPayload:
        message = raw["payload"]
        headers = {
            as_str(h.get("name")).lower(): as_str(h.get("value"))
            for h in as_list(message.get("headers"))
            if isinstance(h, dict)
        }
        body, attachments = self._walk_parts(message)

        payload = self._build_payload(
            subject=headers.get("subject", ""),
            sender=headers.get("from", ""),
            to=headers.get("to", ""),
            cc=headers.get("cc", ""),
            body=body,
            snippet=as_str(raw.get("snippet")),
            labels=[as_str(l) for l in as_list(raw.get("labelIds"))],
            attachments=attachments,
        )
        payload["message_id"] = as_str(raw.get("id"))
        payload["thread_id"] = as_str(raw.get("threadId"))

        return ParsedPayload(
            kind="new_email",
            payload=payload,
            occurred_at=parse_timestamp(raw.get("internalDate") or headers.get("date")),
        )

    def _parse_simple(self, raw: Dict[str, Any]) -> ParsedPayload:
        attachments = []
        for item in as_list(raw.get("attachments")):
            item = as_dict(item)
            attachments.append({
                "filename": as_str(item.get("filename") or item.get("name")),
                "mime_type": as_str(item.get("mime_type") or item.get("mimeType")),
                "size": item.get("size", 0),
                "attachment_data": as_str(item.get("data") or item.get("content")),
            })

        payload = self._build_payload(
            subject=as_str(raw.get("subject")),
            sender=as_str(raw.get("from") or raw.get("sender")),
            to=as_str(raw.get("to")),
            cc=as_str(raw.get("cc")),
            body=as_str(raw.get("body") or raw.get("text")),
            snippet=as_str(raw.get("snippet")),
            labels=[as_str(l) for l in as_list(raw.get("labels") or raw.get("labelIds"))],
            attachments=attachments,
        )
        payload["message_id"] = as_str(raw.get("id") or raw.get("message_id"))
        payload["thread_id"] = as_str(raw.get("thread_id") or raw.get("threadId"))
        if raw.get("body_html"):
            payload["body_html"] = as_str(raw.get("body_html"))

        return ParsedPayload(
            kind=as_str(raw.get("type")) or "new_email",
            payload=payload,
            occurred_at=parse_timestamp(raw.get("date") or raw.get("timestamp")),
        )

    def _build_payload(
        self,
        subject: str,
        sender: str,
        to: str,
        cc: str,
        body: str,
        snippet: str,
        labels: List[str],
        attachments: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        sender_name, sender_address = split_address(sender)
        return {
            "subject": subject,
            "from": sender,
            "from_name": sender_name,
            "from_address": sender_address,
            "to": to,
            "cc": cc,
            "body": body,
            "snippet": snippet,
            "labels": labels,
            "is_important": "IMPORTANT" in labels,
            "attachments": attachments,
        }

    def _walk_parts(self, part: Dict[str, Any]) -> Tuple[str, List[Dict[str, Any]]]:
        """Collect the text/plain body and attachment metadata from MIME parts"""
        texts: List[str] = []
        attachments: List[Dict[str, Any]] = []
        stack = [part]

        while stack:
            current = as_dict(stack.pop())
            mime = as_str(current.get("mimeType"))
            body = as_dict(current.get("body"))
            filename = as_str(current.get("filename"))

            if filename:
                attachments.append({
                    "filename": filename,
                    "mime_type": mime,
                    "size": body.get("size", 0),
                    "attachment_data": as_str(body.get("data")),
                })
            elif mime == "text/plain" and body.get("data"):
                texts.append(decode_body(as_str(body.get("data"))))

            stack.extend(reversed(as_list(current.get("parts"))))

        return "\n".join(texts).strip(), attachments
