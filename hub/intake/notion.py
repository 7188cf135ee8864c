"""
Notion Handler

Handles document-store changes. Supports Notion's page.created,
page.updated and database.updated webhook events, plus a generic
{title, body, action} shape for other document stores (Google Drive).
"""

from typing import Any, Dict, List

from ..common.schemas import EventSource
from .base import BaseHandler, ParsedPayload, as_dict, as_list, as_str, parse_timestamp


def plain_text(parts: Any) -> str:
    """Join the plain_text of a Notion rich_text array"""
    return "".join(as_str(as_dict(t).get("plain_text")) for t in as_list(parts))


class NotionHandler(BaseHandler):
    """
    Handler for document changes.

    Kind is the action taken on the document ("created", "updated", ...).
    Bot/integration edits are flagged in the payload so triage can discount
    them.
    """

    def __init__(self):
        super().__init__(EventSource.DOCUMENT)

    def parse(self, raw: Dict[str, Any]) -> ParsedPayload:
        event_type = as_str(raw.get("type"))

        if event_type in ("page.created", "page.updated"):
            return self._parse_page_event(raw, event_type.split(".", 1)[1])
        if event_type == "database.updated":
            return self._parse_database_event(raw)

        return self._parse_generic(raw)

    def _parse_page_event(self, raw: Dict[str, Any], action: str) -> ParsedPayload:
        page = as_dict(raw.get("data", raw.get("page")))

        return ParsedPayload(
            kind=action,
            payload={
                "document_id": as_str(page.get("id")),
                "title": self._extract_title(page),
                "body": self._extract_body(raw),
                "editor": self._extract_user(page),
                "editor_is_bot": self._is_bot_edit(page),
                "parent": self._extract_parent_name(page),
                "url": as_str(page.get("url")),
                "action": action,
            },
            occurred_at=parse_timestamp(page.get("last_edited_time") or page.get("created_time")),
        )

    def _parse_database_event(self, raw: Dict[str, Any]) -> ParsedPayload:
        database = as_dict(raw.get("data", raw.get("database")))

        return ParsedPayload(
            kind="database_updated",
            payload={
                "document_id": as_str(database.get("id")),
                "title": plain_text(database.get("title")),
                "body": plain_text(database.get("description")),
                "editor": self._extract_user(database),
                "editor_is_bot": self._is_bot_edit(database),
                "parent": "workspace",
                "url": as_str(database.get("url")),
                "action": "updated",
            },
            occurred_at=parse_timestamp(database.get("last_edited_time")),
        )

    def _parse_generic(self, raw: Dict[str, Any]) -> ParsedPayload:
        """Other document stores: flat {title|name, body|content, action}"""
        action = as_str(raw.get("action") or raw.get("change_type")) or "updated"
        editor = raw.get("editor") or raw.get("lastModifyingUser")
        if isinstance(editor, dict):
            editor = editor.get("displayName") or editor.get("emailAddress")

        return ParsedPayload(
            kind=action,
            payload={
                "document_id": as_str(raw.get("id")),
                "title": as_str(raw.get("title") or raw.get("name")),
                "body": as_str(raw.get("body") or raw.get("content")),
                "editor": as_str(editor),
                "editor_is_bot": False,
                "parent": as_str(raw.get("parent")),
                "url": as_str(raw.get("url") or raw.get("webViewLink")),
                "action": action,
            },
            occurred_at=parse_timestamp(raw.get("modifiedTime") or raw.get("timestamp")),
        )

    def _extract_title(self, page: Dict[str, Any]) -> str:
        """Extract page title from properties"""
        for prop in as_dict(page.get("properties")).values():
            prop = as_dict(prop)
            if prop.get("type") == "title":
                return plain_text(prop.get("title"))
        return ""

    def _extract_body(self, raw: Dict[str, Any]) -> str:
        """Extract body text from rich_text blocks if included in payload"""
        parts: List[str] = []
        for block in as_list(raw.get("blocks", raw.get("children"))):
            block = as_dict(block)
            block_data = as_dict(block.get(as_str(block.get("type"))))
            text = plain_text(block_data.get("rich_text"))
            if text:
                parts.append(text)
        return "\n".join(parts)

    def _extract_user(self, obj: Dict[str, Any]) -> str:
        """Extract user from last_edited_by or created_by"""
        editor = as_dict(obj.get("last_edited_by", obj.get("created_by")))
        return as_str(editor.get("name") or editor.get("id"))

    def _extract_parent_name(self, page: Dict[str, Any]) -> str:
        """Extract parent context (database or parent page)"""
        parent = as_dict(page.get("parent"))
        parent_type = parent.get("type", "")

        if parent_type == "database_id":
            return f"db:{parent.get('database_id', 'unknown')}"
        elif parent_type == "page_id":
            return f"page:{parent.get('page_id', 'unknown')}"
        elif parent_type == "workspace":
            return "workspace"
        return ""

    def _is_bot_edit(self, obj: Dict[str, Any]) -> bool:
        """Check if edit was made by a bot/integration"""
        editor = as_dict(obj.get("last_edited_by", obj.get("created_by")))
        return editor.get("type") == "bot"
