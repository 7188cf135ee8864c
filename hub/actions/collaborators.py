"""
Action Collaborators

Outbound seams used by the action engine and executor, with the
implementations that ship with the hub:

- ExternalTracker: NotionTracker (Notion pages API over httpx)
- CalendarPlanner: LocalCalendarPlanner (working-hours slot proposal)
- MeetingScheduler: optional; none ships
- ReminderScheduler: InMemoryReminderQueue
- PersistenceSink: NullSink, JsonlSink
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel

from ..common.config import NotionConfig
from ..common.errors import ActionExecutionError
from ..common.schemas import ensure_utc

logger = logging.getLogger("hub.actions.collaborators")

NOTION_API_BASE = "https://api.notion.com/v1"


# ============================================================================
# Protocols
# ============================================================================

class ExternalTracker(Protocol):
    async def create_or_update_record(
        self, properties: Dict[str, Any], *, record_id: Optional[str] = None
    ) -> Dict[str, Any]: ...


class MeetingScheduler(Protocol):
    async def schedule(
        self, title: str, attendees: List[str], start: datetime, duration_minutes: int
    ) -> Dict[str, Any]: ...


class ReminderScheduler(Protocol):
    async def schedule_reminder(self, task_id: Optional[str], message: str, due_at: datetime) -> str: ...


class PersistenceSink(Protocol):
    def persist(self, obj: Any) -> None: ...


# ============================================================================
# External tracker
# ============================================================================

PRIORITY_TIERS = {5: "Urgent", 4: "High", 3: "Medium"}


def priority_tier(urgency: int) -> str:
    """Map urgency onto the tracker's priority select options"""
    return PRIORITY_TIERS.get(urgency, "Low")


def _rich_text(text: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": {"content": text[:2000]}}]


def to_notion_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert flat record properties into Notion database property values.

    Expected keys: title, status, priority, source, confidence, deadline
    (ISO string or None), context.
    """
    result: Dict[str, Any] = {
        "Name": {"title": _rich_text(str(properties.get("title", "")))},
        "Status": {"status": {"name": properties.get("status", "Not started")}},
        "Priority": {"select": {"name": properties.get("priority", "Low")}},
        "Source": {"select": {"name": properties.get("source", "hub")}},
    }
    if properties.get("confidence") is not None:
        result["Confidence"] = {"number": round(float(properties["confidence"]), 2)}
    if properties.get("deadline"):
        result["Due date"] = {"date": {"start": properties["deadline"]}}
    if properties.get("context"):
        result["Context"] = {"rich_text": _rich_text(properties["context"])}
    return result


class NotionTracker:
    """
    Notion database as the external task tracker.

    Creates a page in the configured database, or updates the page when a
    record id is already known.
    """

    def __init__(
        self,
        config: NotionConfig,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize tracker.

        Args:
            config: Notion credentials and database id
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._config = config
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._config.api_key and self._config.database_id)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key}",
            "Notion-Version": self._config.api_version,
            "Content-Type": "application/json",
        }

    async def create_or_update_record(
        self, properties: Dict[str, Any], *, record_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Push a task record to Notion.

        Returns:
            {"id": page_id, "url": page_url}

        Raises:
            ActionExecutionError: not_configured, rejected (4xx/5xx) or network_error
        """
        if not self.is_configured:
            raise ActionExecutionError("Notion API key or database id not set", kind="not_configured")

        notion_properties = to_notion_properties(properties)
        if record_id:
            method, url = "PATCH", f"{NOTION_API_BASE}/pages/{record_id}"
            body = {"properties": notion_properties}
        else:
            method, url = "POST", f"{NOTION_API_BASE}/pages"
            body = {
                "parent": {"database_id": self._config.database_id},
                "properties": notion_properties,
            }

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout), transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=self._headers(), json=body)
        except httpx.RequestError as e:
            raise ActionExecutionError(f"Notion request failed: {e}", kind="network_error") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise ActionExecutionError(
                f"Notion rejected record ({response.status_code}): {message}", kind="rejected"
            )

        data = response.json()
        return {"id": data.get("id", record_id), "url": data.get("url", "")}


# ============================================================================
# Calendar planning
# ============================================================================

@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class CalendarPlanner(Protocol):
    def propose_times(
        self, duration_minutes: int, *, after: datetime, count: int = 3, before: Optional[datetime] = None
    ) -> List[TimeSlot]: ...


class LocalCalendarPlanner:
    """
    Proposes meeting slots inside working hours without reading any calendar.

    Slots start on the next half hour, skip weekends, and are spaced one
    per working hour.
    """

    def __init__(self, workday_start_hour: int = 9, workday_end_hour: int = 17):
        self.workday_start_hour = workday_start_hour
        self.workday_end_hour = workday_end_hour

    def propose_times(
        self, duration_minutes: int, *, after: datetime, count: int = 3, before: Optional[datetime] = None
    ) -> List[TimeSlot]:
        duration = timedelta(minutes=duration_minutes)
        cursor = self._next_half_hour(ensure_utc(after))
        limit = ensure_utc(before) if before is not None else None
        slots: List[TimeSlot] = []

        # Two weeks of half-hour steps is more than enough to find `count` slots
        for _ in range(14 * 48):
            if len(slots) >= count:
                break
            if limit is not None and cursor + duration > limit:
                break
            if self._fits_workday(cursor, duration):
                slots.append(TimeSlot(cursor, cursor + duration))
                cursor += timedelta(hours=1)
            else:
                cursor += timedelta(minutes=30)
        return slots

    def _next_half_hour(self, moment: datetime) -> datetime:
        base = moment.replace(second=0, microsecond=0)
        if moment == base and base.minute in (0, 30):
            return base
        if base.minute < 30:
            return base.replace(minute=30)
        return base.replace(minute=0) + timedelta(hours=1)

    def _fits_workday(self, start: datetime, duration: timedelta) -> bool:
        if start.weekday() >= 5:
            return False
        day_start = start.replace(hour=self.workday_start_hour, minute=0)
        day_end = start.replace(hour=self.workday_end_hour, minute=0)
        return day_start <= start and start + duration <= day_end


# ============================================================================
# Reminders
# ============================================================================

class Reminder(BaseModel):
    id: str
    task_id: Optional[str] = None
    message: str
    due_at: datetime


class InMemoryReminderQueue:
    """Process-local reminder queue; due() drains reminders whose time has come"""

    def __init__(self):
        self._reminders: List[Reminder] = []
        self._lock = threading.Lock()
        self._counter = 0

    async def schedule_reminder(self, task_id: Optional[str], message: str, due_at: datetime) -> str:
        with self._lock:
            self._counter += 1
            reminder = Reminder(
                id=f"rem-{self._counter}",
                task_id=task_id,
                message=message,
                due_at=ensure_utc(due_at),
            )
            self._reminders.append(reminder)
        logger.info("Reminder %s scheduled for %s", reminder.id, reminder.due_at.isoformat())
        return reminder.id

    def pending(self) -> List[Reminder]:
        with self._lock:
            return sorted(self._reminders, key=lambda r: r.due_at)

    def due(self, now: datetime) -> List[Reminder]:
        now = ensure_utc(now)
        with self._lock:
            ready = [r for r in self._reminders if r.due_at <= now]
            self._reminders = [r for r in self._reminders if r.due_at > now]
        return sorted(ready, key=lambda r: r.due_at)


# ============================================================================
# Persistence
# ============================================================================

class NullSink:
    """Discards everything"""

    def persist(self, obj: Any) -> None:
        return None


class JsonlSink:
    """
    Appends records as JSON lines.

    Failures are logged and dropped; persistence never affects the pipeline
    outcome.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def persist(self, obj: Any) -> None:
        if isinstance(obj, BaseModel):
            record = {"type": type(obj).__name__, "data": obj.model_dump(mode="json")}
        else:
            record = {"type": type(obj).__name__, "data": obj}

        try:
            line = json.dumps(record, default=str)
            with self._lock:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a") as f:
                    f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to persist %s: %s", type(obj).__name__, e)
