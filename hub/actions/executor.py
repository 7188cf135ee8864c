"""
Action Executor

Performs proposed actions through the collaborators. Dispatch is a closed
table keyed by ActionType; anything without a handler takes the explicit
unknown branch (logged no-op).

Nothing raises past execute(): failures come back as
ActionResult(success=False, error=...). Cancellation propagates.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from ..common.errors import ActionExecutionError
from ..common.schemas import ActionResult, ActionType, ProposedAction, utc_now
from .collaborators import ExternalTracker, InMemoryReminderQueue, MeetingScheduler, ReminderScheduler

logger = logging.getLogger("hub.actions.executor")

Handler = Callable[[ProposedAction], Awaitable[ActionResult]]


def _parse_time(value, default: datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return default


class ActionExecutor:
    """
    Executes ProposedActions.

    Every collaborator call is bounded by timeout_seconds; a timeout is an
    action failure, not an exception.
    """

    def __init__(
        self,
        tracker: Optional[ExternalTracker] = None,
        reminders: Optional[ReminderScheduler] = None,
        scheduler: Optional[MeetingScheduler] = None,
        timeout_seconds: float = 15.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.tracker = tracker
        self.reminders = reminders if reminders is not None else InMemoryReminderQueue()
        self.scheduler = scheduler
        self._timeout = timeout_seconds
        self._clock = clock
        self._handlers: Dict[ActionType, Handler] = {
            ActionType.CALENDAR_EVENT: self._schedule_meeting,
            ActionType.NOTION_SYNC: self._sync_to_tracker,
            ActionType.FOLLOW_UP: self._schedule_follow_up,
        }

    async def execute(self, action: ProposedAction) -> ActionResult:
        """
        Execute one action.

        Args:
            action: Proposed action

        Returns:
            ActionResult; success=False with error on any failure
        """
        handler = self._handlers.get(action.type)
        if handler is None:
            logger.info("No handler for action type %s, skipping", action.type.value)
            return ActionResult(
                success=True,
                message=f"No handler for {action.type.value}; nothing done",
                action_type=action.type,
                task_id=action.task_id,
            )

        try:
            result = await asyncio.wait_for(handler(action), timeout=self._timeout)
        except asyncio.TimeoutError:
            error = f"timeout: no response within {self._timeout}s"
        except ActionExecutionError as e:
            error = f"{e.kind}: {e}"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
        else:
            logger.info("Action %s for task %s: %s", action.type.value, action.task_id, result.message)
            return result

        logger.warning("Action %s for task %s failed: %s", action.type.value, action.task_id, error)
        return ActionResult(
            success=False,
            error=error,
            action_type=action.type,
            task_id=action.task_id,
        )

    async def _schedule_meeting(self, action: ProposedAction) -> ActionResult:
        if self.scheduler is None:
            raise ActionExecutionError("No meeting scheduler configured", kind="not_configured")

        slots = action.data.get("proposed_times") or []
        if not slots:
            raise ActionExecutionError("No candidate time slots", kind="rejected")

        start = _parse_time(slots[0].get("start"), self._clock())
        created = await self.scheduler.schedule(
            action.data.get("title", ""),
            list(action.data.get("attendees", [])),
            start,
            int(action.data.get("duration_minutes", 30)),
        )
        return ActionResult(
            success=True,
            message=f"Meeting scheduled for {start.isoformat()}",
            action_type=action.type,
            task_id=action.task_id,
            external_ref=created.get("id") if isinstance(created, dict) else None,
        )

    async def _sync_to_tracker(self, action: ProposedAction) -> ActionResult:
        if self.tracker is None:
            raise ActionExecutionError("No external tracker configured", kind="not_configured")

        record = await self.tracker.create_or_update_record(
            dict(action.data.get("properties", {})),
            record_id=action.data.get("record_id"),
        )
        record_id = record.get("id") if isinstance(record, dict) else None
        return ActionResult(
            success=True,
            message=f"Synced to tracker as {record_id}",
            action_type=action.type,
            task_id=action.task_id,
            external_ref=record_id,
        )

    async def _schedule_follow_up(self, action: ProposedAction) -> ActionResult:
        due_at = _parse_time(action.data.get("remind_at"), self._clock())
        reminder_id = await self.reminders.schedule_reminder(
            action.task_id,
            action.data.get("message") or action.description,
            due_at,
        )
        return ActionResult(
            success=True,
            message=f"Reminder {reminder_id} set for {due_at.isoformat()}",
            action_type=action.type,
            task_id=action.task_id,
            external_ref=reminder_id,
        )
