"""
Action Engine

Proposes follow-on actions for a task. Rules are applied independently,
so one task may yield several proposals.

Rules (thresholds from ActionPolicy):
1. Meeting category or "meeting" tag with more than one key person
   -> calendar_event (medium, needs approval)
2. Deadline within the window, overdue included -> preparation follow_up (high)
3. Urgency at or above the sync threshold -> notion_sync (high)
4. Email task with the originating email in context -> reply draft
   (other, high, needs approval)
5. No follow-up proposed yet -> generic follow_up, delay by urgency
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from ..common.config import ActionPolicy
from ..common.schemas import (
    ActionPriority,
    ActionType,
    Category,
    Event,
    EventSource,
    ProposedAction,
    Task,
    TaskStatus,
    TriageResult,
    render_context_summary,
    utc_now,
)
from .collaborators import CalendarPlanner, LocalCalendarPlanner, priority_tier

logger = logging.getLogger("hub.actions.engine")

PROPOSED_SLOT_COUNT = 3

REPLY_DRAFT_BODY = "Thank you for your email. I will review this and get back to you shortly."


@dataclass
class ActionContext:
    """What the engine may look at besides the task itself"""
    event: Optional[Event] = None
    triage: Optional[TriageResult] = None
    now: datetime = field(default_factory=utc_now)


def follow_up_priority(urgency: int) -> ActionPriority:
    if urgency >= 4:
        return ActionPriority.HIGH
    if urgency == 3:
        return ActionPriority.MEDIUM
    return ActionPriority.LOW


class ActionEngine:
    """Rule-based proposal of follow-on actions"""

    def __init__(self, policy: Optional[ActionPolicy] = None, planner: Optional[CalendarPlanner] = None):
        self.policy = policy or ActionPolicy()
        self.planner = planner or LocalCalendarPlanner()

    def propose_actions(self, task: Task, context: Optional[ActionContext] = None) -> List[ProposedAction]:
        """
        Propose actions for one task.

        Args:
            task: Task to act on
            context: Originating event/triage and the current time

        Returns:
            Proposals in rule order; may be empty only if every rule declines
        """
        context = context or ActionContext()
        actions: List[ProposedAction] = []

        meeting = self._meeting_action(task, context)
        if meeting is not None:
            actions.append(meeting)

        deadline = self._deadline_action(task, context)
        if deadline is not None:
            actions.append(deadline)

        sync = self._notion_sync_action(task, context)
        if sync is not None:
            actions.append(sync)

        reply = self._email_reply_action(task, context)
        if reply is not None:
            actions.append(reply)

        if not any(a.type == ActionType.FOLLOW_UP for a in actions):
            actions.append(self._follow_up_action(task, context))

        logger.debug(
            "Task %s: proposed %s",
            task.id, ", ".join(a.type.value for a in actions),
        )
        return actions

    def _meeting_action(self, task: Task, context: ActionContext) -> Optional[ProposedAction]:
        is_meeting = task.category == Category.MEETING or "meeting" in (t.lower() for t in task.tags)
        if not is_meeting or len(task.key_people) < self.policy.meeting_min_attendees:
            return None

        duration = self.policy.meeting_duration_minutes
        slots = self.planner.propose_times(duration, after=context.now, count=PROPOSED_SLOT_COUNT)
        return ProposedAction(
            type=ActionType.CALENDAR_EVENT,
            priority=ActionPriority.MEDIUM,
            description=f"Schedule meeting: {task.title}",
            data={
                "title": task.title,
                "attendees": list(task.key_people),
                "duration_minutes": duration,
                "proposed_times": [slot.to_dict() for slot in slots],
            },
            auto_execute=False,
            task_id=task.id,
        )

    def _deadline_action(self, task: Task, context: ActionContext) -> Optional[ProposedAction]:
        if task.deadline is None:
            return None
        if task.deadline - context.now > timedelta(days=self.policy.deadline_window_days):
            return None

        # Remind a day ahead when there is still time, otherwise right away
        remind_at = max(context.now, task.deadline - timedelta(days=1))
        overdue = task.deadline < context.now
        return ProposedAction(
            type=ActionType.FOLLOW_UP,
            priority=ActionPriority.HIGH,
            description=f"{'Overdue' if overdue else 'Prepare for deadline'}: {task.title}",
            data={
                "reason": "deadline",
                "message": f"Deadline {task.deadline.isoformat()} for: {task.title}",
                "remind_at": remind_at.isoformat(),
                "deadline": task.deadline.isoformat(),
                "overdue": overdue,
            },
            auto_execute=True,
            task_id=task.id,
        )

    def _notion_sync_action(self, task: Task, context: ActionContext) -> Optional[ProposedAction]:
        if task.urgency < self.policy.notion_sync_min_urgency:
            return None

        properties = {
            "title": task.title,
            "status": "Done" if task.status == TaskStatus.COMPLETED else "Not started",
            "priority": priority_tier(task.urgency),
            "source": task.source.value,
            "confidence": task.confidence,
            "deadline": task.deadline.isoformat() if task.deadline else None,
            "context": render_context_summary(task, context.event),
        }
        return ProposedAction(
            type=ActionType.NOTION_SYNC,
            priority=ActionPriority.HIGH,
            description=f"Sync to Notion: {task.title}",
            data={"properties": properties, "record_id": task.external_ref},
            auto_execute=True,
            task_id=task.id,
        )

    def _email_reply_action(self, task: Task, context: ActionContext) -> Optional[ProposedAction]:
        event = context.event
        if task.source != EventSource.EMAIL or event is None or event.source != EventSource.EMAIL:
            return None

        payload = event.payload
        recipient = payload.get("from_address") or payload.get("from") or ""
        if not recipient:
            return None

        subject = payload.get("subject") or ""
        if not subject.lower().startswith("re:"):
            subject = f"Re: {subject}" if subject else "Re: your email"
        return ProposedAction(
            type=ActionType.OTHER,
            priority=ActionPriority.HIGH,
            description="Draft email response",
            data={
                "action": "draft_email",
                "to": recipient,
                "subject": subject,
                "body": REPLY_DRAFT_BODY,
                "thread_id": payload.get("thread_id") or None,
            },
            auto_execute=False,
            task_id=task.id,
        )

    def _follow_up_action(self, task: Task, context: ActionContext) -> ProposedAction:
        days = self.policy.follow_up_delay(task.urgency)
        remind_at = context.now + timedelta(days=days)
        return ProposedAction(
            type=ActionType.FOLLOW_UP,
            priority=follow_up_priority(task.urgency),
            description=f"Follow up in {days} day{'s' if days != 1 else ''}: {task.title}",
            data={
                "reason": "follow_up",
                "message": f"Follow up: {task.title}",
                "remind_at": remind_at.isoformat(),
                "delay_days": days,
            },
            auto_execute=True,
            task_id=task.id,
        )
