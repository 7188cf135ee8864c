"""
Task Synthesizer

Turns an actionable triage result into one Task per action item and
inserts them into the TaskStore.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Union

from ..common.errors import TaskSynthesisError
from ..common.schemas import Event, Task, TaskStatus, TriageResult, generate_task_id, utc_now
from .store import NOT_FOUND, TaskStore, _NotFound

logger = logging.getLogger("hub.tasks.synthesizer")


class TaskSynthesizer:
    """
    Creates tasks from triage results.

    Each task inherits the shared triage metadata (urgency, category,
    summary, key people, tags, deadline, confidence). Tasks keep the order
    of the action items they came from.
    """

    def __init__(self, store: Optional[TaskStore] = None, clock: Callable[[], datetime] = utc_now):
        self.store = store if store is not None else TaskStore(clock=clock)
        self._clock = clock

    def synthesize(self, event: Event, triage: TriageResult, *, ai_generated: bool) -> List[Task]:
        """
        Create and store tasks for an event.

        Args:
            event: Source event
            triage: Triage result for the event
            ai_generated: True when a reasoning backend produced the triage

        Returns:
            New tasks, or [] when the event is not actionable or has no items

        Raises:
            TaskSynthesisError: some items could not be stored; carries the
                tasks that were stored and the per-task failures
        """
        if not triage.actionable or not triage.action_items:
            return []

        now = self._clock()
        tasks = []
        failures = []
        for item in triage.action_items:
            task = Task(
                id=generate_task_id(),
                title=item,
                source_event_id=event.id,
                source=event.source,
                urgency=triage.urgency,
                category=triage.category,
                summary=triage.summary,
                key_people=list(triage.key_people),
                tags=list(triage.tags),
                deadline=triage.deadline,
                confidence=triage.confidence,
                created_at=now,
                status=TaskStatus.PENDING,
                ai_generated=ai_generated,
            )
            try:
                self.store.add(task)
            except Exception as e:
                logger.warning("Could not store task %s for event %s: %s", task.id, event.id, e)
                failures.append((task.id, str(e)))
                continue
            tasks.append(task)

        if failures:
            raise TaskSynthesisError(
                f"{len(failures)} of {len(triage.action_items)} task(s) for event {event.id} not stored",
                tasks=tasks,
                failures=failures,
            )

        logger.info(
            "Synthesized %d task(s) from event %s (urgency %d)",
            len(tasks), event.id, triage.urgency,
        )
        return tasks

    def rank_tasks(self, limit: int = 10) -> List[Task]:
        return self.store.rank(limit)

    def update_status(self, task_id: str, status: Union[str, TaskStatus]) -> Union[Task, _NotFound]:
        result = self.store.update_status(task_id, status)
        if result is NOT_FOUND:
            logger.warning("Status update for unknown task %s", task_id)
        return result
