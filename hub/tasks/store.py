"""
Task Store

In-process table of tasks keyed by id. One store is created per
orchestrator and injected where needed.

Tasks are frozen; every change replaces the stored record. All access
holds a single lock, and readers always get copies.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from ..common.schemas import EventSource, Task, TaskStatus, utc_now

logger = logging.getLogger("hub.tasks.store")

HIGH_URGENCY = 4


class _NotFound:
    """Sentinel returned for unknown task ids"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def _coerce_status(status: Union[str, TaskStatus]) -> TaskStatus:
    if isinstance(status, TaskStatus):
        return status
    try:
        return TaskStatus(str(status).strip().lower())
    except ValueError:
        raise ValueError(
            f"Unknown task status {status!r}; expected one of "
            + ", ".join(s.value for s in TaskStatus)
        )


class TaskStore:
    """
    Thread-safe task table.

    rank() returns pending tasks only, ordered by urgency descending, then
    created_at descending (newer first among equal urgency).
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def add(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"Duplicate task id: {task.id}")
            self._tasks[task.id] = task
        return task

    def get(self, task_id: str) -> Union[Task, _NotFound]:
        with self._lock:
            return self._tasks.get(task_id, NOT_FOUND)

    def update_status(self, task_id: str, status: Union[str, TaskStatus]) -> Union[Task, _NotFound]:
        """
        Move a task to a new status.

        Stamps updated_at. Entering completed stamps completed_at; reopening
        clears it.

        Returns:
            The updated Task, or NOT_FOUND (table unchanged)

        Raises:
            ValueError: status is not a known TaskStatus
        """
        new_status = _coerce_status(status)

        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return NOT_FOUND

            now = self._clock()
            if new_status == TaskStatus.COMPLETED:
                completed_at = task.completed_at if task.status == TaskStatus.COMPLETED else now
            else:
                completed_at = None

            updated = task.model_copy(update={
                "status": new_status,
                "updated_at": now,
                "completed_at": completed_at,
            })
            self._tasks[task_id] = updated

        logger.info("Task %s -> %s", task_id, new_status.value)
        return updated

    def link_external_ref(self, task_id: str, external_ref: str) -> Union[Task, _NotFound]:
        """Record the external tracker id for a task"""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return NOT_FOUND
            updated = task.model_copy(update={"external_ref": external_ref, "updated_at": self._clock()})
            self._tasks[task_id] = updated
        return updated

    def rank(self, limit: Optional[int] = None) -> List[Task]:
        """Top pending tasks by (urgency, created_at) descending"""
        with self._lock:
            tasks = list(self._tasks.values())
        tasks = [t for t in tasks if t.status == TaskStatus.PENDING]
        tasks.sort(key=lambda t: t.rank_key, reverse=True)
        if limit is not None:
            tasks = tasks[:max(0, limit)]
        return tasks

    def snapshot(self) -> List[Task]:
        """All tasks in insertion order"""
        with self._lock:
            return list(self._tasks.values())

    def by_source(self, source: EventSource) -> List[Task]:
        return [t for t in self.snapshot() if t.source == source]

    def by_status(self, status: Union[str, TaskStatus]) -> List[Task]:
        wanted = _coerce_status(status)
        return [t for t in self.snapshot() if t.status == wanted]

    def stats(self) -> Dict[str, int]:
        tasks = self.snapshot()
        pending = [t for t in tasks if t.status == TaskStatus.PENDING]
        return {
            "total": len(tasks),
            "pending": len(pending),
            "completed": len(tasks) - len(pending),
            "high_urgency_pending": sum(1 for t in pending if t.urgency >= HIGH_URGENCY),
            "ai_generated": sum(1 for t in tasks if t.ai_generated),
        }

    def clear(self) -> None:
        with self._lock:
            self._tasks.clear()
