"""
Pipeline Orchestrator

Drives one raw event through every stage:

    RECEIVED -> NORMALIZED -> TRIAGED -> TASKS_SYNTHESIZED
             -> ACTIONS_PROPOSED -> ACTIONS_EXECUTED -> DONE

Stages run in order with no retries. Failures in synthesis, proposal or
execution are recorded as ItemErrors and siblings carry on. Only
RejectedEventError escapes run_pipeline().
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..actions import (
    ActionContext,
    ActionEngine,
    ActionExecutor,
    InMemoryReminderQueue,
    JsonlSink,
    NotionTracker,
    NullSink,
    PersistenceSink,
)
from ..common.config import HubConfig, load_config
from ..common.errors import RejectedEventError, TaskSynthesisError
from ..common.schemas import (
    ActionResult,
    ActionType,
    Event,
    ItemError,
    PipelineResult,
    PipelineStage,
    ProposedAction,
    Task,
    TaskStatus,
    TriageResult,
    utc_now,
)
from ..intake import EventNormalizer
from ..tasks import NOT_FOUND, TaskStore, TaskSynthesizer
from ..triage import TriageEngine
from .event_log import EventLog, EventLogEntry

logger = logging.getLogger("hub.pipeline.orchestrator")

PAYLOAD_KEYS = ("payload", "data")


def split_raw_event(raw_event: Any) -> tuple:
    """
    Split {source, payload|data, ...} into (source, provider payload).

    When neither payload nor data is present, the remaining keys are the
    provider payload.

    Raises:
        RejectedEventError: raw_event is not a mapping or has no source
    """
    if not isinstance(raw_event, Mapping):
        raise RejectedEventError(f"Raw event must be a mapping, got {type(raw_event).__name__}")

    source = raw_event.get("source")
    if not source:
        raise RejectedEventError("Raw event has no source")

    for key in PAYLOAD_KEYS:
        if key in raw_event:
            return source, raw_event[key]
    return source, {k: v for k, v in raw_event.items() if k != "source"}


class PipelineOrchestrator:
    """
    Sequences normalizer, triage engine, synthesizer, action engine and
    executor for each event.

    Independent run_pipeline() calls may run concurrently; the task store
    and event log are the only shared state and both are lock-guarded.
    """

    def __init__(
        self,
        normalizer: EventNormalizer,
        triage_engine: TriageEngine,
        synthesizer: TaskSynthesizer,
        action_engine: ActionEngine,
        executor: ActionExecutor,
        sink: Optional[PersistenceSink] = None,
        event_log: Optional[EventLog] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.normalizer = normalizer
        self.triage_engine = triage_engine
        self.synthesizer = synthesizer
        self.action_engine = action_engine
        self.executor = executor
        self.sink = sink if sink is not None else NullSink()
        self.event_log = event_log if event_log is not None else EventLog()
        self._clock = clock

    @property
    def store(self) -> TaskStore:
        return self.synthesizer.store

    async def run_pipeline(self, raw_event: Mapping[str, Any]) -> PipelineResult:
        """
        Process one raw event end to end.

        The normalized event is appended to the event log before any task
        can reference it. If the run is cancelled, tasks already stored stay
        and a summary tagged with the last completed stage is recorded
        before CancelledError propagates.

        Args:
            raw_event: {"source": ..., "payload": {...}} (or "data")

        Returns:
            PipelineResult with every field present, empty where nothing happened

        Raises:
            RejectedEventError: event is not a mapping or the source is unknown
        """
        source, payload = split_raw_event(raw_event)

        event = self.normalizer.normalize(source, payload)
        self.event_log.append(event)
        stage = PipelineStage.NORMALIZED
        logger.info("Event %s (%s/%s) normalized", event.id, event.source.value, event.kind)
        self._persist(event)

        tier = ""
        tasks: List[Task] = []
        errors: List[ItemError] = []
        try:
            outcome = await self.triage_engine.analyze(event)
            triage = outcome.result
            tier = outcome.tier
            stage = PipelineStage.TRIAGED

            tasks = self._synthesize(event, triage, outcome.ai_generated, errors)
            stage = PipelineStage.TASKS_SYNTHESIZED

            context = ActionContext(event=event, triage=triage, now=self._clock())
            proposed: List[ProposedAction] = []
            for task in tasks:
                try:
                    proposed.extend(self.action_engine.propose_actions(task, context))
                except Exception as e:
                    logger.warning("Action proposal failed for task %s: %s", task.id, e)
                    errors.append(ItemError(
                        stage=PipelineStage.ACTIONS_PROPOSED,
                        message=str(e),
                        task_id=task.id,
                    ))
            stage = PipelineStage.ACTIONS_PROPOSED

            results: List[ActionResult] = []
            for action in proposed:
                if not action.auto_execute:
                    continue
                result = await self._execute(action)
                results.append(result)
                if not result.success:
                    errors.append(ItemError(
                        stage=PipelineStage.ACTIONS_EXECUTED,
                        message=result.error or "action failed",
                        task_id=action.task_id,
                        action_type=action.type,
                    ))
                elif action.type == ActionType.NOTION_SYNC and result.external_ref and action.task_id:
                    self.store.link_external_ref(action.task_id, result.external_ref)
            stage = PipelineStage.ACTIONS_EXECUTED
        except asyncio.CancelledError:
            logger.warning("Event %s cancelled after stage %s", event.id, stage.value)
            self._record(event, stage, tier, tasks, errors)
            raise

        # Re-read so the result carries linked external refs
        tasks = [self._current(task) for task in tasks]
        for task in tasks:
            self._persist(task)

        stage = PipelineStage.DONE
        self._record(event, stage, tier, tasks, errors)
        logger.info(
            "Event %s done: tier=%s tasks=%d actions=%d executed=%d errors=%d",
            event.id, tier, len(tasks), len(proposed), len(results), len(errors),
        )

        return PipelineResult(
            event=event,
            triage_result=triage,
            triage_tier=tier,
            tasks=tasks,
            proposed_actions=proposed,
            action_results=results,
            errors=errors,
            stage=stage,
        )

    def _synthesize(
        self,
        event: Event,
        triage: TriageResult,
        ai_generated: bool,
        errors: List[ItemError],
    ) -> List[Task]:
        try:
            return self.synthesizer.synthesize(event, triage, ai_generated=ai_generated)
        except TaskSynthesisError as e:
            logger.warning("Task synthesis incomplete for event %s: %s", event.id, e)
            for task_id, message in e.failures:
                errors.append(ItemError(
                    stage=PipelineStage.TASKS_SYNTHESIZED,
                    message=message,
                    task_id=task_id,
                ))
            return e.tasks
        except Exception as e:
            logger.warning("Task synthesis failed for event %s: %s", event.id, e)
            errors.append(ItemError(stage=PipelineStage.TASKS_SYNTHESIZED, message=str(e)))
            return []

    def _record(
        self,
        event: Event,
        stage: PipelineStage,
        tier: str,
        tasks: List[Task],
        errors: List[ItemError],
    ) -> None:
        self.event_log.record(EventLogEntry(
            event=event,
            stage=stage,
            triage_tier=tier,
            task_ids=tuple(t.id for t in tasks),
            error_count=len(errors),
        ))

    async def _execute(self, action: ProposedAction) -> ActionResult:
        try:
            return await self.executor.execute(action)
        except Exception as e:
            # execute() reports failures itself; this guards custom executors
            return ActionResult(
                success=False,
                error=f"{type(e).__name__}: {e}",
                action_type=action.type,
                task_id=action.task_id,
            )

    def _current(self, task: Task) -> Task:
        stored = self.store.get(task.id)
        return task if stored is NOT_FOUND else stored

    def _persist(self, obj: Union[Event, Task]) -> None:
        try:
            self.sink.persist(obj)
        except Exception as e:
            logger.warning("Persistence sink failed for %s: %s", type(obj).__name__, e)

    # ------------------------------------------------------------------
    # Views over shared state
    # ------------------------------------------------------------------

    def rank_tasks(self, limit: int = 10) -> List[Task]:
        return self.synthesizer.rank_tasks(limit)

    def update_task_status(self, task_id: str, status: Union[str, TaskStatus]):
        return self.synthesizer.update_status(task_id, status)

    def recent_events(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.event_log.recent(limit)]

    def stats(self) -> Dict[str, Any]:
        return {
            "events": self.event_log.stats(),
            "tasks": self.store.stats(),
            "triage_tiers": self.triage_engine.tier_names,
        }

    def close(self) -> None:
        """Drop all in-process state"""
        self.store.clear()
        self.event_log.clear()


def build_orchestrator(config: Optional[HubConfig] = None) -> PipelineOrchestrator:
    """
    Wire a full pipeline from configuration.

    Args:
        config: Hub configuration (default: load_config())
    """
    config = config or load_config()

    normalizer = EventNormalizer(
        max_field_bytes=config.intake.max_field_bytes,
        noise_threshold_bytes=config.intake.noise_threshold_bytes,
    )
    triage_engine = TriageEngine.from_config(config.llm)
    synthesizer = TaskSynthesizer(TaskStore())
    action_engine = ActionEngine(config.actions)

    tracker = NotionTracker(config.notion, timeout_seconds=config.actions.action_timeout_seconds)
    if not tracker.is_configured:
        logger.info("Notion not configured; notion_sync actions will fail as not_configured")
    executor = ActionExecutor(
        tracker=tracker,
        reminders=InMemoryReminderQueue(),
        timeout_seconds=config.actions.action_timeout_seconds,
    )

    if config.pipeline.persist_events:
        sink = JsonlSink(Path(config.pipeline.events_log_path).expanduser())
    else:
        sink = NullSink()

    logger.info("Pipeline ready (tiers: %s)", ", ".join(triage_engine.tier_names))
    return PipelineOrchestrator(
        normalizer=normalizer,
        triage_engine=triage_engine,
        synthesizer=synthesizer,
        action_engine=action_engine,
        executor=executor,
        sink=sink,
    )
