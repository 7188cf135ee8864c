"""Tests for PipelineOrchestrator staging, error isolation and views."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from hub.actions import ActionEngine, ActionExecutor, InMemoryReminderQueue, JsonlSink
from hub.common.config import ActionPolicy, HubConfig
from hub.common.errors import RejectedEventError
from hub.common.schemas import ActionType, EventSource, PipelineStage, TaskStatus
from hub.intake import EventNormalizer
from hub.pipeline import EventLog, PipelineOrchestrator, build_orchestrator, split_raw_event
from hub.tasks import TaskStore, TaskSynthesizer
from hub.triage import BackendTier, TriageEngine

NOW = datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)


class StaticBackend:
    def __init__(self, response):
        self._response = response

    is_available = True
    name = "static"

    def complete(self, prompt, *, system=None, max_tokens=800, timeout=20.0):
        return self._response


def make_orchestrator(tracker=None, backend=None, sink=None, action_engine=None, reminders=None,
                      synthesizer=None, event_log=None):
    tiers = [BackendTier("primary", backend)] if backend is not None else []
    return PipelineOrchestrator(
        normalizer=EventNormalizer(clock=lambda: NOW),
        triage_engine=TriageEngine(tiers),
        synthesizer=synthesizer or TaskSynthesizer(TaskStore(), clock=lambda: NOW),
        action_engine=action_engine or ActionEngine(ActionPolicy()),
        executor=ActionExecutor(tracker=tracker, reminders=reminders or InMemoryReminderQueue()),
        sink=sink,
        event_log=event_log,
        clock=lambda: NOW,
    )


URGENT_EMAIL = {"source": "gmail", "payload": {"subject": "URGENT: fix outage", "from": "Ops <ops@example.com>"}}


class TestSplitRawEvent:
    def test_payload_key(self):
        assert split_raw_event({"source": "slack", "payload": {"a": 1}}) == ("slack", {"a": 1})

    def test_data_key(self):
        assert split_raw_event({"source": "notion", "data": {"b": 2}}) == ("notion", {"b": 2})

    def test_remaining_keys(self):
        assert split_raw_event({"source": "email", "subject": "hi"}) == ("email", {"subject": "hi"})

    @pytest.mark.parametrize("raw", [None, "text", ["source"], {"payload": {}}])
    def test_rejected(self, raw):
        with pytest.raises(RejectedEventError):
            split_raw_event(raw)


class TestRunPipeline:
    @pytest.mark.asyncio
    async def test_unknown_source_escapes(self):
        with pytest.raises(RejectedEventError):
            await make_orchestrator().run_pipeline({"source": "carrier-pigeon", "payload": {}})

    @pytest.mark.asyncio
    async def test_full_run_links_external_ref(self):
        tracker = AsyncMock()
        tracker.create_or_update_record.return_value = {"id": "page-1"}
        orchestrator = make_orchestrator(tracker=tracker)

        result = await orchestrator.run_pipeline(URGENT_EMAIL)

        assert result.stage == PipelineStage.DONE
        assert result.triage_tier == "heuristic"
        assert len(result.tasks) == 1
        assert result.tasks[0].external_ref == "page-1"
        assert orchestrator.store.get(result.tasks[0].id).external_ref == "page-1"
        assert [a.type for a in result.proposed_actions] == [
            ActionType.NOTION_SYNC, ActionType.OTHER, ActionType.FOLLOW_UP,
        ]
        assert ActionType.OTHER not in [r.action_type for r in result.action_results]
        assert all(r.success for r in result.action_results)
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_action_failure_recorded_not_raised(self):
        orchestrator = make_orchestrator(tracker=None)
        result = await orchestrator.run_pipeline(URGENT_EMAIL)

        assert result.stage == PipelineStage.DONE
        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.stage == PipelineStage.ACTIONS_EXECUTED
        assert error.action_type == ActionType.NOTION_SYNC
        assert error.task_id == result.tasks[0].id
        # The sibling follow-up still ran
        assert [r.success for r in result.action_results] == [False, True]

    @pytest.mark.asyncio
    async def test_non_auto_actions_not_executed(self):
        scheduler_calls = []
        orchestrator = make_orchestrator()
        orchestrator.executor.scheduler = Mock(schedule=AsyncMock(side_effect=lambda *a: scheduler_calls.append(a)))

        raw = {"source": "calendar", "payload": {
            "summary": "Budget review",
            "start": {"dateTime": "2024-02-09T15:00:00Z"},
            "attendees": [{"email": "alice@example.com"}, {"email": "bob@example.com"}],
        }}
        result = await orchestrator.run_pipeline(raw)

        assert ActionType.CALENDAR_EVENT in [a.type for a in result.proposed_actions]
        assert ActionType.CALENDAR_EVENT not in [r.action_type for r in result.action_results]
        assert scheduler_calls == []

    @pytest.mark.asyncio
    async def test_non_actionable_event(self):
        result = await make_orchestrator().run_pipeline({"source": "slack", "payload": {"text": "lunch?", "user": "U1"}})
        assert result.tasks == []
        assert result.proposed_actions == []
        assert result.action_results == []
        assert result.stage == PipelineStage.DONE

    @pytest.mark.asyncio
    async def test_proposal_failure_isolated_per_task(self):
        raw = {"source": "fireflies", "payload": {
            "title": "Sync",
            "participants": ["a@example.com"],
            "summary": {"action_items": ["First", "Second"]},
        }}
        engine = ActionEngine(ActionPolicy())
        real = engine.propose_actions

        def flaky(task, context=None):
            if task.title == "First":
                raise RuntimeError("rule blew up")
            return real(task, context)

        engine.propose_actions = flaky
        result = await make_orchestrator(action_engine=engine).run_pipeline(raw)

        assert len(result.tasks) == 2
        assert [e.stage for e in result.errors] == [PipelineStage.ACTIONS_PROPOSED]
        assert result.errors[0].task_id == result.tasks[0].id
        assert all(a.task_id == result.tasks[1].id for a in result.proposed_actions)

    @pytest.mark.asyncio
    async def test_backend_result_marks_tasks_ai_generated(self):
        response = json.dumps({
            "urgency": 2, "actionable": True, "summary": "Doc edited", "actionItems": ["Skim changes"],
            "category": "update", "confidence": 0.7,
        })
        orchestrator = make_orchestrator(backend=StaticBackend(response))
        result = await orchestrator.run_pipeline({"source": "notion", "data": {"title": "Roadmap", "action": "updated"}})

        assert result.triage_tier == "primary"
        assert result.tasks[0].ai_generated is True
        assert result.tasks[0].title == "Skim changes"

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_break_pipeline(self, caplog):
        sink = Mock()
        sink.persist.side_effect = OSError("disk full")
        orchestrator = make_orchestrator(sink=sink)
        with caplog.at_level(logging.WARNING, logger="hub.pipeline.orchestrator"):
            result = await orchestrator.run_pipeline(URGENT_EMAIL)
        assert result.stage == PipelineStage.DONE
        assert "Persistence sink failed" in caplog.text

    @pytest.mark.asyncio
    async def test_event_and_tasks_persisted(self, tmp_path):
        path = tmp_path / "events.jsonl"
        tracker = AsyncMock()
        tracker.create_or_update_record.return_value = {"id": "page-1"}
        await make_orchestrator(tracker=tracker, sink=JsonlSink(path)).run_pipeline(URGENT_EMAIL)

        records = [json.loads(l) for l in path.read_text().splitlines()]
        assert [r["type"] for r in records] == ["Event", "Task"]
        assert records[1]["data"]["external_ref"] == "page-1"

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_store(self):
        orchestrator = make_orchestrator()
        raws = [
            {"source": "email", "payload": {"subject": f"Please review item {i}", "from": "x@example.com"}}
            for i in range(10)
        ]
        results = await asyncio.gather(*(orchestrator.run_pipeline(r) for r in raws))

        ids = [t.id for r in results for t in r.tasks]
        assert len(ids) == 10
        assert sorted(t.id for t in orchestrator.rank_tasks(50)) == sorted(ids)

    @pytest.mark.asyncio
    async def test_partial_store_failure_keeps_stored_tasks(self):
        class FlakyStore(TaskStore):
            calls = 0

            def add(self, task):
                self.calls += 1
                if self.calls == 2:
                    raise ValueError("store rejected task")
                return super().add(task)

        store = FlakyStore(clock=lambda: NOW)
        orchestrator = make_orchestrator(synthesizer=TaskSynthesizer(store, clock=lambda: NOW))
        raw = {"source": "fireflies", "payload": {
            "title": "Sync",
            "participants": ["a@example.com"],
            "summary": {"action_items": ["First", "Second", "Third"]},
        }}

        result = await orchestrator.run_pipeline(raw)

        assert result.stage == PipelineStage.DONE
        assert [t.title for t in result.tasks] == ["First", "Third"]
        assert [t.id for t in store.snapshot()] == [t.id for t in result.tasks]
        synthesis_errors = [e for e in result.errors if e.stage == PipelineStage.TASKS_SYNTHESIZED]
        assert len(synthesis_errors) == 1
        assert synthesis_errors[0].task_id is not None
        assert synthesis_errors[0].task_id not in store
        assert "store rejected task" in synthesis_errors[0].message
        assert {a.task_id for a in result.proposed_actions} == {t.id for t in result.tasks}

    @pytest.mark.asyncio
    async def test_task_events_resolve_beyond_history_capacity(self):
        orchestrator = make_orchestrator(event_log=EventLog(capacity=2))
        for i in range(5):
            await orchestrator.run_pipeline(
                {"source": "email", "payload": {"subject": f"Please review item {i}", "from": "x@example.com"}}
            )

        tasks = orchestrator.store.snapshot()
        assert len(tasks) == 5
        for task in tasks:
            assert task.source_event_id in orchestrator.event_log
            assert orchestrator.event_log.get(task.source_event_id).source == EventSource.EMAIL
        assert len(orchestrator.recent_events(10)) == 2
        assert orchestrator.stats()["events"]["total_events"] == 5

    @pytest.mark.asyncio
    async def test_non_actionable_event_still_logged(self):
        orchestrator = make_orchestrator()
        result = await orchestrator.run_pipeline({"source": "slack", "payload": {"text": "hi", "user": "U1"}})
        assert result.event.id in orchestrator.event_log
        assert orchestrator.event_log.events() == [result.event]

    @pytest.mark.asyncio
    async def test_cancel_during_execution_keeps_tasks_and_event(self, caplog):
        started = asyncio.Event()

        async def hang(*args, **kwargs):
            started.set()
            await asyncio.sleep(30)

        reminders = AsyncMock()
        reminders.schedule_reminder.side_effect = hang
        orchestrator = make_orchestrator(reminders=reminders)

        with caplog.at_level(logging.WARNING, logger="hub.pipeline.orchestrator"):
            run = asyncio.create_task(orchestrator.run_pipeline(URGENT_EMAIL))
            await asyncio.wait_for(started.wait(), 1)
            run.cancel()
            with pytest.raises(asyncio.CancelledError):
                await run

        tasks = orchestrator.store.snapshot()
        assert len(tasks) == 1
        assert tasks[0].status == TaskStatus.PENDING
        assert tasks[0].source_event_id in orchestrator.event_log
        entry = orchestrator.recent_events(1)[0]
        assert entry["event_id"] == tasks[0].source_event_id
        assert entry["stage"] == PipelineStage.ACTIONS_PROPOSED.value
        assert entry["task_ids"] == [tasks[0].id]
        assert "cancelled after stage actions_proposed" in caplog.text


class TestViews:
    @pytest.mark.asyncio
    async def test_recent_events_and_stats(self):
        orchestrator = make_orchestrator()
        await orchestrator.run_pipeline(URGENT_EMAIL)
        await orchestrator.run_pipeline({"source": "slack", "payload": {"text": "hi", "user": "U1"}})

        recent = orchestrator.recent_events(5)
        assert [e["source"] for e in recent] == ["chat", "email"]
        assert recent[1]["triage_tier"] == "heuristic"

        stats = orchestrator.stats()
        assert stats["events"]["total_events"] == 2
        assert stats["events"]["by_source"] == {"email": 1, "chat": 1}
        assert stats["tasks"]["total"] == 1
        assert stats["tasks"]["high_urgency_pending"] == 1

    @pytest.mark.asyncio
    async def test_update_task_status_and_close(self):
        orchestrator = make_orchestrator()
        result = await orchestrator.run_pipeline(URGENT_EMAIL)
        task_id = result.tasks[0].id

        updated = orchestrator.update_task_status(task_id, "completed")
        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at is not None
        orchestrator.close()
        assert orchestrator.rank_tasks(10) == []
        assert orchestrator.recent_events() == []


class TestBuildOrchestrator:
    def test_defaults_without_credentials(self):
        orchestrator = build_orchestrator(HubConfig())
        assert orchestrator.triage_engine.tier_names == ["primary", "secondary", "heuristic"]
        assert orchestrator.executor.tracker is not None

    def test_persist_events_uses_jsonl_sink(self, tmp_path):
        config = HubConfig()
        config.pipeline.persist_events = True
        config.pipeline.events_log_path = str(tmp_path / "events.jsonl")
        orchestrator = build_orchestrator(config)
        assert isinstance(orchestrator.sink, JsonlSink)
        assert orchestrator.sink.path == tmp_path / "events.jsonl"
