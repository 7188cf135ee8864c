"""End-to-end scenarios through the orchestrator with heuristic triage only."""

from datetime import datetime, timedelta, timezone

import pytest

from hub.actions import ActionEngine, ActionExecutor
from hub.common.config import ActionPolicy
from hub.common.schemas import ActionType, Category, EventSource, PipelineStage
from hub.intake import EventNormalizer
from hub.pipeline import PipelineOrchestrator
from hub.tasks import TaskStore, TaskSynthesizer
from hub.triage import TriageEngine


class SteppingClock:
    """Advances one second per call so creation order is observable"""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def orchestrator():
    clock = SteppingClock(datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc))
    return PipelineOrchestrator(
        normalizer=EventNormalizer(clock=clock),
        triage_engine=TriageEngine([]),
        synthesizer=TaskSynthesizer(TaskStore(clock=clock), clock=clock),
        action_engine=ActionEngine(ActionPolicy()),
        executor=ActionExecutor(clock=clock),
        clock=clock,
    )


class TestScenarios:
    @pytest.mark.asyncio
    async def test_urgent_email_without_backends(self, orchestrator):
        result = await orchestrator.run_pipeline({
            "source": "email",
            "payload": {"subject": "URGENT: fix outage", "from": "Ops Team <ops@example.com>", "body": "Site is down"},
        })

        assert result.stage == PipelineStage.DONE
        assert result.triage_tier == "heuristic"
        assert result.triage_result.urgency == 5
        assert result.triage_result.confidence == 0.5
        assert len(result.tasks) == 1
        task = result.tasks[0]
        assert task.urgency == 5
        assert task.source == EventSource.EMAIL
        assert task.ai_generated is False
        assert "Ops Team" in result.triage_result.key_people

    @pytest.mark.asyncio
    async def test_meeting_with_two_attendees_proposes_calendar_event(self, orchestrator):
        result = await orchestrator.run_pipeline({
            "source": "google_calendar",
            "payload": {
                "event": {
                    "id": "cal-1",
                    "summary": "Q3 planning",
                    "start": {"dateTime": "2024-02-20T15:00:00Z"},
                    "end": {"dateTime": "2024-02-20T16:00:00Z"},
                    "attendees": [{"displayName": "Alice"}, {"displayName": "Bob"}],
                },
            },
        })

        assert result.tasks[0].category == Category.MEETING
        meetings = [a for a in result.proposed_actions if a.type == ActionType.CALENDAR_EVENT]
        assert len(meetings) == 1
        assert meetings[0].auto_execute is False
        assert meetings[0].data["attendees"] == ["Alice", "Bob"]
        assert ActionType.CALENDAR_EVENT not in [r.action_type for r in result.action_results]

    @pytest.mark.asyncio
    async def test_later_urgent_task_ranks_first(self, orchestrator):
        medium = await orchestrator.run_pipeline({
            "source": "slack",
            "payload": {"text": "Could you review the draft?", "user": "U42"},
        })
        urgent = await orchestrator.run_pipeline({
            "source": "email",
            "payload": {"subject": "Critical: payroll failed", "from": "hr@example.com"},
        })

        assert medium.tasks[0].urgency == 3
        ranked = orchestrator.rank_tasks(10)
        assert [t.id for t in ranked] == [urgent.tasks[0].id, medium.tasks[0].id]

    @pytest.mark.asyncio
    async def test_transcript_yields_task_per_action_item(self, orchestrator):
        result = await orchestrator.run_pipeline({
            "source": "fireflies",
            "payload": {
                "transcript": {
                    "id": "ff-1",
                    "title": "Weekly sync",
                    "participants": ["alice@example.com", "bob@example.com"],
                    "summary": {
                        "gist": "Roadmap and hiring",
                        "action_items": "**Alice**\nSend roadmap deck\n**Bob**\n- Open hiring req\n- Book offsite",
                    },
                },
            },
        })

        assert [t.title for t in result.tasks] == ["Send roadmap deck", "Open hiring req", "Book offsite"]
        assert all(t.source_event_id == result.event.id for t in result.tasks)
        assert len({t.id for t in result.tasks}) == 3
        # Each task gets its own follow-up
        follow_ups = [a for a in result.proposed_actions if a.type == ActionType.FOLLOW_UP]
        assert sorted(a.task_id for a in follow_ups) == sorted(t.id for t in result.tasks)

    @pytest.mark.asyncio
    async def test_oversized_body_is_bounded_and_flagged(self, orchestrator):
        result = await orchestrator.run_pipeline({
            "source": "email",
            "payload": {"subject": "Please approve", "from": "a@example.com", "body": "x" * 50000},
        })

        assert result.event.degraded is True
        assert len(result.event.payload["body"].encode("utf-8")) < 50000
        assert result.stage == PipelineStage.DONE
        assert orchestrator.recent_events(1)[0]["degraded"] is True

    @pytest.mark.asyncio
    async def test_bot_document_edit_creates_nothing(self, orchestrator):
        result = await orchestrator.run_pipeline({
            "source": "notion",
            "payload": {
                "type": "page.updated",
                "data": {
                    "id": "page-1",
                    "properties": {"title": {"type": "title", "title": [{"plain_text": "Status page"}]}},
                    "last_edited_by": {"type": "bot", "id": "bot-1"},
                },
            },
        })

        assert result.triage_result.actionable is False
        assert result.tasks == []
        assert result.stage == PipelineStage.DONE
