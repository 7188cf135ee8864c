"""
Hub

Event triage and task synthesis for workplace integrations.

Philosophy:
- Every incoming event gets a triage result, with or without an LLM
- Tasks are synthesized from action items, never invented
- Cheap, reversible actions run automatically; anything with external
  side effects waits for a human

Usage:
    from hub.common import load_config
    from hub.pipeline import PipelineOrchestrator, build_orchestrator
    from hub.triage import TriageEngine
    from hub.tasks import TaskStore, TaskSynthesizer
    from hub.actions import ActionEngine, ActionExecutor
"""

__version__ = "0.1.0"
