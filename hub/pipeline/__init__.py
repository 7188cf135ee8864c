"""
Pipeline

Orchestrates normalize -> triage -> synthesize -> propose -> execute for
each event, and exposes it over HTTP (hub.pipeline.server).
"""

from .event_log import EventLog, EventLogEntry
from .orchestrator import PipelineOrchestrator, build_orchestrator, split_raw_event

__all__ = [
    "EventLog",
    "EventLogEntry",
    "PipelineOrchestrator",
    "build_orchestrator",
    "split_raw_event",
]
