"""
Event Triage

Classifies events through an ordered fallback chain: primary reasoning
backend, secondary reasoning backend, local heuristics.
"""

from .engine import TriageEngine, TriageOutcome
from .heuristics import heuristic_triage, HEURISTIC_CONFIDENCE
from .parser import TriageResponse, parse_triage_response
from .prompts import TRIAGE_SYSTEM, build_triage_prompt
from .tiers import BackendTier, HeuristicTier, TierFailure, TierSuccess

__all__ = [
    "TriageEngine",
    "TriageOutcome",
    "heuristic_triage",
    "HEURISTIC_CONFIDENCE",
    "TriageResponse",
    "parse_triage_response",
    "TRIAGE_SYSTEM",
    "build_triage_prompt",
    "BackendTier",
    "HeuristicTier",
    "TierFailure",
    "TierSuccess",
]
