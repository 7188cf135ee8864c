"""
Task Synthesis

Tasks derived from triage results, and the store that holds them.
"""

from .store import NOT_FOUND, TaskStore
from .synthesizer import TaskSynthesizer

__all__ = [
    "NOT_FOUND",
    "TaskStore",
    "TaskSynthesizer",
]
