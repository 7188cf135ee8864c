"""
Hub Common Module

Shared infrastructure for the intake, triage, task and action stages.
"""

from .config import HubConfig, load_config
from .errors import (
    HubError,
    ConfigurationError,
    TransientBackendError,
    MalformedResponseError,
    NotFoundError,
    TaskSynthesisError,
    ActionExecutionError,
    RejectedEventError,
)
from .llm_client import LLMClient

__all__ = [
    "HubConfig",
    "load_config",
    "HubError",
    "ConfigurationError",
    "TransientBackendError",
    "MalformedResponseError",
    "NotFoundError",
    "TaskSynthesisError",
    "ActionExecutionError",
    "RejectedEventError",
    "LLMClient",
]
