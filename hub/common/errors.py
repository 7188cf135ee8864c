"""
Error taxonomy for the triage pipeline.

Errors below the orchestrator are converted into fallback behavior or
per-item error records. Only RejectedEventError escapes a pipeline call.
"""

from typing import Optional


class HubError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(HubError):
    """A required backend or credential is absent. Causes a tier skip."""


class TransientBackendError(HubError):
    """Timeout, HTTP failure or rate limit from an outbound call."""

    KINDS = ("timeout", "http_error", "rate_limited")

    def __init__(self, message: str, kind: str = "http_error"):
        super().__init__(message)
        self.kind = kind if kind in self.KINDS else "http_error"


class MalformedResponseError(HubError):
    """A reasoning backend answered, but not in the expected shape."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class NotFoundError(HubError):
    """Unknown task id. The store returns NOT_FOUND rather than raising this."""


class TaskSynthesisError(HubError):
    """
    Some tasks for an event could not be stored.

    tasks holds the ones that were stored; failures pairs each rejected
    task id with the reason.
    """

    def __init__(self, message: str, tasks=None, failures=None):
        super().__init__(message)
        self.tasks = list(tasks or [])
        self.failures = list(failures or [])


class ActionExecutionError(HubError):
    """An external side effect failed. Recorded per action, never propagated."""

    KINDS = ("not_configured", "rejected", "network_error")

    def __init__(self, message: str, kind: str = "rejected"):
        super().__init__(message)
        self.kind = kind if kind in self.KINDS else "rejected"


class RejectedEventError(HubError):
    """A raw event could not be turned into an Event at all."""
