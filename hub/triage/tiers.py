"""
Triage Tiers

Each tier is a strategy with one interface:

    async analyze(event) -> TierSuccess | TierFailure

Backend tiers never raise for backend trouble; they report a tagged
failure so the engine can move on. Cancellation is not a failure and
propagates.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from ..common.errors import ConfigurationError, MalformedResponseError, TransientBackendError
from ..common.schemas import Event, TriageResult
from .heuristics import heuristic_triage
from .parser import parse_triage_response
from .prompts import TRIAGE_SYSTEM, build_triage_prompt

logger = logging.getLogger("hub.triage.tiers")


class ReasoningBackend(Protocol):
    """Blocking text completion (LLMClient satisfies this)"""

    @property
    def is_available(self) -> bool: ...

    @property
    def name(self) -> str: ...

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 800,
        timeout: float = 20.0,
    ) -> str: ...


@dataclass(frozen=True)
class TierSuccess:
    tier: str
    result: TriageResult


@dataclass(frozen=True)
class TierFailure:
    """
    Why a tier produced nothing.

    reason is one of: not_configured, timeout, http_error, rate_limited,
    malformed.
    """
    tier: str
    reason: str
    detail: str = ""


TierOutcome = Union[TierSuccess, TierFailure]


class BackendTier:
    """
    One reasoning backend as a triage tier.

    Single attempt per event, no retry. The blocking backend call runs in a
    worker thread bounded by timeout_seconds.
    """

    def __init__(
        self,
        name: str,
        backend: Optional[ReasoningBackend],
        timeout_seconds: float = 20.0,
        max_tokens: int = 800,
    ):
        self.name = name
        self._backend = backend
        self._timeout = timeout_seconds
        self._max_tokens = max_tokens

    @property
    def is_configured(self) -> bool:
        return self._backend is not None and self._backend.is_available

    async def analyze(self, event: Event) -> TierOutcome:
        if not self.is_configured:
            return TierFailure(self.name, "not_configured", "no backend configured")

        prompt = build_triage_prompt(event)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(
                    self._backend.complete,
                    prompt,
                    system=TRIAGE_SYSTEM,
                    max_tokens=self._max_tokens,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return TierFailure(self.name, "timeout", f"no answer within {self._timeout}s")
        except ConfigurationError as e:
            return TierFailure(self.name, "not_configured", str(e))
        except TransientBackendError as e:
            return TierFailure(self.name, e.kind, str(e))

        try:
            result = parse_triage_response(raw)
        except MalformedResponseError as e:
            return TierFailure(self.name, "malformed", str(e))

        return TierSuccess(self.name, result)


class HeuristicTier:
    """Local rules; always succeeds"""

    name = "heuristic"

    async def analyze(self, event: Event) -> TierOutcome:
        return TierSuccess(self.name, heuristic_triage(event))
