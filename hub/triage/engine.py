"""
Triage Engine

Runs the ordered tier chain for one event and returns the first success.

Tier order (by configuration presence only):
1. primary reasoning backend
2. secondary reasoning backend
3. local heuristics (never fails)

analyze() never propagates a backend error. Cancellation does propagate.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ..common.config import LLMConfig
from ..common.llm_client import LLMClient
from ..common.schemas import Event, TriageResult
from .heuristics import heuristic_triage
from .tiers import BackendTier, HeuristicTier, TierFailure, TierSuccess

logger = logging.getLogger("hub.triage.engine")


@dataclass
class TriageOutcome:
    """Result plus which tier produced it and what failed before it"""
    result: TriageResult
    tier: str
    failures: List[TierFailure] = field(default_factory=list)

    @property
    def ai_generated(self) -> bool:
        return self.tier != HeuristicTier.name


class TriageEngine:
    """
    Ordered fallback chain of triage tiers.

    A heuristic tier is appended when the configured chain lacks one, so
    every event gets a result.
    """

    def __init__(self, tiers: Sequence):
        tiers = list(tiers)
        if not any(isinstance(t, HeuristicTier) for t in tiers):
            tiers.append(HeuristicTier())
        self._tiers = tiers

    @classmethod
    def from_config(cls, llm_config: LLMConfig) -> "TriageEngine":
        """Build primary/secondary backend tiers from LLM configuration"""
        def backend(provider: str, model: str) -> LLMClient:
            return LLMClient(
                provider=provider,
                model=model,
                anthropic_api_key=llm_config.anthropic_api_key,
                openai_api_key=llm_config.openai_api_key,
                google_api_key=llm_config.google_api_key,
            )

        tiers = [
            BackendTier(
                "primary",
                backend(llm_config.primary_provider, llm_config.primary_model),
                timeout_seconds=llm_config.timeout_seconds,
                max_tokens=llm_config.max_tokens,
            ),
            BackendTier(
                "secondary",
                backend(llm_config.secondary_provider, llm_config.secondary_model),
                timeout_seconds=llm_config.timeout_seconds,
                max_tokens=llm_config.max_tokens,
            ),
            HeuristicTier(),
        ]
        return cls(tiers)

    @property
    def tier_names(self) -> List[str]:
        return [t.name for t in self._tiers]

    async def analyze(self, event: Event) -> TriageOutcome:
        """
        Classify an event.

        Args:
            event: Normalized event

        Returns:
            TriageOutcome from the first tier that succeeded
        """
        failures: List[TierFailure] = []

        for tier in self._tiers:
            try:
                outcome = await tier.analyze(event)
            except Exception as e:
                # A tier that raises instead of reporting is still a tier failure
                outcome = TierFailure(tier.name, "http_error", f"{type(e).__name__}: {e}")

            if isinstance(outcome, TierSuccess):
                if failures:
                    logger.info(
                        "Event %s triaged by %s tier after %d failure(s)",
                        event.id, outcome.tier, len(failures),
                    )
                else:
                    logger.info("Event %s triaged by %s tier", event.id, outcome.tier)
                return TriageOutcome(result=outcome.result, tier=outcome.tier, failures=failures)

            if outcome.reason == "not_configured":
                logger.debug("Tier %s skipped: %s", outcome.tier, outcome.detail)
            else:
                logger.warning("Tier %s failed (%s): %s", outcome.tier, outcome.reason, outcome.detail)
            failures.append(outcome)

        # Only reachable if a custom heuristic tier misbehaves
        return TriageOutcome(result=heuristic_triage(event), tier=HeuristicTier.name, failures=failures)

