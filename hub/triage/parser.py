"""
Triage Response Parser

Validates a reasoning backend's JSON answer against a strict schema at the
boundary. Anything that does not fit becomes MalformedResponseError, which
the engine treats as a tier failure.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..common.errors import MalformedResponseError
from ..common.llm_utils import parse_llm_json
from ..common.schemas import Category, TriageResult, clamp_urgency, ensure_utc

CONFIDENCE_MIN = 0.1
CONFIDENCE_MAX = 1.0


class TriageResponse(BaseModel):
    """
    Wire schema of a backend triage answer.

    Required: urgency, actionable, summary, actionItems, category, confidence.
    Optional with defaults: keyPeople ([]), tags ([]), deadline (null).
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    urgency: int
    actionable: bool
    summary: str
    action_items: List[str] = Field(alias="actionItems")
    category: Category
    confidence: float
    key_people: List[str] = Field(default_factory=list, alias="keyPeople")
    tags: List[str] = Field(default_factory=list)
    deadline: Optional[datetime] = None

    @field_validator("urgency")
    @classmethod
    def _clamp_urgency(cls, v: int) -> int:
        return clamp_urgency(v)

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, v: float) -> float:
        return max(CONFIDENCE_MIN, min(CONFIDENCE_MAX, v))

    @field_validator("category", mode="before")
    @classmethod
    def _lower_category(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("key_people", "tags", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("deadline", mode="before")
    @classmethod
    def _parse_deadline(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and v.strip().lower() in ("", "null", "none")):
            return None
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValueError(f"deadline is not ISO-8601: {v!r}")
        return v

    @field_validator("deadline")
    @classmethod
    def _utc_deadline(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    def to_result(self) -> TriageResult:
        return TriageResult(
            urgency=self.urgency,
            actionable=self.actionable,
            summary=self.summary,
            action_items=self.action_items,
            key_people=self.key_people,
            deadline=self.deadline,
            category=self.category,
            tags=self.tags,
            confidence=self.confidence,
        )


def parse_triage_response(raw: str) -> TriageResult:
    """
    Parse and validate a backend answer.

    Markdown fences and preamble text around the JSON object are tolerated.

    Raises:
        MalformedResponseError: no JSON object, or the object breaks the schema
    """
    data = parse_llm_json(raw)
    try:
        response = TriageResponse.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedResponseError(f"Triage response failed validation ({fields})", raw=raw) from e
    return response.to_result()
