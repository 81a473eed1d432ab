"""Questionnaire answers fed into the readiness scoring engine.

``QuestionnaireResponse.from_mapping`` is lenient: anything missing or
malformed becomes the neutral default, so the scoring engine can always
produce a result. ``validate_submission`` is the strict upstream check that
rejects incomplete submissions before they are scored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from momentum.config.scoring import CATEGORICAL_CHOICES, RATING_SCALES
from momentum.errors import InputValidationError

logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "dream", "why", "deep_motivation", "time_reality", "why_succeed",
    "past_lessons", "real_impact", "self_doubt", "belief_help",
)
LIST_FIELDS = ("work_traits", "support", "unique_value")
PRESENCE_FIELDS = ("blog", "twitter", "projects")


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class QuestionnaireResponse:
    # free text
    dream: str = ""
    why: str = ""
    deep_motivation: str = ""
    time_reality: str = ""
    why_succeed: str = ""
    past_lessons: str = ""
    real_impact: str = ""
    self_doubt: str = ""
    belief_help: str = ""

    # categorical (None = not answered)
    importance: Optional[str] = None
    readiness: Optional[str] = None
    timeline: Optional[str] = None
    financial: Optional[str] = None
    intensity: Optional[str] = None
    risk_tolerance: Optional[str] = None
    decision_level: Optional[str] = None
    time_commitment: Optional[str] = None
    learning_style: Optional[str] = None

    # multi-select (None = not answered, () = answered "none")
    work_traits: Optional[tuple] = None
    support: Optional[tuple] = None
    unique_value: Optional[tuple] = None

    # ratings (None = not answered, scored at the midpoint)
    belief_level: Optional[int] = None
    gut_feeling: Optional[int] = None
    starting_projects: Optional[int] = None
    handling_obstacles: Optional[int] = None
    industry_trends: Optional[int] = None
    competitive: Optional[int] = None
    business_models: Optional[int] = None

    # online presence (URL or handle)
    blog: str = ""
    twitter: str = ""
    projects: str = ""

    def rating(self, name: str) -> int:
        """Rating value, or the scale midpoint when unanswered."""
        value = getattr(self, name)
        if value is None:
            return RATING_SCALES[name][2]
        return value

    @property
    def has_online_presence(self) -> bool:
        return any(getattr(self, f) for f in PRESENCE_FIELDS)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> QuestionnaireResponse:
        """Build from raw answers (snake_case or camelCase keys). Never raises."""
        if not isinstance(data, Mapping):
            return cls()
        raw = {_snake(str(k)): v for k, v in data.items()}
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        dropped = []
        for name, value in raw.items():
            if name not in known or value is None:
                continue
            coerced = _coerce(name, value)
            if coerced is None:
                dropped.append(name)
                continue
            values[name] = coerced
        if dropped:
            logger.debug("Ignoring malformed questionnaire answers: %s", ", ".join(sorted(dropped)))
        return cls(**values)


def _coerce(name: str, value: Any) -> Any:
    if name in TEXT_FIELDS or name in PRESENCE_FIELDS:
        return value.strip() if isinstance(value, str) else None
    if name in CATEGORICAL_CHOICES:
        if isinstance(value, str) and value.strip().lower() in CATEGORICAL_CHOICES[name]:
            return value.strip().lower()
        return None
    if name in LIST_FIELDS:
        if isinstance(value, str):
            value = [value] if value.strip() else []
        if not isinstance(value, (list, tuple, set)):
            return None
        return tuple(str(v).strip().lower() for v in value if str(v).strip())
    if name in RATING_SCALES:
        lo, hi, _ = RATING_SCALES[name]
        if isinstance(value, bool):
            return None
        try:
            number = int(round(float(value)))
        except (TypeError, ValueError):
            return None
        return number if lo <= number <= hi else None
    return None


# ── Upstream validation ──────────────────────────────────────────────────

class QuestionnaireSubmission(BaseModel):
    """Strict shape of a complete submission."""

    model_config = ConfigDict(extra="ignore")

    dream: str = Field(min_length=1)
    why: str = Field(min_length=1)
    deep_motivation: str = ""
    time_reality: str = ""
    why_succeed: str = ""
    past_lessons: str = ""
    real_impact: str = ""
    self_doubt: str = ""
    belief_help: str = ""

    importance: str
    readiness: str
    timeline: str
    financial: Optional[str] = None
    intensity: Optional[str] = None
    risk_tolerance: Optional[str] = None
    decision_level: Optional[str] = None
    time_commitment: Optional[str] = None
    learning_style: Optional[str] = None

    work_traits: list[str] = []
    support: list[str] = []
    unique_value: list[str] = []

    belief_level: int = Field(ge=1, le=7)
    gut_feeling: Optional[int] = Field(default=None, ge=0, le=100)
    starting_projects: Optional[int] = Field(default=None, ge=1, le=5)
    handling_obstacles: Optional[int] = Field(default=None, ge=1, le=5)
    industry_trends: Optional[int] = Field(default=None, ge=1, le=5)
    competitive: Optional[int] = Field(default=None, ge=1, le=5)
    business_models: Optional[int] = Field(default=None, ge=1, le=5)

    blog: str = ""
    twitter: str = ""
    projects: str = ""

    @field_validator(
        "importance", "readiness", "timeline", "financial", "intensity",
        "risk_tolerance", "decision_level", "time_commitment", "learning_style",
    )
    @classmethod
    def _known_choice(cls, value, info):
        if value is None:
            return value
        choices = CATEGORICAL_CHOICES[info.field_name]
        if value not in choices:
            raise ValueError(f"must be one of {', '.join(choices)}")
        return value


def validate_submission(data: Mapping[str, Any]) -> QuestionnaireResponse:
    """Reject incomplete or malformed submissions, else return the response.

    Raises InputValidationError listing every offending field.
    """
    if not isinstance(data, Mapping):
        raise InputValidationError("Submission must be a mapping of answers")
    normalized = {_snake(str(k)): v for k, v in data.items()}
    try:
        submission = QuestionnaireSubmission.model_validate(normalized)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise InputValidationError("Invalid questionnaire submission", errors=errors) from exc
    return QuestionnaireResponse.from_mapping(submission.model_dump())
