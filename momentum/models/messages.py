"""Typed event and report payloads exchanged with the surrounding application.

Pydantic models give schema validation and JSON serialization at the edge;
the engines work with the plain dataclasses in the sibling modules.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from momentum.models.task import TaskStatus


class TaskStatusEvent(BaseModel):
    """A user moved one of their tasks."""
    user_id: str
    task_id: str
    status: str              # in_progress | completed | skipped
    reflection: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in TaskStatus.ALL:
            raise ValueError(f"status must be one of {', '.join(TaskStatus.ALL)}")
        return value


class ReflectionEvent(BaseModel):
    """A user wrote a reflection, optionally rating their belief."""
    user_id: str
    belief_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    text: str = ""


class EngagementSignals(BaseModel):
    """Activity frequency supplied by the caller for engagement banding."""
    frequency: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    active_days: Optional[int] = Field(default=None, ge=0)
    window_days: Optional[int] = Field(default=None, gt=0)


class TransitionReport(BaseModel):
    """Outcome of a stage evaluation, ready for the caller to render."""
    user_id: str
    outcome: str             # advanced | graduated | retried | no_change | already_*
    from_stage: Union[int, str]
    to_stage: Union[int, str]
    completion_rate: float
    rewards: list[str] = []
    features: list[str] = []
    reasons: list[str] = []
    used_fallback: bool = False
