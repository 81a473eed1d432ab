"""Behavior pattern and adaptation action models.

Shared by the pattern analyzer, the adaptation engine and the stage
definitions (which carry per-stage adaptation rules).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class PerformanceCategory(str, Enum):
    HIGH_PERFORMER = "high_performer"
    CONSISTENT_PERFORMER = "consistent_performer"
    DEVELOPING_PERFORMER = "developing_performer"
    STRUGGLING_PERFORMER = "struggling_performer"


class BeliefCategory(str, Enum):
    HIGH = "high_belief"
    MEDIUM = "medium_belief"
    LOW_MEDIUM = "low_medium_belief"
    LOW = "low_belief"


class EngagementCategory(str, Enum):
    HIGH = "high_engagement"
    MEDIUM = "medium_engagement"
    LOW = "low_engagement"


class ActionType(str, Enum):
    REDUCE_DIFFICULTY = "reduce_difficulty"
    INCREASE_CHALLENGE = "increase_challenge"
    ADD_MICRO_TASKS = "add_micro_tasks"
    SIMPLIFY_INSTRUCTIONS = "simplify_instructions"


@dataclass(frozen=True)
class Action:
    """A single content mutation chosen in response to a pattern."""

    type: ActionType
    parameter: Optional[Any] = None   # "moderate" | micro task count | None

    def to_dict(self) -> dict:
        return {"type": self.type.value, "parameter": self.parameter}


@dataclass(frozen=True)
class BehaviorPattern:
    """Ephemeral classification, recomputed on every call."""

    performance_category: PerformanceCategory
    performance_trend: str
    completion_rate: float
    recent_completion_rate: float
    belief_category: BeliefCategory
    belief_trend: str
    belief_score: float
    engagement_category: EngagementCategory
    considered_tasks: int = 0

    @property
    def trigger(self) -> str:
        """Short label used in the adaptation audit trail."""
        return f"{self.performance_category.value}/{self.belief_category.value}"

    def to_dict(self) -> dict:
        return {
            "performance": {
                "category": self.performance_category.value,
                "trend": self.performance_trend,
                "completion_rate": self.completion_rate,
                "recent_completion_rate": self.recent_completion_rate,
                "considered_tasks": self.considered_tasks,
            },
            "belief": {
                "category": self.belief_category.value,
                "trend": self.belief_trend,
                "score": self.belief_score,
            },
            "engagement": {"category": self.engagement_category.value},
        }


@dataclass
class AdaptationOutcome:
    """What one action actually did to the stage content."""

    action: Action
    applied: bool
    affected_task_ids: list[str] = field(default_factory=list)
    reason: str = ""
