"""Per-user journey aggregate.

``current_stage`` and ``stage_start_date`` are only mutated by the stage
progression engine. History lists are append-only. ``version`` is the
optimistic-concurrency sequence maintained by the journey store.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Union

GRADUATED = "graduated"
GRADUATED_INDEX = 8


def stage_index(stage: Union[int, str]) -> int:
    """Ordinal for comparisons: stages 1..7, graduated sorts after 7."""
    if stage == GRADUATED:
        return GRADUATED_INDEX
    return int(stage)


@dataclass
class StageHistoryEntry:
    stage: int
    start_date: str
    end_date: str
    completed: bool
    completion_rate: float
    retry_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> StageHistoryEntry:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class AdaptationRecord:
    date: str
    trigger: str
    action: str
    parameter: object = None
    applied: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> AdaptationRecord:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class BeliefSample:
    date: str
    score: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UserJourneyState:
    user_id: str
    current_stage: Union[int, str] = 1
    stage_start_date: str = ""
    belief_score: float = 0.5
    belief_history: list = field(default_factory=list)       # list[BeliefSample]
    stage_history: list = field(default_factory=list)        # list[StageHistoryEntry]
    adaptation_history: list = field(default_factory=list)   # list[AdaptationRecord]
    reflection_counts: dict = field(default_factory=dict)    # str(stage) -> count
    retry_count: int = 0
    user_profile: dict = field(default_factory=dict)
    version: int = 0

    @property
    def is_graduated(self) -> bool:
        return self.current_stage == GRADUATED

    @property
    def stage_ordinal(self) -> int:
        return stage_index(self.current_stage)

    def reflections_for(self, stage: int) -> int:
        return int(self.reflection_counts.get(str(stage), 0))

    def add_reflection(self, stage: int) -> int:
        count = self.reflections_for(stage) + 1
        self.reflection_counts[str(stage)] = count
        return count

    def record_belief(self, score: float, when: datetime) -> None:
        score = min(1.0, max(0.0, float(score)))
        self.belief_score = score
        self.belief_history.append(BeliefSample(date=when.isoformat(), score=score))

    def belief_scores(self) -> list[float]:
        return [s.score for s in self.belief_history]

    def stage_started_at(self) -> datetime:
        return datetime.fromisoformat(self.stage_start_date)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "current_stage": self.current_stage,
            "stage_start_date": self.stage_start_date,
            "belief_score": self.belief_score,
            "belief_history": [s.to_dict() for s in self.belief_history],
            "stage_history": [h.to_dict() for h in self.stage_history],
            "adaptation_history": [a.to_dict() for a in self.adaptation_history],
            "reflection_counts": dict(self.reflection_counts),
            "retry_count": self.retry_count,
            "user_profile": dict(self.user_profile),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> UserJourneyState:
        stage = data.get("current_stage", 1)
        if stage != GRADUATED:
            stage = int(stage)
        return cls(
            user_id=data["user_id"],
            current_stage=stage,
            stage_start_date=data.get("stage_start_date", ""),
            belief_score=float(data.get("belief_score", 0.5)),
            belief_history=[BeliefSample(**s) for s in data.get("belief_history", [])],
            stage_history=[StageHistoryEntry.from_dict(h) for h in data.get("stage_history", [])],
            adaptation_history=[AdaptationRecord.from_dict(a) for a in data.get("adaptation_history", [])],
            reflection_counts={str(k): int(v) for k, v in (data.get("reflection_counts") or {}).items()},
            retry_count=int(data.get("retry_count", 0)),
            user_profile=dict(data.get("user_profile") or {}),
            version=int(data.get("version", 0)),
        )
