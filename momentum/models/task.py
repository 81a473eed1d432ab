"""Goal / Task model for stage content.

Tasks are created when a stage's content is (re)generated and are mutated
by completion events and by the adaptation engine (pending tasks only).
Status only ever moves forward.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Optional

from momentum.errors import InvalidTransition


MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MICRO_SUFFIX = "_micro"


class TaskStatus:
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    RESOLVED = (COMPLETED, SKIPPED)
    ALL = (PENDING, IN_PROGRESS, COMPLETED, SKIPPED)


# status -> statuses it may move to
_FORWARD = {
    TaskStatus.PENDING: (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.SKIPPED),
    TaskStatus.IN_PROGRESS: (TaskStatus.COMPLETED, TaskStatus.SKIPPED),
    TaskStatus.COMPLETED: (),
    TaskStatus.SKIPPED: (),
}


class ContentSource:
    GENERATED = "generated"
    FALLBACK = "fallback"


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    status: str = TaskStatus.PENDING
    scheduled_date: str = ""        # ISO date
    completed_at: str = ""          # ISO 8601
    difficulty: int = 3             # 1-5
    estimated_minutes: int = 15
    reflection: str = ""
    adaptations: list = field(default_factory=list)   # applied action types

    @property
    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.status in TaskStatus.RESOLVED

    @property
    def is_micro(self) -> bool:
        return self.id.endswith(MICRO_SUFFIX)

    def is_due(self, as_of: Optional[date]) -> bool:
        """True once the scheduled day has arrived (always when as_of is None)."""
        if as_of is None or not self.scheduled_date:
            return True
        try:
            return date.fromisoformat(self.scheduled_date[:10]) <= as_of
        except ValueError:
            return True

    def transition(self, status: str, when: datetime, reflection: Optional[str] = None) -> bool:
        """Move the task forward. Returns False when it is already in ``status``.

        Raises InvalidTransition for unknown or backward moves.
        """
        if status not in _FORWARD:
            raise InvalidTransition(f"Unknown task status {status!r}")
        if status == self.status:
            if reflection:
                self.reflection = reflection
            return False
        if status not in _FORWARD[self.status]:
            raise InvalidTransition(
                f"Task {self.id}: cannot move from {self.status} to {status}"
            )
        self.status = status
        if status == TaskStatus.COMPLETED:
            self.completed_at = when.isoformat()
        if reflection:
            self.reflection = reflection
        return True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Task:
        data = dict(data)
        if "difficulty" in data:
            data["difficulty"] = int(data["difficulty"])
        if "estimated_minutes" in data:
            data["estimated_minutes"] = int(data["estimated_minutes"])
        data["adaptations"] = list(data.get("adaptations") or [])
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Goal:
    id: str
    title: str
    tasks: list = field(default_factory=list)    # list[Task]

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "tasks": [t.to_dict() for t in self.tasks]}

    @classmethod
    def from_dict(cls, data: dict) -> Goal:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
        )


@dataclass
class StageContent:
    """Goals and tasks for one stage of one user's journey."""

    stage: int
    goals: list = field(default_factory=list)    # list[Goal]
    source: str = ContentSource.GENERATED
    generated_at: str = ""
    adaptation_context: dict = field(default_factory=dict)

    def all_tasks(self) -> list[Task]:
        return [t for g in self.goals for t in g.tasks]

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.all_tasks():
            if task.id == task_id:
                return task
        return None

    @property
    def total_tasks(self) -> int:
        return len(self.all_tasks())

    @property
    def completed_tasks(self) -> int:
        return sum(1 for t in self.all_tasks() if t.status == TaskStatus.COMPLETED)

    @property
    def completion_rate(self) -> float:
        total = self.total_tasks
        if total == 0:
            return 0.0
        return self.completed_tasks / total

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "goals": [g.to_dict() for g in self.goals],
            "source": self.source,
            "generated_at": self.generated_at,
            "adaptation_context": dict(self.adaptation_context),
        }

    @classmethod
    def from_dict(cls, data: dict) -> StageContent:
        return cls(
            stage=int(data["stage"]),
            goals=[Goal.from_dict(g) for g in data.get("goals", [])],
            source=data.get("source", ContentSource.GENERATED),
            generated_at=data.get("generated_at", ""),
            adaptation_context=dict(data.get("adaptation_context") or {}),
        )
