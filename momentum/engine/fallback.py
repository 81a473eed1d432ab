"""Stage content assembly, scheduling and the local fallback template.

Generated and fallback content share one payload shape::

    {"goals": [{"title": ..., "tasks": [{"name", "estimatedMinutes", "day"}]}]}

``build_stage_content`` turns that payload into Goal/Task records with
stable ids and scheduled dates spread across the stage window.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional

from momentum.config.stages import StageDefinition
from momentum.errors import GenerationError
from momentum.models.task import ContentSource, Goal, StageContent, Task

GOAL_TITLES = (
    "Take the first step",
    "Reflect on your motivation",
    "Create a daily habit",
    "Define what success looks like",
    "Learn one new skill",
    "Connect with someone on the same path",
    "Remove one obstacle",
    "Build a weekly routine",
    "Track your progress",
    "Practice under pressure",
    "Share your work",
    "Plan your comeback",
    "Collect evidence of change",
    "Teach what you learned",
    "Declare your dream",
)

TASK_TEMPLATES = (
    {"name": "Write down your dream",
     "description": "Take 5 minutes to write exactly what you want to achieve.",
     "estimatedMinutes": 5},
    {"name": "Research one aspect",
     "description": "Spend 15 minutes researching one element of your goal.",
     "estimatedMinutes": 15},
    {"name": "Take one small action",
     "description": "Do one small thing that moves you toward your dream.",
     "estimatedMinutes": 20},
    {"name": "Review today's progress",
     "description": "Note what worked and what you will change tomorrow.",
     "estimatedMinutes": 10},
    {"name": "Tell someone about it",
     "description": "Share one step you took with a friend or mentor.",
     "estimatedMinutes": 10},
)

DIFFICULTY_WORDS = {"easy": 2, "medium": 3, "hard": 4}
DEFAULT_DIFFICULTY = 3
DEFAULT_MINUTES = 15


def schedule_offset(task_index: int, total_tasks: int, duration: int) -> int:
    """Day offset for the n-th task of a stage: an even spread over the window."""
    per_day = max(1, math.ceil(total_tasks / max(duration, 1)))
    return min(task_index // per_day, max(duration - 1, 0))


def fallback_payload(stage: StageDefinition, goal_count: Optional[int] = None) -> dict:
    """Deterministic goals/tasks that need no external service."""
    count = goal_count if goal_count is not None else stage.goal_count
    goals = []
    for i in range(count):
        tasks = []
        for j in range(stage.tasks_per_goal):
            template = TASK_TEMPLATES[j % len(TASK_TEMPLATES)]
            tasks.append(dict(template))
        goals.append({"title": GOAL_TITLES[i % len(GOAL_TITLES)], "tasks": tasks})
    return {"goals": goals}


def _difficulty(raw: Any) -> int:
    if isinstance(raw, str):
        return DIFFICULTY_WORDS.get(raw.lower(), DEFAULT_DIFFICULTY)
    try:
        return max(1, min(5, int(raw)))
    except (TypeError, ValueError):
        return DEFAULT_DIFFICULTY


def _minutes(raw: Any) -> int:
    try:
        return max(1, int(raw))
    except (TypeError, ValueError):
        return DEFAULT_MINUTES


def build_stage_content(
    payload: Mapping[str, Any],
    stage: StageDefinition,
    start: datetime,
    source: str = ContentSource.GENERATED,
    adaptation_context: Optional[dict] = None,
) -> StageContent:
    """Validate a goals payload and turn it into scheduled stage content.

    Raises GenerationError when the payload has no usable goals or tasks.
    """
    raw_goals = payload.get("goals") if isinstance(payload, Mapping) else None
    if not isinstance(raw_goals, list) or not raw_goals:
        raise GenerationError("Content payload has no goals")

    start_day: date = start.date()
    total = sum(len(g.get("tasks") or []) for g in raw_goals if isinstance(g, Mapping))
    if total == 0:
        raise GenerationError("Content payload has no tasks")

    goals = []
    index = 0
    for i, raw_goal in enumerate(raw_goals, start=1):
        if not isinstance(raw_goal, Mapping):
            raise GenerationError(f"Goal {i} is not an object")
        goal_id = f"stage{stage.id}_goal_{i}"
        tasks = []
        for j, raw_task in enumerate(raw_goal.get("tasks") or [], start=1):
            if not isinstance(raw_task, Mapping):
                raise GenerationError(f"Task {j} of goal {i} is not an object")
            title = raw_task.get("name") or raw_task.get("title")
            if not title:
                raise GenerationError(f"Task {j} of goal {i} has no name")
            offset = schedule_offset(index, total, stage.duration)
            day = raw_task.get("day")
            if isinstance(day, int) and not isinstance(day, bool) and 1 <= day <= stage.duration:
                offset = day - 1
            tasks.append(Task(
                id=f"{goal_id}_task_{j}",
                title=str(title),
                description=str(raw_task.get("description", "")),
                scheduled_date=(start_day + timedelta(days=offset)).isoformat(),
                difficulty=_difficulty(raw_task.get("difficulty")),
                estimated_minutes=_minutes(raw_task.get("estimatedMinutes")),
            ))
            index += 1
        goals.append(Goal(id=goal_id, title=str(raw_goal.get("title") or f"Goal {i}"), tasks=tasks))

    return StageContent(
        stage=stage.id,
        goals=goals,
        source=source,
        generated_at=start.isoformat(),
        adaptation_context=dict(adaptation_context or {}),
    )


def fallback_content(
    stage: StageDefinition,
    start: datetime,
    goal_count: Optional[int] = None,
    adaptation_context: Optional[dict] = None,
) -> StageContent:
    return build_stage_content(
        fallback_payload(stage, goal_count),
        stage,
        start,
        source=ContentSource.FALLBACK,
        adaptation_context=adaptation_context,
    )


def reschedule_pending(content: StageContent, stage: StageDefinition, start: datetime) -> None:
    """Spread the remaining pending tasks over a restarted stage window."""
    pending = [t for t in content.all_tasks() if t.is_pending]
    for i, task in enumerate(pending):
        offset = schedule_offset(i, len(pending), stage.duration)
        task.scheduled_date = (start.date() + timedelta(days=offset)).isoformat()
