"""Adaptation engine — maps a behavior pattern to content mutations.

Only pending tasks are ever touched. Each task remembers the action types
already applied to it, so replaying the same actions is a no-op. Every
application, whether it changed anything or not, is appended to the
journey's adaptation history.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional, Sequence

from momentum.config.stages import DEFAULT_ADAPTATION_RULES
from momentum.models.adaptation import (
    Action,
    ActionType,
    AdaptationOutcome,
    BehaviorPattern,
)
from momentum.models.journey import AdaptationRecord, UserJourneyState
from momentum.models.task import (
    MAX_DIFFICULTY,
    MICRO_SUFFIX,
    MIN_DIFFICULTY,
    StageContent,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS = {
    ActionType.REDUCE_DIFFICULTY: "moderate",
    ActionType.INCREASE_CHALLENGE: "moderate",
    ActionType.ADD_MICRO_TASKS: 3,
    ActionType.SIMPLIFY_INSTRUCTIONS: None,
}

# difficulty steps per intensity parameter
DIFFICULTY_STEPS = {"mild": 1, "moderate": 1, "significant": 2}

MICRO_TASK_MINUTES = 5
INSTRUCTION_LIMIT = 120

_FIRST_SENTENCE = re.compile(r"^(.+?[.!?])(\s|$)", re.S)


def first_sentence(text: str, limit: int = INSTRUCTION_LIMIT) -> str:
    text = " ".join(text.split())
    match = _FIRST_SENTENCE.match(text)
    sentence = match.group(1) if match else text
    if len(sentence) > limit:
        sentence = sentence[: limit - 3].rstrip() + "..."
    return sentence


def _micro_task_count(parameter) -> int:
    default = DEFAULT_PARAMETERS[ActionType.ADD_MICRO_TASKS]
    if parameter is None:
        return default
    try:
        count = int(parameter)
    except (TypeError, ValueError):
        logger.warning("Invalid micro task count %r, using %d", parameter, default)
        return default
    return count if count > 0 else default


class AdaptationEngine:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._handlers = {
            ActionType.REDUCE_DIFFICULTY: self._reduce_difficulty,
            ActionType.INCREASE_CHALLENGE: self._increase_challenge,
            ActionType.ADD_MICRO_TASKS: self._add_micro_tasks,
            ActionType.SIMPLIFY_INSTRUCTIONS: self._simplify_instructions,
        }

    # ── Selection ────────────────────────────────────────────────────────

    def determine_actions(
        self,
        pattern: BehaviorPattern,
        rules: Optional[Mapping] = None,
    ) -> list[Action]:
        """Ranked actions for the pattern's performance category."""
        table = rules if rules is not None else DEFAULT_ADAPTATION_RULES
        return [
            Action(action_type, DEFAULT_PARAMETERS[action_type])
            for action_type in table.get(pattern.performance_category, ())
        ]

    # ── Application ──────────────────────────────────────────────────────

    def apply_actions(
        self,
        content: StageContent,
        actions: Sequence[Action],
        journey: Optional[UserJourneyState] = None,
        trigger: str = "",
    ) -> list[AdaptationOutcome]:
        outcomes = []
        for action in actions:
            outcome = self._handlers[action.type](content, action)
            outcomes.append(outcome)
            if journey is not None:
                journey.adaptation_history.append(AdaptationRecord(
                    date=self.clock().isoformat(),
                    trigger=trigger,
                    action=action.type.value,
                    parameter=action.parameter,
                    applied=outcome.applied,
                ))
            if outcome.applied:
                logger.info(
                    "Applied %s(%s) to %d task(s) in stage %s",
                    action.type.value, action.parameter,
                    len(outcome.affected_task_ids), content.stage,
                )
            else:
                logger.debug("Skipped %s: %s", action.type.value, outcome.reason)
        return outcomes

    @staticmethod
    def _targets(content: StageContent, action_type: ActionType) -> list[Task]:
        return [
            t for t in content.all_tasks()
            if t.status == TaskStatus.PENDING
            and not t.is_micro
            and action_type.value not in t.adaptations
        ]

    @staticmethod
    def _outcome(action: Action, touched: list[Task]) -> AdaptationOutcome:
        for task in touched:
            task.adaptations.append(action.type.value)
        return AdaptationOutcome(
            action=action,
            applied=bool(touched),
            affected_task_ids=[t.id for t in touched],
            reason="" if touched else "no eligible pending tasks",
        )

    def _shift_difficulty(self, content: StageContent, action: Action, direction: int) -> AdaptationOutcome:
        intensity = action.parameter if isinstance(action.parameter, str) else ""
        step = DIFFICULTY_STEPS.get(intensity, 1) * direction
        touched = []
        for task in self._targets(content, action.type):
            task.difficulty = max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, task.difficulty + step))
            touched.append(task)
        return self._outcome(action, touched)

    def _reduce_difficulty(self, content: StageContent, action: Action) -> AdaptationOutcome:
        return self._shift_difficulty(content, action, -1)

    def _increase_challenge(self, content: StageContent, action: Action) -> AdaptationOutcome:
        return self._shift_difficulty(content, action, +1)

    def _simplify_instructions(self, content: StageContent, action: Action) -> AdaptationOutcome:
        touched = []
        for task in self._targets(content, action.type):
            if task.description:
                task.description = first_sentence(task.description)
            touched.append(task)
        return self._outcome(action, touched)

    def _add_micro_tasks(self, content: StageContent, action: Action) -> AdaptationOutcome:
        count = _micro_task_count(action.parameter)
        existing = {t.id for t in content.all_tasks()}
        touched = []
        for goal in content.goals:
            for parent in list(goal.tasks):
                if len(touched) >= count:
                    break
                if (parent.status != TaskStatus.PENDING or parent.is_micro
                        or ActionType.ADD_MICRO_TASKS.value in parent.adaptations):
                    continue
                micro_id = f"{parent.id}{MICRO_SUFFIX}"
                if micro_id in existing:
                    continue
                micro = Task(
                    id=micro_id,
                    title=f"First step: {parent.title}",
                    description=f"Spend five minutes on the smallest possible start of \"{parent.title}\".",
                    scheduled_date=parent.scheduled_date,
                    difficulty=MIN_DIFFICULTY,
                    estimated_minutes=MICRO_TASK_MINUTES,
                )
                goal.tasks.insert(goal.tasks.index(parent), micro)
                existing.add(micro_id)
                touched.append(parent)
        return self._outcome(action, touched)
