"""The seven program stages.

Stage records are frozen and validated when built; a malformed table raises
ConfigurationError before any journey is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from momentum.errors import ConfigurationError
from momentum.models.adaptation import ActionType, PerformanceCategory


FINAL_STAGE = 7


class SpecialRequirement(str, Enum):
    """Opaque boolean checks supplied by the surrounding application."""

    VISION_QUESTIONNAIRE = "vision_questionnaire"
    WHY_STORY = "why_story"
    STRETCH_TASKS = "stretch_tasks"
    CUSTOM_SCHEDULE = "custom_schedule"
    AI_FEEDBACK_SESSIONS = "ai_feedback_sessions"
    OBSTACLE_STORIES = "obstacle_stories"
    COMEBACK_PLAN = "comeback_plan"
    TRANSFORMATION_EVIDENCE = "transformation_evidence"
    COMMUNITY_REFLECTION = "community_reflection"
    IDENTITY_STORY = "identity_story"
    DREAM_DECLARATION = "dream_declaration"
    MASTERY_EVIDENCE = "mastery_evidence"


class FailureAction(str, Enum):
    """What to do when a stage window elapses without its requirements met."""

    REGENERATE_GOALS = "regenerate_goals"
    REFINE_VISION = "refine_vision"
    PERSISTENCE_COACHING = "persistence_coaching"
    SCHEDULE_OPTIMIZATION = "schedule_optimization"
    RESILIENCE_BOOST = "resilience_boost"
    TRANSFORMATION_SUPPORT = "transformation_support"
    MASTERY_COACHING = "mastery_coaching"

    @property
    def regenerates_content(self) -> bool:
        return self in (FailureAction.REGENERATE_GOALS, FailureAction.REFINE_VISION)


DEFAULT_ADAPTATION_RULES: Mapping[PerformanceCategory, tuple[ActionType, ...]] = MappingProxyType({
    PerformanceCategory.STRUGGLING_PERFORMER: (
        ActionType.REDUCE_DIFFICULTY,
        ActionType.ADD_MICRO_TASKS,
        ActionType.SIMPLIFY_INSTRUCTIONS,
    ),
    PerformanceCategory.HIGH_PERFORMER: (ActionType.INCREASE_CHALLENGE,),
    PerformanceCategory.CONSISTENT_PERFORMER: (),
    PerformanceCategory.DEVELOPING_PERFORMER: (),
})


@dataclass(frozen=True)
class StageDefinition:
    id: int
    name: str
    purpose: str
    duration: int                     # days
    goal_count: int
    tasks_per_goal: int
    completion_threshold: float       # (0, 1]
    min_reflections: int
    special_requirements: frozenset = frozenset()
    unlock_rewards: tuple[str, ...] = ()
    unlock_features: tuple[str, ...] = ()
    failure_action: FailureAction = FailureAction.REGENERATE_GOALS
    adaptation_rules: Mapping = field(default_factory=lambda: DEFAULT_ADAPTATION_RULES)

    def __post_init__(self):
        if not 1 <= self.id <= FINAL_STAGE:
            raise ConfigurationError(f"Stage id {self.id} outside 1..{FINAL_STAGE}")
        if self.duration <= 0 or self.goal_count <= 0 or self.tasks_per_goal <= 0:
            raise ConfigurationError(f"Stage {self.id}: duration and quotas must be positive")
        if not 0 < self.completion_threshold <= 1:
            raise ConfigurationError(
                f"Stage {self.id}: completion_threshold {self.completion_threshold} not in (0, 1]"
            )
        if self.min_reflections < 0:
            raise ConfigurationError(f"Stage {self.id}: min_reflections must be >= 0")
        if not isinstance(self.failure_action, FailureAction):
            raise ConfigurationError(f"Stage {self.id}: unknown failure action {self.failure_action!r}")
        for req in self.special_requirements:
            if not isinstance(req, SpecialRequirement):
                raise ConfigurationError(f"Stage {self.id}: unknown special requirement {req!r}")
        for category, actions in self.adaptation_rules.items():
            if not isinstance(category, PerformanceCategory):
                raise ConfigurationError(f"Stage {self.id}: unknown adaptation pattern {category!r}")
            for action in actions:
                if not isinstance(action, ActionType):
                    raise ConfigurationError(f"Stage {self.id}: unknown adaptation action {action!r}")

    @property
    def total_tasks(self) -> int:
        return self.goal_count * self.tasks_per_goal

    @property
    def is_final(self) -> bool:
        return self.id == FINAL_STAGE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "purpose": self.purpose,
            "duration": self.duration,
            "goal_count": self.goal_count,
            "tasks_per_goal": self.tasks_per_goal,
            "completion_threshold": self.completion_threshold,
            "min_reflections": self.min_reflections,
            "special_requirements": sorted(r.value for r in self.special_requirements),
            "unlock_rewards": list(self.unlock_rewards),
            "unlock_features": list(self.unlock_features),
            "failure_action": self.failure_action.value,
        }


def _rules(**overrides: tuple[ActionType, ...]) -> Mapping:
    rules = dict(DEFAULT_ADAPTATION_RULES)
    for name, actions in overrides.items():
        rules[PerformanceCategory(name)] = actions
    return MappingProxyType(rules)


STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(
        id=1,
        name="3-Day Activation",
        purpose="Establish momentum and set emotional ownership of dream",
        duration=3,
        goal_count=3,
        tasks_per_goal=3,
        completion_threshold=0.7,
        min_reflections=2,
        unlock_rewards=("momentum_badge", "dream_anchor_quote", "progress_visual"),
        failure_action=FailureAction.REGENERATE_GOALS,
        # missed several tasks in the first days: break them down
        adaptation_rules=_rules(developing_performer=(ActionType.ADD_MICRO_TASKS,)),
    ),
    StageDefinition(
        id=2,
        name="5-Day Vision Builder",
        purpose="Move from dreaming to defining the identity shift",
        duration=5,
        goal_count=5,
        tasks_per_goal=3,
        completion_threshold=0.75,
        min_reflections=3,
        special_requirements=frozenset({SpecialRequirement.VISION_QUESTIONNAIRE}),
        unlock_rewards=("vision_builder_badge", "dream_map_visual", "identity_quote_generator"),
        unlock_features=("vision_questionnaire", "identity_tracker"),
        failure_action=FailureAction.REFINE_VISION,
    ),
    StageDefinition(
        id=3,
        name="7-Day Momentum Challenge",
        purpose="Reinforce identity, test persistence",
        duration=7,
        goal_count=6,
        tasks_per_goal=3,
        completion_threshold=0.8,
        min_reflections=5,
        special_requirements=frozenset({SpecialRequirement.WHY_STORY, SpecialRequirement.STRETCH_TASKS}),
        unlock_rewards=("consistency_badge", "momentum_graph", "persistence_story"),
        unlock_features=("why_story_writer", "challenge_tracker"),
        failure_action=FailureAction.PERSISTENCE_COACHING,
    ),
    StageDefinition(
        id=4,
        name="12-Day Discipline Builder",
        purpose="Build structured discipline and routine",
        duration=12,
        goal_count=8,
        tasks_per_goal=4,
        completion_threshold=0.82,
        min_reflections=8,
        special_requirements=frozenset({
            SpecialRequirement.CUSTOM_SCHEDULE,
            SpecialRequirement.AI_FEEDBACK_SESSIONS,
        }),
        unlock_rewards=("discipline_master_badge", "routine_optimizer", "coach_avatar"),
        unlock_features=("schedule_builder", "ai_coach_feedback", "habit_tracker"),
        failure_action=FailureAction.SCHEDULE_OPTIMIZATION,
    ),
    StageDefinition(
        id=5,
        name="15-Day Resilience Training",
        purpose="Build resilience and overcome obstacles",
        duration=15,
        goal_count=10,
        tasks_per_goal=4,
        completion_threshold=0.85,
        min_reflections=10,
        special_requirements=frozenset({
            SpecialRequirement.OBSTACLE_STORIES,
            SpecialRequirement.COMEBACK_PLAN,
        }),
        unlock_rewards=("resilience_warrior_badge", "against_odds_story", "obstacle_crusher"),
        unlock_features=("obstacle_tracker", "resilience_stories", "comeback_planner"),
        failure_action=FailureAction.RESILIENCE_BOOST,
        # a setback mid-stage: recovery focus before more volume
        adaptation_rules=_rules(developing_performer=(ActionType.REDUCE_DIFFICULTY,)),
    ),
    StageDefinition(
        id=6,
        name="18-Day Transformation",
        purpose="Deep transformation and identity shift",
        duration=18,
        goal_count=12,
        tasks_per_goal=5,
        completion_threshold=0.85,
        min_reflections=15,
        special_requirements=frozenset({
            SpecialRequirement.TRANSFORMATION_EVIDENCE,
            SpecialRequirement.COMMUNITY_REFLECTION,
        }),
        unlock_rewards=("transformation_master_badge", "identity_shift_visual", "transformation_story"),
        unlock_features=("transformation_tracker", "evidence_collector", "community_sharing"),
        failure_action=FailureAction.TRANSFORMATION_SUPPORT,
    ),
    StageDefinition(
        id=7,
        name="21-Day Identity Integration",
        purpose="Final identity integration and mastery",
        duration=21,
        goal_count=15,
        tasks_per_goal=5,
        completion_threshold=0.9,
        min_reflections=20,
        special_requirements=frozenset({
            SpecialRequirement.IDENTITY_STORY,
            SpecialRequirement.DREAM_DECLARATION,
            SpecialRequirement.MASTERY_EVIDENCE,
        }),
        unlock_rewards=("dream_master_badge", "identity_integration_certificate", "shareable_declaration"),
        unlock_features=("mastery_tracker", "declaration_creator", "graduation_ceremony"),
        failure_action=FailureAction.MASTERY_COACHING,
    ),
)


def build_stage_table(stages: tuple[StageDefinition, ...] = STAGES) -> Mapping[int, StageDefinition]:
    """Index stages by id, requiring exactly one record for each of 1..7."""
    table: dict[int, StageDefinition] = {}
    for stage in stages:
        if stage.id in table:
            raise ConfigurationError(f"Duplicate definition for stage {stage.id}")
        table[stage.id] = stage
    missing = set(range(1, FINAL_STAGE + 1)) - set(table)
    if missing:
        raise ConfigurationError(f"Missing stage definitions: {sorted(missing)}")
    return MappingProxyType(table)


STAGE_TABLE: Mapping[int, StageDefinition] = build_stage_table()
