"""Stage progression — the per-user 7-stage state machine.

States are stages 1..7 plus terminal ``graduated`` (reachable only from 7).
Every mutating operation follows the same cycle: load state and content,
decide, write both back in one optimistic-concurrency transaction. On a
conflict the cycle re-runs from a fresh read; if that read shows the stage
already moved, the caller is told so instead of acting twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional, Union

from momentum.config import settings
from momentum.config.stages import STAGES, StageDefinition, build_stage_table
from momentum.engine.adaptation import AdaptationEngine
from momentum.engine.fallback import reschedule_pending
from momentum.engine.patterns import PatternAnalyzer
from momentum.errors import ConcurrencyConflict, ConfigurationError, InvalidTransition
from momentum.models.adaptation import Action, ActionType, AdaptationOutcome
from momentum.models.journey import (
    GRADUATED,
    StageHistoryEntry,
    UserJourneyState,
    stage_index,
)
from momentum.models.task import ContentSource, StageContent
from momentum.services.content_generator import ContentGenerator, GuardedGenerator
from momentum.services.journey_store import JourneyStore
from momentum.services.requirements import RequirementRegistry

logger = logging.getLogger(__name__)

# what the coaching-style failure actions ask of the adaptation engine
RECOVERY_ACTIONS = (
    Action(ActionType.REDUCE_DIFFICULTY, "moderate"),
    Action(ActionType.ADD_MICRO_TASKS, 3),
)


class TransitionOutcome(str, Enum):
    ADVANCED = "advanced"
    GRADUATED = "graduated"
    RETRIED = "retried"
    NO_CHANGE = "no_change"
    ALREADY_ADVANCED = "already_advanced"
    ALREADY_GRADUATED = "already_graduated"


@dataclass(frozen=True)
class TransitionResult:
    outcome: TransitionOutcome
    from_stage: Union[int, str]
    to_stage: Union[int, str]
    completion_rate: float = 0.0
    rewards: tuple = ()
    features: tuple = ()    # unlocked by the stage now active
    reasons: tuple = ()
    used_fallback: bool = False

    @property
    def changed(self) -> bool:
        return self.outcome in (
            TransitionOutcome.ADVANCED,
            TransitionOutcome.GRADUATED,
            TransitionOutcome.RETRIED,
        )

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "completion_rate": self.completion_rate,
            "rewards": list(self.rewards),
            "features": list(self.features),
            "reasons": list(self.reasons),
            "used_fallback": self.used_fallback,
        }


@dataclass(frozen=True)
class RequirementCheck:
    completion_rate: float
    reflections: int
    unmet: tuple = ()

    @property
    def met(self) -> bool:
        return not self.unmet


@dataclass
class _Step:
    """What one load-decide cycle produced."""

    result: object
    write: bool = False
    content: Optional[StageContent] = None


class StageProgressionEngine:
    def __init__(
        self,
        store: JourneyStore,
        content_generator: Optional[ContentGenerator] = None,
        requirements: Optional[RequirementRegistry] = None,
        stages: Union[Iterable[StageDefinition], Mapping[int, StageDefinition]] = STAGES,
        adaptation_engine: Optional[AdaptationEngine] = None,
        pattern_analyzer: Optional[PatternAnalyzer] = None,
        generation_timeout: float = settings.CONTENT_GENERATION_TIMEOUT,
        max_retries: int = settings.TRANSITION_MAX_RETRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if isinstance(stages, Mapping):
            stages = stages.values()
        self.stages = build_stage_table(tuple(stages))
        self.requirements = requirements if requirements is not None else RequirementRegistry()
        missing = self.requirements.missing_for(self.stages.values())
        if missing:
            logger.error("No checker registered for stage requirements: %s", ", ".join(missing))
            raise ConfigurationError(f"Missing requirement checkers: {', '.join(missing)}")

        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.generator = GuardedGenerator(content_generator, generation_timeout)
        self.adaptation = adaptation_engine or AdaptationEngine(clock=self.clock)
        self.patterns = pattern_analyzer or PatternAnalyzer()
        self.max_retries = max_retries

    # ═══════════════════════════════════════════════════════════════════════
    # Operations
    # ═══════════════════════════════════════════════════════════════════════

    def initialize_journey(
        self,
        user_id: str,
        user_profile: Optional[dict] = None,
        belief_score: Optional[float] = None,
    ) -> UserJourneyState:
        """Create the journey at stage 1 with freshly generated content.

        Idempotent: an existing journey is returned untouched.
        """
        if self.store.exists(user_id):
            return self.store.load(user_id)

        now = self.clock()
        state = UserJourneyState(
            user_id=user_id,
            current_stage=1,
            stage_start_date=now.isoformat(),
            user_profile=dict(user_profile or {}),
        )
        state.record_belief(settings.DEFAULT_BELIEF_SCORE if belief_score is None else belief_score, now)
        content = self.generator.stage_content(self.stages[1], state.user_profile, now)
        try:
            self.store.create(state, content)
        except ConcurrencyConflict:
            logger.info("Journey for %s was initialized concurrently", user_id)
            return self.store.load(user_id)
        logger.info("Initialized journey for %s (content source: %s)", user_id, content.source)
        return state

    def evaluate(self, user_id: str, expected_stage: Optional[Union[int, str]] = None) -> TransitionResult:
        """Advance, graduate, retry or leave the active stage alone."""
        return self._run(user_id, lambda state, content: self._evaluate(state, content, expected_stage),
                         report_moved=True)

    def record_task_status(
        self,
        user_id: str,
        task_id: str,
        status: str,
        reflection: Optional[str] = None,
    ) -> TransitionResult:
        """Move a task forward, then evaluate.

        A non-empty reflection also counts toward the stage's reflections.
        Raises InvalidTransition for backward moves or unknown tasks.
        """
        def _record(state: UserJourneyState, content: Optional[StageContent]) -> _Step:
            if state.is_graduated:
                raise InvalidTransition(f"Journey for {user_id} has graduated")
            task = content.find_task(task_id) if content is not None else None
            if task is None:
                raise InvalidTransition(f"Task {task_id} is not part of stage {state.current_stage}")
            changed = task.transition(status, self.clock(), reflection)
            if reflection:
                state.add_reflection(state.current_stage)
            return _Step(result=None, write=changed or bool(reflection), content=content)

        self._run(user_id, _record)
        return self.evaluate(user_id)

    def record_reflection(self, user_id: str, belief_score: Optional[float] = None) -> TransitionResult:
        def _reflect(state: UserJourneyState, content: Optional[StageContent]) -> _Step:
            if not state.is_graduated:
                state.add_reflection(state.current_stage)
            if belief_score is not None:
                state.record_belief(belief_score, self.clock())
            return _Step(result=None, write=True)

        self._run(user_id, _reflect)
        return self.evaluate(user_id)

    def adapt(self, user_id: str, engagement_signals: Optional[Mapping[str, float]] = None) -> list[AdaptationOutcome]:
        """Classify behavior and re-tune the active stage's pending tasks."""
        def _adapt(state: UserJourneyState, content: Optional[StageContent]) -> _Step:
            if state.is_graduated or content is None:
                return _Step(result=[])
            stage = self.stages[state.current_stage]
            now = self.clock()
            pattern = self.patterns.classify(content.all_tasks(), state.belief_scores(),
                                             engagement_signals, as_of=now)
            actions = self.adaptation.determine_actions(pattern, stage.adaptation_rules)
            if not actions:
                return _Step(result=[])
            outcomes = self.adaptation.apply_actions(content, actions, state, trigger=pattern.trigger)
            return _Step(result=outcomes, write=True, content=content)

        return self._run(user_id, _adapt)

    def check_requirements(self, state: UserJourneyState, content: Optional[StageContent]) -> RequirementCheck:
        stage = self.stages[state.current_stage]
        rate = content.completion_rate if content is not None else 0.0
        reflections = state.reflections_for(stage.id)
        unmet = []
        if rate < stage.completion_threshold:
            unmet.append(f"completion {rate:.2f} below {stage.completion_threshold:.2f}")
        if reflections < stage.min_reflections:
            unmet.append(f"reflections {reflections} of {stage.min_reflections}")
        unmet.extend(f"requirement {name} not met"
                     for name in self.requirements.unmet(stage, state.user_id))
        return RequirementCheck(completion_rate=rate, reflections=reflections, unmet=tuple(unmet))

    # ═══════════════════════════════════════════════════════════════════════
    # Transition logic
    # ═══════════════════════════════════════════════════════════════════════

    def _evaluate(self, state: UserJourneyState, content: Optional[StageContent],
                  expected_stage: Optional[Union[int, str]]) -> _Step:
        if state.is_graduated:
            return _Step(TransitionResult(TransitionOutcome.ALREADY_GRADUATED, GRADUATED, GRADUATED))
        if expected_stage is not None and stage_index(expected_stage) != state.stage_ordinal:
            return _Step(TransitionResult(TransitionOutcome.ALREADY_ADVANCED,
                                          expected_stage, state.current_stage))

        stage = self.stages[state.current_stage]
        check = self.check_requirements(state, content)
        now = self.clock()

        if check.met:
            context = self._adaptation_context(state, content, now)
            self._close_stage(state, stage, check.completion_rate, now)
            if stage.is_final:
                state.current_stage = GRADUATED
                logger.info("User %s graduated from stage %d", state.user_id, stage.id)
                return _Step(
                    TransitionResult(TransitionOutcome.GRADUATED, stage.id, GRADUATED,
                                     check.completion_rate, stage.unlock_rewards),
                    write=True,
                )
            nxt = self.stages[stage.id + 1]
            state.current_stage = nxt.id
            new_content = self.generator.stage_content(nxt, state.user_profile, now, context)
            logger.info("User %s advanced from stage %d to %d", state.user_id, stage.id, nxt.id)
            return _Step(
                TransitionResult(TransitionOutcome.ADVANCED, stage.id, nxt.id, check.completion_rate,
                                 stage.unlock_rewards, nxt.unlock_features,
                                 used_fallback=new_content.source == ContentSource.FALLBACK),
                write=True,
                content=new_content,
            )

        if now - state.stage_started_at() >= timedelta(days=stage.duration):
            return self._fail_stage(state, content, stage, check, now)

        return _Step(TransitionResult(TransitionOutcome.NO_CHANGE, stage.id, stage.id,
                                      check.completion_rate, reasons=check.unmet))

    def _close_stage(self, state: UserJourneyState, stage: StageDefinition, rate: float, now: datetime) -> None:
        state.stage_history.append(StageHistoryEntry(
            stage=stage.id,
            start_date=state.stage_start_date,
            end_date=now.isoformat(),
            completed=True,
            completion_rate=rate,
            retry_count=state.retry_count,
        ))
        state.stage_start_date = now.isoformat()
        state.retry_count = 0

    def _fail_stage(self, state: UserJourneyState, content: Optional[StageContent],
                    stage: StageDefinition, check: RequirementCheck, now: datetime) -> _Step:
        action = stage.failure_action
        state.retry_count += 1
        state.stage_start_date = now.isoformat()
        used_fallback = False

        if action.regenerates_content or content is None:
            context = self._adaptation_context(state, content, now)
            context["failure_action"] = action.value
            content = self.generator.stage_content(
                stage, state.user_profile, now, context, goal_count=max(1, stage.goal_count - 1),
            )
            used_fallback = content.source == ContentSource.FALLBACK
        else:
            self.adaptation.apply_actions(content, RECOVERY_ACTIONS, state, trigger=f"failure:{action.value}")
            reschedule_pending(content, stage, now)

        logger.info("User %s missed stage %d requirements; %s (retry %d)",
                    state.user_id, stage.id, action.value, state.retry_count)
        return _Step(
            TransitionResult(TransitionOutcome.RETRIED, stage.id, stage.id, check.completion_rate,
                             reasons=check.unmet, used_fallback=used_fallback),
            write=True,
            content=content,
        )

    def _adaptation_context(self, state: UserJourneyState, content: Optional[StageContent],
                            now: datetime) -> dict:
        tasks = content.all_tasks() if content is not None else []
        pattern = self.patterns.classify(tasks, state.belief_scores(), None, as_of=now)
        return {
            "belief_score": state.belief_score,
            "retry_count": state.retry_count,
            "pattern": pattern.to_dict(),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # Optimistic concurrency
    # ═══════════════════════════════════════════════════════════════════════

    def _run(self, user_id: str, decide: Callable, report_moved: bool = False):
        """Load → decide → save, re-running from a fresh read on conflict."""
        first_stage = None
        conflict: Optional[ConcurrencyConflict] = None
        for attempt in range(self.max_retries + 1):
            state = self.store.load(user_id)
            content = self.store.load_content(user_id)
            if first_stage is None:
                first_stage = state.current_stage
            elif report_moved and state.current_stage != first_stage:
                outcome = (TransitionOutcome.ALREADY_GRADUATED if state.is_graduated
                           else TransitionOutcome.ALREADY_ADVANCED)
                return TransitionResult(outcome, first_stage, state.current_stage)

            step = decide(state, content)
            if not step.write:
                return step.result
            try:
                self.store.save(state, step.content)
                return step.result
            except ConcurrencyConflict as exc:
                conflict = exc
                logger.warning("Concurrent update to journey %s (attempt %d/%d); retrying",
                               user_id, attempt + 1, self.max_retries + 1)
        raise conflict
