"""Behavior pattern classification — pure functions over journey history.

Classifies task performance, belief trajectory and engagement into the
categories the adaptation engine keys its rules on. Nothing here is stored;
patterns are recomputed on every call.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence, Union

from momentum.models.adaptation import (
    BehaviorPattern,
    BeliefCategory,
    EngagementCategory,
    PerformanceCategory,
)
from momentum.models.task import Task, TaskStatus

RECENT_WINDOW = 7
BELIEF_TREND_WINDOW = 3
BELIEF_TREND_THRESHOLD = 0.1
DEFAULT_BELIEF = 0.5

# (lower bound inclusive, category), checked top-down
PERFORMANCE_BANDS = (
    (0.9, PerformanceCategory.HIGH_PERFORMER),
    (0.7, PerformanceCategory.CONSISTENT_PERFORMER),
    (0.5, PerformanceCategory.DEVELOPING_PERFORMER),
)

# (lower bound exclusive, category)
BELIEF_BANDS = (
    (0.8, BeliefCategory.HIGH),
    (0.6, BeliefCategory.MEDIUM),
    (0.4, BeliefCategory.LOW_MEDIUM),
)

ENGAGEMENT_BANDS = (
    (0.7, EngagementCategory.HIGH),
    (0.4, EngagementCategory.MEDIUM),
)


def considered_tasks(tasks: Iterable[Task], as_of: Optional[date] = None) -> list[Task]:
    """Resolved tasks plus any already due; future pending work is ignored."""
    return [t for t in tasks if t.is_resolved or t.is_due(as_of)]


def chronological(tasks: Iterable[Task]) -> list[Task]:
    """Order by scheduled day, then completion time; ties keep goal order."""
    return sorted(tasks, key=lambda t: (t.scheduled_date[:10], t.completed_at))


def _completion_rate(tasks: Sequence[Task]) -> float:
    if not tasks:
        return 0.0
    return sum(1 for t in tasks if t.status == TaskStatus.COMPLETED) / len(tasks)


def classify_performance(tasks: Sequence[Task]) -> tuple[PerformanceCategory, str, float, float]:
    """Return (category, trend, lifetime rate, recent rate)."""
    if not tasks:
        # nothing to judge yet: stay conservative
        return PerformanceCategory.DEVELOPING_PERFORMER, "stable", 0.0, 0.0

    rate = _completion_rate(tasks)
    recent = _completion_rate(chronological(tasks)[-RECENT_WINDOW:])
    improving = recent >= rate

    category = PerformanceCategory.STRUGGLING_PERFORMER
    for lower, band in PERFORMANCE_BANDS:
        if rate >= lower:
            category = band
            break

    if category == PerformanceCategory.HIGH_PERFORMER:
        trend = "improving" if improving else "declining"
    elif category == PerformanceCategory.CONSISTENT_PERFORMER:
        trend = "improving" if improving else "stable"
    elif category == PerformanceCategory.DEVELOPING_PERFORMER:
        trend = "improving" if improving else "struggling"
    else:
        trend = "needs_support"
    return category, trend, rate, recent


def belief_trend(scores: Sequence[float]) -> str:
    if len(scores) < 2:
        return "stable"
    window = scores[-BELIEF_TREND_WINDOW:]
    change = sum(window) / len(window) - window[0]
    if change > BELIEF_TREND_THRESHOLD:
        return "increasing"
    if change < -BELIEF_TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def classify_belief(scores: Sequence[float]) -> tuple[BeliefCategory, str, float]:
    current = scores[-1] if scores else DEFAULT_BELIEF
    category = BeliefCategory.LOW
    for lower, band in BELIEF_BANDS:
        if current > lower:
            category = band
            break
    return category, belief_trend(scores), current


def classify_engagement(signals: Optional[Mapping[str, float]]) -> EngagementCategory:
    """Band a caller-supplied activity frequency in [0, 1].

    Accepts ``frequency`` directly or ``active_days`` / ``window_days``.
    Missing or unusable signals are treated as medium engagement.
    """
    if not signals:
        return EngagementCategory.MEDIUM
    try:
        if signals.get("frequency") is not None:
            frequency = float(signals["frequency"])
        else:
            active, window = signals.get("active_days"), signals.get("window_days")
            if active is None or not window:
                return EngagementCategory.MEDIUM
            frequency = float(active) / float(window)
    except (TypeError, ValueError, ZeroDivisionError):
        return EngagementCategory.MEDIUM
    for lower, band in ENGAGEMENT_BANDS:
        if frequency >= lower:
            return band
    return EngagementCategory.LOW


def _belief_values(history: Iterable[Union[float, object]]) -> list[float]:
    values = []
    for sample in history or ():
        score = getattr(sample, "score", sample)
        try:
            values.append(float(score))
        except (TypeError, ValueError):
            continue
    return values


class PatternAnalyzer:
    """Stateless classifier; a class so it can be injected and replaced."""

    def classify(
        self,
        task_history: Iterable[Task],
        belief_history: Iterable = (),
        engagement_signals: Optional[Mapping[str, float]] = None,
        as_of: Optional[Union[date, datetime]] = None,
    ) -> BehaviorPattern:
        if isinstance(as_of, datetime):
            as_of = as_of.date()
        tasks = considered_tasks(task_history, as_of)
        category, trend, rate, recent = classify_performance(tasks)
        b_category, b_trend, b_score = classify_belief(_belief_values(belief_history))
        return BehaviorPattern(
            performance_category=category,
            performance_trend=trend,
            completion_rate=rate,
            recent_completion_rate=recent,
            belief_category=b_category,
            belief_trend=b_trend,
            belief_score=b_score,
            engagement_category=classify_engagement(engagement_signals),
            considered_tasks=len(tasks),
        )
