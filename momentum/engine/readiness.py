"""Readiness scoring engine: 8 heuristic dimensions plus synthesis.

Each dimension is a pure function ``(response, analyzer, keywords) ->
DimensionResult``. Every dimension starts at the baseline and applies signed
adjustments; each adjustment carries the insight note it contributes. The
engine folds the adjustments in fixed dimension order, runs one
cross-validation pass over the finished scores, and derives overall score,
risk level, success probability and feedback.

Categorical and rating adjustments are centered, so an unanswered question
(or a midpoint rating) moves nothing.
"""

from __future__ import annotations

import logging
import math
from collections import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from momentum.config.scoring import (
    COMMITMENT_LEVEL,
    DECISION_LEVEL_POINTS,
    DEFAULT_MITIGATION,
    DEFAULT_SCORING_CONFIG,
    DIMENSIONS,
    FINANCIAL_POINTS,
    IMPORTANCE_POINTS,
    IMPORTANCE_URGENCY,
    INTENSITY_LEVEL,
    READINESS_POINTS,
    RISK_MITIGATIONS,
    RISK_TOLERANCE_POINTS,
    TIMELINE_URGENCY,
    ScoringConfig,
)
from momentum.engine.text_signals import TextSignalAnalyzer
from momentum.models.questionnaire import QuestionnaireResponse

logger = logging.getLogger(__name__)


class Bucket(str, Enum):
    STRENGTH = "strengths"
    RED_FLAG = "red_flags"
    INCONSISTENCY = "inconsistencies"
    RISK = "risk_factors"
    FOCUS = "recommended_focus"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Adjustment:
    delta: float
    bucket: Bucket
    note: str


@dataclass(frozen=True)
class DimensionResult:
    score: float
    adjustments: tuple = ()


@dataclass(frozen=True)
class Insights:
    strengths: tuple = ()
    red_flags: tuple = ()
    inconsistencies: tuple = ()
    risk_factors: tuple = ()
    recommended_focus: tuple = ()

    def is_empty(self) -> bool:
        return not any(getattr(self, b.value) for b in Bucket)

    def to_dict(self) -> dict:
        return {b.value: list(getattr(self, b.value)) for b in Bucket}


@dataclass(frozen=True)
class SuccessProbability:
    percentage: int
    confidence: str     # HIGH | MEDIUM


@dataclass(frozen=True)
class Feedback:
    top_strengths: tuple = ()
    critical_issues: tuple = ()
    action_priorities: tuple = ()
    risk_mitigations: tuple = ()    # ({"risk": ..., "mitigation": ...}, ...)

    def to_dict(self) -> dict:
        return {
            "top_strengths": list(self.top_strengths),
            "critical_issues": list(self.critical_issues),
            "action_priorities": list(self.action_priorities),
            "risk_mitigations": [dict(m) for m in self.risk_mitigations],
        }


@dataclass(frozen=True)
class ScoringResult:
    dimension_scores: Mapping[str, float]
    overall: int
    insights: Insights
    risk_level: RiskLevel
    success_probability: SuccessProbability
    feedback: Feedback = field(default_factory=Feedback)
    scored_at: str = ""

    def to_dict(self) -> dict:
        return {
            "dimension_scores": dict(self.dimension_scores),
            "overall": self.overall,
            "insights": self.insights.to_dict(),
            "risk_level": self.risk_level.value,
            "success_probability": {
                "percentage": self.success_probability.percentage,
                "confidence": self.success_probability.confidence,
            },
            "feedback": self.feedback.to_dict(),
            "scored_at": self.scored_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ScoringResult:
        insights = data.get("insights", {})
        feedback = data.get("feedback", {})
        probability = data.get("success_probability", {})
        return cls(
            dimension_scores={k: float(v) for k, v in data.get("dimension_scores", {}).items()},
            overall=int(data.get("overall", 0)),
            insights=Insights(**{b.value: tuple(insights.get(b.value, ())) for b in Bucket}),
            risk_level=RiskLevel(data.get("risk_level", RiskLevel.LOW.value)),
            success_probability=SuccessProbability(
                percentage=int(probability.get("percentage", 0)),
                confidence=probability.get("confidence", "MEDIUM"),
            ),
            feedback=Feedback(
                top_strengths=tuple(feedback.get("top_strengths", ())),
                critical_issues=tuple(feedback.get("critical_issues", ())),
                action_priorities=tuple(feedback.get("action_priorities", ())),
                risk_mitigations=tuple(feedback.get("risk_mitigations", ())),
            ),
            scored_at=data.get("scored_at", ""),
        )


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def label(dimension: str) -> str:
    return dimension.replace("_", " ")


def normalize_keywords(value: Any) -> tuple[str, ...]:
    """Coerce caller-supplied background keywords to a tuple of non-blank strings.

    A bare string is one keyword; anything that is not iterable yields none.
    """
    if isinstance(value, str):
        value = (value,)
    elif not isinstance(value, abc.Iterable):
        return ()
    return tuple(k for k in value if isinstance(k, str) and k.strip())


class _Tally:
    """Collects adjustments for one dimension."""

    def __init__(self):
        self.adjustments: list[Adjustment] = []

    def add(self, delta: float, bucket: Bucket, note: str) -> None:
        if delta != 0:
            self.adjustments.append(Adjustment(delta, bucket, note))

    def signed(self, delta: float, positive: str, negative: str) -> None:
        """Add a centered adjustment whose bucket follows its sign."""
        if delta > 0:
            self.add(delta, Bucket.STRENGTH, positive)
        elif delta < 0:
            self.add(delta, Bucket.RISK, negative)

    def result(self, baseline: float) -> DimensionResult:
        score = baseline + sum(a.delta for a in self.adjustments)
        return DimensionResult(score=clamp(score), adjustments=tuple(self.adjustments))


def _centered(table: Mapping[str, float], answer: Optional[str], center: float) -> float:
    if answer is None or answer not in table:
        return 0.0
    return table[answer] - center


# ═══════════════════════════════════════════════════════════════════════════
# Dimensions
# ═══════════════════════════════════════════════════════════════════════════

def vision_clarity(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                   keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    if r.dream:
        dream = analyzer.analyze(r.dream)
        if dream.word_count < 20:
            t.add(-15, Bucket.RED_FLAG, "Dream description too brief - lacks detail")
        elif dream.word_count > 100:
            t.add(10, Bucket.STRENGTH, "Detailed, comprehensive vision")
        if dream.specificity_score < 0.3:
            t.add(-10, Bucket.RISK, "Dream lacks specificity - too vague")
        if dream.has_numbers:
            t.add(5, Bucket.STRENGTH, "Quantified goals in vision")
        if r.timeline == "sprint" and dream.complexity > 0.7:
            t.add(-8, Bucket.INCONSISTENCY, "Complex goal with unrealistic sprint timeline")

    if r.why:
        why = analyzer.analyze(r.why)
        if why.emotional_intensity < 0.4:
            t.add(-8, Bucket.RISK, "Low emotional connection to goals")
        if why.has_personal_story:
            t.add(8, Bucket.STRENGTH, "Personal connection to goals")

    if r.importance == "obsessed" and r.belief_level is not None and r.belief_level <= 3:
        t.add(-12, Bucket.INCONSISTENCY, "Claims obsession but low belief level")

    t.signed(_centered(IMPORTANCE_POINTS, r.importance, IMPORTANCE_POINTS["interested"]) * 0.2,
             "Treats the goal as a priority",
             "Only casually curious about the goal")

    t.signed((r.rating("belief_level") - 4) * 5,
             "Believes the vision is achievable",
             "Doubts the vision is achievable")

    return t.result(baseline)


def motivation_authenticity(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                            keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    if r.deep_motivation:
        motivation = analyzer.analyze(r.deep_motivation)
        if motivation.word_count < 30:
            t.add(-15, Bucket.RED_FLAG, "Shallow motivation explanation")
        if motivation.emotional_intensity > 0.6:
            t.add(12, Bucket.STRENGTH, "Strong emotional drive")

        if r.why:
            similarity = analyzer.similarity(r.deep_motivation, r.why)
            if similarity < 0.2:
                t.add(-10, Bucket.INCONSISTENCY, "Inconsistent motivation explanations")
            elif similarity > 0.8:
                t.add(-5, Bucket.RISK, "Repetitive motivation - may lack depth")

    if r.timeline in TIMELINE_URGENCY and r.importance in IMPORTANCE_URGENCY:
        gap = abs(TIMELINE_URGENCY[r.timeline] - IMPORTANCE_URGENCY[r.importance])
        if gap >= 2:
            t.add(-8, Bucket.INCONSISTENCY, "Timeline doesn't match importance level")

    if r.risk_tolerance == "avoider" and r.importance == "obsessed":
        t.add(-7, Bucket.INCONSISTENCY, "Risk-averse but pursuing ambitious goals")

    return t.result(baseline)


def execution_readiness(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                        keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    if r.time_reality:
        plan = analyzer.analyze(r.time_reality)
        if plan.word_count < 25:
            t.add(-12, Bucket.RED_FLAG, "Unrealistic time planning")
        if plan.has_schedule_details:
            t.add(10, Bucket.STRENGTH, "Detailed time planning")

    traits = r.work_traits or ()
    if "routine" in traits and r.learning_style == "spontaneous":
        t.add(-6, Bucket.INCONSISTENCY, "Contradictory work style preferences")
    if "perfectionist" in traits and r.timeline == "sprint":
        t.add(-5, Bucket.RISK, "Perfectionist tendencies may slow sprint goals")

    if INTENSITY_LEVEL.get(r.intensity) == 4 and COMMITMENT_LEVEL.get(r.time_commitment) == 1:
        t.add(-10, Bucket.INCONSISTENCY, "Beast mode intensity with micro time commitment")

    t.signed(_centered(READINESS_POINTS, r.readiness, READINESS_POINTS["ready"]) * 0.3,
             "Ready to act now",
             "Still exploring rather than acting")

    starting = r.rating("starting_projects")
    lessons = r.past_lessons.lower()
    finisher = "finish" in lessons or "complete" in lessons
    if starting >= 4 and finisher:
        t.add(12, Bucket.STRENGTH, "Strong execution track record")
    elif starting <= 2:
        t.add(-8, Bucket.RISK, "Weak track record of starting projects")

    return t.result(baseline)


def foundation_strength(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                        keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    if r.why_succeed:
        succeed = analyzer.analyze(r.why_succeed)
        if succeed.word_count < 30:
            t.add(-15, Bucket.RED_FLAG, "Weak foundation - can't articulate strengths")
        if succeed.has_examples:
            t.add(10, Bucket.STRENGTH, "Concrete examples of past success")

    if keywords:
        relevant = analyzer.find_relevant_keywords(r.dream, keywords)
        if not relevant and len(keywords) > 5:
            t.add(-15, Bucket.INCONSISTENCY, "No relevant experience for stated goals")
        elif len(relevant) >= 3:
            t.add(12, Bucket.STRENGTH, "Strong relevant background")

    if r.past_lessons:
        lessons = r.past_lessons.lower()
        if len(r.past_lessons) > 50:
            if "fail" in lessons or "mistake" in lessons:
                t.add(8, Bucket.STRENGTH, "Self-aware from past experiences")
        else:
            t.add(-5, Bucket.RISK, "Limited self-reflection on past attempts")

    t.signed(_centered(DECISION_LEVEL_POINTS, r.decision_level, DECISION_LEVEL_POINTS["tactical"]) * 0.5,
             "Experienced in higher-level decisions",
             "Limited decision-making experience")

    return t.result(baseline)


def knowledge_depth(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                    keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    ratings = (r.rating("industry_trends"), r.rating("competitive"), r.rating("business_models"))
    average = sum(ratings) / len(ratings)
    t.signed((average - 3) * 15, "Solid domain knowledge", "Limited domain knowledge")

    if max(ratings) - min(ratings) > 2:
        t.add(-8, Bucket.INCONSISTENCY, "Uneven domain knowledge - gaps exist")

    if r.real_impact:
        impact = analyzer.analyze(r.real_impact)
        if impact.has_numbers:
            t.add(12, Bucket.STRENGTH, "Quantified past achievements")
        if impact.word_count < 40:
            t.add(-10, Bucket.RED_FLAG, "Limited evidence of real impact")

    if average < 3 and r.importance == "obsessed":
        t.add(-12, Bucket.RISK, "High ambition but low domain knowledge")

    dream = r.dream.lower()
    if "startup" in dream and r.rating("business_models") < 3:
        t.add(-10, Bucket.INCONSISTENCY, "Wants startup but lacks business knowledge")
    if ("lead" in dream or "manage" in dream) and r.decision_level == "execution":
        t.add(-8, Bucket.INCONSISTENCY, "Leadership goals but no leadership experience")

    if keywords:
        evidence = " ".join(s for s in (r.real_impact, r.why_succeed) if s)
        found = analyzer.find_relevant_keywords(evidence, keywords)
        if len(found) >= 3:
            t.add(min(2 * len(found), 10), Bucket.STRENGTH, "Background vocabulary shows up in past impact")

    return t.result(baseline)


def hidden_assets(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                  keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    if r.has_online_presence:
        t.add(8, Bucket.STRENGTH, "Established online presence")

    if r.unique_value is not None:
        if len(r.unique_value) >= 3:
            t.add(10, Bucket.STRENGTH, "Multiple unique value propositions")
        elif not r.unique_value:
            t.add(-8, Bucket.RISK, "No clear unique value identified")

    obstacles = r.rating("handling_obstacles")
    if obstacles >= 4:
        t.add(10, Bucket.STRENGTH, "Strong resilience and problem-solving")
    elif obstacles <= 2:
        t.add(-10, Bucket.RISK, "Poor track record with obstacles")

    t.signed(_centered(RISK_TOLERANCE_POINTS, r.risk_tolerance, RISK_TOLERANCE_POINTS["calculated"]) * 0.2,
             "Comfortable taking risks",
             "Avoids risk")

    if r.rating("starting_projects") >= 4:
        t.add(8, Bucket.STRENGTH, "Proven ability to start new initiatives")

    return t.result(baseline)


def environment_support(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                        keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    t.signed(_centered(FINANCIAL_POINTS, r.financial, 0),
             "Financial room to invest in the goal",
             "Limited financial runway")
    if r.financial == "tight" and r.timeline == "sprint":
        t.add(-8, Bucket.RISK, "Financial constraints may limit quick progress")

    if r.support is not None:
        if not r.support:
            t.add(-12, Bucket.RISK, "No support system identified")
        elif len(r.support) >= 3:
            t.add(10, Bucket.STRENGTH, "Strong support network")
        if "solo" in r.support and len(r.support) > 1:
            t.add(-3, Bucket.INCONSISTENCY, "Claims to prefer solo work but has support system")

    if r.self_doubt:
        doubt = analyzer.analyze(r.self_doubt)
        if doubt.emotional_intensity > 0.7:
            t.add(-10, Bucket.RISK, "High levels of self-doubt")
        if doubt.word_count > 80:
            t.add(-8, Bucket.RISK, "Extensive self-doubt concerns")

    return t.result(baseline)


def psychological_profile(r: QuestionnaireResponse, analyzer: TextSignalAnalyzer,
                          keywords: tuple = (), baseline: float = 50.0) -> DimensionResult:
    t = _Tally()

    belief = r.rating("belief_level")
    gut = r.rating("gut_feeling")
    if abs(belief / 7 * 100 - gut) > 30:
        t.add(-10, Bucket.INCONSISTENCY, "Misalignment between belief and gut feeling")

    if belief >= 6:
        t.add(12, Bucket.STRENGTH, "Strong self-confidence")
    elif belief <= 3:
        t.add(-10, Bucket.RISK, "Low self-belief may hinder progress")

    if r.intensity == "beast" and r.risk_tolerance == "avoider":
        t.add(-8, Bucket.INCONSISTENCY, "High intensity but risk-averse - conflicting traits")

    help_text = r.belief_help.lower()
    if any(w in help_text for w in ("mentor", "learn", "practice")):
        t.add(8, Bucket.STRENGTH, "Growth mindset - seeks improvement")

    return t.result(baseline)


DimensionFn = Callable[..., DimensionResult]

DIMENSION_FUNCTIONS: Mapping[str, DimensionFn] = {
    "vision_clarity": vision_clarity,
    "motivation_authenticity": motivation_authenticity,
    "execution_readiness": execution_readiness,
    "foundation_strength": foundation_strength,
    "knowledge_depth": knowledge_depth,
    "hidden_assets": hidden_assets,
    "environment_support": environment_support,
    "psychological_profile": psychological_profile,
}


# ═══════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════

class ReadinessScoringEngine:
    def __init__(self, config: ScoringConfig = DEFAULT_SCORING_CONFIG,
                 analyzer: Optional[TextSignalAnalyzer] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.analyzer = analyzer or TextSignalAnalyzer(config.vocabulary)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def score(self, responses: Union[QuestionnaireResponse, Mapping[str, Any], None],
              external_keywords: Iterable[str] = ()) -> ScoringResult:
        if not isinstance(responses, QuestionnaireResponse):
            responses = QuestionnaireResponse.from_mapping(responses)
        keywords = normalize_keywords(external_keywords)

        buckets: dict[Bucket, list[str]] = {b: [] for b in Bucket}
        scores: dict[str, float] = {}
        for name, fn in DIMENSION_FUNCTIONS.items():
            result = fn(responses, self.analyzer, keywords, self.config.baseline)
            scores[name] = result.score
            for adj in result.adjustments:
                buckets[adj.bucket].append(adj.note)

        self._cross_validate(scores, buckets)

        weights = self.config.weights.as_dict()
        overall = round_half_up(clamp(sum(scores[d] * weights[d] for d in DIMENSIONS)))

        insights = Insights(**{b.value: tuple(notes) for b, notes in buckets.items()})
        result = ScoringResult(
            dimension_scores=scores,
            overall=overall,
            insights=insights,
            risk_level=self._risk_level(insights),
            success_probability=self._success_probability(overall, insights),
            feedback=self._feedback(scores, insights),
            scored_at=self.clock().isoformat(),
        )
        logger.debug("Scored questionnaire: overall=%s risk=%s", overall, result.risk_level.value)
        return result

    def _cross_validate(self, s: Mapping[str, float], buckets: dict[Bucket, list[str]]) -> None:
        """Relations between finished dimension scores. Adds insights only."""
        if s["motivation_authenticity"] > 70 and s["execution_readiness"] < 40:
            buckets[Bucket.INCONSISTENCY].append("High motivation but poor execution readiness")
        if s["knowledge_depth"] > 70 and s["foundation_strength"] < 40:
            buckets[Bucket.INCONSISTENCY].append("Good knowledge but weak practical foundation")
        if s["psychological_profile"] > 70 and s["environment_support"] < 30:
            buckets[Bucket.RISK].append("High confidence but unsupportive environment")
        if (s["motivation_authenticity"] > 80 and s["knowledge_depth"] < 40
                and s["foundation_strength"] < 40):
            buckets[Bucket.RED_FLAG].append(
                "Potential overconfidence - high motivation despite weak foundation"
            )
        if (s["foundation_strength"] > 70 and s["knowledge_depth"] > 60
                and s["psychological_profile"] < 40):
            buckets[Bucket.FOCUS].append(
                "Building self-confidence - foundation is stronger than belief"
            )

        weakest = min(DIMENSIONS, key=lambda d: s[d])
        if s[weakest] < self.config.risk.weakest_focus_below:
            buckets[Bucket.FOCUS].append(f"Strengthen {label(weakest)}")

    def _risk_level(self, insights: Insights) -> RiskLevel:
        th = self.config.risk
        risk = (len(insights.red_flags) * th.red_flag_weight
                + len(insights.inconsistencies) * th.inconsistency_weight
                + len(insights.risk_factors) * th.risk_factor_weight)
        if risk >= th.high:
            return RiskLevel.HIGH
        if risk >= th.medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def _success_probability(self, overall: int, insights: Insights) -> SuccessProbability:
        th = self.config.risk
        adjusted = (overall
                    - len(insights.red_flags) * th.red_flag_penalty
                    + len(insights.strengths) * th.strength_bonus)
        confidence = "HIGH" if len(insights.inconsistencies) <= th.max_inconsistencies_for_high_confidence else "MEDIUM"
        return SuccessProbability(percentage=int(clamp(adjusted)), confidence=confidence)

    def _feedback(self, scores: Mapping[str, float], insights: Insights) -> Feedback:
        priorities = []
        lowest = min(DIMENSIONS, key=lambda d: scores[d])
        if scores[lowest] < self.config.risk.action_priority_below:
            priorities.append(f"Urgent: Improve {label(lowest)}")

        mitigations = tuple(
            {"risk": risk, "mitigation": RISK_MITIGATIONS.get(risk, DEFAULT_MITIGATION)}
            for risk in insights.risk_factors
        )
        return Feedback(
            top_strengths=insights.strengths[:3],
            critical_issues=insights.red_flags,
            action_priorities=tuple(priorities),
            risk_mitigations=mitigations,
        )
