"""Scoring tables for the readiness engine.

Weights, categorical lookup tables, marker vocabularies and the numeric
thresholds the dimension rules use. Everything here is frozen and loaded
once; the engine receives a ``ScoringConfig`` at construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Mapping

from momentum.errors import ConfigurationError


DIMENSIONS: tuple[str, ...] = (
    "vision_clarity",
    "motivation_authenticity",
    "execution_readiness",
    "foundation_strength",
    "knowledge_depth",
    "hidden_assets",
    "environment_support",
    "psychological_profile",
)


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


# ---------------------------------------------------------------------------
# Dimension weights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DimensionWeights:
    """Weights for combining the 8 dimension scores into ``overall``."""

    vision_clarity: float = 0.18
    motivation_authenticity: float = 0.16
    execution_readiness: float = 0.15
    foundation_strength: float = 0.14
    knowledge_depth: float = 0.12
    hidden_assets: float = 0.11
    environment_support: float = 0.08
    psychological_profile: float = 0.06

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigurationError(f"Weight {f.name} must be non-negative")
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > 1e-6:
            raise ConfigurationError(f"Dimension weights must sum to 1.0, got {total}")

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ---------------------------------------------------------------------------
# Marker vocabularies (case-insensitive substring matches)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextVocabulary:
    specificity: tuple[str, ...] = (
        "specific", "exactly", "precisely", "particular", "detailed",
    )
    emotion: tuple[str, ...] = (
        "passionate", "excited", "frustrated", "angry", "love", "hate",
        "dream", "fear", "hope", "desperate", "determined",
    )
    examples: tuple[str, ...] = ("example", "instance", "like when")
    personal_story: tuple[str, ...] = ("my", "i ", "when i")
    schedule: tuple[str, ...] = (
        "am", "pm", "morning", "evening", "monday", "tuesday",
    )
    # Average sentence length (words) at which complexity saturates
    complexity_sentence_words: float = 20.0


# ---------------------------------------------------------------------------
# Categorical lookup tables
# ---------------------------------------------------------------------------

IMPORTANCE_POINTS = _frozen({"curious": 0, "interested": 25, "committed": 50, "obsessed": 75})
IMPORTANCE_URGENCY = _frozen({"curious": 1, "interested": 2, "committed": 3, "obsessed": 4})
READINESS_POINTS = _frozen({"exploring": 20, "ready": 50, "unstoppable": 80})
TIMELINE_URGENCY = _frozen({"sprint": 3, "marathon": 2, "mountain": 1})
FINANCIAL_POINTS = _frozen({"tight": -15, "limited": -5, "moderate": 10, "flexible": 20})
INTENSITY_LEVEL = _frozen({"zen": 1, "balanced": 2, "high": 3, "beast": 4})
COMMITMENT_LEVEL = _frozen({"micro": 1, "flexible": 2, "focused": 3})
RISK_TOLERANCE_POINTS = _frozen({"avoider": 0, "calculated": 25, "comfortable": 50, "seeker": 75})
DECISION_LEVEL_POINTS = _frozen({"execution": 10, "tactical": 25, "strategic": 40, "ownership": 55})

CATEGORICAL_CHOICES: Mapping[str, tuple[str, ...]] = _frozen({
    "importance": tuple(IMPORTANCE_POINTS),
    "readiness": tuple(READINESS_POINTS),
    "timeline": tuple(TIMELINE_URGENCY),
    "financial": tuple(FINANCIAL_POINTS),
    "intensity": tuple(INTENSITY_LEVEL),
    "risk_tolerance": tuple(RISK_TOLERANCE_POINTS),
    "decision_level": tuple(DECISION_LEVEL_POINTS),
    "time_commitment": tuple(COMMITMENT_LEVEL),
    "learning_style": ("structured", "research", "spontaneous", "social"),
})

# Inclusive rating bounds and their neutral midpoint
RATING_SCALES: Mapping[str, tuple[int, int, int]] = _frozen({
    "belief_level": (1, 7, 4),
    "gut_feeling": (0, 100, 50),
    "starting_projects": (1, 5, 3),
    "handling_obstacles": (1, 5, 3),
    "industry_trends": (1, 5, 3),
    "competitive": (1, 5, 3),
    "business_models": (1, 5, 3),
})

RISK_MITIGATIONS = _frozen({
    "Low emotional connection to goals":
        "Reconnect with your deeper why - what personal meaning drives this goal?",
    "No support system identified":
        "Build relationships with mentors, peers, or communities in your target field",
    "Financial constraints may limit quick progress":
        "Focus on low-cost/free resources and consider extending timeline",
    "High levels of self-doubt":
        "Start with small wins to build confidence and evidence of capability",
    "Poor track record with obstacles":
        "Develop resilience through obstacle planning and stress management",
    "Weak track record of starting projects":
        "Begin with micro-commitments and gradually increase scope",
})
DEFAULT_MITIGATION = "Consult with a mentor or coach for personalized guidance"


# ---------------------------------------------------------------------------
# Risk / probability synthesis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskThresholds:
    """risk = red_flags*w_red + inconsistencies*w_inc + risk_factors*w_risk."""

    red_flag_weight: int = 3
    inconsistency_weight: int = 2
    risk_factor_weight: int = 1
    high: int = 10
    medium: int = 5

    # success probability
    red_flag_penalty: int = 5
    strength_bonus: int = 2
    max_inconsistencies_for_high_confidence: int = 2

    # feedback
    action_priority_below: float = 60.0
    weakest_focus_below: float = 40.0


# ---------------------------------------------------------------------------
# Top-level config aggregate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringConfig:
    """Complete scoring configuration. Pass to the engine to override defaults."""

    baseline: float = 50.0
    weights: DimensionWeights = field(default_factory=DimensionWeights)
    vocabulary: TextVocabulary = field(default_factory=TextVocabulary)
    risk: RiskThresholds = field(default_factory=RiskThresholds)


DEFAULT_SCORING_CONFIG = ScoringConfig()
