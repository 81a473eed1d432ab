"""Tests for momentum.engine.readiness — dimensions, synthesis, feedback."""

import pytest

from momentum.config.scoring import DIMENSIONS
from momentum.engine.readiness import (
    Bucket,
    Insights,
    ReadinessScoringEngine,
    RiskLevel,
    ScoringResult,
    normalize_keywords,
    round_half_up,
    vision_clarity,
)
from momentum.engine.text_signals import TextSignalAnalyzer
from momentum.models.questionnaire import QuestionnaireResponse


@pytest.fixture
def scorer(clock):
    return ReadinessScoringEngine(clock=clock)


def _resp(**answers):
    return QuestionnaireResponse.from_mapping(answers)


# ═══════════════════════════════════════════════════════════════════════════
# Neutral input
# ═══════════════════════════════════════════════════════════════════════════


class TestNeutralResponse:
    def test_empty_response_sits_at_baseline(self, scorer):
        result = scorer.score(QuestionnaireResponse())
        assert all(result.dimension_scores[d] == 50.0 for d in DIMENSIONS)
        assert result.overall == 50
        assert result.risk_level == RiskLevel.LOW
        assert result.insights.is_empty()

    def test_explicit_midpoint_ratings_are_neutral(self, scorer):
        result = scorer.score(_resp(beliefLevel=4, gutFeeling=50, startingProjects=3,
                                    handlingObstacles=3, industryTrends=3, competitive=3,
                                    businessModels=3))
        assert result.overall == pytest.approx(50, abs=5)
        assert result.risk_level == RiskLevel.LOW
        assert result.insights.is_empty()

    def test_neutral_probability(self, scorer):
        prob = scorer.score(QuestionnaireResponse()).success_probability
        assert prob.percentage == 50
        assert prob.confidence == "HIGH"

    @pytest.mark.parametrize("data", [None, {}, {"beliefLevel": "abc", "support": 5, "dream": 12}])
    def test_never_raises_on_malformed_input(self, scorer, data):
        result = scorer.score(data)
        assert 0 <= result.overall <= 100


# ═══════════════════════════════════════════════════════════════════════════
# Dimension rules
# ═══════════════════════════════════════════════════════════════════════════


class TestVisionClarity:
    def test_obsessed_with_low_belief(self, scorer):
        result = scorer.score(_resp(importance="obsessed", beliefLevel=2))
        assert result.dimension_scores["vision_clarity"] < 50
        assert "Claims obsession but low belief level" in result.insights.inconsistencies

    def test_obsessed_with_low_belief_exact_score(self):
        dim = vision_clarity(_resp(importance="obsessed", beliefLevel=2), TextSignalAnalyzer())
        # +10 priority, -12 contradiction, -10 low belief
        assert dim.score == 38
        assert {a.bucket for a in dim.adjustments} == {Bucket.STRENGTH, Bucket.INCONSISTENCY, Bucket.RISK}

    def test_brief_vague_dream(self, scorer):
        result = scorer.score(_resp(dream="Build an app"))
        assert "Dream description too brief - lacks detail" in result.insights.red_flags
        assert "Dream lacks specificity - too vague" in result.insights.risk_factors

    def test_every_adjustment_is_one_note(self):
        dim = vision_clarity(_resp(dream="Run 3 marathons", importance="curious", beliefLevel=7),
                             TextSignalAnalyzer())
        assert len({a.note for a in dim.adjustments}) == len(dim.adjustments)
        assert all(a.delta != 0 for a in dim.adjustments)


class TestListAnswers:
    def test_empty_support_is_a_risk(self, scorer):
        result = scorer.score(_resp(support=[]))
        assert "No support system identified" in result.insights.risk_factors
        mitigations = {m["risk"]: m["mitigation"] for m in result.feedback.risk_mitigations}
        assert mitigations["No support system identified"].startswith("Build relationships")

    def test_unanswered_support_is_neutral(self, scorer):
        result = scorer.score(QuestionnaireResponse())
        assert result.dimension_scores["environment_support"] == 50.0

    def test_solo_with_support_is_inconsistent(self, scorer):
        result = scorer.score(_resp(support=["solo", "mentor"]))
        assert "Claims to prefer solo work but has support system" in result.insights.inconsistencies


class TestExternalKeywords:
    def test_relevant_background(self, scorer):
        result = scorer.score(
            _resp(dream="I want to become a product designer building mobile tools"),
            external_keywords=["design", "mobile", "product"],
        )
        assert "Strong relevant background" in result.insights.strengths

    def test_no_relevant_background(self, scorer):
        result = scorer.score(
            _resp(dream="Open a bakery"),
            external_keywords=["kubernetes", "python", "rust", "docker", "linux", "nginx"],
        )
        assert "No relevant experience for stated goals" in result.insights.inconsistencies

    def test_non_string_keywords_ignored(self, scorer):
        result = scorer.score(QuestionnaireResponse(), external_keywords=[None, 3, ""])
        assert result.insights.is_empty()

    @pytest.mark.parametrize("keywords", [5, None, 2.5, object()])
    def test_non_iterable_keywords_ignored(self, scorer, keywords):
        result = scorer.score(_resp(dream="x"), external_keywords=keywords)
        assert 0 <= result.overall <= 100
        assert result.dimension_scores["foundation_strength"] == 50.0

    def test_bare_string_is_one_keyword(self, scorer):
        result = scorer.score(_resp(dream="I want a startup in data"), external_keywords="python")
        assert "Strong relevant background" not in result.insights.strengths
        assert result.dimension_scores["foundation_strength"] == 50.0

    def test_normalize_keywords(self):
        assert normalize_keywords("python") == ("python",)
        assert normalize_keywords(5) == ()
        assert normalize_keywords(["go", 3, " ", "rust"]) == ("go", "rust")


class TestClamping:
    def test_dimension_scores_stay_in_range(self, scorer):
        result = scorer.score(_resp(
            importance="obsessed", beliefLevel=1, gutFeeling=100, readiness="exploring",
            intensity="beast", timeCommitment="micro", riskTolerance="avoider",
            financial="tight", timeline="sprint", support=[], uniqueValue=[],
            startingProjects=1, handlingObstacles=1, industryTrends=1, competitive=5,
            businessModels=1, decisionLevel="execution",
            dream="lead a startup", why="x", deepMotivation="y", timeReality="z",
            whySucceed="w", pastLessons="v", realImpact="u",
        ))
        assert all(0 <= s <= 100 for s in result.dimension_scores.values())
        assert 0 <= result.overall <= 100
        assert result.risk_level == RiskLevel.HIGH


# ═══════════════════════════════════════════════════════════════════════════
# Synthesis
# ═══════════════════════════════════════════════════════════════════════════


class TestCrossValidation:
    def _scores(self, **overrides):
        scores = {d: 50.0 for d in DIMENSIONS}
        scores.update(overrides)
        return scores

    def _run(self, scorer, **overrides):
        buckets = {b: [] for b in Bucket}
        scorer._cross_validate(self._scores(**overrides), buckets)
        return buckets

    def test_motivation_without_execution(self, scorer):
        buckets = self._run(scorer, motivation_authenticity=75, execution_readiness=35)
        assert "High motivation but poor execution readiness" in buckets[Bucket.INCONSISTENCY]

    def test_confidence_without_environment(self, scorer):
        buckets = self._run(scorer, psychological_profile=75, environment_support=25)
        assert buckets[Bucket.RISK] == ["High confidence but unsupportive environment"]

    def test_overconfidence_red_flag(self, scorer):
        buckets = self._run(scorer, motivation_authenticity=85, knowledge_depth=45,
                            foundation_strength=45)
        assert buckets[Bucket.RED_FLAG] == []
        buckets = self._run(scorer, motivation_authenticity=85, knowledge_depth=35,
                            foundation_strength=35)
        assert len(buckets[Bucket.RED_FLAG]) == 1

    def test_underconfidence_focus(self, scorer):
        buckets = self._run(scorer, foundation_strength=75, knowledge_depth=65,
                            psychological_profile=35)
        assert buckets[Bucket.FOCUS] == [
            "Building self-confidence - foundation is stronger than belief",
            "Strengthen psychological profile",
        ]

    def test_no_underconfidence_focus_at_forty_five(self, scorer):
        buckets = self._run(scorer, foundation_strength=75, knowledge_depth=65,
                            psychological_profile=45)
        assert buckets[Bucket.FOCUS] == []

    def test_weakest_dimension_focus(self, scorer):
        buckets = self._run(scorer, hidden_assets=30)
        assert buckets[Bucket.FOCUS] == ["Strengthen hidden assets"]

    def test_does_not_touch_scores(self, scorer):
        scores = self._scores(motivation_authenticity=75, execution_readiness=35)
        before = dict(scores)
        scorer._cross_validate(scores, {b: [] for b in Bucket})
        assert scores == before


class TestSynthesis:
    def test_round_half_up(self):
        assert round_half_up(49.5) == 50
        assert round_half_up(50.49) == 50
        assert round_half_up(0.5) == 1

    def test_risk_level_bands(self, scorer):
        assert scorer._risk_level(Insights(red_flags=("a", "b"), inconsistencies=("c", "d"))) == RiskLevel.HIGH
        assert scorer._risk_level(Insights(red_flags=("a",), inconsistencies=("c",))) == RiskLevel.MEDIUM
        assert scorer._risk_level(Insights(risk_factors=("a", "b", "c", "d"))) == RiskLevel.LOW

    def test_success_probability(self, scorer):
        prob = scorer._success_probability(50, Insights(red_flags=("x",), strengths=("a", "b", "c")))
        assert prob.percentage == 50 - 5 + 6
        assert prob.confidence == "HIGH"

    def test_confidence_drops_with_inconsistencies(self, scorer):
        prob = scorer._success_probability(50, Insights(inconsistencies=("a", "b", "c")))
        assert prob.confidence == "MEDIUM"

    def test_probability_clamped(self, scorer):
        assert scorer._success_probability(2, Insights(red_flags=("a",))).percentage == 0


class TestFeedback:
    def test_action_priority_for_low_dimension(self, scorer):
        result = scorer.score(_resp(importance="obsessed", beliefLevel=2))
        assert result.feedback.action_priorities == ("Urgent: Improve vision clarity",)

    def test_baseline_response_prioritises_first_dimension(self, scorer):
        result = scorer.score(QuestionnaireResponse())
        assert result.feedback.action_priorities == ("Urgent: Improve vision clarity",)

    def test_no_priority_when_all_high_enough(self, scorer):
        feedback = scorer._feedback({d: 60.0 for d in DIMENSIONS}, Insights())
        assert feedback.action_priorities == ()

    def test_top_strengths_capped_at_three(self, scorer):
        result = scorer.score(_resp(
            beliefLevel=7, gutFeeling=100, startingProjects=5, handlingObstacles=5,
            blog="https://example.org", uniqueValue=["a", "b", "c"], support=["a", "b", "c"],
        ))
        assert len(result.insights.strengths) > 3
        assert result.feedback.top_strengths == result.insights.strengths[:3]

    def test_unknown_risk_gets_generic_mitigation(self, scorer):
        result = scorer.score(_resp(readiness="exploring"))
        mitigations = [m["mitigation"] for m in result.feedback.risk_mitigations]
        assert mitigations == ["Consult with a mentor or coach for personalized guidance"]


class TestResultSerialization:
    def test_dict_round_trip(self, scorer):
        result = scorer.score(_resp(importance="obsessed", beliefLevel=2, support=[]))
        assert ScoringResult.from_dict(result.to_dict()) == result

    def test_scored_at_uses_clock(self, scorer, frozen_now):
        assert scorer.score(QuestionnaireResponse()).scored_at == frozen_now.isoformat()

    def test_deterministic(self, scorer):
        data = {"dream": "Write 2 novels, exactly", "importance": "committed", "support": ["a"]}
        assert scorer.score(data) == scorer.score(data)
