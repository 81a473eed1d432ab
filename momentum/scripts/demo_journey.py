"""Walk one demo user through scoring and the first two stages.

Run: python -m momentum.scripts.demo_journey
Needs a Redis at REDIS_URL. Uses the HTTP content generator when
CONTENT_API_KEY is set, otherwise the local fallback template.
"""

import logging

import redis

from momentum.config.settings import CONTENT_API_KEY, LOG_LEVEL, REDIS_URL
from momentum.config.stages import SpecialRequirement
from momentum.engine.progression import StageProgressionEngine
from momentum.engine.readiness import ReadinessScoringEngine
from momentum.models.questionnaire import validate_submission
from momentum.models.task import TaskStatus
from momentum.services.content_generator import HttpContentGenerator
from momentum.services.journey_store import JourneyStore
from momentum.services.requirements import RequirementRegistry, always, scoring_on_record

logger = logging.getLogger(__name__)

DEMO_USER = "demo-user"

DEMO_ANSWERS = {
    "dream": (
        "I want to launch a small design studio that helps 20 local nonprofits "
        "rebuild their websites within the next year, with a specific focus on "
        "accessibility and a detailed plan for each client."
    ),
    "why": "My mother ran a food bank and I saw how much a good website changed things. I love this work.",
    "deepMotivation": (
        "I am determined to prove that careful design can change how small "
        "organizations reach people. I hope to build something that outlasts "
        "me, and I am excited every time a client sees their new site go live."
    ),
    "timeReality": "Monday to Thursday 6am to 8am before work, plus Saturday morning for client calls and review.",
    "importance": "committed",
    "readiness": "ready",
    "timeline": "marathon",
    "financial": "moderate",
    "intensity": "high",
    "riskTolerance": "calculated",
    "decisionLevel": "tactical",
    "timeCommitment": "focused",
    "learningStyle": "structured",
    "workTraits": ["routine", "collaborative"],
    "support": ["partner", "mentor", "design community"],
    "uniqueValue": ["accessibility", "nonprofit experience", "copywriting"],
    "beliefLevel": 5,
    "gutFeeling": 70,
    "startingProjects": 4,
    "handlingObstacles": 4,
    "industryTrends": 3,
    "competitive": 3,
    "businessModels": 3,
    "beliefHelp": "A mentor who reviews my work and more practice with real clients.",
}


def build_engine(store: JourneyStore) -> StageProgressionEngine:
    registry = RequirementRegistry({SpecialRequirement.VISION_QUESTIONNAIRE: scoring_on_record(store)})
    # demo only: every other requirement counts as met
    for req in SpecialRequirement:
        if req not in registry:
            registry.register(req, always(True))
    generator = HttpContentGenerator() if CONTENT_API_KEY else None
    return StageProgressionEngine(store, content_generator=generator, requirements=registry)


def complete_stage(engine: StageProgressionEngine, store: JourneyStore) -> None:
    content = store.load_content(DEMO_USER)
    for i, task in enumerate(content.all_tasks()):
        reflection = f"Reflection {i + 1} on {task.title}" if i % 2 == 0 else None
        result = engine.record_task_status(DEMO_USER, task.id, TaskStatus.COMPLETED, reflection)
        if result.changed:
            logger.info("Stage transition: %s", result.to_dict())
            return


def run():
    r = redis.Redis.from_url(REDIS_URL, decode_responses=True)
    store = JourneyStore(r)
    store.delete(DEMO_USER)

    response = validate_submission(DEMO_ANSWERS)
    result = ReadinessScoringEngine().score(response)
    store.append_score(DEMO_USER, result)
    logger.info("Overall %d, risk %s, success %d%%",
                result.overall, result.risk_level.value, result.success_probability.percentage)
    for name, score in result.dimension_scores.items():
        logger.info("  %-24s %5.1f", name, score)

    engine = build_engine(store)
    engine.initialize_journey(DEMO_USER, {"dream": response.dream}, belief_score=result.overall / 100)

    complete_stage(engine, store)
    outcomes = engine.adapt(DEMO_USER, {"frequency": 0.8})
    logger.info("Adaptations: %s", [o.action.type.value for o in outcomes if o.applied])
    complete_stage(engine, store)

    state = store.load(DEMO_USER)
    logger.info("Demo user is at stage %s after %d completed stage(s)",
                state.current_stage, len(state.stage_history))


if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run()
