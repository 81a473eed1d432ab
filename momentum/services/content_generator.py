"""Stage content generation.

The progression engine only depends on the ``ContentGenerator`` protocol.
``GuardedGenerator`` bounds any generator with a wall-clock timeout and
falls back to the local template on timeout or failure, so a stage
transition never blocks on (or fails because of) the external service.
``HttpContentGenerator`` talks to an OpenAI-compatible chat endpoint.
"""

from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from momentum.config import settings
from momentum.config.stages import StageDefinition
from momentum.engine.fallback import build_stage_content, fallback_content
from momentum.errors import GenerationError, GenerationTimeout
from momentum.models.task import ContentSource, StageContent

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ContentGenerator(Protocol):
    def generate_stage_goals(
        self,
        stage: StageDefinition,
        user_profile: dict,
        adaptation_context: dict,
    ) -> dict:
        """Return ``{"goals": [...]}`` or raise GenerationTimeout / GenerationError."""
        ...


class GuardedGenerator:
    """Runs a generator on a worker thread with a hard timeout.

    On timeout the worker is abandoned (its result is discarded) and the
    fallback template is returned immediately.
    """

    def __init__(self, generator: Optional[ContentGenerator], timeout: float = settings.CONTENT_GENERATION_TIMEOUT):
        self.generator = generator
        self.timeout = timeout

    def stage_content(
        self,
        stage: StageDefinition,
        user_profile: dict,
        start: datetime,
        adaptation_context: Optional[dict] = None,
        goal_count: Optional[int] = None,
    ) -> StageContent:
        context = dict(adaptation_context or {})
        if goal_count is not None:
            context["goal_count"] = goal_count
        if self.generator is None:
            return fallback_content(stage, start, goal_count, context)
        try:
            payload = self._call(stage, user_profile, context)
            content = build_stage_content(payload, stage, start, ContentSource.GENERATED, context)
        except GenerationTimeout:
            logger.warning("Content generation for stage %s timed out after %.1fs; using fallback",
                           stage.id, self.timeout)
            return fallback_content(stage, start, goal_count, context)
        except GenerationError as exc:
            logger.warning("Content generation for stage %s failed (%s); using fallback", stage.id, exc)
            return fallback_content(stage, start, goal_count, context)
        return content

    def _call(self, stage: StageDefinition, user_profile: dict, context: dict) -> dict:
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="content-gen")
        try:
            future = pool.submit(self.generator.generate_stage_goals, stage, dict(user_profile), context)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeout as exc:
                future.cancel()
                raise GenerationTimeout(f"No content after {self.timeout}s") from exc
            except GenerationError:
                raise
            except Exception as exc:
                raise GenerationError(f"Content generator crashed: {exc}") from exc
        finally:
            pool.shutdown(wait=False)


# ── HTTP adapter ─────────────────────────────────────────────────────────

SYSTEM_PROMPT = (
    "You are a coach designing a personal growth program. "
    "Reply with JSON only."
)


def build_prompt(stage: StageDefinition, user_profile: dict, context: dict) -> str:
    goal_count = context.get("goal_count", stage.goal_count)
    dream = user_profile.get("dream") or user_profile.get("impact_statement") or "a personal goal"
    return (
        f"Create {goal_count} goals for the \"{stage.name}\" stage ({stage.duration} days).\n"
        f"Purpose: {stage.purpose}\n"
        f"User dream: {dream}\n"
        f"Adaptation context: {json.dumps(context, default=str)}\n\n"
        f"Each goal needs {stage.tasks_per_goal} tasks of 10-45 minutes that are actionable, "
        f"build progressively in difficulty and connect directly to the dream.\n\n"
        "Format as JSON:\n"
        '{"goals": [{"title": "...", "tasks": [{"name": "...", "description": "...", '
        '"estimatedMinutes": 15, "day": 1, "difficulty": "easy|medium|hard"}]}]}\n'
        f"\"day\" is between 1 and {stage.duration}."
    )


def extract_json(text: str) -> dict:
    """Pull the first JSON object out of a model reply."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise GenerationError("No JSON object in model reply")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Malformed JSON in model reply: {exc}") from exc
    if not isinstance(data, dict):
        raise GenerationError("Model reply JSON is not an object")
    return data


class HttpContentGenerator:
    """OpenAI-compatible chat-completions client."""

    def __init__(
        self,
        api_url: str = settings.CONTENT_API_URL,
        api_key: str = settings.CONTENT_API_KEY,
        model: str = settings.CONTENT_MODEL,
        timeout: float = settings.CONTENT_GENERATION_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout)

    def generate_stage_goals(self, stage: StageDefinition, user_profile: dict, adaptation_context: dict) -> dict:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(stage, user_profile, adaptation_context)},
            ],
            "temperature": 0.7,
        }
        try:
            resp = self.client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=body,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            reply = resp.json()["choices"][0]["message"]["content"]
        except httpx.TimeoutException as exc:
            raise GenerationTimeout(f"Content API timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Content API request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GenerationError(f"Unexpected content API response: {exc}") from exc
        return extract_json(reply)

    def close(self) -> None:
        self.client.close()
