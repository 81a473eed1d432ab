"""Redis persistence for journeys, stage content and scoring history.

Key layout::

    journey:{user_id}           JSON UserJourneyState (carries ``version``)
    journey:{user_id}:content   JSON StageContent for the active stage
    journey:{user_id}:scores    list of JSON ScoringResult, append-only

Writes use optimistic concurrency: the journey key is WATCHed, its stored
version compared with the version the caller read, and state plus content
are written in one MULTI/EXEC with the version incremented.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis

from momentum.config import settings
from momentum.engine.readiness import ScoringResult
from momentum.errors import ConcurrencyConflict, JourneyNotFound
from momentum.models.journey import UserJourneyState
from momentum.models.task import StageContent

logger = logging.getLogger(__name__)


class JourneyStore:
    def __init__(self, r: redis.Redis, prefix: str = settings.JOURNEY_KEY_PREFIX):
        self.r = r
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str = settings.REDIS_URL) -> JourneyStore:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    # ── Keys ─────────────────────────────────────────────────────────────

    def state_key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}"

    def content_key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}:content"

    def scores_key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}:scores"

    # ── Journey state ────────────────────────────────────────────────────

    def exists(self, user_id: str) -> bool:
        return bool(self.r.exists(self.state_key(user_id)))

    def load(self, user_id: str) -> UserJourneyState:
        raw = self.r.get(self.state_key(user_id))
        if raw is None:
            raise JourneyNotFound(user_id)
        return UserJourneyState.from_dict(json.loads(raw))

    def load_content(self, user_id: str) -> Optional[StageContent]:
        raw = self.r.get(self.content_key(user_id))
        if raw is None:
            return None
        return StageContent.from_dict(json.loads(raw))

    def create(self, state: UserJourneyState, content: Optional[StageContent] = None) -> UserJourneyState:
        """Write a brand-new journey. Conflicts if one already exists."""
        return self._write(state, content, expected=None)

    def save(self, state: UserJourneyState, content: Optional[StageContent] = None) -> UserJourneyState:
        """Write state (and content) read at ``state.version``.

        Raises ConcurrencyConflict if someone else wrote in between.
        """
        return self._write(state, content, expected=state.version)

    def _write(self, state: UserJourneyState, content: Optional[StageContent],
               expected: Optional[int]) -> UserJourneyState:
        key = self.state_key(state.user_id)
        with self.r.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                actual = json.loads(raw)["version"] if raw is not None else None
                if actual != expected:
                    raise ConcurrencyConflict(state.user_id, expected, actual)

                new_version = (expected or 0) + 1
                data = state.to_dict()
                data["version"] = new_version
                pipe.multi()
                pipe.set(key, json.dumps(data))
                if content is not None:
                    pipe.set(self.content_key(state.user_id), json.dumps(content.to_dict()))
                pipe.execute()
            except redis.WatchError as exc:
                raise ConcurrencyConflict(state.user_id, expected, None) from exc

        state.version = new_version
        logger.debug("Saved journey %s at version %d", state.user_id, new_version)
        return state

    def delete(self, user_id: str) -> None:
        self.r.delete(self.state_key(user_id), self.content_key(user_id), self.scores_key(user_id))

    # ── Scoring history ──────────────────────────────────────────────────

    def append_score(self, user_id: str, result: ScoringResult) -> int:
        """Append a scoring result; returns the history length."""
        return int(self.r.rpush(self.scores_key(user_id), json.dumps(result.to_dict())))

    def scores(self, user_id: str) -> list[ScoringResult]:
        return [ScoringResult.from_dict(json.loads(raw))
                for raw in self.r.lrange(self.scores_key(user_id), 0, -1)]

    def latest_score(self, user_id: str) -> Optional[ScoringResult]:
        raw = self.r.lindex(self.scores_key(user_id), -1)
        if raw is None:
            return None
        return ScoringResult.from_dict(json.loads(raw))
