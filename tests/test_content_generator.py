"""Tests for momentum.services.content_generator — timeout guard and HTTP adapter."""

import json
import time

import httpx
import pytest

from momentum.config.stages import STAGE_TABLE
from momentum.errors import GenerationError, GenerationTimeout
from momentum.models.task import ContentSource
from momentum.services.content_generator import (
    GuardedGenerator,
    HttpContentGenerator,
    build_prompt,
    extract_json,
)


PROFILE = {"dream": "Open a ceramics studio"}


# ═══════════════════════════════════════════════════════════════════════════
# GuardedGenerator
# ═══════════════════════════════════════════════════════════════════════════


class TestGuardedGenerator:
    def test_uses_generated_content(self, stub_generator, frozen_now):
        content = GuardedGenerator(stub_generator, timeout=1.0).stage_content(
            STAGE_TABLE[2], PROFILE, frozen_now, {"retry_count": 0},
        )
        assert content.source == ContentSource.GENERATED
        assert content.total_tasks == 15
        assert content.goals[0].title == "Generated goal 1"
        assert stub_generator.calls == [(2, {"retry_count": 0})]

    def test_goal_count_passed_in_context(self, stub_generator, frozen_now):
        content = GuardedGenerator(stub_generator).stage_content(
            STAGE_TABLE[1], PROFILE, frozen_now, goal_count=2,
        )
        assert content.total_tasks == 6
        assert stub_generator.calls[0][1] == {"goal_count": 2}
        assert content.adaptation_context == {"goal_count": 2}

    def test_no_generator_means_fallback(self, frozen_now):
        content = GuardedGenerator(None).stage_content(STAGE_TABLE[1], PROFILE, frozen_now)
        assert content.source == ContentSource.FALLBACK
        assert content.total_tasks == 9

    def test_timeout_falls_back_promptly(self, hanging_generator, frozen_now, caplog):
        guarded = GuardedGenerator(hanging_generator, timeout=0.1)
        started = time.monotonic()
        content = guarded.stage_content(STAGE_TABLE[1], PROFILE, frozen_now)
        assert time.monotonic() - started < 2
        assert content.source == ContentSource.FALLBACK
        assert content.total_tasks == 9
        assert "timed out" in caplog.text

    @pytest.mark.parametrize("exc", [GenerationError("bad"), RuntimeError("boom"), KeyError("goals")])
    def test_failure_falls_back(self, frozen_now, failing_generator, exc):
        content = GuardedGenerator(failing_generator(exc)).stage_content(STAGE_TABLE[1], PROFILE, frozen_now)
        assert content.source == ContentSource.FALLBACK

    def test_generator_timeout_error_falls_back(self, frozen_now, failing_generator):
        guarded = GuardedGenerator(failing_generator(GenerationTimeout("slow")))
        assert guarded.stage_content(STAGE_TABLE[1], PROFILE, frozen_now).source == ContentSource.FALLBACK

    def test_malformed_payload_falls_back(self, frozen_now):
        class EmptyGenerator:
            def generate_stage_goals(self, stage, user_profile, adaptation_context):
                return {"goals": []}

        content = GuardedGenerator(EmptyGenerator()).stage_content(STAGE_TABLE[1], PROFILE, frozen_now)
        assert content.source == ContentSource.FALLBACK

    def test_fallback_honors_goal_count(self, frozen_now, failing_generator):
        guarded = GuardedGenerator(failing_generator(GenerationError("down")))
        content = guarded.stage_content(STAGE_TABLE[1], PROFILE, frozen_now, goal_count=2)
        assert len(content.goals) == 2


# ═══════════════════════════════════════════════════════════════════════════
# Prompt / reply parsing
# ═══════════════════════════════════════════════════════════════════════════


class TestPrompt:
    def test_mentions_stage_and_dream(self):
        prompt = build_prompt(STAGE_TABLE[3], PROFILE, {})
        assert "7-Day Momentum Challenge" in prompt
        assert "Create 6 goals" in prompt
        assert "Open a ceramics studio" in prompt
        assert "between 1 and 7" in prompt

    def test_goal_count_from_context(self):
        assert "Create 2 goals" in build_prompt(STAGE_TABLE[1], {}, {"goal_count": 2})


class TestExtractJson:
    def test_json_inside_prose(self):
        assert extract_json('Sure! {"goals": [1]} Good luck.') == {"goals": [1]}

    @pytest.mark.parametrize("text", ["", "no json here", "{not json}", None])
    def test_unusable_reply(self, text):
        with pytest.raises(GenerationError):
            extract_json(text)


# ═══════════════════════════════════════════════════════════════════════════
# HttpContentGenerator
# ═══════════════════════════════════════════════════════════════════════════


def _generator(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpContentGenerator(api_url="https://llm.test/v1/chat/completions", api_key="k",
                                model="test-model", timeout=1.0, client=client)


def _reply(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestHttpContentGenerator:
    def test_parses_reply(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return _reply('```json\n{"goals": [{"title": "G", "tasks": [{"name": "t"}]}]}\n```')

        payload = _generator(handler).generate_stage_goals(STAGE_TABLE[1], PROFILE, {})
        assert payload["goals"][0]["title"] == "G"
        assert seen["auth"] == "Bearer k"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"][0]["role"] == "system"

    def test_server_error(self):
        gen = _generator(lambda request: httpx.Response(500, text="down"))
        with pytest.raises(GenerationError):
            gen.generate_stage_goals(STAGE_TABLE[1], PROFILE, {})

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationTimeout):
            _generator(handler).generate_stage_goals(STAGE_TABLE[1], PROFILE, {})

    def test_unexpected_shape(self):
        gen = _generator(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(GenerationError):
            gen.generate_stage_goals(STAGE_TABLE[1], PROFILE, {})

    def test_guarded_http_failure_falls_back(self, frozen_now):
        gen = _generator(lambda request: httpx.Response(503))
        content = GuardedGenerator(gen, timeout=1.0).stage_content(STAGE_TABLE[1], PROFILE, frozen_now)
        assert content.source == ContentSource.FALLBACK
