"""Tests for momentum.engine.fallback: payload assembly and scheduling."""

import pytest

from momentum.config.stages import STAGE_TABLE
from momentum.engine.fallback import (
    GOAL_TITLES,
    build_stage_content,
    fallback_content,
    fallback_payload,
    reschedule_pending,
    schedule_offset,
)
from momentum.errors import GenerationError
from momentum.models.task import ContentSource, TaskStatus


class TestScheduleOffset:
    def test_nine_tasks_over_three_days(self):
        assert [schedule_offset(i, 9, 3) for i in range(9)] == [0, 0, 0, 1, 1, 1, 2, 2, 2]

    def test_uneven_spread_stays_inside_window(self):
        offsets = [schedule_offset(i, 7, 3) for i in range(7)]
        assert offsets == [0, 0, 0, 1, 1, 1, 2]

    def test_fewer_tasks_than_days(self):
        assert [schedule_offset(i, 2, 5) for i in range(2)] == [0, 1]

    @pytest.mark.parametrize("stage_id", range(1, 8))
    def test_every_stage_fits_its_window(self, stage_id):
        stage = STAGE_TABLE[stage_id]
        offsets = [schedule_offset(i, stage.total_tasks, stage.duration) for i in range(stage.total_tasks)]
        assert max(offsets) <= stage.duration - 1
        assert offsets == sorted(offsets)


class TestFallbackPayload:
    def test_matches_stage_quota(self):
        payload = fallback_payload(STAGE_TABLE[3])
        assert len(payload["goals"]) == 6
        assert all(len(g["tasks"]) == 3 for g in payload["goals"])

    def test_goal_count_override(self):
        assert len(fallback_payload(STAGE_TABLE[1], goal_count=2)["goals"]) == 2

    def test_titles_cycle(self):
        payload = fallback_payload(STAGE_TABLE[7])
        assert [g["title"] for g in payload["goals"]] == list(GOAL_TITLES[:15])

    def test_first_goal_template(self):
        goal = fallback_payload(STAGE_TABLE[1])["goals"][0]
        assert goal["title"] == "Take the first step"
        assert [t["name"] for t in goal["tasks"]] == [
            "Write down your dream", "Research one aspect", "Take one small action",
        ]


class TestBuildStageContent:
    def test_ids_and_dates(self, frozen_now):
        content = fallback_content(STAGE_TABLE[1], frozen_now)
        tasks = content.all_tasks()
        assert content.source == ContentSource.FALLBACK
        assert content.total_tasks == 9
        assert tasks[0].id == "stage1_goal_1_task_1"
        assert tasks[-1].id == "stage1_goal_3_task_3"
        assert [t.scheduled_date for t in tasks] == (
            ["2026-02-15"] * 3 + ["2026-02-16"] * 3 + ["2026-02-17"] * 3
        )
        assert all(t.status == TaskStatus.PENDING for t in tasks)

    def test_explicit_day_is_honored(self, frozen_now):
        payload = {"goals": [{"title": "G", "tasks": [
            {"name": "a", "day": 3}, {"name": "b", "day": 9}, {"name": "c", "day": True},
        ]}]}
        tasks = build_stage_content(payload, STAGE_TABLE[1], frozen_now).all_tasks()
        assert tasks[0].scheduled_date == "2026-02-17"
        # out of window and boolean days fall back to the spread
        assert tasks[1].scheduled_date == "2026-02-16"
        assert tasks[2].scheduled_date == "2026-02-17"

    def test_difficulty_and_minutes(self, frozen_now):
        payload = {"goals": [{"tasks": [
            {"name": "a", "difficulty": "hard", "estimatedMinutes": "25"},
            {"title": "b", "difficulty": 9, "estimatedMinutes": "soon"},
        ]}]}
        content = build_stage_content(payload, STAGE_TABLE[2], frozen_now)
        a, b = content.all_tasks()
        assert (a.difficulty, a.estimated_minutes) == (4, 25)
        assert (b.title, b.difficulty, b.estimated_minutes) == ("b", 5, 15)
        assert content.goals[0].title == "Goal 1"

    def test_context_is_recorded(self, frozen_now):
        content = fallback_content(STAGE_TABLE[1], frozen_now, adaptation_context={"retry_count": 1})
        assert content.adaptation_context == {"retry_count": 1}
        assert content.generated_at == frozen_now.isoformat()

    @pytest.mark.parametrize("payload", [
        {},
        {"goals": []},
        {"goals": "many"},
        {"goals": [{"title": "empty", "tasks": []}]},
        {"goals": [{"tasks": [{"description": "no name"}]}]},
        {"goals": [{"tasks": ["just a string"]}]},
        ["not", "a", "mapping"],
    ])
    def test_bad_payload_raises(self, frozen_now, payload):
        with pytest.raises(GenerationError):
            build_stage_content(payload, STAGE_TABLE[1], frozen_now)


class TestReschedule:
    def test_pending_tasks_move_to_new_window(self, make_content, frozen_now, clock):
        content = make_content(statuses=[TaskStatus.COMPLETED] * 3, scheduled_date="2026-02-01")
        clock.advance(days=3)
        reschedule_pending(content, STAGE_TABLE[1], clock())
        tasks = content.all_tasks()
        assert all(t.scheduled_date == "2026-02-01" for t in tasks[:3])
        assert [t.scheduled_date for t in tasks[3:]] == (
            ["2026-02-18"] * 2 + ["2026-02-19"] * 2 + ["2026-02-20"] * 2
        )
