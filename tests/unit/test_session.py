"""
Unit tests for LessonSession and the lesson clock.
"""

import threading

import pytest

from src.lessons.errors import InvalidLesson
from src.lessons.models import CompletionType, LessonDefinition
from src.lessons.session import LessonSession
from src.lessons.timer import LessonClock, StopHandle


@pytest.fixture
def completion_lesson():
    """Lesson completed by an authored reaction."""
    return {
        "id": "first_deposit",
        "title": "Your First Deposit",
        "required_actions": ["deposit_made", "transfer_completed"],
        "conditions": [
            {
                "condition_type": "deposit_made",
                "action_type": "complete_lesson",
                "action_details": {"message": "Lesson complete!", "base_score": 85},
            }
        ],
    }


class TestActivation:

    def test_activate_begins_scoring(self, session, banking_basics):
        state = session.activate_lesson(banking_basics)

        assert state.lesson_id == "banking_basics"
        assert session.progress("banking_basics").app_usage_score == 70.0

    def test_activate_invalid(self, session):
        assert isinstance(session.activate_lesson({"title": "nope"}), InvalidLesson)

    def test_start_lesson_starts_clock(self, session, banking_basics):
        result = session.start_lesson(banking_basics)

        assert result.status == "fresh"
        assert session.registry.get("banking_basics").started_at is not None

    def test_start_invalid(self, session):
        assert session.start_lesson(None).status == "error"

    def test_begin_activities_without_id(self, session, banking_basics):
        session.activate_lesson(banking_basics)
        assert session.process_action("begin_activities", {"lessonTitle": "Banking Basics"}) == []
        assert session.registry.get("banking_basics").started_at is None

    def test_start_after_conditions_added(self, session, renderer):
        v1 = {
            "id": "checking_101",
            "conditions": [
                {"condition_type": "a", "action_type": "show_tip", "action_details": {"message": "a"}},
                {"condition_type": "b", "action_type": "show_tip", "action_details": {"message": "b"}},
            ],
        }
        v2 = {
            **v1,
            "conditions": v1["conditions"]
            + [{"condition_type": "c", "action_type": "show_tip", "action_details": {"message": "c"}}],
        }
        session.start_lesson(v1)
        session.process_action("a", {})
        session.deactivate_lesson("checking_101")

        result = session.start_lesson(v2)

        assert result.status == "fresh"
        assert (result.completed_count, result.total_count) == (0, 3)
        assert session.registry.get("checking_101").condition_met == [False, False, False]

    def test_start_lesson_never_raises(self, session, banking_basics, monkeypatch):
        def explode(lesson):
            raise RuntimeError("registry bug")

        monkeypatch.setattr(session.registry, "activate", explode)

        result = session.start_lesson(banking_basics)

        assert result.status == "error"
        assert result.should_proceed is False

    def test_deactivate(self, session, banking_basics):
        session.activate_lesson(banking_basics)
        session.deactivate_lesson("banking_basics")
        assert session.process_action("transfer_completed", {}) == []


class TestEvents:

    def test_reaction_completion(self, session, renderer, completion_lesson):
        session.activate_lesson(completion_lesson)

        session.process_action("deposit_made", {"amount": 20})

        record = session.registry.completed_record("first_deposit")
        assert record.completion_type == CompletionType.REACTION
        assert record.score.final_score == 85
        assert record.snapshot.positive_conditions_met == ["deposit_made"]
        assert renderer.modals[-1]["message"] == "Lesson complete!"
        assert not session.registry.is_active("first_deposit")

    def test_required_actions_completion(self, session, banking_basics):
        session.activate_lesson(banking_basics)
        for action, params in (
            ("transfer_completed", {}),
            ("deposit_made", {"amount": 500}),
            ("bill_created", {}),
        ):
            session.process_action(action, params)

        record = session.registry.completed_record("banking_basics")
        assert record.completion_type == CompletionType.REQUIRED_ACTIONS
        assert session.is_completed("banking_basics")

    def test_process_action_never_raises(self, session, banking_basics, monkeypatch):
        session.activate_lesson(banking_basics)

        def explode(*args, **kwargs):
            raise RuntimeError("tracker bug")

        monkeypatch.setattr(session.tracker, "record_action", explode)
        assert session.process_action("transfer_completed", {}) == []

    def test_mistake_targets(self, session, banking_basics, budget_lesson):
        session.activate_lesson(banking_basics)
        session.activate_lesson(budget_lesson)

        session.record_lesson_mistake("overdraft")
        session.record_lesson_mistake("wrong_account", lesson_id="budget_101")
        session.record_lesson_mistake("ignored", lesson_id="not_active")

        assert session.progress("banking_basics").app_usage_score == 65.0
        assert session.progress("budget_101").app_usage_score == 60.0

    def test_quiz_score(self, session, budget_lesson):
        session.activate_lesson(budget_lesson)
        session.add_quiz_score(9, 10, "Quiz", lesson_id="budget_101")

        assert session.progress("budget_101").quiz_average == pytest.approx(90.0)
        record = session.registry.completed_record("budget_101")
        assert record.completion_type == CompletionType.QUIZ
        assert record.score.final_score == 97

    def test_quiz_waits_for_content(self, session, slider_lesson):
        session.activate_lesson(slider_lesson)
        session.add_quiz_score(6, 10, "Statements quiz")
        assert session.registry.is_active("reading_statements")

        session.process_action("lesson_content_viewed", {"slidesViewed": 3, "totalSlides": 3})

        record = session.registry.completed_record("reading_statements")
        assert record.completion_type == CompletionType.CONTENT_ONLY
        # 0.7 * 100 + 0.3 * 60
        assert record.score.final_score == 88

    def test_guarded_required_action(self, session, renderer):
        session.activate_lesson(
            {
                "id": "first_deposit",
                "required_actions": ["deposit_made"],
                "conditions": [
                    {
                        "condition_type": "deposit_made",
                        "condition_value": {"amount": 500},
                        "action_type": "send_message",
                        "action_details": {"message": "You deposited $500."},
                    }
                ],
            }
        )

        session.process_action("deposit_made", {"amount": 10})
        assert session.registry.get("first_deposit").condition_met == [False]
        assert not session.is_completed("first_deposit")

        session.process_action("deposit_made", {"amount": 500})
        record = session.registry.completed_record("first_deposit")
        assert record.completion_type == CompletionType.REQUIRED_ACTIONS
        assert renderer.modals[-1]["message"] == "You deposited $500."

    def test_complete_inactive(self, session):
        assert session.complete_lesson("missing") is None


class TestElapsedTime:

    def test_tick_fires_elapsed_condition(self, session, renderer, banking_basics):
        session.start_lesson(banking_basics)
        started = session.registry.get("banking_basics").started_at

        assert session.tick(now=started + 120) == []
        results = session.tick(now=started + 301)

        assert [r.condition_type for r in results] == ["elapsed_time"]
        assert renderer.modals[-1]["message"] == "Try making a transfer."

    def test_tick_ignores_lessons_without_clock(self, session, banking_basics):
        session.activate_lesson(banking_basics)
        assert session.tick(now=10_000.0) == []

    def test_clock_thread(self, session, banking_basics, monkeypatch):
        ticked = threading.Event()
        monkeypatch.setattr(session, "tick", lambda now=None: ticked.set())

        clock = LessonClock(session, interval_seconds=0.01)
        stop = clock.start()

        assert clock.start() is stop
        assert ticked.wait(timeout=2.0)
        stop()
        assert not clock.is_running


class TestSnapshotAndRestore:

    def test_restore(self, banking_basics, budget_lesson, renderer, policy):
        first = LessonSession("Jake", renderer=renderer, policy=policy)
        first.activate_lesson(banking_basics)
        first.activate_lesson(budget_lesson)
        first.process_action("transfer_completed", {})
        first.complete_lesson("budget_101")
        first.registry.get("banking_basics").elapsed_time = 42.0
        snapshot = first.snapshot()
        first.close()

        lessons = {
            "banking_basics": LessonDefinition.model_validate(banking_basics),
            "budget_101": LessonDefinition.model_validate(budget_lesson),
        }
        second = LessonSession("Jake", renderer=renderer, policy=policy)
        second.restore(snapshot, lessons)

        state = second.registry.get("banking_basics")
        assert state.condition_met == [True, False, False, False]
        assert state.fired_actions == {"praise_good_habit"}
        assert state.elapsed_time == 42.0
        assert second.is_completed("budget_101")
        assert second.start_lesson(budget_lesson).status == "completed"
        assert second.process_action("transfer_completed", {}) == []
        second.close()

    def test_snapshot_fingerprint_ignores_timestamp(self, session, budget_lesson):
        session.activate_lesson(budget_lesson)
        a = session.snapshot()
        b = session.snapshot()
        assert a.fingerprint() == b.fingerprint()


class TestClose:

    def test_close_runs_stop_handles_once(self, session):
        calls = []
        handle = StopHandle(lambda: calls.append("stopped"))
        session.attach(handle)

        session.close()
        session.close()
        handle()

        assert calls == ["stopped"]

    def test_failing_stop_handle_is_logged(self, session):
        calls = []

        def broken():
            raise RuntimeError("already gone")

        session.attach(lambda: calls.append("second"))
        session.attach(broken)

        session.close()

        assert calls == ["second"]
