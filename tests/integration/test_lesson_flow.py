"""
Integration Tests for the Lesson Flow.

Tests the full path a student takes:
1. Lesson is started (validated, activated, clock started)
2. Banking actions satisfy conditions and fire reactions
3. Tracker scores the lesson and completes it
4. Telemetry reports the completion; the session can be resumed later
"""

import json

import httpx
import pytest

from src.delivery.telemetry import SessionTelemetryReporter
from src.lessons.loader import index_lessons, parse_lessons
from src.lessons.models import CompletionType
from src.lessons.session import LessonSession
from src.lessons.session_store import SessionStore

pytestmark = pytest.mark.integration


class TestBankingBasics:
    """The reference scenario: three required actions plus slides."""

    def test_perfect_run_earns_an_a(self, session, renderer, banking_basics):
        assert session.start_lesson(banking_basics).status == "fresh"

        session.process_action("lesson_content_viewed", {"slidesViewed": 5, "totalSlides": 5})
        session.process_action("transfer_completed", {"amount": 50, "from": "checking", "to": "savings"})
        session.process_action("deposit_made", {"amount": 500})
        session.process_action("bill_created", {"name": "Rent", "amount": 900})

        record = session.registry.completed_record("banking_basics")
        assert record.completion_type == CompletionType.REQUIRED_ACTIONS
        assert record.score.final_score == 100
        assert record.score.grade == "A"
        assert record.snapshot.required_met == 3
        assert [m["message"] for m in renderer.modals] == [
            "Nice transfer!",
            "You deposited $500.",
            "Pay bills before their due date.",
        ]

    def test_mistakes_lower_the_score(self, session, banking_basics):
        session.start_lesson(banking_basics)
        session.process_action("lesson_content_viewed", {"slidesViewed": 5, "totalSlides": 5})
        for _ in range(3):
            session.record_lesson_mistake("overdraft", {"account": "checking"})
        for action, params in (
            ("transfer_completed", {}),
            ("deposit_made", {"amount": 500}),
            ("bill_created", {}),
        ):
            session.process_action(action, params)

        record = session.registry.completed_record("banking_basics")
        # 30 + (70 - 15)
        assert record.score.final_score == 85
        assert record.score.grade == "B"
        assert record.snapshot.mistakes == 3

    def test_wrong_deposit_amount_does_not_fire(self, session, renderer, banking_basics):
        session.start_lesson(banking_basics)
        session.process_action("deposit_made", {"amount": "500"})

        assert session.registry.get("banking_basics").condition_met[1] is False
        assert renderer.modals == []

    def test_repeat_actions_fire_once(self, session, renderer, banking_basics):
        session.start_lesson(banking_basics)
        for _ in range(5):
            session.process_action("transfer_completed", {})

        assert len(renderer.modals) == 1


class TestCheckingAccountScenario:
    """Deposit, check the account, transfer, and read every slide."""

    @pytest.fixture
    def lesson(self):
        return {
            "lessonId": "banking_basics",
            "lessonTitle": "Banking Basics",
            "requiredActions": ["deposit_made", "account_checked", "transfer_completed"],
            "totalSlides": 8,
            "completionConditions": [
                {
                    "conditionType": "deposit_made",
                    "conditionValue": {"amount": 500},
                    "actionType": "send_message",
                    "actionDetails": {"message": "You deposited $500."},
                },
                {
                    "conditionType": "account_checked",
                    "conditionValue": {"accountType": "checking"},
                    "actionType": "show_tip",
                    "actionDetails": {"message": "Check your balance often."},
                },
            ],
        }

    def test_all_required_actions_earn_an_a(self, session, lesson):
        session.start_lesson(lesson)

        session.process_action("lesson_content_viewed", {"slidesViewed": 8, "totalSlides": 8})
        session.process_action("deposit_made", {"amount": 500})
        session.process_action("account_checked", {"accountType": "checking"})
        assert session.progress("banking_basics").required_met == 2
        session.process_action("transfer_completed", {"amount": 100})

        record = session.registry.completed_record("banking_basics")
        assert record.completion_type == CompletionType.REQUIRED_ACTIONS
        assert record.snapshot.required_met == 3
        assert record.snapshot.content_score == 30
        assert 90 <= record.snapshot.combined_score <= 100
        assert record.score.grade == "A"


class TestSliderOnly:

    def test_completes_at_100(self, session, slider_lesson):
        session.start_lesson(slider_lesson)
        session.process_action("lesson_content_viewed", {"slidesViewed": 3, "totalSlides": 3})

        record = session.registry.completed_record("reading_statements")
        assert record.completion_type == CompletionType.CONTENT_ONLY
        assert record.score.final_score == 100
        assert record.score.grade == "A"

    def test_mistakes_do_not_matter(self, session, slider_lesson):
        session.start_lesson(slider_lesson)
        session.record_lesson_mistake("clicked_wrong_tab")
        session.process_action("lesson_content_viewed", {"slidesViewed": 3, "totalSlides": 3})

        assert session.registry.completed_record("reading_statements").score.final_score == 100


class TestResume:

    def test_partial_resume(self, session, renderer, budget_lesson):
        session.start_lesson(budget_lesson)
        session.process_action("goal_set", {})
        session.deactivate_lesson("budget_101")

        result = session.start_lesson(budget_lesson)

        assert result.status == "partial"
        assert result.should_proceed is True
        assert (result.completed_count, result.total_count) == (1, 3)
        assert session.registry.is_active("budget_101")
        assert session.process_action("goal_set", {}) == []

    def test_already_completed_is_blocked(self, session, renderer, slider_lesson):
        session.start_lesson(slider_lesson)
        session.process_action("lesson_content_viewed", {"slidesViewed": 3, "totalSlides": 3})

        result = session.start_lesson(slider_lesson)

        assert result.status == "completed"
        assert result.should_proceed is False
        assert not session.registry.is_active("reading_statements")
        assert "already completed" in renderer.modals[-1]["message"]

    def test_resume_from_store(self, tmp_path, renderer, policy, banking_basics, budget_lesson):
        lessons = index_lessons(parse_lessons([banking_basics, budget_lesson]))
        store = SessionStore(tmp_path)

        first = LessonSession("Jake Ferguson", renderer=renderer, policy=policy)
        first.start_lesson(banking_basics)
        first.process_action("transfer_completed", {})
        store.save_snapshot(first.snapshot())
        first.close()

        second = LessonSession("Jake Ferguson", renderer=renderer, policy=policy)
        second.restore(store.load("Jake Ferguson").to_snapshot(), lessons)
        second.deactivate_lesson("banking_basics")

        result = second.start_lesson(banking_basics)
        assert result.status == "partial"
        assert (result.completed_count, result.total_count) == (1, 4)
        second.close()


class TestTelemetryFlow:

    def test_completion_reaches_endpoint(self, renderer, policy, slider_lesson):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        session = LessonSession("Jake Ferguson", renderer=renderer, policy=policy)
        reporter = SessionTelemetryReporter(
            session,
            "Jake Ferguson",
            endpoint="http://sdsm.test/api/sdsm/session",
            interval_seconds=60,
            client=client,
        )
        reporter.start()

        session.start_lesson(slider_lesson)
        session.process_action("lesson_content_viewed", {"slidesViewed": 3, "totalSlides": 3})
        session.close()

        final = received[-1]
        assert final["studentName"] == "Jake Ferguson"
        assert final["activeLessons"] == []
        assert final["completedLessons"][0]["lessonId"] == "reading_statements"
        assert final["completedLessons"][0]["score"]["grade"] == "A"
        client.close()
