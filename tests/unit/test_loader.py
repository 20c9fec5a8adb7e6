"""
Unit tests for lesson file loading and definition parsing.
"""

import json

import pytest

from src.lessons.errors import LessonDefinitionError
from src.lessons.loader import index_lessons, load_lessons, parse_lessons
from src.lessons.models import LessonDefinition


class TestLessonDefinition:
    """Alias handling in the lesson model."""

    def test_authoring_aliases(self, banking_basics):
        lesson = LessonDefinition.model_validate(banking_basics)

        assert lesson.id == "banking_basics"
        assert lesson.title == "Banking Basics"
        assert lesson.required_actions == ("transfer_completed", "deposit_made", "bill_created")
        assert lesson.conditions[1].condition_value == {"amount": 500}
        assert lesson.conditions[3].condition_value == {"seconds": 300}

    def test_camel_case_conditions(self):
        lesson = LessonDefinition.model_validate(
            {
                "lessonId": "x",
                "completionConditions": [
                    {"conditionType": "goal_set", "conditionValue": {}, "actionType": "show_tip", "actionDetails": None}
                ],
            }
        )
        condition = lesson.conditions[0]
        assert condition.condition_type == "goal_set"
        assert condition.condition_value is None
        assert condition.action_details == {}

    def test_definition_is_immutable(self, budget_lesson):
        lesson = LessonDefinition.model_validate(budget_lesson)
        with pytest.raises(Exception):
            lesson.title = "changed"


class TestLoadLessons:

    def test_list_file(self, tmp_path, banking_basics, budget_lesson):
        path = tmp_path / "lessons.json"
        path.write_text(json.dumps([banking_basics, budget_lesson]), encoding="utf-8")

        lessons = load_lessons(path)

        assert [lesson.id for lesson in lessons] == ["banking_basics", "budget_101"]
        assert set(index_lessons(lessons)) == {"banking_basics", "budget_101"}

    def test_wrapped_and_single(self, budget_lesson):
        assert parse_lessons({"lessons": [budget_lesson]})[0].id == "budget_101"
        assert parse_lessons(budget_lesson)[0].id == "budget_101"

    def test_missing_file(self, tmp_path):
        with pytest.raises(LessonDefinitionError, match="not found"):
            load_lessons(tmp_path / "nope.json")

    def test_bad_json(self, tmp_path):
        path = tmp_path / "lessons.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(LessonDefinitionError, match="not valid JSON"):
            load_lessons(path)

    def test_invalid_lesson(self):
        with pytest.raises(LessonDefinitionError, match="lesson #2"):
            parse_lessons([{"id": "ok"}, {"title": "no id"}])

    def test_duplicate_ids(self):
        with pytest.raises(LessonDefinitionError, match="duplicate"):
            parse_lessons([{"id": "a"}, {"_id": "a"}])
