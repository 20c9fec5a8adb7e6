"""
Unit tests for letter-grade banding.
"""

import pytest

from src.lessons.grading import grade_letter, is_passing, score_to_grade


class TestStandardScale:

    @pytest.mark.parametrize(
        "score,grade",
        [
            (100, "A"),
            (90, "A"),
            (89.9, "B"),
            (80, "B"),
            (79, "C"),
            (70, "C"),
            (69, "D"),
            (60, "D"),
            (59.99, "F"),
            (0, "F"),
        ],
    )
    def test_bands(self, score, grade):
        assert score_to_grade(score) == grade


class TestPlusMinusScale:

    @pytest.mark.parametrize(
        "score,grade",
        [
            (97, "A+"),
            (95, "A"),
            (90, "A-"),
            (88, "B+"),
            (85, "B"),
            (81, "B-"),
            (77, "C+"),
            (73, "C"),
            (70, "C-"),
            (67, "D+"),
            (63, "D"),
            (60, "D-"),
            (59, "F"),
        ],
    )
    def test_bands(self, score, grade):
        assert score_to_grade(score, plus_minus=True) == grade


def test_grade_letter():
    assert grade_letter("B+") == "B"
    assert grade_letter("F") == "F"


def test_is_passing():
    assert is_passing(60)
    assert not is_passing(59.5)
