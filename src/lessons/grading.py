"""
Letter-grade banding for lesson scores.

Two scales are supported:
- Standard: A/B/C/D/F on ten-point bands
- Plus/minus: each band split into +, plain and - (A+ at 97 and above)
"""

from __future__ import annotations

STANDARD_SCALE: tuple[tuple[float, str], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)

PLUS_MINUS_SCALE: tuple[tuple[float, str], ...] = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
)

FAILING = "F"


def score_to_grade(score: float, plus_minus: bool = False) -> str:
    """
    Convert a 0-100 score to a letter grade.

    Args:
        score: Final lesson score
        plus_minus: Use the A+/A/A- scale

    Returns:
        Letter grade ("F" below 60)
    """
    scale = PLUS_MINUS_SCALE if plus_minus else STANDARD_SCALE
    for threshold, letter in scale:
        if score >= threshold:
            return letter
    return FAILING


def grade_letter(grade: str) -> str:
    """Strip the +/- modifier: "B+" -> "B"."""
    return grade[:1]


def is_passing(score: float) -> bool:
    return score_to_grade(score) != FAILING
