"""Letter grade ordering and GPA calculation."""

from __future__ import annotations

from collections.abc import Mapping

# Worst to best. Requirements are expressed against this alphabet.
GRADE_ORDER: tuple[str, ...] = ("F", "E", "D", "C", "B", "A", "A+")

_RANKS: dict[str, int] = {grade: index for index, grade in enumerate(GRADE_ORDER)}

# Transcripts may carry +/- variants that the requirement alphabet does not.
GRADE_POINTS: dict[str, float] = {
    "A+": 4.0,
    "A": 4.0,
    "A-": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B-": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C-": 1.7,
    "D+": 1.3,
    "D": 1.0,
    "D-": 0.7,
    "F": 0.0,
}


def normalize_grade(grade: object) -> str | None:
    """Normalize a grade token to upper case without surrounding whitespace.

    Returns None for anything that is not a non-empty string.
    """
    if not isinstance(grade, str):
        return None
    token = grade.strip().upper()
    return token or None


def grade_rank(grade: object) -> int | None:
    """Position of a grade in GRADE_ORDER, or None if the grade is unknown."""
    token = normalize_grade(grade)
    if token is None:
        return None
    return _RANKS.get(token)


def is_known_grade(grade: object) -> bool:
    """Whether the grade belongs to the requirement alphabet."""
    return grade_rank(grade) is not None


def meets_minimum(grade: object, minimum: object) -> bool:
    """Whether ``grade`` is at least as good as ``minimum``.

    Unknown or missing tokens on either side fail the comparison. This never
    raises: a missing grade means "not qualified", not an error.
    """
    grade_position = grade_rank(grade)
    minimum_position = grade_rank(minimum)
    if grade_position is None or minimum_position is None:
        return False
    return grade_position >= minimum_position


def calculate_gpa(grades: Mapping[str, object] | None) -> float | None:
    """Average grade points over the recognised grades, rounded to 2 places.

    Args:
        grades: Mapping of subject to letter grade.

    Returns:
        The GPA on a 4.0 scale, or None when no grade is recognised.
    """
    if not grades:
        return None

    points = [
        GRADE_POINTS[token]
        for token in (normalize_grade(grade) for grade in grades.values())
        if token in GRADE_POINTS
    ]
    if not points:
        return None
    return round(sum(points) / len(points), 2)
