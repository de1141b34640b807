"""Grading - letter grade ordering, GPA and course qualification checks."""

from admission_engine.grading.grades import (
    GRADE_ORDER,
    calculate_gpa,
    grade_rank,
    is_known_grade,
    meets_minimum,
    normalize_grade,
)
from admission_engine.grading.qualification import (
    NOT_PROVIDED,
    QualificationVerdict,
    RequirementResult,
    SubjectRequirement,
    evaluate_qualification,
)

__all__ = [
    "GRADE_ORDER",
    "NOT_PROVIDED",
    "QualificationVerdict",
    "RequirementResult",
    "SubjectRequirement",
    "calculate_gpa",
    "evaluate_qualification",
    "grade_rank",
    "is_known_grade",
    "meets_minimum",
    "normalize_grade",
]
