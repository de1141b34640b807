"""Qualification Evaluator - checks a student's grades against course requirements.

The evaluation is pure: it reads only its arguments, so the same inputs always
produce the same verdict. Applications store the verdict at submission time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any

from admission_engine.exceptions import ValidationError
from admission_engine.grading.grades import is_known_grade, meets_minimum, normalize_grade

NOT_PROVIDED = "not provided"


@dataclass(frozen=True)
class SubjectRequirement:
    """Minimum grade a course asks for in one subject."""

    subject: str
    minimum_grade: str
    is_mandatory: bool = True

    @classmethod
    def parse(cls, raw: Any) -> SubjectRequirement:
        """Build a requirement from a mapping or any object with matching attributes.

        Raises:
            ValidationError: If the subject is blank or the minimum grade is unknown.
        """
        if isinstance(raw, SubjectRequirement):
            requirement = raw
        elif isinstance(raw, Mapping):
            requirement = cls(
                subject=raw.get("subject", ""),
                minimum_grade=raw.get("minimum_grade", raw.get("minimumGrade", "")),
                is_mandatory=bool(raw.get("is_mandatory", raw.get("isMandatory", True))),
            )
        elif hasattr(raw, "subject") and hasattr(raw, "minimum_grade"):
            requirement = cls(
                subject=raw.subject,
                minimum_grade=raw.minimum_grade,
                is_mandatory=bool(getattr(raw, "is_mandatory", True)),
            )
        else:
            raise ValidationError(f"Unsupported requirement value: {raw!r}")

        if not isinstance(requirement.subject, str) or not requirement.subject.strip():
            raise ValidationError("Requirement subject must be a non-empty string")
        if not is_known_grade(requirement.minimum_grade):
            raise ValidationError(
                f"Unknown minimum grade {requirement.minimum_grade!r} "
                f"for subject '{requirement.subject}'"
            )
        return requirement


@dataclass(frozen=True)
class RequirementResult:
    """Outcome of one requirement, kept for audit and display."""

    subject: str
    required_grade: str
    student_grade: str
    met: bool
    mandatory: bool


@dataclass(frozen=True)
class QualificationVerdict:
    """Whether the student meets the mandatory requirements, with a 0-100 score."""

    is_qualified: bool
    score: float
    details: tuple[RequirementResult, ...] = ()

    def details_as_dicts(self) -> list[dict[str, Any]]:
        """Details in a JSON-friendly form."""
        return [asdict(detail) for detail in self.details]


def _lookup_grade(grades: Mapping[str, Any], subject: str) -> str | None:
    if subject in grades:
        return normalize_grade(grades[subject])
    wanted = subject.strip().casefold()
    for name, grade in grades.items():
        if isinstance(name, str) and name.strip().casefold() == wanted:
            return normalize_grade(grade)
    return None


def evaluate_qualification(
    grades: Mapping[str, Any] | None,
    requirements: Iterable[Any] | None,
) -> QualificationVerdict:
    """Evaluate a student's grades against a course's subject requirements.

    Only mandatory requirements decide the verdict and the score. Unmet
    optional requirements are still listed in the details.

    Args:
        grades: Mapping of subject to letter grade. None means no grades.
        requirements: Requirements as SubjectRequirement objects, mappings,
            or objects exposing subject/minimum_grade/is_mandatory.

    Returns:
        The verdict. With no mandatory requirements the student is qualified
        with a score of 100.

    Raises:
        ValidationError: If grades is not a mapping or a requirement is malformed.
    """
    if grades is None:
        grades = {}
    if not isinstance(grades, Mapping):
        raise ValidationError("Grades must be a mapping of subject to grade")

    parsed = [SubjectRequirement.parse(raw) for raw in (requirements or [])]

    details: list[RequirementResult] = []
    mandatory_total = 0
    mandatory_met = 0
    for requirement in parsed:
        student_grade = _lookup_grade(grades, requirement.subject)
        met = meets_minimum(student_grade, requirement.minimum_grade)
        if requirement.is_mandatory:
            mandatory_total += 1
            if met:
                mandatory_met += 1
        details.append(
            RequirementResult(
                subject=requirement.subject,
                required_grade=normalize_grade(requirement.minimum_grade) or "",
                student_grade=student_grade or NOT_PROVIDED,
                met=met,
                mandatory=requirement.is_mandatory,
            )
        )

    if mandatory_total == 0:
        return QualificationVerdict(is_qualified=True, score=100.0, details=tuple(details))

    score = round(100.0 * mandatory_met / mandatory_total, 2)
    return QualificationVerdict(
        is_qualified=mandatory_met == mandatory_total,
        score=score,
        details=tuple(details),
    )
