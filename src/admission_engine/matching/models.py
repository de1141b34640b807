"""Data models for job matching."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from admission_engine.exceptions import ValidationError

if TYPE_CHECKING:
    from admission_engine.state_store.models import Job, Student

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def parse_years(value: Any) -> float | None:
    """Read a number of years from free text such as "3", "2.5 years" or "3+ yrs".

    Returns None when no leading number is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _LEADING_NUMBER.match(value)
    if match is None:
        return None
    return float(match.group(1))


def _tokens(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        raise ValidationError(f"{field_name} must be a list of strings")
    tokens: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{field_name} must be a list of strings")
        if item.strip():
            tokens.append(item.strip())
    return tuple(tokens)


@dataclass(frozen=True)
class CandidateProfile:
    """What the scorer knows about a student. None means "not provided"."""

    gpa: float | None = None
    skills: tuple[str, ...] = ()
    experience_years: float | None = None
    qualifications: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        gpa: float | None = None,
        skills: Any = None,
        experience_years: float | None = None,
        qualifications: Any = None,
    ) -> CandidateProfile:
        """Validate raw values and build a profile.

        Raises:
            ValidationError: If a numeric value is negative or a list holds non-strings.
        """
        if gpa is not None and (isinstance(gpa, bool) or not isinstance(gpa, int | float)):
            raise ValidationError("GPA must be a number")
        if gpa is not None and gpa < 0:
            raise ValidationError("GPA cannot be negative")
        if experience_years is not None and experience_years < 0:
            raise ValidationError("Experience cannot be negative")
        return cls(
            gpa=float(gpa) if gpa is not None else None,
            skills=_tokens(skills, "skills"),
            experience_years=float(experience_years) if experience_years is not None else None,
            qualifications=_tokens(qualifications, "qualifications"),
        )

    @classmethod
    def from_student(cls, student: Student) -> CandidateProfile:
        """Build a profile from a stored student."""
        return cls.build(
            gpa=student.gpa,
            skills=student.skills,
            experience_years=student.experience_years,
            qualifications=student.qualifications,
        )


@dataclass(frozen=True)
class JobRequirements:
    """What a job posting asks for."""

    skills: tuple[str, ...] = ()
    qualifications: tuple[str, ...] = ()
    experience_years: float | None = None

    @classmethod
    def build(
        cls,
        skills: Any = None,
        qualifications: Any = None,
        experience: Any = None,
    ) -> JobRequirements:
        """Validate raw values and build the requirements.

        Raises:
            ValidationError: If a list holds non-strings.
        """
        return cls(
            skills=_tokens(skills, "requirements"),
            qualifications=_tokens(qualifications, "qualifications"),
            experience_years=parse_years(experience),
        )

    @classmethod
    def from_job(cls, job: Job) -> JobRequirements:
        """Build requirements from a stored job."""
        return cls.build(
            skills=job.requirements,
            qualifications=job.qualifications,
            experience=job.experience,
        )


@dataclass(frozen=True)
class CriterionScore:
    """One evaluated criterion."""

    name: str
    weight: float
    score: float
    detail: str = ""


@dataclass(frozen=True)
class MatchResult:
    """Weighted match score between 0 and 1 with its breakdown."""

    score: float
    is_qualified: bool
    is_good_match: bool
    criteria: tuple[CriterionScore, ...] = field(default_factory=tuple)

    @property
    def percent(self) -> int:
        """Score as a whole percentage."""
        return round(self.score * 100)


@dataclass(frozen=True)
class RankedJob:
    """A job together with its match result for one student."""

    job: Job
    match: MatchResult


@dataclass(frozen=True)
class RankedCandidate:
    """A student together with their match result for one job."""

    student: Student
    match: MatchResult
