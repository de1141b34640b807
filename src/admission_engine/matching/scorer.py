"""Match Scorer - weighted multi-criteria job/student compatibility."""

from __future__ import annotations

from admission_engine.config import MatchSettings
from admission_engine.matching.models import (
    CandidateProfile,
    CriterionScore,
    JobRequirements,
    MatchResult,
)

ACADEMIC = "academic"
SKILLS = "skills"
EXPERIENCE = "experience"
QUALIFICATION = "qualification"


def _contains_either_way(left: str, right: str) -> bool:
    a, b = left.casefold(), right.casefold()
    return a in b or b in a


class MatchScorer:
    """Scores how well a candidate fits a job.

    Each criterion is evaluated only when the data it needs is present.
    Missing criteria are skipped rather than scored as zero, and the weighted
    sum is divided by the weights of the criteria that were evaluated.
    """

    def __init__(self, settings: MatchSettings | None = None) -> None:
        """Initialize the scorer.

        Args:
            settings: Weights and thresholds. Defaults to MatchSettings().
        """
        self.settings = settings or MatchSettings()

    def score(self, candidate: CandidateProfile, job: JobRequirements) -> MatchResult:
        """Score a candidate against a job.

        Args:
            candidate: The student's matching profile.
            job: The job's requirements.

        Returns:
            MatchResult with a score in [0, 1]. The score is 0 when no
            criterion could be evaluated.
        """
        criteria = [
            criterion
            for criterion in (
                self._academic(candidate),
                self._skills(candidate, job),
                self._experience(candidate, job),
                self._qualification(candidate, job),
            )
            if criterion is not None
        ]

        total_weight = sum(c.weight for c in criteria)
        if total_weight <= 0:
            value = 0.0
        else:
            value = sum(c.weight * c.score for c in criteria) / total_weight

        return MatchResult(
            score=value,
            is_qualified=self.is_qualified(value),
            is_good_match=self.is_good_match(value),
            criteria=tuple(criteria),
        )

    def is_qualified(self, score: float) -> bool:
        """Whether a score is high enough to list or notify the candidate."""
        return score >= self.settings.qualified_threshold

    def is_good_match(self, score: float) -> bool:
        """Whether a score is high enough to be shown as a good match."""
        return score >= self.settings.good_match_threshold

    def _academic(self, candidate: CandidateProfile) -> CriterionScore | None:
        if candidate.gpa is None:
            return None
        value = min(candidate.gpa / self.settings.max_gpa, 1.0)
        return CriterionScore(
            name=ACADEMIC,
            weight=self.settings.academic_weight,
            score=value,
            detail=f"GPA: {candidate.gpa}/{self.settings.max_gpa}",
        )

    def _skills(self, candidate: CandidateProfile, job: JobRequirements) -> CriterionScore | None:
        if not job.skills:
            return None
        matched = [
            required
            for required in job.skills
            if any(_contains_either_way(skill, required) for skill in candidate.skills)
        ]
        return CriterionScore(
            name=SKILLS,
            weight=self.settings.skills_weight,
            score=len(matched) / len(job.skills),
            detail=f"Matched {len(matched)} of {len(job.skills)} required skills",
        )

    def _experience(
        self, candidate: CandidateProfile, job: JobRequirements
    ) -> CriterionScore | None:
        if job.experience_years is None or candidate.experience_years is None:
            return None
        required = job.experience_years
        value = min(candidate.experience_years / max(required, 1.0), 1.0)
        return CriterionScore(
            name=EXPERIENCE,
            weight=self.settings.experience_weight,
            score=value,
            detail=f"{candidate.experience_years:g} years vs required {required:g} years",
        )

    def _qualification(
        self, candidate: CandidateProfile, job: JobRequirements
    ) -> CriterionScore | None:
        if not job.qualifications or not candidate.qualifications:
            return None
        found = any(
            wanted.casefold() in held.casefold()
            for wanted in job.qualifications
            for held in candidate.qualifications
        )
        return CriterionScore(
            name=QUALIFICATION,
            weight=self.settings.qualification_weight,
            score=1.0 if found else 0.0,
            detail="Qualification matched" if found else "No matching qualification",
        )
