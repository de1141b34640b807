"""Matching - weighted job/student compatibility scoring."""

from admission_engine.matching.models import (
    CandidateProfile,
    CriterionScore,
    JobRequirements,
    MatchResult,
    RankedCandidate,
    RankedJob,
    parse_years,
)
from admission_engine.matching.scorer import MatchScorer
from admission_engine.matching.service import JobMatchingService

__all__ = [
    "CandidateProfile",
    "CriterionScore",
    "JobMatchingService",
    "JobRequirements",
    "MatchResult",
    "MatchScorer",
    "RankedCandidate",
    "RankedJob",
    "parse_years",
]
