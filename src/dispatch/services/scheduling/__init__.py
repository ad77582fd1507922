"""Conflict detection, eligibility and driver selection."""

from .conflicts import Conflict, ConflictChecker, has_overlap, validate_window
from .eligibility import Eligibility, EligibilityEvaluator
from .selector import Candidate, NearestDriverSelector

__all__ = [
    "Candidate",
    "Conflict",
    "ConflictChecker",
    "Eligibility",
    "EligibilityEvaluator",
    "NearestDriverSelector",
    "has_overlap",
    "validate_window",
]
