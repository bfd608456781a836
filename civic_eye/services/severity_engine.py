"""
Severity Engine - rule-based severity and priority derivation.

DESIGN PRINCIPLES:
- Severity is SYSTEM-DERIVED from (issue category, trust score) only
- Low-trust reports are discounted, never dropped
- Pure and deterministic: no I/O, no hidden state
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Union

from civic_eye.models.report_model import IssueCategory, PriorityTier

# Base severity by issue category (higher = more urgent)
BASE_SEVERITY = {
    IssueCategory.FIRE: 95,         # immediate danger
    IssueCategory.ACCIDENT: 90,     # safety issue
    IssueCategory.ROAD_BLOCK: 80,   # blocks traffic
    IssueCategory.WATER_LEAK: 70,   # infrastructure damage
    IssueCategory.POTHOLE: 60,      # road safety
    IssueCategory.GARBAGE: 50,      # public health
    IssueCategory.OTHER: 40,
}
DEFAULT_BASE_SEVERITY = BASE_SEVERITY[IssueCategory.OTHER]

# Trust bands: (exclusive upper bound, discount, floor). Trust >= 80 is not discounted.
TRUST_BANDS = (
    (40, 30, 20),
    (60, 15, 30),
    (80, 5, 40),
)

HIGH_PRIORITY_THRESHOLD = 85
MEDIUM_PRIORITY_THRESHOLD = 60


@dataclass(frozen=True)
class SeverityAssessment:
    severity_score: int
    priority: PriorityTier


def base_severity_for(issue_category: Union[IssueCategory, str, None]) -> int:
    """Base weight for a category; unknown categories fall back to 'other'."""
    try:
        category = IssueCategory(issue_category)
    except ValueError:
        return DEFAULT_BASE_SEVERITY
    return BASE_SEVERITY.get(category, DEFAULT_BASE_SEVERITY)


def priority_for(severity_score: int) -> PriorityTier:
    if severity_score >= HIGH_PRIORITY_THRESHOLD:
        return PriorityTier.HIGH
    if severity_score >= MEDIUM_PRIORITY_THRESHOLD:
        return PriorityTier.MEDIUM
    return PriorityTier.LOW


def _check_trust_score(trust_score) -> None:
    if isinstance(trust_score, bool) or not isinstance(trust_score, Real):
        raise ValueError(f"trust_score must be a number, got {trust_score!r}")
    if math.isnan(trust_score) or not 0 <= trust_score <= 100:
        raise ValueError(f"trust_score must be within [0, 100], got {trust_score!r}")


def derive(issue_category: Union[IssueCategory, str, None], trust_score: float) -> SeverityAssessment:
    """
    Derive (severity score, priority tier) from an issue category and a
    classifier trust score.

    Raises:
        ValueError: if trust_score is not a number in [0, 100]. Out-of-range
            scores indicate a broken classifier integration and are never
            clamped silently.
    """
    _check_trust_score(trust_score)

    severity = base_severity_for(issue_category)
    for upper_bound, discount, floor in TRUST_BANDS:
        if trust_score < upper_bound:
            severity = max(floor, severity - discount)
            break

    severity = max(0, min(100, severity))
    return SeverityAssessment(severity_score=severity, priority=priority_for(severity))
