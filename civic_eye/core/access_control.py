"""
Region-scoped access control.

Every listing and mutating operation on reports goes through this module.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

from civic_eye.core.exceptions import AuthorizationError
from civic_eye.models.authority_model import Authority
from civic_eye.models.report_model import ReportModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionConstraint:
    """
    Regions a listing is limited to.

    regions=None means unconstrained; an empty set means no results.
    """
    regions: Optional[FrozenSet[str]]

    @property
    def is_unconstrained(self) -> bool:
        return self.regions is None

    @property
    def denies_all(self) -> bool:
        return self.regions is not None and not self.regions

    def to_query(self) -> Dict[str, Any]:
        """MongoDB filter fragment on region_code."""
        if self.regions is None:
            return {}
        if len(self.regions) == 1:
            return {"region_code": next(iter(self.regions))}
        return {"region_code": {"$in": sorted(self.regions)}}


def can_access(principal: Authority, report: ReportModel) -> bool:
    if principal.is_admin:
        return True
    # Empty assignment is deny-by-default, not "see everything"
    if not principal.assigned_regions:
        return False
    return report.region_code in principal.assigned_regions


def require_access(principal: Authority, report: ReportModel) -> None:
    if not can_access(principal, report):
        logger.warning(
            f"Access denied: {principal.email} (role: {principal.role.value}) "
            f"-> report {report.id} in region {report.region_code}"
        )
        raise AuthorizationError("You don't have access to this report's region")


def can_list(principal: Authority, region_filter: Optional[str] = None) -> RegionConstraint:
    """
    Listing scope for a principal.

    A non-admin filter outside the assigned set is ignored and the full
    assigned set is used instead of returning nothing.
    """
    if principal.is_admin:
        if region_filter:
            return RegionConstraint(frozenset({region_filter}))
        return RegionConstraint(None)

    assigned = frozenset(principal.assigned_regions)
    if not assigned:
        return RegionConstraint(frozenset())

    if region_filter and region_filter in assigned:
        return RegionConstraint(frozenset({region_filter}))
    return RegionConstraint(assigned)
