"""
Report lifecycle: submission, public tracking, region-scoped listing and
resolution updates.

Two independent axes:
- verification_state: PENDING -> COMPLETED | FAILED, or UNAVAILABLE at submission
- resolution_state:   Pending -> In Progress -> Resolved (Pending -> Resolved allowed)
"""

import logging
from typing import Optional, List, Tuple, Union

from pymongo.errors import DuplicateKeyError

from civic_eye.core.access_control import can_list, require_access
from civic_eye.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from civic_eye.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from civic_eye.models.authority_model import Authority
from civic_eye.models.report_model import (
    IssueCategory,
    PriorityTier,
    ReportModel,
    ResolutionState,
    VerificationState,
    utcnow,
)
from civic_eye.utils.helpers import generate_tracking_code, is_tracking_code
from civic_eye.utils.location import parse_coordinates
from civic_eye.utils.validators import normalize_region_code, validate_image, validate_region_code

logger = logging.getLogger(__name__)

MAX_TRACKING_CODE_ATTEMPTS = 3

# A fresh verification run is allowed from these states only
VERIFIABLE_STATES = {
    VerificationState.PENDING,
    VerificationState.COMPLETED,
    VerificationState.FAILED,
}


def parse_resolution_state(value: Union[str, ResolutionState, None]) -> ResolutionState:
    try:
        return ResolutionState(value)
    except ValueError:
        allowed = ", ".join(state.value for state in ResolutionState)
        raise InvalidStateError(f"Invalid status. Must be one of: {allowed}")


def ensure_verifiable(report: ReportModel) -> None:
    if report.verification_state not in VERIFIABLE_STATES:
        raise InvalidStateError(
            f"Report {report.tracking_code} cannot be verified from state "
            f"{report.verification_state.value}"
        )


def _require_text(name: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("Issue type, region code, and address are required", {"missing": name})
    return str(value).strip()


class ReportService:
    def __init__(self, store):
        self.store = store

    async def submit(
        self,
        issue_type: Optional[str],
        region_code: Optional[str],
        address: Optional[str],
        image_content: Optional[bytes],
        image_filename: Optional[str],
        description: Optional[str] = None,
        latitude=None,
        longitude=None,
        classifier_configured: bool = False,
    ) -> ReportModel:
        """
        Create a report from a public submission.

        All validation happens before anything is written. The image is
        stored first; if the report insert then fails the image is removed.
        """
        issue_type = _require_text("issue_type", issue_type)
        region_code = _require_text("region_code", region_code)
        address = _require_text("address", address)

        try:
            category = IssueCategory(issue_type.lower())
        except ValueError:
            allowed = ", ".join(c.value for c in IssueCategory)
            raise ValidationError(f"Invalid issue type. Must be one of: {allowed}")

        if not validate_region_code(region_code):
            raise ValidationError("Invalid region code")
        region_code = normalize_region_code(region_code)

        lat, lng, geohash = parse_coordinates(latitude, longitude)
        content_type = validate_image(image_content, image_filename)

        verification_state = (
            VerificationState.PENDING if classifier_configured else VerificationState.UNAVAILABLE
        )
        report = ReportModel(
            tracking_code=generate_tracking_code(),
            issue_type=category,
            description=(description or "").strip(),
            region_code=region_code,
            address=address,
            latitude=lat,
            longitude=lng,
            geohash=geohash,
            image_filename=image_filename,
            image_content_type=content_type,
            verification_state=verification_state,
            resolution_state=ResolutionState.PENDING,
        )

        report.image_id = await self.store.save_image(
            filename=f"{report.id}{_extension(image_filename)}",
            content=image_content,
            metadata={"report_id": report.id, "content_type": content_type},
        )

        try:
            await self._insert_with_unique_code(report)
        except (DuplicateKeyError, PersistenceError):
            await self.store.delete_image(report.image_id)
            raise

        logger.info(
            f"📝 Report {report.tracking_code} submitted: {category.value} in {region_code}, "
            f"verification {verification_state.value}"
        )
        return report

    async def _insert_with_unique_code(self, report: ReportModel) -> None:
        for attempt in range(1, MAX_TRACKING_CODE_ATTEMPTS + 1):
            try:
                await self.store.insert_report(report.to_document())
                return
            except DuplicateKeyError:
                if attempt == MAX_TRACKING_CODE_ATTEMPTS:
                    logger.error(f"Could not allocate a unique tracking code for report {report.id}")
                    raise PersistenceError("Failed to allocate a tracking code")
                logger.warning(f"Tracking code collision on {report.tracking_code}, regenerating")
                report.tracking_code = generate_tracking_code()

    async def _load(self, report_id: str) -> ReportModel:
        document = await self.store.find_report(report_id)
        if not document:
            raise NotFoundError("Report not found")
        return ReportModel.from_document(document)

    async def track(self, tracking_code: str) -> ReportModel:
        tracking_code = tracking_code.strip()
        if not is_tracking_code(tracking_code):
            raise NotFoundError("Complaint not found")
        document = await self.store.find_by_tracking_code(tracking_code)
        if not document:
            raise NotFoundError("Complaint not found")
        return ReportModel.from_document(document)

    async def get_report(self, report_id: str, principal: Authority) -> ReportModel:
        report = await self._load(report_id)
        require_access(principal, report)
        return report

    async def get_image(self, report_id: str, principal: Authority) -> Tuple[bytes, str]:
        report = await self.get_report(report_id, principal)
        content = await self.store.load_image(report.image_id)
        return content, report.image_content_type or "application/octet-stream"

    async def list_reports(
        self,
        principal: Authority,
        region_code: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        skip: int = 0,
    ) -> Tuple[List[ReportModel], int]:
        if limit < 1 or limit > MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        if skip < 0:
            raise ValidationError("skip must be non-negative")

        region_filter = normalize_region_code(region_code) if region_code and region_code.strip() else None
        constraint = can_list(principal, region_filter)
        if constraint.denies_all:
            # No assigned regions = no access
            return [], 0

        query = constraint.to_query()
        if status:
            try:
                query["resolution_state"] = ResolutionState(status).value
            except ValueError:
                raise ValidationError(f"Invalid status filter: {status}")
        if priority:
            try:
                query["priority"] = PriorityTier(priority.upper()).value
            except ValueError:
                raise ValidationError(f"Invalid priority filter: {priority}")

        documents, total = await self.store.find_reports(query, skip=skip, limit=limit)
        return [ReportModel.from_document(doc) for doc in documents], total

    async def set_resolution(
        self,
        report_id: str,
        new_state: Union[str, ResolutionState, None],
        principal: Authority,
    ) -> ReportModel:
        """Overwrite the resolution state; no ordering is enforced beyond the three values."""
        resolution = parse_resolution_state(new_state)
        report = await self._load(report_id)
        require_access(principal, report)

        updated = await self.store.update_report(
            report.id,
            {"resolution_state": resolution.value, "updated_at": utcnow()},
        )
        if not updated:
            raise NotFoundError("Report not found")

        logger.info(
            f"Report {report.tracking_code} status {report.resolution_state.value} -> "
            f"{resolution.value} by {principal.email}"
        )
        return ReportModel.from_document(updated)


def _extension(filename: Optional[str]) -> str:
    if filename and "." in filename:
        return "." + filename.rsplit(".", 1)[-1].lower()
    return ".jpg"
