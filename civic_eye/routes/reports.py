"""
Report routes: public submission and tracking, authority listing,
resolution updates and AI verification.
"""

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from typing import Optional
import logging

from civic_eye.core.auth import get_current_authority
from civic_eye.core.config import DEFAULT_PAGE_LIMIT, MAX_IMAGE_BYTES, MAX_PAGE_LIMIT
from civic_eye.core.database import get_report_service, get_verification_orchestrator
from civic_eye.models.authority_model import Authority
from civic_eye.models.report_model import (
    ReportListResponse,
    ReportView,
    ResolutionUpdateRequest,
    ResolutionUpdateResponse,
    SubmissionResponse,
    TrackingView,
    VerificationResponse,
)
from civic_eye.services.classifier_service import ImageClassifier, get_image_classifier
from civic_eye.services.report_service import ReportService
from civic_eye.services.verification_service import VerificationOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.post("/reports", response_model=SubmissionResponse, status_code=201)
async def submit_report(
    issue_type: Optional[str] = Form(None),
    region_code: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    service: ReportService = Depends(get_report_service),
    classifier: ImageClassifier = Depends(get_image_classifier),
):
    """Public: submit a new report with a photo."""
    # one byte past the limit is enough for validate_image to reject oversized uploads
    image_content = await image.read(MAX_IMAGE_BYTES + 1) if image is not None else None
    image_filename = image.filename if image is not None else None

    report = await service.submit(
        issue_type=issue_type,
        region_code=region_code,
        address=address,
        image_content=image_content,
        image_filename=image_filename,
        description=description,
        latitude=latitude,
        longitude=longitude,
        classifier_configured=classifier.is_configured,
    )
    return SubmissionResponse(
        tracking_code=report.tracking_code,
        id=report.id,
        verification_state=report.verification_state,
        resolution_state=report.resolution_state,
    )


@router.get("/reports/track/{tracking_code}", response_model=TrackingView)
async def track_report(tracking_code: str, service: ReportService = Depends(get_report_service)):
    """Public: track a complaint by its tracking code."""
    report = await service.track(tracking_code)
    return TrackingView.from_report(report)


# ============================================================================
# AUTHORITY ENDPOINTS
# ============================================================================

@router.get("/reports", response_model=ReportListResponse)
async def list_reports(
    region_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    skip: int = Query(0, ge=0),
    current: Authority = Depends(get_current_authority),
    service: ReportService = Depends(get_report_service),
):
    """List reports, filtered to the caller's assigned regions."""
    reports, total = await service.list_reports(
        current,
        region_code=region_code,
        status=status,
        priority=priority,
        limit=limit,
        skip=skip,
    )
    return ReportListResponse(
        reports=[ReportView.from_report(r) for r in reports],
        total=total,
        limit=limit,
        skip=skip,
    )


@router.get("/reports/{report_id}", response_model=ReportView)
async def get_report(
    report_id: str,
    current: Authority = Depends(get_current_authority),
    service: ReportService = Depends(get_report_service),
):
    report = await service.get_report(report_id, current)
    return ReportView.from_report(report)


@router.get("/reports/{report_id}/image")
async def get_report_image(
    report_id: str,
    current: Authority = Depends(get_current_authority),
    service: ReportService = Depends(get_report_service),
):
    content, content_type = await service.get_image(report_id, current)
    return Response(content=content, media_type=content_type)


@router.put("/reports/{report_id}/status", response_model=ResolutionUpdateResponse)
async def update_report_status(
    report_id: str,
    body: ResolutionUpdateRequest,
    current: Authority = Depends(get_current_authority),
    service: ReportService = Depends(get_report_service),
):
    report = await service.set_resolution(report_id, body.status, current)
    return ResolutionUpdateResponse(status=report.resolution_state)


@router.post("/reports/{report_id}/verify", response_model=VerificationResponse)
async def verify_report(
    report_id: str,
    current: Authority = Depends(get_current_authority),
    orchestrator: VerificationOrchestrator = Depends(get_verification_orchestrator),
):
    """
    Trigger AI verification. Safe to re-run after FAILED or COMPLETED;
    classifier failures return 503 and leave the report FAILED.
    """
    outcome = await orchestrator.verify(report_id, current)
    report = outcome.report
    return VerificationResponse(
        trust_score=report.trust_score,
        severity_score=report.severity_score,
        priority=report.priority,
        verification_state=report.verification_state,
        explanation=outcome.explanation,
    )
