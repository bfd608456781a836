"""
Verification Orchestrator.

Loads the stored photo, asks the external classifier for a trust score,
derives severity/priority and commits the verification fields in a single
write. Classifier failures are recorded as FAILED and surfaced as a
retryable ClassifierError; they never take down the request.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from civic_eye.core.access_control import require_access
from civic_eye.core.config import AI_TIMEOUT_SECONDS
from civic_eye.core.exceptions import ClassifierError, NotFoundError
from civic_eye.models.authority_model import Authority
from civic_eye.models.report_model import ReportModel, VerificationState, utcnow
from civic_eye.services import severity_engine
from civic_eye.services.report_service import ensure_verifiable

logger = logging.getLogger(__name__)


@dataclass
class VerificationOutcome:
    report: ReportModel
    explanation: Dict[str, Any] = field(default_factory=dict)


class VerificationOrchestrator:
    def __init__(self, store, classifier, timeout_seconds: float = AI_TIMEOUT_SECONDS):
        self.store = store
        self.classifier = classifier
        self.timeout_seconds = timeout_seconds

    async def verify(self, report_id: str, principal: Authority) -> VerificationOutcome:
        document = await self.store.find_report(report_id)
        if not document:
            raise NotFoundError("Report not found")
        report = ReportModel.from_document(document)

        require_access(principal, report)
        ensure_verifiable(report)

        try:
            image_content = await self.store.load_image(report.image_id)
        except NotFoundError:
            logger.error(f"❌ Image artifact missing for report {report.tracking_code}")
            await self._mark_failed(report)
            raise

        try:
            result = await asyncio.wait_for(
                self.classifier.classify(image_content, report.issue_type.value),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⏰ Verification of {report.tracking_code} timed out after {self.timeout_seconds}s")
            await self._mark_failed(report)
            raise ClassifierError("AI verification service unavailable: timed out")
        except ClassifierError as e:
            logger.warning(f"AI verification failed for {report.tracking_code}: {e.message}")
            await self._mark_failed(report)
            raise ClassifierError(f"AI verification service unavailable: {e.message}")

        assessment = severity_engine.derive(report.issue_type, result.trust_score)
        now = utcnow()
        updated = await self.store.update_report(
            report.id,
            {
                "trust_score": result.trust_score,
                "severity_score": assessment.severity_score,
                "priority": assessment.priority.value,
                "verification_state": VerificationState.COMPLETED.value,
                "verified_at": now,
                "updated_at": now,
            },
        )
        if not updated:
            raise NotFoundError("Report not found")

        logger.info(
            f"✅ Report {report.tracking_code} verified: trust={result.trust_score} "
            f"severity={assessment.severity_score} priority={assessment.priority.value}"
        )
        return VerificationOutcome(report=ReportModel.from_document(updated), explanation=result.explanation)

    async def _mark_failed(self, report: ReportModel) -> None:
        # Only the state changes; previous trust/severity/priority are kept
        await self.store.update_report(
            report.id,
            {"verification_state": VerificationState.FAILED.value, "updated_at": utcnow()},
        )
