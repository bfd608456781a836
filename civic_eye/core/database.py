# 🗄️ Store Dependencies
# FastAPI dependency functions wiring MongoDB-backed stores into the services

from fastapi import Depends

from civic_eye.services.classifier_service import ImageClassifier, get_image_classifier
from civic_eye.services.mongodb_service import (
    MongoAuthorityStore,
    MongoReportStore,
    get_db,
    get_fs,
)
from civic_eye.services.report_service import ReportService
from civic_eye.services.verification_service import VerificationOrchestrator


async def get_report_store() -> MongoReportStore:
    """FastAPI dependency for the report store"""
    return MongoReportStore(await get_db(), await get_fs())


async def get_authority_store() -> MongoAuthorityStore:
    """FastAPI dependency for the authority store"""
    return MongoAuthorityStore(await get_db())


async def get_report_service(store=Depends(get_report_store)) -> ReportService:
    return ReportService(store)


async def get_verification_orchestrator(
    store=Depends(get_report_store),
    classifier: ImageClassifier = Depends(get_image_classifier),
) -> VerificationOrchestrator:
    return VerificationOrchestrator(store, classifier, timeout_seconds=classifier.timeout_seconds)
