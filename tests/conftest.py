"""
Pytest configuration and fixtures for Civic Eye tests.

Provides in-memory stores that mimic the MongoDB repository interface,
a scriptable classifier, and a TestClient wired to them.
"""
import asyncio
import copy
from io import BytesIO
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from PIL import Image
from pymongo.errors import DuplicateKeyError

from civic_eye.core.database import get_authority_store, get_report_store
from civic_eye.core.exceptions import NotFoundError
from civic_eye.main import app
from civic_eye.models.authority_model import AuthorityInDB, AuthorityRole
from civic_eye.services.classifier_service import ClassifierResult, get_image_classifier
from civic_eye.services.report_service import ReportService
from civic_eye.utils.security import create_access_token


# =============================================================================
# In-memory stores
# =============================================================================

def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class InMemoryReportStore:
    def __init__(self):
        self.reports: Dict[str, Dict[str, Any]] = {}
        self.images: Dict[str, bytes] = {}
        self.updates: List[Dict[str, Any]] = []
        self.fail_inserts = False

    async def save_image(self, filename: str, content: bytes, metadata: Dict[str, Any]) -> str:
        image_id = str(ObjectId())
        self.images[image_id] = content
        return image_id

    async def load_image(self, image_id: Optional[str]) -> bytes:
        if not image_id or image_id not in self.images:
            raise NotFoundError("Image file not found")
        return self.images[image_id]

    async def delete_image(self, image_id: str) -> None:
        self.images.pop(image_id, None)

    async def insert_report(self, document: Dict[str, Any]) -> None:
        if self.fail_inserts:
            raise DuplicateKeyError("E11000 duplicate key error", 11000)
        if any(r["tracking_code"] == document["tracking_code"] for r in self.reports.values()):
            raise DuplicateKeyError("E11000 duplicate key error", 11000)
        self.reports[document["_id"]] = copy.deepcopy(document)

    async def find_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        document = self.reports.get(report_id)
        return copy.deepcopy(document) if document else None

    async def find_by_tracking_code(self, tracking_code: str) -> Optional[Dict[str, Any]]:
        for document in self.reports.values():
            if document["tracking_code"] == tracking_code:
                return copy.deepcopy(document)
        return None

    async def find_reports(self, query: Dict[str, Any], skip: int, limit: int):
        matched = [d for d in self.reports.values() if _matches(d, query)]
        matched.sort(key=lambda d: d["created_at"], reverse=True)
        return copy.deepcopy(matched[skip:skip + limit]), len(matched)

    async def update_report(self, report_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if report_id not in self.reports:
            return None
        self.updates.append(dict(fields))
        self.reports[report_id].update(copy.deepcopy(fields))
        return copy.deepcopy(self.reports[report_id])


class InMemoryAuthorityStore:
    def __init__(self):
        self.authorities: Dict[str, Dict[str, Any]] = {}
        self.logins: List[str] = []

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.lower().strip()
        for document in self.authorities.values():
            if document["email"] == email:
                return copy.deepcopy(document)
        return None

    async def find_by_id(self, authority_id: str) -> Optional[Dict[str, Any]]:
        document = self.authorities.get(authority_id)
        return copy.deepcopy(document) if document else None

    async def insert_if_absent(self, document: Dict[str, Any]) -> bool:
        if await self.find_by_email(document["email"]):
            return False
        self.authorities[document["_id"]] = copy.deepcopy(document)
        return True

    async def record_login(self, authority_id: str, when) -> None:
        self.logins.append(authority_id)
        self.authorities[authority_id]["last_login"] = when


class FakeClassifier:
    """Scriptable classifier: returns `trust_score`, or raises `error`, optionally after `delay`."""

    def __init__(self, trust_score: float = 85.0, configured: bool = True):
        self.trust_score = trust_score
        self.explanation = {"summary": "pothole visible"}
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.is_configured = configured
        self.timeout_seconds = 30.0
        self.calls: List[Dict[str, Any]] = []

    async def classify(self, image_content: bytes, issue_type: str) -> ClassifierResult:
        self.calls.append({"size": len(image_content), "issue_type": issue_type})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ClassifierResult(trust_score=self.trust_score, explanation=dict(self.explanation))


# =============================================================================
# Factory Helpers
# =============================================================================

def make_image_bytes(image_format: str = "JPEG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (32, 32), (180, 40, 40)).save(buffer, format=image_format)
    return buffer.getvalue()


def make_authority(
    email: str = "ward@city.gov",
    role: AuthorityRole = AuthorityRole.AUTHORITY,
    regions=(),
    is_active: bool = True,
    password_hash: str = "not-a-real-hash",
) -> AuthorityInDB:
    return AuthorityInDB(
        email=email,
        name=email.split("@")[0],
        role=role,
        assigned_regions=list(regions),
        is_active=is_active,
        password_hash=password_hash,
    )


def submit_report(store, region_code: str = "560001", issue_type: str = "pothole", classifier_configured=True):
    service = ReportService(store)
    return asyncio.run(service.submit(
        issue_type=issue_type,
        region_code=region_code,
        address="12 MG Road",
        image_content=make_image_bytes(),
        image_filename="photo.jpg",
        classifier_configured=classifier_configured,
    ))


def auth_headers(authority: AuthorityInDB) -> Dict[str, str]:
    token = create_access_token(authority.email, claims={"id": authority.id, "role": authority.role.value})
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def report_store():
    return InMemoryReportStore()


@pytest.fixture
def authority_store():
    return InMemoryAuthorityStore()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes()


@pytest.fixture
def admin():
    return make_authority("admin@city.gov", role=AuthorityRole.ADMIN)


@pytest.fixture
def ward_authority():
    return make_authority("ward@city.gov", regions=["560001"])


@pytest.fixture
def unassigned_authority():
    return make_authority("nobody@city.gov", regions=[])


@pytest.fixture
def client(report_store, authority_store, classifier, admin, ward_authority, unassigned_authority):
    for authority in (admin, ward_authority, unassigned_authority):
        asyncio.run(authority_store.insert_if_absent(authority.to_document()))

    app.dependency_overrides[get_report_store] = lambda: report_store
    app.dependency_overrides[get_authority_store] = lambda: authority_store
    app.dependency_overrides[get_image_classifier] = lambda: classifier
    yield TestClient(app)
    app.dependency_overrides.clear()
