"""
Tests for ReportService

Tests cover:
- Submission validation and defaults
- Tracking codes and public tracking
- Region-scoped listing
- Resolution updates
"""
import asyncio

import pytest

from civic_eye.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from civic_eye.models.authority_model import AuthorityRole
from civic_eye.models.report_model import (
    IssueCategory,
    PriorityTier,
    ResolutionState,
    VerificationState,
)
from civic_eye.services.report_service import ReportService
from civic_eye.utils.helpers import is_tracking_code

from tests.conftest import make_authority, make_image_bytes, submit_report


def submit(store, **overrides):
    fields = dict(
        issue_type="pothole",
        region_code="560001",
        address="12 MG Road",
        image_content=make_image_bytes(),
        image_filename="photo.jpg",
        classifier_configured=True,
    )
    fields.update(overrides)
    return asyncio.run(ReportService(store).submit(**fields))


# =============================================================================
# Submission
# =============================================================================

class TestSubmit:

    def test_new_report_defaults(self, report_store):
        report = submit(report_store)

        assert is_tracking_code(report.tracking_code)
        assert report.issue_type == IssueCategory.POTHOLE
        assert report.verification_state == VerificationState.PENDING
        assert report.resolution_state == ResolutionState.PENDING
        assert report.priority == PriorityTier.UNKNOWN
        assert report.trust_score is None
        assert report.severity_score is None
        assert report.image_content_type == "image/jpeg"
        assert report.id in report_store.reports
        assert report.image_id in report_store.images

    def test_unconfigured_classifier_marks_unavailable(self, report_store):
        report = submit(report_store, classifier_configured=False)
        assert report.verification_state == VerificationState.UNAVAILABLE

    def test_stored_document_uses_plain_values(self, report_store):
        report = submit(report_store)
        document = report_store.reports[report.id]
        assert document["_id"] == report.id
        assert document["issue_type"] == "pothole"
        assert document["resolution_state"] == "Pending"
        assert document["verification_state"] == "PENDING"

    def test_issue_type_is_case_insensitive(self, report_store):
        assert submit(report_store, issue_type="Fire").issue_type == IssueCategory.FIRE

    def test_region_code_is_normalized(self, report_store):
        assert submit(report_store, region_code=" ka-blr1 ").region_code == "KA-BLR1"

    @pytest.mark.parametrize("field", ["issue_type", "region_code", "address"])
    def test_required_fields(self, report_store, field):
        with pytest.raises(ValidationError):
            submit(report_store, **{field: "  "})
        assert report_store.reports == {}
        assert report_store.images == {}

    def test_unknown_issue_type(self, report_store):
        with pytest.raises(ValidationError):
            submit(report_store, issue_type="volcano")

    def test_invalid_region_code(self, report_store):
        with pytest.raises(ValidationError):
            submit(report_store, region_code="5")

    def test_missing_image(self, report_store):
        with pytest.raises(ValidationError):
            submit(report_store, image_content=None)

    def test_non_image_upload(self, report_store):
        with pytest.raises(ValidationError):
            submit(report_store, image_content=b"%PDF-1.4 not a photo", image_filename="doc.jpg")

    def test_png_is_accepted(self, report_store):
        report = submit(report_store, image_content=make_image_bytes("PNG"), image_filename="snap.png")
        assert report.image_content_type == "image/png"

    def test_coordinates_produce_geohash(self, report_store):
        report = submit(report_store, latitude="57.64911", longitude="10.40744")
        assert report.latitude == pytest.approx(57.64911)
        assert report.longitude == pytest.approx(10.40744)
        assert report.geohash == "u4pruydqq"

    def test_no_coordinates(self, report_store):
        report = submit(report_store)
        assert report.latitude is None
        assert report.longitude is None
        assert report.geohash == ""

    def test_half_coordinates_rejected(self, report_store):
        with pytest.raises(ValidationError):
            submit(report_store, latitude="12.9")

    def test_tracking_code_collision_is_retried(self, report_store, monkeypatch):
        codes = iter([
            "CIV-1700000000000-AAAAAA",
            "CIV-1700000000000-AAAAAA",
            "CIV-1700000000001-BBBBBB",
        ])
        monkeypatch.setattr(
            "civic_eye.services.report_service.generate_tracking_code", lambda: next(codes)
        )
        first = submit(report_store)
        second = submit(report_store)
        assert first.tracking_code == "CIV-1700000000000-AAAAAA"
        assert second.tracking_code == "CIV-1700000000001-BBBBBB"
        assert len(report_store.reports) == 2

    def test_insert_failure_removes_image(self, report_store):
        report_store.fail_inserts = True
        with pytest.raises(PersistenceError):
            submit(report_store)
        assert report_store.images == {}
        assert report_store.reports == {}


# =============================================================================
# Tracking
# =============================================================================

class TestTrack:

    def test_track_by_code(self, report_store):
        report = submit_report(report_store)
        found = asyncio.run(ReportService(report_store).track(report.tracking_code))
        assert found.id == report.id

    def test_unknown_code(self, report_store):
        with pytest.raises(NotFoundError):
            asyncio.run(ReportService(report_store).track("CIV-0000000000000-XXXXXX"))

    @pytest.mark.parametrize("code", ["", "   ", "not-a-code", "CIV-123-ABCDEF", "civ-1700000000000-abcdef"])
    def test_malformed_code_skips_the_store(self, report_store, monkeypatch, code):
        async def unexpected_lookup(tracking_code):
            raise AssertionError("store should not be queried")

        monkeypatch.setattr(report_store, "find_by_tracking_code", unexpected_lookup)
        with pytest.raises(NotFoundError):
            asyncio.run(ReportService(report_store).track(code))

    def test_surrounding_whitespace_is_ignored(self, report_store):
        report = submit_report(report_store)
        found = asyncio.run(ReportService(report_store).track(f"  {report.tracking_code} "))
        assert found.id == report.id


# =============================================================================
# Listing
# =============================================================================

class TestListReports:

    @pytest.fixture
    def seeded(self, report_store):
        for region in ["560001", "560001", "560002", "999999"]:
            submit_report(report_store, region_code=region)
        return report_store

    def _list(self, store, principal, **kwargs):
        return asyncio.run(ReportService(store).list_reports(principal, **kwargs))

    def test_authority_sees_only_assigned_regions(self, seeded):
        authority = make_authority(regions=["560001", "560002"])
        reports, total = self._list(seeded, authority)
        assert total == 3
        assert {r.region_code for r in reports} == {"560001", "560002"}

    def test_foreign_filter_matches_unfiltered(self, seeded):
        authority = make_authority(regions=["560001", "560002"])
        filtered, filtered_total = self._list(seeded, authority, region_code="999999")
        unfiltered, unfiltered_total = self._list(seeded, authority)
        assert filtered_total == unfiltered_total
        assert {r.id for r in filtered} == {r.id for r in unfiltered}

    def test_filter_inside_assignment(self, seeded):
        authority = make_authority(regions=["560001", "560002"])
        reports, total = self._list(seeded, authority, region_code="560002")
        assert total == 1
        assert reports[0].region_code == "560002"

    def test_empty_assignment_lists_nothing(self, seeded):
        reports, total = self._list(seeded, make_authority(regions=[]))
        assert reports == []
        assert total == 0

    def test_admin_sees_all(self, seeded):
        admin = make_authority("admin@city.gov", role=AuthorityRole.ADMIN)
        _, total = self._list(seeded, admin)
        assert total == 4

    def test_pagination(self, seeded):
        admin = make_authority("admin@city.gov", role=AuthorityRole.ADMIN)
        page, total = self._list(seeded, admin, limit=3, skip=2)
        assert total == 4
        assert len(page) == 2

    def test_status_filter(self, seeded):
        admin = make_authority("admin@city.gov", role=AuthorityRole.ADMIN)
        _, total = self._list(seeded, admin, status="Resolved")
        assert total == 0
        with pytest.raises(ValidationError):
            self._list(seeded, admin, status="Closed")

    def test_invalid_paging(self, seeded):
        admin = make_authority("admin@city.gov", role=AuthorityRole.ADMIN)
        with pytest.raises(ValidationError):
            self._list(seeded, admin, limit=0)
        with pytest.raises(ValidationError):
            self._list(seeded, admin, skip=-1)


# =============================================================================
# Resolution
# =============================================================================

class TestSetResolution:

    def _set(self, store, report_id, status, principal):
        return asyncio.run(ReportService(store).set_resolution(report_id, status, principal))

    def test_pending_straight_to_resolved(self, report_store):
        report = submit_report(report_store)
        authority = make_authority(regions=["560001"])
        updated = self._set(report_store, report.id, "Resolved", authority)
        assert updated.resolution_state == ResolutionState.RESOLVED
        assert updated.verification_state == VerificationState.PENDING

    def test_invalid_value(self, report_store):
        report = submit_report(report_store)
        with pytest.raises(InvalidStateError):
            self._set(report_store, report.id, "Closed", make_authority(regions=["560001"]))
        assert report_store.reports[report.id]["resolution_state"] == "Pending"

    def test_wrong_region(self, report_store):
        report = submit_report(report_store, region_code="560002")
        with pytest.raises(AuthorizationError):
            self._set(report_store, report.id, "In Progress", make_authority(regions=["560001"]))
        assert report_store.reports[report.id]["resolution_state"] == "Pending"

    def test_unknown_report(self, report_store):
        with pytest.raises(NotFoundError):
            self._set(report_store, "missing", "Resolved", make_authority(regions=["560001"]))
