from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from enum import Enum
from bson import ObjectId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IssueCategory(str, Enum):
    POTHOLE = "pothole"
    ROAD_BLOCK = "road_block"
    GARBAGE = "garbage"
    ACCIDENT = "accident"
    WATER_LEAK = "water_leak"
    FIRE = "fire"
    OTHER = "other"


class PriorityTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"


class VerificationState(str, Enum):
    """State of the external classification step."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    UNAVAILABLE = "UNAVAILABLE"


class ResolutionState(str, Enum):
    """Operational handling of the report by authorities."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"


class ReportModel(BaseModel):
    id: str = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    tracking_code: str
    issue_type: IssueCategory
    description: str = ""
    region_code: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geohash: str = ""
    image_id: Optional[str] = None
    image_filename: Optional[str] = None
    image_content_type: Optional[str] = None
    trust_score: Optional[float] = Field(None, ge=0, le=100)
    severity_score: Optional[int] = Field(None, ge=0, le=100)
    priority: PriorityTier = PriorityTier.UNKNOWN
    verification_state: VerificationState = VerificationState.PENDING
    resolution_state: ResolutionState = ResolutionState.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    verified_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ReportModel":
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """MongoDB representation; enums stored as their string values."""
        return self.model_dump(by_alias=True, mode="python") | {
            "issue_type": self.issue_type.value,
            "priority": self.priority.value,
            "verification_state": self.verification_state.value,
            "resolution_state": self.resolution_state.value,
        }


class ReportView(BaseModel):
    """Authority-facing representation of a report."""
    id: str
    tracking_code: str
    issue_type: IssueCategory
    description: str
    region_code: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geohash: str = ""
    image_filename: Optional[str] = None
    trust_score: Optional[float] = None
    severity_score: Optional[int] = None
    priority: PriorityTier
    verification_state: VerificationState
    resolution_state: ResolutionState
    created_at: datetime
    updated_at: datetime
    verified_at: Optional[datetime] = None

    @classmethod
    def from_report(cls, report: ReportModel) -> "ReportView":
        return cls(**report.model_dump(exclude={"image_id", "image_content_type"}))


class TrackingView(BaseModel):
    """Public tracking view: no internal id, no image id, no authority-only data."""
    tracking_code: str
    issue_type: IssueCategory
    description: str
    region_code: str
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: ResolutionState
    verification_state: VerificationState
    trust_score: Optional[float] = None
    priority: PriorityTier
    created_at: datetime

    @classmethod
    def from_report(cls, report: ReportModel) -> "TrackingView":
        return cls(
            tracking_code=report.tracking_code,
            issue_type=report.issue_type,
            description=report.description,
            region_code=report.region_code,
            address=report.address,
            latitude=report.latitude,
            longitude=report.longitude,
            status=report.resolution_state,
            verification_state=report.verification_state,
            trust_score=report.trust_score,
            priority=report.priority,
            created_at=report.created_at,
        )


class SubmissionResponse(BaseModel):
    message: str = "Report submitted successfully"
    tracking_code: str
    id: str
    verification_state: VerificationState
    resolution_state: ResolutionState


class ReportListResponse(BaseModel):
    reports: List[ReportView]
    total: int
    limit: int
    skip: int


class ResolutionUpdateRequest(BaseModel):
    """Body of the status update; validated against ResolutionState by the service."""
    status: str = Field(..., description="One of: Pending, In Progress, Resolved")

    class Config:
        json_schema_extra = {"example": {"status": "In Progress"}}


class ResolutionUpdateResponse(BaseModel):
    message: str = "Status updated successfully"
    status: ResolutionState


class VerificationResponse(BaseModel):
    message: str = "AI verification completed"
    trust_score: float
    severity_score: int
    priority: PriorityTier
    verification_state: VerificationState
    explanation: Dict[str, Any] = Field(default_factory=dict)
