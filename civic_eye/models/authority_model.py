from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum
from bson import ObjectId

from civic_eye.models.report_model import utcnow
from civic_eye.utils.validators import normalize_region_code


class AuthorityRole(str, Enum):
    AUTHORITY = "authority"
    ADMIN = "admin"


class AuthorityBase(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    role: AuthorityRole = AuthorityRole.AUTHORITY
    assigned_regions: List[str] = []  # empty for a plain authority means no access

    @field_validator("assigned_regions")
    @classmethod
    def normalize_regions(cls, regions: List[str]) -> List[str]:
        # Same form as Report.region_code
        return [normalize_region_code(r) for r in regions if r and r.strip()]


class Authority(AuthorityBase):
    """Authenticated principal; never carries the password hash."""
    id: str = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @property
    def is_admin(self) -> bool:
        return self.role == AuthorityRole.ADMIN


class AuthorityInDB(Authority):
    password_hash: str

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True) | {"role": self.role.value}

    def to_principal(self) -> Authority:
        return Authority.model_validate(self.model_dump(by_alias=True, exclude={"password_hash"}))


class AuthorityProfile(BaseModel):
    id: str
    email: EmailStr
    name: Optional[str] = None
    role: AuthorityRole
    assigned_regions: List[str]

    @classmethod
    def from_authority(cls, authority: Authority) -> "AuthorityProfile":
        return cls(
            id=authority.id,
            email=authority.email,
            name=authority.name,
            role=authority.role,
            assigned_regions=authority.assigned_regions,
        )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    token: str
    token_type: str = "bearer"
    authority: AuthorityProfile
