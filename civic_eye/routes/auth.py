from fastapi import APIRouter, Depends
import logging

from civic_eye.core.auth import get_current_authority
from civic_eye.core.database import get_authority_store
from civic_eye.core.exceptions import AuthenticationError
from civic_eye.models.authority_model import (
    Authority,
    AuthorityInDB,
    AuthorityProfile,
    LoginRequest,
    Token,
)
from civic_eye.models.report_model import utcnow
from civic_eye.utils.security import create_access_token, verify_password

# Setup logger
logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(request: LoginRequest, store=Depends(get_authority_store)):
    """
    Authenticate an authority and return a JWT token.
    """
    email = request.email.lower().strip()
    logger.info(f"👉 Login attempt for: {email}")

    document = await store.find_by_email(email)
    if not document:
        logger.warning(f"❌ Login failed: authority not found {email}")
        raise AuthenticationError("Invalid credentials")

    authority = AuthorityInDB.model_validate(document)
    if not verify_password(request.password, authority.password_hash):
        logger.warning(f"❌ Invalid password for {email}")
        raise AuthenticationError("Invalid credentials")
    if not authority.is_active:
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(
        authority.email,
        claims={"id": authority.id, "role": authority.role.value},
    )
    await store.record_login(authority.id, utcnow())

    logger.info(f"✅ Login successful for {email} ({authority.role.value})")
    return Token(token=token, authority=AuthorityProfile.from_authority(authority))


@router.get("/me", response_model=AuthorityProfile)
async def me(current: Authority = Depends(get_current_authority)):
    return AuthorityProfile.from_authority(current)
