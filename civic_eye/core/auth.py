from fastapi import Depends, Header
from typing import Optional
import logging

from civic_eye.core.database import get_authority_store
from civic_eye.core.exceptions import AuthenticationError, AuthorizationError
from civic_eye.models.authority_model import Authority, AuthorityInDB
from civic_eye.utils.security import decode_access_token

logger = logging.getLogger(__name__)


async def get_current_authority(
    authorization: Optional[str] = Header(None),
    store=Depends(get_authority_store),
) -> Authority:
    """
    Validates the bearer token and loads the authority it names.
    The DB lookup is always performed so deactivation takes effect immediately.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Authentication required")

    token = authorization.split(" ", 1)[1].strip()
    payload = decode_access_token(token)

    authority_id = payload.get("id")
    document = await store.find_by_id(authority_id) if authority_id else None
    if document is None:
        document = await store.find_by_email(payload["sub"])
    if document is None:
        raise AuthenticationError("Invalid token")

    authority = AuthorityInDB.model_validate(document).to_principal()
    if not authority.is_active:
        logger.warning(f"Inactive authority {authority.email} attempted access")
        raise AuthorizationError("Inactive user")
    return authority

