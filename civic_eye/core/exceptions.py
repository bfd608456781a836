"""
Civic Eye exception hierarchy.

Every error raised by the services carries an HTTP status and a machine
readable code so the API layer can render it without re-mapping.
"""
from typing import Any, Dict, Optional


class CivicEyeError(Exception):
    """Base exception for all Civic Eye errors."""

    status_code: int = 500
    code: str = "CE_INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses."""
        result: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(CivicEyeError):
    """Malformed or missing submission fields; user-correctable."""
    status_code = 400
    code = "CE_VALIDATION_ERROR"


class InvalidStateError(CivicEyeError):
    """Requested lifecycle state is not allowed."""
    status_code = 400
    code = "CE_INVALID_STATE"


class AuthenticationError(CivicEyeError):
    """Missing, invalid or expired credential."""
    status_code = 401
    code = "CE_AUTHENTICATION_ERROR"


class AuthorizationError(CivicEyeError):
    """Valid credential, but wrong region or role."""
    status_code = 403
    code = "CE_AUTHORIZATION_ERROR"


class NotFoundError(CivicEyeError):
    """Unknown report id, tracking code or image artifact."""
    status_code = 404
    code = "CE_NOT_FOUND"


class ClassifierError(CivicEyeError):
    """External classifier failed or timed out. Retryable."""
    status_code = 503
    code = "CE_CLASSIFIER_UNAVAILABLE"


class PersistenceError(CivicEyeError):
    """Document store unavailable."""
    status_code = 503
    code = "CE_PERSISTENCE_ERROR"
