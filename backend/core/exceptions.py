"""Error taxonomy for the registration API.

Every error carries the HTTP status it maps to; ``main.py`` renders them all
into the ``{success, message, errors}`` envelope.
"""
from typing import Any, Dict, List, Optional


class RegistrationAPIError(Exception):
    """Base class for errors that are reported to the client."""

    status_code = 500

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.extra = extra or {}


class RequestValidationFailed(RegistrationAPIError):
    """Raised with the complete list of field errors for a submission."""

    status_code = 400

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation errors"):
        super().__init__(message, errors=errors)


class BadRequestError(RegistrationAPIError):
    """Malformed id, unknown enum value or unparseable query input."""

    status_code = 400


class NotFoundError(RegistrationAPIError):
    status_code = 404


class ConflictError(RegistrationAPIError):
    """Raised when (email, registrationType) is already taken."""

    status_code = 409

    def __init__(self, message: str, existing_id: Optional[str] = None, submission_date=None):
        extra = {}
        if existing_id is not None:
            extra["existingRegistration"] = {
                "id": existing_id,
                "submissionDate": submission_date,
            }
        super().__init__(message, extra=extra)
        self.existing_id = existing_id
        self.submission_date = submission_date


class RateLimitExceeded(RegistrationAPIError):
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message, extra={"retryAfter": f"{max(1, retry_after // 60)} minutes"})
        self.retry_after = retry_after


class InternalError(RegistrationAPIError):
    """Unexpected store or transport failure; detail shown only in development."""

    status_code = 500

    def __init__(self, message: str = "Internal server error. Please try again later.", detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail
