"""Error types raised by the form services.

Routers translate these into HTTP responses with ``http_error``; services
never raise ``HTTPException`` themselves.
"""

from fastapi import HTTPException, status


class FormError(Exception):
    """Base class for form service errors"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormValidationError(FormError, ValueError):
    """Malformed input rejected before anything is written"""

    status_code = status.HTTP_400_BAD_REQUEST


class FormPermissionError(FormError):
    """Caller does not own the form or response"""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(FormError):
    """Form, response or snapshot does not exist"""

    status_code = status.HTTP_404_NOT_FOUND


class ConsistencyError(FormError):
    """Stored data contradicts a versioning invariant.

    Raised when a non-current form version has no snapshot. This points at a
    bug elsewhere and must never be papered over.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConcurrencyConflict(FormError):
    """Another edit changed the form version first; reload and retry the batch"""

    status_code = status.HTTP_409_CONFLICT


def http_error(error: FormError) -> HTTPException:
    """Translate a service error into an HTTPException"""
    return HTTPException(status_code=error.status_code, detail=error.message)
