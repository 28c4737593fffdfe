"""
Translation of lifecycle errors into HTTP errors.
"""

from fastapi import HTTPException, status

from src.modules.lifecycle.exceptions import (
    InvalidLocationError,
    LifecycleError,
    NotFoundError,
    PreconditionFailedError,
    TransactionConflictError,
)


def http_error(exc: LifecycleError) -> HTTPException:
    """Map a lifecycle error to the HTTP status callers should see."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, PreconditionFailedError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, TransactionConflictError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, InvalidLocationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
