# erapport/api/errors.py - Translate service exceptions into HTTP errors
from fastapi import HTTPException, status

from erapport.core.errors import (
    ConflictError,
    ERapportError,
    NotFoundError,
    PersistenceError,
    ValidationFailure,
)

STATUS_BY_ERROR = {
    ValidationFailure: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PersistenceError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http(exc: ERapportError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
