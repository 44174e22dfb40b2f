"""Translate engine exceptions into HTTP errors."""
from __future__ import annotations

from fastapi import HTTPException, status

from habitual.services.errors import (
    AlreadySubscribedError,
    HabitualError,
    NotFoundError,
    OperationNotAllowedError,
    PersistenceConflict,
    RuleParseError,
    StoreUnavailableError,
    TaskWriteError,
)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (OperationNotAllowedError, status.HTTP_403_FORBIDDEN),
    (AlreadySubscribedError, status.HTTP_409_CONFLICT),
    (PersistenceConflict, status.HTTP_409_CONFLICT),
    (TaskWriteError, status.HTTP_409_CONFLICT),
    (RuleParseError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: HabitualError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
