"""
Application error taxonomy.

Each error is an HTTPException so routes and services can raise it the same
way they raise HTTPException; main.py renders them with their error code and
any extra payload (e.g. ``missingFields``).
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "detail": self.detail, **self.extra}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_error"
    default_detail = "Invalid request"


class InvalidSchemaError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_schema"
    default_detail = "Invalid model schema"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "conflict"
    default_detail = "Resource already exists"


class AlreadyPublishedError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "already_published"
    default_detail = "Model is already published"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    default_detail = "Authentication required"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    default_detail = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    default_detail = "Not found"


class InternalError(AppError):
    pass
