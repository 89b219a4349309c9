# backend/lesson_service/core/exceptions.py
"""
Domain-specific exceptions for the lesson service.

Every failure the engine can report is one member of ``ErrorCode``. Each code
belongs to exactly one exception class, and each class knows how to turn
itself into an HTTPException for whichever transport sits in front of the
engine.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes."""

    NOT_FOUND = "NOT_FOUND"
    NOT_ENROLLED = "NOT_ENROLLED"
    UNAUTHORIZED = "UNAUTHORIZED"

    LESSON_LIMIT_REACHED = "LESSON_LIMIT_REACHED"
    OVERLAPPING_LESSON = "OVERLAPPING_LESSON"
    LESSON_FULL = "LESSON_FULL"
    TUTEE_LIMIT_REACHED = "TUTEE_LIMIT_REACHED"
    ALREADY_SIGNED_UP = "ALREADY_SIGNED_UP"
    REVIEW_EXISTS = "REVIEW_EXISTS"
    LESSON_NOT_OPEN = "LESSON_NOT_OPEN"

    INVALID_STATUS_UPDATE = "INVALID_STATUS_UPDATE"
    INVALID_LESSON_CATEGORY = "INVALID_LESSON_CATEGORY"
    INVALID_TUTEE = "INVALID_TUTEE"
    MISSING_PRESENCE_INFO = "MISSING_PRESENCE_INFO"
    LESSON_NOT_OCCURRED = "LESSON_NOT_OCCURRED"
    REVIEW_WINDOW_CLOSED = "REVIEW_WINDOW_CLOSED"

    INSUFFICIENT_NOTICE = "INSUFFICIENT_NOTICE"

    STORAGE_ERROR = "STORAGE_ERROR"
    CANCEL_ERROR = "CANCEL_ERROR"


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ErrorCode = ErrorCode.STORAGE_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        origin: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.origin = origin or "lesson-service"
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured error object handed back to callers."""
        return {
            "code": self.code.value,
            "message": self.message,
            "origin": self.origin,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when a request is malformed for the lesson it targets."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.INVALID_TUTEE


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when the caller is not the owning tutor/tutee."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.UNAUTHORIZED


class ConflictException(DomainException):
    """Raised when a capacity or scheduling rule rejects the request."""

    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.LESSON_FULL


class InvalidStatusUpdateException(ConflictException):
    """Raised when the lesson state machine forbids the requested step."""

    default_code = ErrorCode.INVALID_STATUS_UPDATE

    def __init__(self, current: str, target: Optional[str] = None, *, origin: Optional[str] = None):
        if target:
            message = f"Lesson cannot move from '{current}' to '{target}'"
        else:
            message = f"Lesson cannot be modified in its current status: {current}"
        super().__init__(
            message=message,
            details={"current_status": current, "target_status": target},
            origin=origin,
        )


class BusinessRuleException(DomainException):
    """Raised when a timing rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE
    default_code = ErrorCode.INSUFFICIENT_NOTICE


class StorageException(DomainException):
    """Raised when the store fails to begin, commit or roll back."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.STORAGE_ERROR


class InsufficientNoticeException(BusinessRuleException):
    """Raised when cancel/withdraw is attempted inside the lead-time window."""

    def __init__(self, required_hours: int, provided_hours: float, *, origin: Optional[str] = None):
        super().__init__(
            message=f"Changes must be made at least {required_hours} hours before the lesson",
            code=ErrorCode.INSUFFICIENT_NOTICE,
            details={
                "required_hours": required_hours,
                "provided_hours": round(provided_hours, 2),
            },
            origin=origin,
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues, query
    failures, or constraint violations. Services translate it into a
    ``StorageException``.
    """


class DuplicateEntryException(RepositoryException):
    """Raised when an insert collides with an existing primary or unique key."""


# Code -> owning exception class; every ErrorCode must appear here
EXCEPTION_BY_CODE: Mapping[ErrorCode, type] = {
    ErrorCode.NOT_FOUND: NotFoundException,
    ErrorCode.NOT_ENROLLED: NotFoundException,
    ErrorCode.UNAUTHORIZED: ForbiddenException,
    ErrorCode.LESSON_LIMIT_REACHED: ConflictException,
    ErrorCode.OVERLAPPING_LESSON: ConflictException,
    ErrorCode.LESSON_FULL: ConflictException,
    ErrorCode.TUTEE_LIMIT_REACHED: ConflictException,
    ErrorCode.ALREADY_SIGNED_UP: ConflictException,
    ErrorCode.REVIEW_EXISTS: ConflictException,
    ErrorCode.LESSON_NOT_OPEN: ConflictException,
    ErrorCode.INVALID_STATUS_UPDATE: InvalidStatusUpdateException,
    ErrorCode.INVALID_LESSON_CATEGORY: ValidationException,
    ErrorCode.INVALID_TUTEE: ValidationException,
    ErrorCode.MISSING_PRESENCE_INFO: ValidationException,
    ErrorCode.LESSON_NOT_OCCURRED: ValidationException,
    ErrorCode.REVIEW_WINDOW_CLOSED: ValidationException,
    ErrorCode.INSUFFICIENT_NOTICE: BusinessRuleException,
    ErrorCode.STORAGE_ERROR: StorageException,
    ErrorCode.CANCEL_ERROR: StorageException,
}