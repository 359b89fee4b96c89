"""
Error Handling System for AssessFlow

This module provides:
1. The exception hierarchy raised by the workflow, attempt and reporting services
2. Conversion of arbitrary exceptions into that hierarchy
3. Standardized API error bodies and structured error logging

Every ``AssessFlowError`` carries the HTTP status the API layer answers with, so
services raise domain errors and never build HTTP responses themselves.
"""

import logging
import traceback
from enum import Enum
from typing import Any, Dict, Optional, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from assessflow.common.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for errors"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(Enum):
    """Standard error codes for AssessFlow"""
    # General errors
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"
    TENANT_CONTEXT_MISSING = "tenant_context_missing"

    # Workflow errors
    NO_ASSESSMENTS_CONFIGURED = "no_assessments_configured"
    FINAL_NOT_CONFIGURED = "final_not_configured"
    TRAINING_IN_PROGRESS = "training_in_progress"
    PROGRAMME_COMPLETED = "programme_completed"
    INVALID_TRANSITION = "invalid_transition"

    # Attempt errors
    ATTEMPT_NOT_FOUND = "attempt_not_found"
    ATTEMPT_ALREADY_SUBMITTED = "attempt_already_submitted"
    QUESTION_NOT_FOUND = "question_not_found"
    STUDENT_NOT_FOUND = "student_not_found"
    ASSESSMENT_NOT_FOUND = "assessment_not_found"

    # Database errors
    DATABASE_ERROR = "database_error"


class ErrorInfo(BaseModel):
    """Structured information about an error"""
    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    exception_type: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class AssessFlowError(Exception):
    """Base exception class for all AssessFlow errors"""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.severity = severity
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_error_info(self) -> ErrorInfo:
        """Convert the exception to an ErrorInfo object"""
        details = dict(self.details)
        if self.cause is not None:
            details["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }

        return ErrorInfo(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            severity=self.severity,
            details=details,
            exception_type=type(self).__name__,
            context=self.context
        )

    def __str__(self) -> str:
        base_str = f"{self.code.value}: {self.message}"
        if self.details:
            base_str += f" (details: {self.details})"
        if self.cause:
            base_str += f" caused by {type(self.cause).__name__}: {self.cause}"
        return base_str


# Generic error classes


class ValidationError(AssessFlowError):
    """Input is well-formed JSON but semantically invalid"""
    http_status = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            details=details,
            **kwargs
        )


class AuthenticationError(AssessFlowError):
    """No valid caller identity"""
    http_status = 401

    def __init__(self, message: str = "Unauthenticated", **kwargs):
        super().__init__(
            message=message,
            code=ErrorCode.AUTHENTICATION_ERROR,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class AuthorizationError(AssessFlowError):
    """Caller is known but may not perform the action"""
    http_status = 403

    def __init__(self, message: str = "Forbidden", code: ErrorCode = ErrorCode.AUTHORIZATION_ERROR, **kwargs):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class TenantContextError(AssessFlowError):
    """Request carries no tenant"""
    http_status = 400

    def __init__(self, message: str = "Tenant context missing", **kwargs):
        super().__init__(
            message=message,
            code=ErrorCode.TENANT_CONTEXT_MISSING,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class NotFoundError(AssessFlowError):
    """Requested resource does not exist in the caller's tenant"""
    http_status = 404

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NOT_FOUND_ERROR,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.pop("details", None) or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = resource_id
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.INFO,
            details=details,
            **kwargs
        )


class ConflictError(AssessFlowError):
    """Request conflicts with the current state of the resource"""
    http_status = 409

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONFLICT_ERROR, **kwargs):
        super().__init__(
            message=message,
            code=code,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class DatabaseError(AssessFlowError):
    """Unexpected persistence failure"""
    http_status = 500

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code=ErrorCode.DATABASE_ERROR, **kwargs)


# Workflow errors


class NoAssessmentsConfiguredError(NotFoundError):
    def __init__(self, message: str = "No assessments configured.", **kwargs):
        super().__init__(message, code=ErrorCode.NO_ASSESSMENTS_CONFIGURED, **kwargs)


class FinalAssessmentNotConfiguredError(NotFoundError):
    def __init__(self, message: str = "Final assessment not configured yet.", **kwargs):
        super().__init__(message, code=ErrorCode.FINAL_NOT_CONFIGURED, **kwargs)


class TrainingInProgressError(AuthorizationError):
    def __init__(self, message: str = "You are currently in training.", **kwargs):
        super().__init__(message, code=ErrorCode.TRAINING_IN_PROGRESS, **kwargs)


class ProgrammeCompletedError(ConflictError):
    def __init__(self, message: str = "You have completed the programme.", **kwargs):
        super().__init__(message, code=ErrorCode.PROGRAMME_COMPLETED, **kwargs)


class InvalidTransitionError(ConflictError):
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=ErrorCode.INVALID_TRANSITION, **kwargs)


# Attempt errors


class AttemptNotFoundError(NotFoundError):
    def __init__(self, attempt_id: Any, **kwargs):
        super().__init__(
            "Attempt not found.",
            code=ErrorCode.ATTEMPT_NOT_FOUND,
            resource_type="attempt",
            resource_id=attempt_id,
            **kwargs
        )


class AttemptAlreadySubmittedError(ConflictError):
    def __init__(self, attempt_id: Any, **kwargs):
        super().__init__(
            "Attempt has already been submitted.",
            code=ErrorCode.ATTEMPT_ALREADY_SUBMITTED,
            details={"attempt_id": attempt_id},
            **kwargs
        )


class QuestionNotFoundError(NotFoundError):
    def __init__(self, question_id: Any, **kwargs):
        super().__init__(
            "Question not found.",
            code=ErrorCode.QUESTION_NOT_FOUND,
            resource_type="question",
            resource_id=question_id,
            **kwargs
        )


class StudentNotFoundError(NotFoundError):
    def __init__(self, student_id: Any = None, message: str = "Student profile not found.", **kwargs):
        super().__init__(
            message,
            code=ErrorCode.STUDENT_NOT_FOUND,
            resource_type="student",
            resource_id=student_id,
            **kwargs
        )


class AssessmentNotFoundError(NotFoundError):
    def __init__(self, assessment_id: Any, **kwargs):
        super().__init__(
            "Assessment not found.",
            code=ErrorCode.ASSESSMENT_NOT_FOUND,
            resource_type="assessment",
            resource_id=assessment_id,
            **kwargs
        )


def convert_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: Optional[Dict[str, Any]] = None
) -> AssessFlowError:
    """
    Convert a standard exception to an AssessFlowError.

    Args:
        exception: The exception to convert
        default_message: Message used when the exception has none
        context: Optional additional context

    Returns:
        Converted AssessFlowError
    """
    if isinstance(exception, AssessFlowError):
        if context:
            exception.context.update(context)
        return exception

    if isinstance(exception, SQLAlchemyError):
        return DatabaseError(
            "A database error occurred",
            cause=exception,
            context=context
        )

    return AssessFlowError(
        message=str(exception) or default_message,
        cause=exception,
        context=context
    )


def error_response(
    error: Union[AssessFlowError, Exception],
    include_details: bool = True
) -> Dict[str, Any]:
    """
    Generate a standardized API error body.

    Args:
        error: The error to render
        include_details: Whether to include error details

    Returns:
        ``{"status": "error", "code": ..., "message": ..., "details": ...}``
    """
    if not isinstance(error, AssessFlowError):
        error = convert_exception(error)

    error_info = error.to_error_info()

    response: Dict[str, Any] = {
        "status": "error",
        "code": error_info.code,
        "message": error_info.message
    }

    if include_details and error_info.details:
        response["details"] = error_info.details

    return response


def log_error(
    error: Union[AssessFlowError, Exception],
    level: int = logging.ERROR,
    include_stack_trace: bool = False,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with standardized format.

    Args:
        error: The error to log
        level: Logging level
        include_stack_trace: Whether to append the current traceback
        context: Additional context to include
    """
    if not isinstance(error, AssessFlowError):
        error = convert_exception(error, context=context)
    elif context:
        error.context.update(context)

    message = f"[{error.code.value}] {error.message}"

    if error.context:
        context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
        message += f" (context: {context_str})"

    if error.cause:
        message += f" caused by {type(error.cause).__name__}: {error.cause}"

    if include_stack_trace:
        message += f"\n{traceback.format_exc()}"

    logger.log(level, message)
