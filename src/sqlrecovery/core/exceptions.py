from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    EXTERNAL_SERVICE = "external_service"
    CONFIGURATION = "configuration"
    BUSINESS_LOGIC = "business_logic"
    UNKNOWN = "unknown"


class BaseApplicationException(Exception):
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False
    user_message: str | None = None

    def __init__(
        self,
        message: str,
        *,
        severity: ErrorSeverity | None = None,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity or self.severity
        self.category = category or self.category
        self.retryable = retryable if retryable is not None else self.retryable
        self.user_message = user_message or self.user_message or message
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(UTC)
        self.error_id = f"ERR-{uuid.uuid4().hex[:12].upper()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.VALIDATION
    user_message = "The provided data is invalid"


class AuthenticationException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.AUTHENTICATION
    user_message = "Authentication failed"


class ExternalServiceException(BaseApplicationException):
    severity = ErrorSeverity.ERROR
    category = ErrorCategory.EXTERNAL_SERVICE
    user_message = "An external service request failed"


class ConfigurationException(BaseApplicationException):
    severity = ErrorSeverity.CRITICAL
    category = ErrorCategory.CONFIGURATION


class CloudOperationError(ExternalServiceException):
    """A resource-management call failed. Never retried by the runner."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status_code: int | None = None,
        retryable: bool = False,
        operation: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            retryable=retryable,
            details={"code": code, "status_code": status_code, "operation": operation},
            cause=cause,
        )
        self.code = code
        self.status_code = status_code
        self.operation = operation


class RestoreRequestError(ValidationException):
    user_message = "The restore request is inconsistent"


class InvalidTransitionError(BaseApplicationException):
    severity = ErrorSeverity.ERROR
    category = ErrorCategory.BUSINESS_LOGIC


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "BaseApplicationException",
    "ValidationException",
    "AuthenticationException",
    "ExternalServiceException",
    "ConfigurationException",
    "CloudOperationError",
    "RestoreRequestError",
    "InvalidTransitionError",
]
