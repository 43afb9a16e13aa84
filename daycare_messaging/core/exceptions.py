"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
"""
from typing import Any
from enum import Enum

import httpx


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"
    CONFIGURATION_ERROR = "ERR_1007"

    # Messaging errors (2xxx)
    CONTACT_NOT_FOUND = "ERR_2001"
    MESSAGE_NOT_FOUND = "ERR_2002"

    # Reconciliation errors (3xxx)
    CONTRACT_NOT_FOUND = "ERR_3001"
    INVOICE_NOT_FOUND = "ERR_3002"

    # External service errors (5xxx)
    GHL_ERROR = "ERR_5001"
    ZAPSIGN_ERROR = "ERR_5002"
    EXTERNAL_SERVICE_UNAVAILABLE = "ERR_5003"
    EXTERNAL_SERVICE_TIMEOUT = "ERR_5004"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.error_code.value,
        }
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationError(AppException):
    """Raised when a required credential or setting is missing"""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFIGURATION_ERROR,
            status_code=500,
            details={"missing": missing} if missing else None
        )


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class AuthenticationError(AppException):
    """Raised when a request carries no valid credentials"""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            error_code=ErrorCode.UNAUTHORIZED,
            status_code=401
        )


class AuthorizationError(AppException):
    """Raised when the caller is authenticated but lacks the required role"""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            error_code=ErrorCode.FORBIDDEN,
            status_code=403
        )


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class DeliveryFailedError(AppException):
    """Raised by the direct send path when the provider did not accept a message.

    The attempt is already logged (status ``error``) and will be picked up
    by the retry sweep.
    """

    def __init__(self, message: str, log_id: int | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.GHL_ERROR,
            status_code=500,
            details={"logId": log_id} if log_id is not None else None
        )


class ProviderError(AppException):
    """Raised when an external provider call fails outside the retry loop"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_UNAVAILABLE,
        provider_status: int | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=502,
            details=details
        )
        self.provider_status = provider_status
        if provider_status is not None:
            self.details["provider_status"] = provider_status

    @classmethod
    def from_response(
        cls,
        operation: str,
        response: httpx.Response,
        error_code: ErrorCode = ErrorCode.GHL_ERROR,
    ) -> "ProviderError":
        """Build an error from a non-2xx provider response, keeping a bounded body excerpt."""
        return cls(
            message=f"{operation} failed: {response.status_code}",
            error_code=error_code,
            provider_status=response.status_code,
            details={"operation": operation, "response": response.text[:500]},
        )
