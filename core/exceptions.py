"""
Snowman Attribution - Custom Exceptions
Exception hierarchy for the open-attribution client.
"""

from typing import Dict, Any, Optional
from datetime import datetime
from enum import Enum
import traceback


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    SERIALIZATION = "serialization"
    TRANSPORT = "transport"
    EXTERNAL_API = "external_api"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class AttributionException(Exception):
    """
    Base exception for all attribution errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., 'LINK_001')
        category: Error category for classification
        severity: Error severity level
        details: Additional error details
        timestamp: When the error occurred
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ATTR_ERR_001",
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.error_code = error_code
        self.category = category
        self.severity = severity
        self.details = details or {}
        self.timestamp = datetime.utcnow()
        self.cause = cause

        full_message = message
        if cause:
            full_message = f"{message} (caused by: {type(cause).__name__}: {cause})"

        super().__init__(full_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        result = {
            "error": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.details:
            result["details"] = self.details

        return result

    @property
    def is_retryable(self) -> bool:
        """Transport failures and 5xx responses may succeed on a later attempt."""
        return self.category in [
            ErrorCategory.TRANSPORT,
            ErrorCategory.EXTERNAL_API,
        ]


# =============================================================================
# LINK ERRORS
# =============================================================================

class InvalidLinkException(AttributionException):
    """Incoming URL is malformed or lacks the expected query parameter."""

    def __init__(
        self,
        url: str,
        reason: str,
        parameter: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["url"] = str(url)[:200]
        details["reason"] = reason
        if parameter:
            details["parameter"] = parameter

        super().__init__(
            message=f"Invalid link: {reason}",
            error_code="LINK_001",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            details=details,
            **kwargs
        )
        self.url = url
        self.reason = reason


# =============================================================================
# REQUEST ERRORS
# =============================================================================

class PayloadSerializationException(AttributionException):
    """Open request body could not be serialized to JSON."""

    def __init__(self, message: str = "Failed to serialize open request body", **kwargs):
        super().__init__(
            message=message,
            error_code="REQ_001",
            category=ErrorCategory.SERIALIZATION,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class TransportException(AttributionException):
    """The POST never produced an HTTP response."""

    def __init__(self, url: str, message: str = "Error making POST request", **kwargs):
        details = kwargs.pop("details", {})
        details["url"] = url

        super().__init__(
            message=message,
            error_code="REQ_002",
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.MEDIUM,
            details=details,
            **kwargs
        )
        self.url = url


class HTTPStatusException(AttributionException):
    """Attribution endpoint answered with a status outside 200-299."""

    def __init__(
        self,
        status_code: int,
        response_body: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        if response_body:
            details["response_body"] = response_body[:200]

        super().__init__(
            message=f"Server error: HTTP {status_code}",
            error_code="API_001",
            category=ErrorCategory.EXTERNAL_API,
            severity=ErrorSeverity.MEDIUM,
            details=details,
            **kwargs
        )
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        return self.status_code >= 500 or self.status_code == 429


class ResponseDecodeException(AttributionException):
    """Response body is not a JSON object."""

    def __init__(self, message: str = "Error parsing response JSON", **kwargs):
        super().__init__(
            message=message,
            error_code="API_002",
            category=ErrorCategory.EXTERNAL_API,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )

    @property
    def is_retryable(self) -> bool:
        return False


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationException(AttributionException):
    """Configuration error."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "CONFIG_001"),
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            details=details,
            **kwargs
        )


class MissingConfigException(ConfigurationException):
    """Required configuration is missing."""

    def __init__(self, config_key: str, **kwargs):
        super().__init__(
            message=f"Required configuration '{config_key}' is missing",
            config_key=config_key,
            error_code="CONFIG_002",
            **kwargs
        )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def format_exception_for_logging(exc: BaseException) -> Dict[str, Any]:
    """
    Format exception for structured logging.

    Reads the traceback off the exception itself, so it also works for
    exceptions collected from finished tasks outside any ``except`` block.
    """
    info: Dict[str, Any] = {
        "exception_type": type(exc).__name__,
        "message": str(exc),
    }

    if isinstance(exc, AttributionException):
        info.update(exc.to_dict())
        if exc.cause is not None:
            info["cause"] = f"{type(exc.cause).__name__}: {exc.cause}"

    info["traceback"] = "".join(
        traceback.format_exception(type(exc), exc, exc.__traceback__)
    )
    return info
