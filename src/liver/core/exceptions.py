"""
Custom exception classes for the live-reload server.
Provides structured error responses and categorized exceptions.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better classification and handling."""
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    STARTUP = "startup"
    WATCH = "watch"
    INTERNAL = "internal"


class ApplicationError(Exception):
    """Base exception class for application-specific errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        error_dict = {
            "error": {
                "message": self.message,
                "category": self.category.value,
                "status_code": self.status_code,
                "details": self.details
            }
        }

        if self.original_error:
            error_dict["error"]["original_error"] = {
                "type": type(self.original_error).__name__,
                "message": str(self.original_error)
            }

        return error_dict


class NotFoundError(ApplicationError):
    """Raised when a requested file cannot be served."""

    def __init__(self, resource: str, identifier: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = details or {}
        details["resource"] = resource
        if identifier:
            details["identifier"] = identifier

        message = f"{resource} not found"
        if identifier:
            message += f": {identifier}"

        super().__init__(
            message=message,
            category=ErrorCategory.NOT_FOUND,
            status_code=404,
            details=details
        )


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        details = details or {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            status_code=500,
            details=details,
            original_error=original_error
        )


class StartupError(ApplicationError):
    """Raised when a listener cannot be started (usually a port bind failure)."""

    def __init__(self, component: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"{component} failed to start: {message}",
            category=ErrorCategory.STARTUP,
            status_code=500,
            details={"component": component},
            original_error=original_error
        )


class WatchError(ApplicationError):
    """Raised when the file watcher cannot attach to the source root."""

    def __init__(self, path: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message=f"Cannot watch {path}: {message}",
            category=ErrorCategory.WATCH,
            status_code=500,
            details={"path": path},
            original_error=original_error
        )
