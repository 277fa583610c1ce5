"""
AutoNews Custom Exceptions
==========================

Exception hierarchy for the ingestion pipeline. Every error carries an
``ErrorCode``, a context dict for structured logs, a message fit for CLI
output and a ``recoverable`` flag telling a later run whether retrying the
same input can help.

Subclasses declare their defaults as class attributes; keyword arguments
given at the raise site always win.
"""

import sqlite3
from typing import Optional, Dict, Any
from enum import Enum

from pydantic import ValidationError as PydanticValidationError


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration (C)
    CONFIG_INVALID = "C001"

    # Database (D)
    DATABASE_ERROR = "D006"

    # Feed ingestion (F)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_STATUS = "F005"
    FEED_SOURCE_NOT_FOUND = "F006"

    # Uploads (U)
    UPLOAD_UNSUPPORTED_FORMAT = "U001"
    UPLOAD_MALFORMED = "U002"
    UPLOAD_EMPTY = "U003"
    UPLOAD_MISSING_FIELD = "U004"

    # Content queue (Q)
    QUEUE_INVALID_TRANSITION = "Q001"
    QUEUE_ENTRY_NOT_FOUND = "Q002"
    QUEUE_UNKNOWN_SOURCE_TYPE = "Q003"

    # Content processing (P)
    CONTENT_INVALID = "P001"

    # AI rewrite and translation (A)
    AI_API_ERROR = "A001"
    AI_INVALID_RESPONSE = "A003"
    AI_TIMEOUT = "A004"
    AI_RATE_LIMIT = "A006"
    AI_INVALID_CREDENTIALS = "A009"
    AI_CONNECTION_ERROR = "A010"

    # Validation (V)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_DUPLICATE = "V004"

    # Resources (R)
    RESOURCE_NOT_FOUND = "R002"


class AutoNewsError(Exception):
    """Base exception for all AutoNews errors."""

    default_code: Optional[ErrorCode] = None
    default_user_message: Optional[str] = None
    default_recoverable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        """Initialize AutoNews error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code (default: the class default)
            context: Additional context information
            user_message: Message for CLI output
            recoverable: Whether a later run may succeed with the same input
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or self.describe(message)
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def describe(self, message: str) -> str:
        return self.default_user_message or message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {self.message}"
        return self.message


class ConfigurationError(AutoNewsError):
    """Invalid or incomplete settings."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if config_key:
            self.context["config_key"] = config_key

    def describe(self, message: str) -> str:
        return f"Configuration error: {message}"


class DatabaseError(AutoNewsError):
    """SQLite failures other than the duplicate conflicts repositories absorb."""

    default_code = ErrorCode.DATABASE_ERROR
    default_user_message = "Database operation failed"
    default_recoverable = True

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if query:
            self.context["query"] = query


class FeedError(AutoNewsError):
    """Feed ingestion errors for one RSS source."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_recoverable = True

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if feed_url:
            self.context["feed_url"] = feed_url

    def describe(self, message: str) -> str:
        return f"Feed processing failed: {message}"


class FeedFetchError(FeedError):
    """Transport errors: feed unreachable, timeout or non-2xx status."""

    def __init__(self, message: str, feed_url: Optional[str] = None,
                 status: Optional[int] = None, **kwargs):
        super().__init__(message, feed_url=feed_url, **kwargs)
        self.status = status
        if status is not None:
            self.context["status"] = status


class FeedParseError(FeedError):
    """Malformed XML or a document that is neither RSS 2.0 nor Atom."""

    default_code = ErrorCode.FEED_PARSE_ERROR
    default_recoverable = False


class ValidationError(AutoNewsError):
    """Input rejected before anything is stored."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        self.field_name = field_name
        super().__init__(message, **kwargs)
        if field_name:
            self.context["field_name"] = field_name

    def describe(self, message: str) -> str:
        return f"Invalid {self.field_name or 'input'}: {message}"


class UploadValidationError(ValidationError):
    """Uploaded batch rejected as a whole (client error)."""

    default_code = ErrorCode.UPLOAD_MALFORMED

    def __init__(self, message: str, row_index: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.row_index = row_index
        if row_index is not None:
            self.context["row_index"] = row_index

    def describe(self, message: str) -> str:
        return f"Upload rejected: {message}"


class ProcessingError(AutoNewsError):
    """A queue entry could not be turned into an article."""

    default_code = ErrorCode.CONTENT_INVALID
    default_user_message = "Content processing failed"

    def __init__(self, message: str, queue_id: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        if queue_id is not None:
            self.context["queue_id"] = queue_id


class QueueStateError(ProcessingError):
    """Illegal queue entry status transition."""

    default_code = ErrorCode.QUEUE_INVALID_TRANSITION


class AIError(AutoNewsError):
    """AI rewrite or translation failure."""

    default_code = ErrorCode.AI_API_ERROR
    default_user_message = "AI processing temporarily unavailable"
    default_recoverable = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retryable: bool = False,
        **kwargs,
    ):
        """Initialize AI error.

        Args:
            message: Error message
            provider: AI provider name (e.g., 'groq')
            retryable: Whether a later manual retry may succeed
            **kwargs: Additional arguments for AutoNewsError
        """
        super().__init__(message, **kwargs)
        self.provider = provider
        self.retryable = retryable
        if provider:
            self.context["ai_provider"] = provider


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> AutoNewsError:
    """Log a failure and return it as an AutoNews exception.

    AutoNews errors are logged and returned unchanged. Library errors the
    pipeline commonly meets are mapped onto the matching subclass, anything
    else becomes a plain ``AutoNewsError``.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information
    """
    if isinstance(exception, AutoNewsError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    context = {
        **(context or {}),
        "operation": operation,
        "original_exception_type": type(exception).__name__,
    }

    if isinstance(exception, PydanticValidationError):
        error: AutoNewsError = ValidationError(
            f"Invalid input during {operation}: {exception.error_count()} error(s)",
            context={**context, "errors": exception.errors(include_url=False)},
        )
    elif isinstance(exception, sqlite3.Error):
        error = DatabaseError(f"Database error during {operation}: {exception}", context=context)
    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = AutoNewsError(
            f"Network error during {operation}: {exception}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            user_message="Network connection failed",
            recoverable=True,
        )
    else:
        error = AutoNewsError(
            f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error
