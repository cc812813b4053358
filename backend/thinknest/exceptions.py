"""
Think Nest Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the error envelope with the matching HTTP status code.
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    ThinkNestError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DatabaseError            → 500 Internal Server Error
    ├── EmailDeliveryError       → 503 Service Unavailable (retry later)
    └── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
"""

from typing import Any, Dict, Optional


class ThinkNestError(Exception):
    """
    Base exception for all Think Nest application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ThinkNestError):
    """
    Raised when client input fails a business rule.

    HTTP:    400 Bad Request

    Malformed bodies and query strings (FastAPI RequestValidationError) are
    answered with the same 400 envelope by main.py.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(ThinkNestError):
    """
    Raised when credentials or tokens are missing, wrong, expired or revoked.

    HTTP:    401 Unauthorized

    Login answers unknown accounts and wrong passwords with the same message.
    """

    def __init__(
        self,
        message: str = "Not authorized to access this route. Please login.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(ThinkNestError):
    """
    Raised when a requested resource does not exist or belongs to someone else.

    HTTP:    404 Not Found

    Foreign notes are reported exactly like missing ones so ids of other
    users' notes cannot be probed.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(ThinkNestError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The client always gets a generic message; the context is logged only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmailDeliveryError(ThinkNestError):
    """
    Raised when a transactional email could not be sent after all retries.

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "We could not send the email right now. Please try again later.",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(ThinkNestError):
    """
    Raised when the mail circuit breaker is in OPEN state.

    HTTP:    503 Service Unavailable

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all sends for recovery_timeout seconds)
        → After the timeout → HALF-OPEN (allow one test send)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Email service is temporarily unavailable due to repeated failures. "
            f"Please try again in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(ThinkNestError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
