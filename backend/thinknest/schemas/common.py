"""
Think Nest Backend — Shared API Schemas
========================================

What:  Response envelope, error format and health payload shared by all routes.

Envelope:
    Every success body is {"success": true, "message": ..., "data": ...}.
    Every error body is {"success": false, "error": ..., "message": ...,
    "details": ..., "request_id": ...}. The SPA reads `message` from both
    to drive its toasts.
"""

from datetime import datetime, timezone
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


def ensure_utc(value: datetime) -> datetime:
    # SQLite returns naive timestamps; they are stored as UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = Field(default=True)
    message: str = Field(description="Human-readable result, shown to the user")
    data: Optional[DataT] = Field(default=None)


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "success": false,
            "error": "validation_error",
            "message": "Passwords do not match",
            "details": null,
            "request_id": "a1b2c3d4"
        }
    """
    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    mail: str = Field(description="Mail transport: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
