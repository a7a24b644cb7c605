"""
Character API: Pydantic Request/Response Schemas
===================================================

What:  Pydantic models defining the API contract for characters.
How:   CharacterCreate is the strict create schema (exact keys, strings
       only). CharacterUpdate is its partial counterpart, used on updates
       when ENFORCE_UPDATE_SCHEMA is on. CharacterResponse shapes stored
       documents for output.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class CharacterCreate(BaseModel):
    """
    Body of POST /characters.

    All three fields are required strings; unknown keys are rejected and
    no type coercion happens (an integer nickname is an error, not "42").
    """
    real_name: str = Field(alias="realName", description="The character's real name")
    nickname: str = Field(description="Alias; case-insensitive lookup key")
    description: str = Field(description="Free-form description")

    model_config = {"extra": "forbid", "strict": True}


class CharacterUpdate(BaseModel):
    """
    Partial update body, same field rules as CharacterCreate but all optional.

    Fields may be omitted but not sent as null: the None defaults are never
    validated, while an explicit null fails the strict `str` check.
    """
    real_name: str = Field(default=None, alias="realName")
    nickname: str = None
    description: str = None

    model_config = {"extra": "forbid", "strict": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class CharacterResponse(BaseModel):
    """
    A stored character as returned by the read endpoints.

    Field values are typed loosely: unvalidated updates may have stored
    non-string values or extra keys, which are passed through as-is.
    """
    id: uuid.UUID = Field(alias="_id", description="Store-assigned identifier")
    real_name: Any = Field(default=None, alias="realName")
    nickname: Any = None
    description: Any = None

    model_config = {"extra": "allow", "populate_by_name": True}


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Fields:
        error: Machine-readable error code ("validation_error", "not_found", ...)
        message: Human-readable description
        errors: Schema violations, one per problem (validation errors only)
        details: Optional extra context
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    errors: Optional[list] = Field(default=None, description="Schema violations")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Readiness probe body for GET /health."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Store connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
