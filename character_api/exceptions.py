"""
Character API: Custom Exception Hierarchy
============================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception class carries a message and optional context dict.
       Exception handlers registered in main.py catch these and return
       structured JSON error responses with the matching HTTP status code.
Who:   Raised by the service layer and route helpers; caught by the handlers.

Exception Hierarchy:
    CharacterApiError (base)
    ├── ValidationError        → 400 Bad Request (client can fix)
    ├── NotFoundError          → 404 Not Found
    ├── DatabaseError          → 500 Internal Server Error
    └── StoreUnavailableError  → startup abort (never reaches a client)
"""

from typing import Any, Dict, List, Optional


class CharacterApiError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for client errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CharacterApiError):
    """
    Raised when client input fails validation.

    When:    Malformed identifier, missing query parameter, body that does not
             match the character schema.
    HTTP:    400 Bad Request

    `errors` holds one entry per schema violation when the failure comes
    from body validation; it is empty for single-problem failures.

    Example response:
        {
            "error": "validation_error",
            "message": "The submitted data is not valid for creating a character.",
            "errors": [
                {"field": "nickname", "message": "Field required", "type": "missing"}
            ],
            "request_id": "a1b2c3d4"
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = errors or []


class NotFoundError(CharacterApiError):
    """
    Raised when no character matches the lookup key.

    HTTP:    404 Not Found

    The message names the key that was used (ID or nickname) so the client
    can tell which lookup missed.
    """

    def __init__(
        self,
        resource: str = "Character",
        key: str = "ID",
        value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found with {key}: {value}"
        ctx = context or {}
        ctx["resource"] = resource
        ctx["key"] = key
        ctx["value"] = value
        super().__init__(message=message, context=ctx)


class DatabaseError(CharacterApiError):
    """
    Raised when a store operation fails unexpectedly.

    When:    Connection lost mid-query, driver exception, serialization failure.
    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; the driver error
    is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class StoreUnavailableError(CharacterApiError):
    """
    Raised during startup when the store cannot be reached.

    Raised out of the application lifespan, which aborts startup; the
    server process then exits with a non-zero status.
    """

    def __init__(
        self,
        message: str = "Could not connect to the document store",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
