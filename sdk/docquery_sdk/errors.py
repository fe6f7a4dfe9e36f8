"""
Error types for the docquery SDK.

This module defines all exception types raised by the SDK:
- DocQueryError: Base exception
- ConfigurationError: Invalid model registration options
- SchemaError: Invalid schema declaration
- UnknownFieldError: Unknown field path (strict field mode only)

Storage backend errors are never wrapped; they reach the caller exactly
as the backend raised them. Cache invalidation failures never surface.

Invariants:
    - All errors inherit from DocQueryError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DocQueryError(Exception):
    """Base exception for all docquery SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCQUERY_ERROR"
        self.details = details or {}


class ConfigurationError(DocQueryError):
    """Model registration options are missing or mistyped.

    Raised synchronously at registration time, before any query can run:
    - model_name is missing or not a string
    - common_fields / secret_fields / read_only_fields are not lists
    - limit or cache have the wrong type or range
    """

    def __init__(
        self,
        message: str,
        option: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"option": option, "errors": errors or []},
        )
        self.option = option
        self.errors = errors or []


class SchemaError(DocQueryError):
    """Schema-related error.

    Raised when:
    - A document schema declares the same field twice
    - A reference field points at a schema the registry does not know
    """

    def __init__(
        self,
        message: str,
        schema_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"schema_name": schema_name},
        )
        self.schema_name = schema_name


class UnknownFieldError(DocQueryError):
    """Unknown field path requested.

    Only raised when the model is registered with strict_fields=True;
    the default policy drops unknown paths silently.

    Attributes:
        field_name: The unknown path
        model_name: The model being queried
        suggestions: Similar field names
    """

    def __init__(
        self,
        field_name: str,
        model_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' in model '{model_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_FIELD",
            details={
                "field_name": field_name,
                "model_name": model_name,
                "suggestions": suggestions,
            },
        )
        self.field_name = field_name
        self.model_name = model_name
        self.suggestions = suggestions
