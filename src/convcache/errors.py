# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Conversation cache error codes and exception classes.

Errors carry a machine-readable code, a human-readable message, optional
details and a remediation suggestion, so the routing layer can map them to
responses without inspecting exception types.

Error Response Schema:
```json
{
  "error": {
    "code": "CONVERSATION_NOT_FOUND",
    "message": "Conversation 'c0ffee' not found",
    "details": {"conversation_id": "c0ffee"},
    "suggestion": "Use history() to list cached conversations"
  }
}
```
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CacheErrorCode(str, Enum):
    """Standard cache error codes."""

    # 400 Bad Request
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # 404 Not Found
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"

    # 500 Internal Server Error
    STORAGE_ERROR = "STORAGE_ERROR"
    PARTIAL_WRITE_RECOVERED = "PARTIAL_WRITE_RECOVERED"


ERROR_CODE_TO_HTTP_STATUS: dict[CacheErrorCode, int] = {
    CacheErrorCode.VALIDATION_ERROR: 400,
    CacheErrorCode.CONVERSATION_NOT_FOUND: 404,
    CacheErrorCode.STORAGE_ERROR: 500,
    CacheErrorCode.PARTIAL_WRITE_RECOVERED: 500,
}


ERROR_CODE_SUGGESTIONS: dict[CacheErrorCode, str] = {
    CacheErrorCode.VALIDATION_ERROR: "Check that required parameters are present and within range",
    CacheErrorCode.CONVERSATION_NOT_FOUND: "Use history() to list cached conversations",
    CacheErrorCode.STORAGE_ERROR: "Retry the request; if persistent, check database connectivity",
    CacheErrorCode.PARTIAL_WRITE_RECOVERED: "The save was rolled back; retry the save",
}


class CacheErrorDetail(BaseModel):
    """Serialized error body."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(None, description="Additional context for debugging")
    suggestion: str | None = Field(None, description="Remediation hint")


class CacheErrorResponse(BaseModel):
    """Wrapper for error responses."""

    error: CacheErrorDetail


class CacheError(Exception):
    """Base exception for all cache errors.

    Usage:
        raise CacheError(
            code=CacheErrorCode.STORAGE_ERROR,
            message="Database unreachable",
            details={"operation": "save"},
        )
    """

    def __init__(
        self,
        code: CacheErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        self.code = code if isinstance(code, CacheErrorCode) else CacheErrorCode(code)
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_CODE_SUGGESTIONS.get(self.code)
        super().__init__(message)

    @property
    def http_status(self) -> int:
        """Get HTTP status code for this error."""
        return ERROR_CODE_TO_HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "suggestion": self.suggestion,
            }
        }

    def to_response(self) -> CacheErrorResponse:
        """Convert to Pydantic response model."""
        return CacheErrorResponse(
            error=CacheErrorDetail(
                code=self.code.value,
                message=self.message,
                details=self.details,
                suggestion=self.suggestion,
            )
        )


# =============================================================================
# Specific Error Classes
# =============================================================================


class ValidationError(CacheError):
    """Raised when caller input is missing or malformed."""

    def __init__(
        self,
        param: str,
        reason: str = "is required",
        message: str | None = None,
    ):
        super().__init__(
            code=CacheErrorCode.VALIDATION_ERROR,
            message=message or f"Parameter '{param}' {reason}",
            details={"parameter": param, "reason": reason},
        )
        self.param = param


class NotFoundError(CacheError):
    """Raised when a lookup by id matches no row."""


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation is not found."""

    def __init__(self, conversation_id: str, message: str | None = None):
        super().__init__(
            code=CacheErrorCode.CONVERSATION_NOT_FOUND,
            message=message or f"Conversation '{conversation_id}' not found",
            details={"conversation_id": conversation_id},
        )
        self.conversation_id = conversation_id


class StorageError(CacheError):
    """Raised when the underlying transactional store fails."""

    def __init__(
        self,
        operation: str,
        reason: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        code: CacheErrorCode = CacheErrorCode.STORAGE_ERROR,
    ):
        super().__init__(
            code=code,
            message=message or f"Storage failure during {operation}: {reason}",
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation


class PartialWriteRecovered(StorageError):
    """Raised when keyword insertion failed mid-save and the save was rolled back."""

    def __init__(self, conversation_id: str, reason: str):
        super().__init__(
            operation="save",
            reason=reason,
            message=f"Keyword write failed for conversation '{conversation_id}'; save rolled back",
            details={"conversation_id": conversation_id, "reason": reason},
            code=CacheErrorCode.PARTIAL_WRITE_RECOVERED,
        )
        self.conversation_id = conversation_id
