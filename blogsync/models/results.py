"""Uniform success/failure shape for every externally exposed operation."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Failure categories the UI can branch on."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    NOT_INITIALIZED = "not_initialized"
    DEPLOYMENT = "deployment"
    INTERNAL = "internal"


class OperationResult(BaseModel):
    """Returned by every CmsService operation instead of raising."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: dict[str, Any] = {}
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, **data: Any) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind = ErrorKind.INTERNAL) -> OperationResult:
        return cls(success=False, error=error, error_kind=kind)
