"""Response envelopes shared by every endpoint."""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Success envelope: ``{"success": true, "data": ..., "message": ...}``."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    """Body written by the DriveError and fallback exception handlers."""

    success: bool = False
    error: str
    message: str

    @classmethod
    def from_error(cls, exc: Exception, title: str = "Error") -> "ErrorResponse":
        return cls(error=getattr(exc, "title", title), message=str(exc))
