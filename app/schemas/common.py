"""Response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Successful response wrapper: ``{"success": true, "data": ..., "message": ...}``."""

    success: bool = True
    data: T | None = None
    message: str | None = Field(default=None, description="Human-readable summary.")
