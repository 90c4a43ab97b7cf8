"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from catalog.models import User


class APIResponse(BaseModel):
    """Envelope used by every endpoint, on success and on failure."""
    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome")
    data: Optional[Any] = Field(None, description="Operation result")
    error: Optional[str] = Field(None, description="Error details on failure")


class ErrorResponse(APIResponse):
    """Failure envelope."""
    success: bool = False
    kind: Optional[str] = Field(None, description="Stable error kind")


class LoginRequest(BaseModel):
    """Login credentials."""
    email: str
    password: str


class RegisterRequest(BaseModel):
    """Registration payload. Validated in depth by the account manager."""
    email: str
    password: str
    name: str
    role: Optional[str] = None


class BookmarkRequest(BaseModel):
    """Bookmark toggle payload."""
    book_id: str = Field(..., alias="bookId")

    model_config = {"populate_by_name": True}


class TokenData(BaseModel):
    """Authenticated user and access token."""
    user: User
    token: str


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
