"""
Pydantic schemas for stored messages and the HTTP API.

This module contains:
- MessageRecord, the read model returned by the message manager
- Request models for incoming data
- Response models for API responses

Request models only check shape (types, presence). Business rules such as
content size and timestamp ordering live in validation.py so that direct
callers of the manager get the same checks.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Read Model
# =============================================================================

class MessageRecord(BaseModel):
    """A row of the messages table."""
    id: int = Field(..., description="Storage-assigned row identifier")
    message_id: int = Field(..., description="Unique caller-facing message identifier")
    content: str = Field(..., description="Message text")
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    updated_at: int = Field(..., description="Last content update, epoch milliseconds")

    model_config = {
        "from_attributes": True,  # Allow creating from ORM objects
    }


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageCreateRequest(BaseModel):
    """
    Body of POST /messages.

    created_at defaults to the server time and updated_at to created_at.
    """
    message_id: int = Field(..., description="Unique message identifier")
    content: str = Field(..., description="Message text")
    created_at: Optional[int] = Field(None, description="Creation time, epoch milliseconds")
    updated_at: Optional[int] = Field(None, description="Last update time, epoch milliseconds")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "message_id": 1,
                    "content": "Hello",
                    "created_at": 1736935200000,
                    "updated_at": 1736935200000
                }
            ]
        }
    }


class MessageUpdateRequest(BaseModel):
    """Body of PUT /messages/{message_id}."""
    content: str = Field(..., description="New message text")


# =============================================================================
# Pydantic Response Models
# =============================================================================

class StatusResponse(BaseModel):
    """Response model for successful write operations."""
    status: str = Field(default="ok", description="Operation status")


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class MessagesListResponse(BaseModel):
    """Response model for GET /messages: every stored message in storage order."""
    data: list[MessageRecord] = Field(
        default_factory=list,
        description="List of messages"
    )
    total: int = Field(..., ge=0, description="Number of messages returned")


class MessageCountResponse(BaseModel):
    """Response model for GET /messages/count."""
    count: int = Field(..., ge=0, description="Total number of stored messages")


class MessageExistsResponse(BaseModel):
    """Response model for GET /messages/{message_id}/exists."""
    message_id: int
    exists: bool


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
