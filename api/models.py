"""
Pydantic models for the Albi Mall API requests and responses.

The storefront sends camelCase (``sessionId``); snake_case is accepted too.
Field types on ChatRequest are deliberately loose so that type problems
surface as specific validation codes (see api.validation) rather than a
generic schema error.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[Any] = Field(default=None, description="User's message")
    session_id: Optional[Any] = Field(
        default=None, alias="sessionId",
        description="Session ID (generated if not provided)",
    )
    products: Optional[List[Any]] = Field(
        default=None, description="Product ids currently shown by the storefront (max 10)",
    )


class ChatData(BaseModel):
    """Composed reply."""
    assistant_text: str
    recommended_products: List[Dict[str, str]] = Field(default_factory=list)
    audit_notes: Optional[str] = None


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: ChatData
    session_id: str = Field(alias="sessionId")


class SessionResponse(BaseModel):
    """Response model for the session state endpoint."""
    success: bool = True
    data: Dict[str, Any]


class SessionsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active_sessions: List[str] = Field(alias="activeSessions")
    count: int


class SessionsResponse(BaseModel):
    """Response model for the active sessions endpoint."""
    success: bool = True
    data: SessionsData


class ClearSessionResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    """Response model for health check."""
    success: bool = True
    service: str
    status: str = "healthy"
    timestamp: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: Optional[str] = None
