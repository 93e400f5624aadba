"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's message")
    session_id: str | None = Field(
        None,
        min_length=1,
        max_length=100,
        description="Conversation id; omit on the first message to start a new session",
    )


class ToolPayload(BaseModel):
    """Structured result of the tool that ran this turn, for UI rendering."""

    tool_name: str
    data: Any


class ChatResponse(BaseModel):
    """Response from the assistant."""

    reply: str = Field(..., description="The assistant's response message")
    session_id: str = Field(..., description="The session ID for this conversation")
    tool_payload: ToolPayload | None = Field(
        None, description="Present only when a tool ran this turn",
    )


class SessionDeletedResponse(BaseModel):
    session_id: str
    deleted: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "parts-assistant"
