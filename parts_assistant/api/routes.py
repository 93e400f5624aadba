"""FastAPI route definitions for the parts assistant API."""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, Request

from parts_assistant.api.schemas import (
    ChatRequest,
    ChatResponse,
    HealthResponse,
    SessionDeletedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_assistant(request: Request):
    """Retrieve the assistant created during the FastAPI lifespan."""
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return assistant


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the assistant and get its reply.

    Omitting ``session_id`` starts a new conversation; the generated id is
    returned and must be sent back on later messages.  The turn blocks on
    model and email calls, so it runs in a worker thread.
    """
    assistant = _get_assistant(http_request)
    request_id = getattr(http_request.state, "request_id", "?")
    session_id = request.session_id or str(uuid.uuid4())

    try:
        result = await asyncio.to_thread(assistant.handle_turn, session_id, request.message)
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    return ChatResponse(
        reply=result["response_text"],
        session_id=session_id,
        tool_payload=result.get("tool_payload"),
    )


@router.delete("/sessions/{session_id}", response_model=SessionDeletedResponse)
async def delete_session(session_id: str, http_request: Request):
    """End a conversation and discard its memory."""
    assistant = _get_assistant(http_request)
    deleted = assistant.end_session(session_id)
    return SessionDeletedResponse(session_id=session_id, deleted=deleted)
