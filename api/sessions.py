"""
api/sessions.py

Chat session and message endpoints.

Endpoints:
  - GET  /sessions: List every chat session, most recently updated first.
  - POST /sessions: Create an empty chat session.
  - GET  /sessions/{session_id}: Fetch one session including its message counter and summary.
  - POST /sessions/{session_id}/messages: Run one conversation turn and return the reply.
  - GET  /sessions/{session_id}/messages: Full turn history of a session, oldest first.

The handlers are thin: they pull the shared components from `app.state`, translate a missing
session into HTTP 404, and leave everything else to the orchestrator. Body validation (message
length between 1 and 2000 characters) is done by pydantic and surfaces as HTTP 422.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from core.bootstrap import ChatComponents
from services.session_store import SessionNotFoundError
from shared.models import ChatResponse, SendMessageRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_components(request: Request) -> ChatComponents:
    """FastAPI dependency returning the components built at startup."""
    return request.app.state.components


def _not_found(session_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Chat session {session_id} not found")


@router.get("/sessions")
async def list_sessions(components: ChatComponents = Depends(get_components)) -> List[Dict[str, Any]]:
    return [session.to_dict() for session in components.store.list_sessions()]


@router.post("/sessions", status_code=201)
async def create_session(components: ChatComponents = Depends(get_components)) -> Dict[str, Any]:
    session = components.store.create_session()
    logger.info(f"[create_session] Created chat session {session.id}")
    return session.to_dict()


@router.get("/sessions/{session_id}")
async def get_session(session_id: int, components: ChatComponents = Depends(get_components)) -> Dict[str, Any]:
    session = components.store.get_session(session_id)
    if session is None:
        raise _not_found(session_id)
    return session.to_dict()


@router.post("/sessions/{session_id}/messages", response_model=ChatResponse)
async def send_message(
    session_id: int,
    body: SendMessageRequest,
    components: ChatComponents = Depends(get_components),
) -> ChatResponse:
    """
    Process one user message in a session and return the assistant reply.

    A failed turn is still answered with HTTP 200: the payload carries the apologetic fallback
    text and `error: true`, so clients can render it like any other reply.

    Raises:
        HTTPException: 404 when the session does not exist.
    """
    logger.info(f"[send_message] Session {session_id} - Message: '{body.message[:100]}'")
    try:
        return await components.orchestrator.process_turn(session_id, body.message, body.context)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.get("/sessions/{session_id}/messages")
async def get_history(session_id: int, components: ChatComponents = Depends(get_components)) -> List[Dict[str, Any]]:
    if components.store.get_session(session_id) is None:
        raise _not_found(session_id)
    return [turn.to_dict() for turn in components.store.list_turns(session_id, order="ASC")]
