from typing import List

from fastapi import APIRouter, Depends, HTTPException

from aiwe.api.dependencies import get_engine
from aiwe.api.schemas import SessionDetail, SessionSummary
from aiwe.application.engine import AiweEngine

router = APIRouter()


@router.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(engine: AiweEngine = Depends(get_engine)):
    """List sessions, most recently updated first."""
    return [
        SessionSummary(
            id=s.id,
            created_at=s.created_at.isoformat(),
            updated_at=s.updated_at.isoformat(),
            message_count=len(s.messages),
            completed_action_count=len(s.completed_actions),
        )
        for s in engine.ledger.list_sessions()
    ]


@router.get("/sessions/{session_id}", response_model=SessionDetail)
async def get_session(session_id: str, engine: AiweEngine = Depends(get_engine)):
    session = engine.ledger.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionDetail(**session.to_dict())
