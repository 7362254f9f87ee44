"""Request and response models of the HTTP API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ExecuteCommandRequest(BaseModel):
    """Request to process a natural-language command."""

    command: str
    session_id: Optional[str] = None


class ExecuteCommandResponse(BaseModel):
    """Response from command processing."""

    session_id: str
    status: str
    response: str
    execution_results: List[Dict[str, Any]] = []


class SessionSummary(BaseModel):
    id: str
    created_at: str
    updated_at: str
    message_count: int
    completed_action_count: int


class SessionDetail(BaseModel):
    id: str
    created_at: str
    updated_at: str
    messages: List[Dict[str, Any]]
    completed_actions: Dict[str, Dict[str, Any]]
