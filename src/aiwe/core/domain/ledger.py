"""
Session Ledger

In-memory, process-local store of conversation sessions. Each session keeps an
append-only message log and the map of completed actions the PlanRunner reuses
on later turns. No durability: a restart loses everything.

Appends to one session's message log are serialized through a per-session
asyncio.Lock; distinct sessions never share mutable state.
"""

import asyncio
import uuid
from typing import Any, Optional

import structlog

from aiwe.core.domain.models import CompletedAction, Message, Session, utcnow


class SessionLedger:
    """Process-local session store."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="session_ledger")

    def create_session(
        self, initial_message: Optional[str] = None, session_id: Optional[str] = None
    ) -> Session:
        """
        Create a session, optionally seeded with a first user message.

        Args:
            initial_message: First user message, if any
            session_id: Identifier to use; a UUID is generated if omitted

        Returns:
            The new Session
        """
        session = Session(id=session_id or str(uuid.uuid4()))
        if initial_message:
            session.messages.append(Message(role="user", content=initial_message))
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()
        self.logger.info("session.created", session_id=session.id)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            self.logger.warning("session.not_found", session_id=session_id)
        return session

    def get_or_create(self, session_id: Optional[str]) -> Session:
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]
        return self.create_session(session_id=session_id)

    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serializing writers of one session."""
        return self._locks.setdefault(session_id, asyncio.Lock())

    async def append_message(self, session_id: str, role: str, content: str) -> Message:
        """
        Append a message to a session's log.

        Raises:
            KeyError: If the session does not exist
        """
        async with self.lock(session_id):
            session = self._require(session_id)
            message = Message(role=role, content=content)
            session.messages.append(message)
            session.updated_at = message.timestamp
            return message

    def record_completion(self, session_id: str, action_id: str, record: CompletedAction) -> None:
        """Record (or overwrite) a completed action for a session."""
        session = self._require(session_id)
        session.completed_actions[action_id] = record
        session.updated_at = utcnow()

    def completed_actions(self, session_id: str) -> dict[str, CompletedAction]:
        """
        The session's live completed-action map.

        Runs read it for reuse; completions come back through `record_completion`.
        """
        return self._require(session_id).completed_actions

    def conversation_history(self, session_id: str) -> str:
        """Render the message log as `role: content` lines."""
        session = self._sessions.get(session_id)
        if session is None:
            return ""
        return "\n".join(f"{m.role}: {m.content}" for m in session.messages)

    def data_reference(self, session_id: str) -> dict[str, Any]:
        """Machine-readable summary of past actions and conversation stats."""
        session = self._sessions.get(session_id)
        if session is None:
            return {"previousActions": {}, "conversationContext": {"count": 0, "lastTimestamp": None}}
        return {
            "previousActions": {
                action_id: {
                    "serviceName": record.service_name,
                    "timestamp": record.timestamp.isoformat(),
                }
                for action_id, record in session.completed_actions.items()
            },
            "conversationContext": {
                "count": len(session.messages),
                "lastTimestamp": self.last_session_timestamp(session_id),
            },
        }

    def sessions_count(self) -> int:
        return len(self._sessions)

    def last_session_timestamp(self, session_id: str) -> Optional[str]:
        session = self._sessions.get(session_id)
        if session is None or not session.messages:
            return None
        return session.messages[-1].timestamp.isoformat()

    def list_sessions(self) -> list[Session]:
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Session not found: {session_id}")
        return session
