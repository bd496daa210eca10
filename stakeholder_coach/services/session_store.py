"""
Session persistence.

The orchestrator only talks to storage through the ``SessionStore``
contract. Two backends ship: an in-process dictionary (default) and
MongoDB via Motor.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from stakeholder_coach.core.config import get_settings
from stakeholder_coach.core.database import MongoDBClient, mongodb_client
from stakeholder_coach.core.exceptions import SessionNotFoundError
from stakeholder_coach.models.session import (
    InterviewSession,
    SessionStatus,
    StageId,
    Turn,
)

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Load/save contract for interview sessions."""

    @abstractmethod
    async def load_session(self, session_id: str) -> Optional[InterviewSession]:
        """Return the stored session, or None."""

    @abstractmethod
    async def save_session(self, session: InterviewSession) -> None:
        """Insert or replace the session header (stage, memory, status, timestamps)."""

    @abstractmethod
    async def save_turn(self, session_id: str, turn: Turn) -> None:
        """Append a recorded turn."""

    @abstractmethod
    async def advance_stage(self, session_id: str, new_stage: StageId) -> None:
        """Persist a stage transition."""

    @abstractmethod
    async def archive_session(self, session_id: str, archived_at: datetime) -> None:
        """Mark a session archived. Sessions are never deleted."""

    @abstractmethod
    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: int = 50,
    ) -> List[InterviewSession]:
        """Most recently active sessions first."""

    async def health_check(self) -> bool:
        return True


class InMemorySessionStore(SessionStore):
    """Process-local store. State is lost on restart."""

    def __init__(self):
        self._sessions: Dict[str, InterviewSession] = {}

    def _require(self, session_id: str) -> InterviewSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def load_session(self, session_id: str) -> Optional[InterviewSession]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def save_session(self, session: InterviewSession) -> None:
        stored = self._sessions.get(session.id)
        turns = stored.turns if stored else list(session.turns)
        copy = session.model_copy(deep=True)
        copy.turns = list(turns)
        self._sessions[session.id] = copy

    async def save_turn(self, session_id: str, turn: Turn) -> None:
        session = self._require(session_id)
        if session.get_turn(turn.id) is None:
            session.turns.append(turn)

    async def advance_stage(self, session_id: str, new_stage: StageId) -> None:
        session = self._require(session_id)
        session.current_stage = new_stage
        if new_stage not in session.stages_visited:
            session.stages_visited.append(new_stage)

    async def archive_session(self, session_id: str, archived_at: datetime) -> None:
        session = self._require(session_id)
        session.status = SessionStatus.ARCHIVED
        session.archived_at = archived_at

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: int = 50,
    ) -> List[InterviewSession]:
        sessions = [
            s for s in self._sessions.values()
            if status is None or s.status == status
        ]
        sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
        return [s.model_copy(deep=True) for s in sessions[:limit]]


class MongoSessionStore(SessionStore):
    """
    MongoDB-backed store.

    Session headers and turns live in separate collections so that
    recording a turn is a single insert.
    """

    def __init__(self, client: Optional[MongoDBClient] = None):
        self.client = client or mongodb_client

    def _session_doc(self, session: InterviewSession) -> dict:
        doc = session.model_dump(mode="json", exclude={"turns"})
        doc["_id"] = session.id
        return doc

    async def _load_turns(self, session_id: str) -> List[Turn]:
        cursor = self.client.turns.find({"session_id": session_id}).sort("index", 1)
        turns = []
        async for doc in cursor:
            doc.pop("_id", None)
            turns.append(Turn.model_validate(doc))
        return turns

    async def load_session(self, session_id: str) -> Optional[InterviewSession]:
        doc = await self.client.sessions.find_one({"_id": session_id})
        if doc is None:
            return None
        doc.pop("_id", None)
        doc["turns"] = await self._load_turns(session_id)
        return InterviewSession.model_validate(doc)

    async def save_session(self, session: InterviewSession) -> None:
        await self.client.sessions.replace_one(
            {"_id": session.id},
            self._session_doc(session),
            upsert=True,
        )

    async def save_turn(self, session_id: str, turn: Turn) -> None:
        doc = turn.model_dump(mode="json")
        await self.client.turns.update_one(
            {"session_id": session_id, "index": turn.index},
            {"$setOnInsert": doc},
            upsert=True,
        )

    async def advance_stage(self, session_id: str, new_stage: StageId) -> None:
        result = await self.client.sessions.update_one(
            {"_id": session_id},
            {
                "$set": {"current_stage": new_stage.value},
                "$addToSet": {"stages_visited": new_stage.value},
            },
        )
        if result.matched_count == 0:
            raise SessionNotFoundError(session_id)

    async def archive_session(self, session_id: str, archived_at: datetime) -> None:
        result = await self.client.sessions.update_one(
            {"_id": session_id},
            {"$set": {
                "status": SessionStatus.ARCHIVED.value,
                "archived_at": archived_at.isoformat(),
            }},
        )
        if result.matched_count == 0:
            raise SessionNotFoundError(session_id)

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: int = 50,
    ) -> List[InterviewSession]:
        query = {"status": status.value} if status else {}
        cursor = self.client.sessions.find(query).sort("last_activity_at", -1).limit(limit)
        sessions = []
        async for doc in cursor:
            doc.pop("_id", None)
            doc["turns"] = await self._load_turns(doc["id"])
            sessions.append(InterviewSession.model_validate(doc))
        return sessions

    async def health_check(self) -> bool:
        return await self.client.health_check()


# Global store instance (lazy loaded)
_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the configured session store."""
    global _session_store
    if _session_store is None:
        backend = get_settings().session_store.lower()
        if backend == "mongodb":
            _session_store = MongoSessionStore()
        elif backend == "memory":
            _session_store = InMemorySessionStore()
        else:
            raise ValueError(f"Unsupported session store: {backend}")
        logger.info(f"Using {backend} session store")
    return _session_store
