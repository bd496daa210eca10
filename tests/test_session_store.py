"""
Unit tests for session persistence.
"""
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, MagicMock

from stakeholder_coach.core.exceptions import SessionNotFoundError
from stakeholder_coach.models.session import InterviewSession, SessionStatus, StageId
from stakeholder_coach.services.session_store import InMemorySessionStore, MongoSessionStore

from test_context_memory import make_turn


def _session(session_id: str = "session-1") -> InterviewSession:
    return InterviewSession(
        id=session_id,
        scenario_id="customer-onboarding-optimization",
        selected_persona_id="james-walker",
        active_persona_ids=["james-walker"],
    )


class TestInMemorySessionStore:
    """Test the in-process store."""

    @pytest.mark.asyncio
    async def test_round_trip_is_a_copy(self):
        store = InMemorySessionStore()
        session = _session()
        await store.save_session(session)

        loaded = await store.load_session(session.id)
        loaded.current_stage = StageId.AS_IS

        again = await store.load_session(session.id)
        assert again.current_stage == StageId.KICKOFF

    @pytest.mark.asyncio
    async def test_missing_session(self):
        store = InMemorySessionStore()
        assert await store.load_session("missing") is None
        with pytest.raises(SessionNotFoundError):
            await store.advance_stage("missing", StageId.AS_IS)

    @pytest.mark.asyncio
    async def test_save_turn_is_idempotent(self):
        store = InMemorySessionStore()
        await store.save_session(_session())
        turn = make_turn(StageId.KICKOFF, "What is your role?", "I lead customer success.")

        await store.save_turn("session-1", turn)
        await store.save_turn("session-1", turn)

        loaded = await store.load_session("session-1")
        assert [t.id for t in loaded.turns] == [turn.id]

    @pytest.mark.asyncio
    async def test_save_session_keeps_recorded_turns(self):
        store = InMemorySessionStore()
        session = _session()
        await store.save_session(session)
        await store.save_turn(session.id, make_turn(StageId.KICKOFF, "Hello?", "Hi."))

        session.current_stage = StageId.PROBLEM_EXPLORATION
        await store.save_session(session)

        loaded = await store.load_session(session.id)
        assert len(loaded.turns) == 1
        assert loaded.current_stage == StageId.PROBLEM_EXPLORATION

    @pytest.mark.asyncio
    async def test_advance_and_archive(self):
        store = InMemorySessionStore()
        await store.save_session(_session())

        await store.advance_stage("session-1", StageId.PROBLEM_EXPLORATION)
        await store.archive_session("session-1", datetime(2024, 1, 1))

        loaded = await store.load_session("session-1")
        assert loaded.stages_visited == [StageId.KICKOFF, StageId.PROBLEM_EXPLORATION]
        assert loaded.status == SessionStatus.ARCHIVED
        assert loaded.archived_at == datetime(2024, 1, 1)

    @pytest.mark.asyncio
    async def test_list_sessions(self):
        store = InMemorySessionStore()
        older = _session("older")
        older.last_activity_at = datetime(2024, 1, 1)
        newer = _session("newer")
        newer.last_activity_at = datetime(2024, 2, 1)
        await store.save_session(older)
        await store.save_session(newer)
        await store.archive_session("older", datetime(2024, 3, 1))

        assert [s.id for s in await store.list_sessions()] == ["newer", "older"]
        assert [s.id for s in await store.list_sessions(status=SessionStatus.ARCHIVED)] == ["older"]
        assert len(await store.list_sessions(limit=1)) == 1


class TestMongoSessionStore:
    """Test the MongoDB store against mocked collections."""

    @staticmethod
    def _client():
        client = MagicMock()
        client.sessions.replace_one = AsyncMock()
        client.sessions.update_one = AsyncMock(return_value=MagicMock(matched_count=1))
        client.sessions.find_one = AsyncMock(return_value=None)
        client.turns.update_one = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_save_session_upserts_without_turns(self):
        client = self._client()
        store = MongoSessionStore(client=client)

        await store.save_session(_session())

        query, doc = client.sessions.replace_one.call_args.args
        assert query == {"_id": "session-1"}
        assert doc["_id"] == "session-1"
        assert "turns" not in doc
        assert client.sessions.replace_one.call_args.kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_save_turn_insert_only(self):
        client = self._client()
        store = MongoSessionStore(client=client)
        turn = make_turn(StageId.KICKOFF, "Hello?", "Hi.", index=3)

        await store.save_turn("session-1", turn)

        query, update = client.turns.update_one.call_args.args
        assert query == {"session_id": "session-1", "index": 3}
        assert "$setOnInsert" in update

    @pytest.mark.asyncio
    async def test_advance_unknown_session(self):
        client = self._client()
        client.sessions.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
        store = MongoSessionStore(client=client)

        with pytest.raises(SessionNotFoundError):
            await store.advance_stage("missing", StageId.AS_IS)

    @pytest.mark.asyncio
    async def test_load_missing(self):
        store = MongoSessionStore(client=self._client())
        assert await store.load_session("missing") is None
