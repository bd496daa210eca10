"""
Session Orchestrator Service.

Central controller for practice meetings. Runs the per-turn pipeline
(evaluate, coach, route, reply, remember), enforces one in-flight turn
per session and moves sessions through the fixed stage order on request.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional

from stakeholder_coach.core.config import get_settings
from stakeholder_coach.core.exceptions import (
    ConcurrentTurnError,
    OracleError,
    OracleUnavailableError,
    SessionClosedError,
    SessionNotFoundError,
    StageTransitionError,
    UnknownPersonaError,
)
from stakeholder_coach.models.session import (
    AcknowledgeResponse,
    ContextMemory,
    InterviewSession,
    SessionDebrief,
    SessionStatus,
    StageTransitionResponse,
    Turn,
    TurnResult,
    Verdict,
)
from stakeholder_coach.providers.oracle import JudgmentOracle, get_judgment_oracle
from stakeholder_coach.services.coaching_advisor import CoachingAdvisor, get_coaching_advisor
from stakeholder_coach.services.context_memory import (
    ContextMemoryManager,
    get_context_memory_manager,
)
from stakeholder_coach.services.debrief import build_debrief
from stakeholder_coach.services.question_evaluator import (
    QuestionEvaluator,
    get_question_evaluator,
)
from stakeholder_coach.services.scenarios import ScenarioCatalog, get_scenario_catalog
from stakeholder_coach.services.session_store import SessionStore, get_session_store
from stakeholder_coach.services.speaker_router import SpeakerRouter, get_speaker_router
from stakeholder_coach.services.stage_registry import StageRegistry, get_stage_registry
from stakeholder_coach.services.stakeholder_responder import (
    StakeholderResponder,
    get_stakeholder_responder,
)

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """
    Manages practice meetings from start to debrief.

    Responsibilities:
    - Create sessions once the oracle is known to be reachable
    - Process learner questions one at a time per session
    - Hold stakeholder replies back after a RED question until acknowledged
    - Advance stages only on explicit request, never mid-turn
    - Archive sessions and produce a debrief
    """

    def __init__(
        self,
        oracle: Optional[JudgmentOracle] = None,
        question_evaluator: Optional[QuestionEvaluator] = None,
        coaching_advisor: Optional[CoachingAdvisor] = None,
        speaker_router: Optional[SpeakerRouter] = None,
        stakeholder_responder: Optional[StakeholderResponder] = None,
        context_memory: Optional[ContextMemoryManager] = None,
        session_store: Optional[SessionStore] = None,
        stage_registry: Optional[StageRegistry] = None,
        scenario_catalog: Optional[ScenarioCatalog] = None,
        history_window: Optional[int] = None,
    ):
        self._oracle = oracle
        self._question_evaluator = question_evaluator
        self._coaching_advisor = coaching_advisor
        self._speaker_router = speaker_router
        self._stakeholder_responder = stakeholder_responder
        self._context_memory = context_memory
        self._session_store = session_store
        self._stage_registry = stage_registry
        self._scenario_catalog = scenario_catalog
        self.history_window = (
            get_settings().history_window if history_window is None else history_window
        )

        # Live sessions, backed by the session store
        self._sessions: Dict[str, InterviewSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def oracle(self) -> JudgmentOracle:
        if self._oracle is None:
            self._oracle = get_judgment_oracle()
        return self._oracle

    @property
    def question_evaluator(self) -> QuestionEvaluator:
        if self._question_evaluator is None:
            self._question_evaluator = get_question_evaluator()
        return self._question_evaluator

    @property
    def coaching_advisor(self) -> CoachingAdvisor:
        if self._coaching_advisor is None:
            self._coaching_advisor = get_coaching_advisor()
        return self._coaching_advisor

    @property
    def speaker_router(self) -> SpeakerRouter:
        if self._speaker_router is None:
            self._speaker_router = get_speaker_router()
        return self._speaker_router

    @property
    def stakeholder_responder(self) -> StakeholderResponder:
        if self._stakeholder_responder is None:
            self._stakeholder_responder = get_stakeholder_responder()
        return self._stakeholder_responder

    @property
    def context_memory(self) -> ContextMemoryManager:
        if self._context_memory is None:
            self._context_memory = get_context_memory_manager()
        return self._context_memory

    @property
    def session_store(self) -> SessionStore:
        if self._session_store is None:
            self._session_store = get_session_store()
        return self._session_store

    @property
    def stage_registry(self) -> StageRegistry:
        if self._stage_registry is None:
            self._stage_registry = get_stage_registry()
        return self._stage_registry

    @property
    def scenario_catalog(self) -> ScenarioCatalog:
        if self._scenario_catalog is None:
            self._scenario_catalog = get_scenario_catalog()
        return self._scenario_catalog

    @asynccontextmanager
    async def _turn_guard(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's single-writer lock, or fail fast if it is taken."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            logger.warning(f"Rejected concurrent request for session {session_id}")
            raise ConcurrentTurnError(session_id)
        try:
            async with lock:
                yield
        finally:
            # Ended or unknown sessions keep no lock behind
            if session_id not in self._sessions and not lock.locked():
                self._locks.pop(session_id, None)

    def _ensure_open(self, session: InterviewSession) -> None:
        if session.is_closed:
            raise SessionClosedError(session.id)

    async def start_session(
        self,
        selected_persona_id: str,
        scenario_id: Optional[str] = None,
        active_persona_ids: Optional[List[str]] = None,
        user_id: Optional[str] = None,
    ) -> InterviewSession:
        """
        Start a new practice meeting at the kickoff stage.

        Args:
            selected_persona_id: Persona the learner addresses by default
            scenario_id: Practice scenario (defaults to the configured one)
            active_persona_ids: Personas present in the meeting (defaults to all)
            user_id: Optional learner id

        Returns:
            The new session

        Raises:
            OracleUnavailableError: The oracle cannot be reached
        """
        scenario = self.scenario_catalog.get_scenario(
            scenario_id or get_settings().default_scenario_id
        )
        self.scenario_catalog.get_persona(scenario.id, selected_persona_id)

        active = list(active_persona_ids) if active_persona_ids else scenario.persona_ids
        for persona_id in active:
            if scenario.get_persona(persona_id) is None:
                raise UnknownPersonaError(persona_id, scenario.id)
        if selected_persona_id not in active:
            active.insert(0, selected_persona_id)

        try:
            healthy = await self.oracle.health_check()
        except OracleError as e:
            logger.error(f"Oracle health check failed: {e}")
            healthy = False
        if not healthy:
            raise OracleUnavailableError(
                "Judgment oracle is unavailable; cannot start a session",
                operation="health_check",
            )

        session = InterviewSession(
            id=str(uuid.uuid4()),
            scenario_id=scenario.id,
            selected_persona_id=selected_persona_id,
            active_persona_ids=active,
            user_id=user_id,
            context_memory=self.context_memory.initial(),
        )
        await self.session_store.save_session(session)
        self._sessions[session.id] = session

        logger.info(f"Started session {session.id} ({scenario.id}, personas: {', '.join(active)})")
        return session

    async def get_session(self, session_id: str) -> InterviewSession:
        """Get a session by id, loading it from the store if needed."""
        session = self._sessions.get(session_id)
        if session is None:
            session = await self.session_store.load_session(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if not session.is_closed:
                self._sessions[session_id] = session
        return session

    async def get_context(self, session_id: str) -> ContextMemory:
        session = await self.get_session(session_id)
        return session.context_memory

    async def list_sessions(
        self,
        status: Optional[SessionStatus] = None,
        limit: int = 50,
    ) -> List[InterviewSession]:
        return await self.session_store.list_sessions(status=status, limit=limit)

    async def submit_question(self, session_id: str, question: str) -> TurnResult:
        """
        Process one learner question.

        A question arriving while a RED turn awaits acknowledgement counts
        as the learner's resubmission.

        Raises:
            ConcurrentTurnError: Another question is still being processed
            SessionNotFoundError: Unknown session
            SessionClosedError: Session has ended
        """
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty")

        async with self._turn_guard(session_id):
            session = await self.get_session(session_id)
            self._ensure_open(session)
            return await self._process_question(session, question)

    async def _process_question(self, session: InterviewSession, question: str) -> TurnResult:
        stage = session.current_stage
        scenario = self.scenario_catalog.get_scenario(session.scenario_id)
        project_context = scenario.describe()
        history = session.recent_turns(self.history_window)

        if session.awaiting_acknowledgement:
            logger.info(f"Session {session.id}: new question replaces pending RED turn")

        # 1. Evaluate and coach
        evaluation = await self.question_evaluator.evaluate(
            question, stage, history=history, project_context=project_context
        )
        coaching = await self.coaching_advisor.advise(question, evaluation, stage)

        # 2. RED needing acknowledgement holds the stakeholder back
        blocked = evaluation.verdict == Verdict.RED and coaching.acknowledgement_required

        persona_id = None
        reply = None
        if not blocked:
            # 3. Route and reply
            persona_id = self.speaker_router.route(
                question, scenario, session.active_persona_ids, session.selected_persona_id
            )
            reply = await self.stakeholder_responder.respond(
                question,
                evaluation.verdict,
                stage,
                scenario.get_persona(persona_id),
                history=history,
                project_context=project_context,
            )

        turn = Turn(
            id=str(uuid.uuid4()),
            session_id=session.id,
            index=len(session.turns),
            stage=stage,
            question=question,
            evaluation=evaluation,
            coaching=coaching,
            persona_id=persona_id,
            reply=reply,
        )

        # 4. Remember
        memory = session.context_memory
        if reply is not None:
            stage_turns = session.get_stage_turns(stage) + [turn]
            memory = await self.context_memory.update(memory, turn, stage_turns, history=history)

        if session.is_closed:
            logger.warning(f"Session {session.id} ended mid-turn; dropping result of turn {turn.index}")
            raise SessionClosedError(session.id)

        session.turns.append(turn)
        session.context_memory = memory
        session.pending_acknowledgement_turn_id = turn.id if blocked else None
        session.last_activity_at = datetime.utcnow()

        await self.session_store.save_turn(session.id, turn)
        await self.session_store.save_session(session)

        logger.info(
            f"Session {session.id} turn {turn.index} [{stage.value}]: "
            f"{evaluation.verdict.value} {evaluation.score:.0f} -> {coaching.action.value}"
        )

        return TurnResult(
            session_id=session.id,
            turn=turn,
            action=coaching.action,
            current_stage=session.current_stage,
            reply_generated=reply is not None,
            awaiting_acknowledgement=session.awaiting_acknowledgement,
            ready_to_transition=memory.ready_to_transition,
            context_memory=memory,
        )

    async def acknowledge(self, session_id: str, use_rewrite: bool = False) -> AcknowledgeResponse:
        """
        Acknowledge coaching on the latest turn.

        With ``use_rewrite`` the suggested rewrite is submitted as a new
        question and its turn result is returned.
        """
        async with self._turn_guard(session_id):
            session = await self.get_session(session_id)
            self._ensure_open(session)

            target = None
            if session.pending_acknowledgement_turn_id:
                target = session.get_turn(session.pending_acknowledgement_turn_id)
            elif session.turns and session.turns[-1].coaching.acknowledgement_required:
                target = session.turns[-1]

            if target is None:
                return AcknowledgeResponse(
                    session_id=session.id,
                    message="Nothing to acknowledge",
                )

            if use_rewrite:
                rewrite = target.coaching.suggested_rewrite or target.evaluation.suggested_rewrite
                if not rewrite:
                    raise ValueError(f"Turn {target.index} has no suggested rewrite")
                logger.info(f"Session {session.id}: resubmitting rewrite of turn {target.index}")
                result = await self._process_question(session, rewrite)
                return AcknowledgeResponse(
                    session_id=session.id,
                    acknowledged_turn_id=target.id,
                    awaiting_acknowledgement=result.awaiting_acknowledgement,
                    message="Suggested rewrite submitted",
                    turn_result=result,
                )

            session.pending_acknowledgement_turn_id = None
            session.last_activity_at = datetime.utcnow()
            await self.session_store.save_session(session)
            logger.info(f"Session {session.id}: coaching on turn {target.index} acknowledged")
            return AcknowledgeResponse(
                session_id=session.id,
                acknowledged_turn_id=target.id,
                message="Coaching acknowledged",
            )

    async def advance_stage(self, session_id: str) -> StageTransitionResponse:
        """
        Move to the next stage at the learner's request.

        Raises:
            StageTransitionError: Milestone not met, coaching pending, or already at wrap-up
        """
        async with self._turn_guard(session_id):
            session = await self.get_session(session_id)
            self._ensure_open(session)

            current = session.current_stage
            next_stage = self.stage_registry.next_stage(current)
            if next_stage is None:
                raise StageTransitionError(f"{current.value} is the final stage")
            if session.awaiting_acknowledgement:
                raise StageTransitionError("Acknowledge the pending coaching before moving on")
            if not session.context_memory.ready_to_transition:
                raise StageTransitionError(
                    f"Stage milestone not met yet: {session.context_memory.next_milestone}"
                )

            session.current_stage = next_stage.id
            if next_stage.id not in session.stages_visited:
                session.stages_visited.append(next_stage.id)
            session.context_memory = self.context_memory.reset_for_stage(
                session.context_memory, next_stage.id
            )
            session.last_activity_at = datetime.utcnow()

            await self.session_store.advance_stage(session.id, next_stage.id)
            await self.session_store.save_session(session)

            logger.info(f"Session {session.id}: {current.value} -> {next_stage.id.value}")
            return StageTransitionResponse(
                session_id=session.id,
                previous_stage=current,
                current_stage=next_stage.id,
                next_milestone=session.context_memory.next_milestone,
            )

    async def end_session(self, session_id: str) -> SessionDebrief:
        """
        End a meeting: archive it and return the debrief.

        Does not wait for an in-flight turn; its result will be dropped.
        """
        session = await self.get_session(session_id)
        self._ensure_open(session)

        ended_at = datetime.utcnow()
        session.status = SessionStatus.ARCHIVED
        session.archived_at = ended_at
        session.pending_acknowledgement_turn_id = None

        await self.session_store.archive_session(session.id, ended_at)
        await self.session_store.save_session(session)
        self._sessions.pop(session.id, None)
        lock = self._locks.get(session.id)
        if lock is not None and not lock.locked():
            # An in-flight turn releases its own lock when it finishes
            del self._locks[session.id]

        debrief = build_debrief(session, self.stage_registry, ended_at=ended_at)
        logger.info(
            f"Session {session.id} archived after {debrief.total_turns} turns "
            f"(layer {debrief.information_layer})"
        )
        return debrief

    async def close(self) -> None:
        if self._oracle is not None:
            await self._oracle.close()


# Global orchestrator instance
_session_orchestrator: Optional[SessionOrchestrator] = None


def get_session_orchestrator() -> SessionOrchestrator:
    """Get or create the global session orchestrator."""
    global _session_orchestrator
    if _session_orchestrator is None:
        _session_orchestrator = SessionOrchestrator()
    return _session_orchestrator
