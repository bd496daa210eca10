"""
Pydantic models for stakeholder interview sessions.
"""
from datetime import datetime
from typing import Dict, List, Optional, Set
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StageId(str, Enum):
    """Interview stages in canonical order."""
    KICKOFF = "kickoff"
    PROBLEM_EXPLORATION = "problem_exploration"
    AS_IS = "as_is"
    TO_BE = "to_be"
    WRAP_UP = "wrap_up"


class Verdict(str, Enum):
    """Quality rating of a learner question."""
    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


class CoachingAction(str, Enum):
    """What the meeting should do after coaching."""
    CONTINUE = "CONTINUE"
    ACKNOWLEDGE_AND_RETRY = "ACKNOWLEDGE_AND_RETRY"
    PAUSE_FOR_COACHING = "PAUSE_FOR_COACHING"


class Emotion(str, Enum):
    """Emotion detected in a stakeholder reply."""
    FRUSTRATED = "frustrated"
    OPTIMISTIC = "optimistic"
    CONCERNED = "concerned"
    NEUTRAL = "neutral"


class SessionStatus(str, Enum):
    """Lifecycle status of a practice meeting."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class ScoreBreakdown(BaseModel):
    """Rubric sub-scores, each 0-100."""
    model_config = ConfigDict(frozen=True)

    stage_alignment: float = Field(default=50, ge=0, le=100)
    question_type: float = Field(default=50, ge=0, le=100)
    specificity: float = Field(default=50, ge=0, le=100)
    neutrality: float = Field(default=50, ge=0, le=100)


class QuestionEvaluation(BaseModel):
    """Verdict produced for a single learner question."""
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    score: float = Field(ge=0, le=100)
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    triggers: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)
    suggested_rewrite: Optional[str] = None
    is_fallback: bool = False


class CoachingFeedback(BaseModel):
    """User-facing coaching derived from an evaluation."""
    model_config = ConfigDict(frozen=True)

    verdict_label: str
    summary: str
    what_happened: str
    why_it_matters: str
    what_to_do: str
    suggested_rewrite: Optional[str] = None
    rewrite_explanation: Optional[str] = None
    principle: str
    action: CoachingAction
    acknowledgement_required: bool
    is_fallback: bool = False


class ReplyMetadata(BaseModel):
    """Deterministic annotations extracted from a stakeholder reply."""
    model_config = ConfigDict(frozen=True)

    emotion: Emotion = Emotion.NEUTRAL
    information_layer: int = Field(default=1, ge=1, le=5)
    keywords: List[str] = Field(default_factory=list)
    pain_points: List[str] = Field(default_factory=list)


class StakeholderReply(BaseModel):
    """A persona's answer to a learner question."""
    model_config = ConfigDict(frozen=True)

    persona_id: str
    persona_name: str
    content: str
    stage: StageId
    metadata: ReplyMetadata = Field(default_factory=ReplyMetadata)
    is_fallback: bool = False

    @property
    def word_count(self) -> int:
        return len(self.content.split())


class Turn(BaseModel):
    """One learner question and everything produced for it. Immutable once recorded."""
    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    index: int = Field(ge=0)
    stage: StageId
    question: str
    evaluation: QuestionEvaluation
    coaching: CoachingFeedback
    persona_id: Optional[str] = None
    reply: Optional[StakeholderReply] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def blocked(self) -> bool:
        """True when no stakeholder reply was generated for this turn."""
        return self.reply is None


class PainPoint(BaseModel):
    """A pain point surfaced by a stakeholder."""
    model_config = ConfigDict(frozen=True)

    area: str
    impact: str = ""
    emotion: Emotion = Emotion.NEUTRAL
    layer: int = Field(default=1, ge=1, le=5)
    stage: Optional[StageId] = None


class StageProgress(BaseModel):
    """Evidence gathered towards a stage's milestone."""
    model_config = ConfigDict(frozen=True)

    stage: StageId
    evidence_count: int = 0
    target: int = 1
    score: float = Field(default=0, ge=0, le=100)


class ContextMemory(BaseModel):
    """
    Rolling memory of what the meeting has covered so far.

    Owned by the session and replaced wholesale by the context memory
    service's merge; never edited in place.
    """
    model_config = ConfigDict(frozen=True)

    topics_covered: Set[str] = Field(default_factory=set)
    pain_points: List[PainPoint] = Field(default_factory=list)
    information_layer: int = Field(default=1, ge=1, le=5)
    stage_progress: Dict[StageId, StageProgress] = Field(default_factory=dict)
    ready_to_transition: bool = False
    next_milestone: str = ""

    def progress_for(self, stage: StageId) -> Optional[StageProgress]:
        return self.stage_progress.get(stage)


class InterviewSession(BaseModel):
    """Complete state of one practice meeting."""
    id: str
    scenario_id: str
    selected_persona_id: str
    active_persona_ids: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None

    status: SessionStatus = SessionStatus.ACTIVE
    current_stage: StageId = StageId.KICKOFF
    stages_visited: List[StageId] = Field(default_factory=lambda: [StageId.KICKOFF])

    turns: List[Turn] = Field(default_factory=list)
    context_memory: ContextMemory = Field(default_factory=ContextMemory)
    pending_acknowledgement_turn_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity_at: datetime = Field(default_factory=datetime.utcnow)
    archived_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.status == SessionStatus.ARCHIVED

    @property
    def awaiting_acknowledgement(self) -> bool:
        return self.pending_acknowledgement_turn_id is not None

    def recent_turns(self, limit: int) -> List[Turn]:
        """Last ``limit`` turns, oldest first."""
        if limit <= 0:
            return []
        return self.turns[-limit:]

    def get_turn(self, turn_id: str) -> Optional[Turn]:
        for turn in self.turns:
            if turn.id == turn_id:
                return turn
        return None

    def get_stage_turns(self, stage: StageId) -> List[Turn]:
        """All turns recorded while ``stage`` was active."""
        return [t for t in self.turns if t.stage == stage]


# API Request/Response Models

class StartSessionRequest(BaseModel):
    """Request to start a practice meeting."""
    scenario_id: Optional[str] = None
    selected_persona_id: str
    active_persona_ids: Optional[List[str]] = None
    user_id: Optional[str] = None


class SubmitQuestionRequest(BaseModel):
    """A learner question for the stakeholders."""
    question: str = Field(min_length=1, max_length=2000)


class AcknowledgeRequest(BaseModel):
    """Acknowledge coaching, optionally adopting the suggested rewrite."""
    use_rewrite: bool = False


class TurnResult(BaseModel):
    """Outcome of processing one inbound learner message."""
    session_id: str
    turn: Turn
    action: CoachingAction
    current_stage: StageId
    reply_generated: bool
    awaiting_acknowledgement: bool
    ready_to_transition: bool
    context_memory: ContextMemory


class AcknowledgeResponse(BaseModel):
    """Response to acknowledging coaching; carries the new turn when the rewrite was used."""
    session_id: str
    acknowledged_turn_id: Optional[str] = None
    awaiting_acknowledgement: bool = False
    message: str
    turn_result: Optional[TurnResult] = None


class StageTransitionResponse(BaseModel):
    """Response after an explicit stage advancement."""
    session_id: str
    previous_stage: StageId
    current_stage: StageId
    next_milestone: str


class ClosedQuestionExample(BaseModel):
    """A closed question asked during the meeting and an open alternative."""
    turn_index: int
    original: str
    rewrite: str


class SessionDebrief(BaseModel):
    """Summary produced when a meeting ends."""
    session_id: str
    scenario_id: str
    total_turns: int
    verdict_counts: Dict[Verdict, int] = Field(default_factory=dict)
    average_score: float = 0.0
    open_question_ratio: float = 0.0
    follow_up_count: int = 0
    closed_examples: List[ClosedQuestionExample] = Field(default_factory=list)
    stages_reached: List[StageId] = Field(default_factory=list)
    final_stage: StageId
    pain_points: List[PainPoint] = Field(default_factory=list)
    topics_covered: List[str] = Field(default_factory=list)
    information_layer: int = 1
    next_time_questions: List[str] = Field(default_factory=list)
    duration_minutes: int = 0


class SessionListItem(BaseModel):
    """Compact session listing entry."""
    id: str
    scenario_id: str
    status: SessionStatus
    current_stage: StageId
    turns: int
    information_layer: int
    created_at: datetime
    last_activity_at: datetime
