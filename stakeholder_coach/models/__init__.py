"""
Data models for stakeholder interview sessions.
"""
from stakeholder_coach.models.session import (
    StageId,
    Verdict,
    CoachingAction,
    Emotion,
    SessionStatus,
    ScoreBreakdown,
    QuestionEvaluation,
    CoachingFeedback,
    ReplyMetadata,
    StakeholderReply,
    Turn,
    PainPoint,
    StageProgress,
    ContextMemory,
    InterviewSession,
    SessionDebrief,
    TurnResult,
)
from stakeholder_coach.models.persona import (
    StakeholderPersona,
    RoutingRule,
    ProjectScenario,
)
from stakeholder_coach.models.oracle import (
    HistoryLine,
    RubricContext,
    CoachingContext,
    ReplyLength,
    PersonaContext,
    ConversationContext,
)

__all__ = [
    "StageId",
    "Verdict",
    "CoachingAction",
    "Emotion",
    "SessionStatus",
    "ScoreBreakdown",
    "QuestionEvaluation",
    "CoachingFeedback",
    "ReplyMetadata",
    "StakeholderReply",
    "Turn",
    "PainPoint",
    "StageProgress",
    "ContextMemory",
    "InterviewSession",
    "SessionDebrief",
    "TurnResult",
    "StakeholderPersona",
    "RoutingRule",
    "ProjectScenario",
    "HistoryLine",
    "RubricContext",
    "CoachingContext",
    "ReplyLength",
    "PersonaContext",
    "ConversationContext",
]
