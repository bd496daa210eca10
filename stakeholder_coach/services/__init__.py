"""
Services Package.

Business logic for stakeholder interview coaching.
"""
from stakeholder_coach.services.stage_registry import (
    STAGE_ORDER,
    Stage,
    StageRegistry,
    get_stage_registry,
)
from stakeholder_coach.services.question_evaluator import (
    QuestionEvaluator,
    get_question_evaluator,
)
from stakeholder_coach.services.coaching_advisor import (
    CoachingAdvisor,
    get_coaching_advisor,
)
from stakeholder_coach.services.speaker_router import (
    SpeakerRouter,
    get_speaker_router,
)
from stakeholder_coach.services.stakeholder_responder import (
    StakeholderResponder,
    annotate_reply,
    get_stakeholder_responder,
)
from stakeholder_coach.services.context_memory import (
    ContextMemoryManager,
    get_context_memory_manager,
)
from stakeholder_coach.services.scenarios import (
    ScenarioCatalog,
    get_scenario_catalog,
)
from stakeholder_coach.services.session_store import (
    SessionStore,
    InMemorySessionStore,
    MongoSessionStore,
    get_session_store,
)
from stakeholder_coach.services.session_orchestrator import (
    SessionOrchestrator,
    get_session_orchestrator,
)

__all__ = [
    # Stages
    "STAGE_ORDER",
    "Stage",
    "StageRegistry",
    "get_stage_registry",
    # Turn pipeline
    "QuestionEvaluator",
    "get_question_evaluator",
    "CoachingAdvisor",
    "get_coaching_advisor",
    "SpeakerRouter",
    "get_speaker_router",
    "StakeholderResponder",
    "annotate_reply",
    "get_stakeholder_responder",
    "ContextMemoryManager",
    "get_context_memory_manager",
    # Reference data and storage
    "ScenarioCatalog",
    "get_scenario_catalog",
    "SessionStore",
    "InMemorySessionStore",
    "MongoSessionStore",
    "get_session_store",
    # Orchestrator
    "SessionOrchestrator",
    "get_session_orchestrator",
]
