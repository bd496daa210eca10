"""
pytest configuration and shared fixtures.
"""
import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Keep tests on the in-memory store and deterministic config
os.environ["SESSION_STORE"] = "memory"
os.environ["CONTEXT_READINESS"] = "oracle"

from stakeholder_coach.providers.oracle.base import JudgmentOracle
from stakeholder_coach.services.coaching_advisor import CoachingAdvisor
from stakeholder_coach.services.context_memory import ContextMemoryManager
from stakeholder_coach.services.question_evaluator import QuestionEvaluator
from stakeholder_coach.services.scenarios import ScenarioCatalog
from stakeholder_coach.services.session_orchestrator import SessionOrchestrator
from stakeholder_coach.services.session_store import InMemorySessionStore
from stakeholder_coach.services.speaker_router import SpeakerRouter
from stakeholder_coach.services.stage_registry import StageRegistry
from stakeholder_coach.services.stakeholder_responder import StakeholderResponder


# 18 words, ten times: inside the GREEN band (150-260 words)
RICH_SENTENCE = (
    "Onboarding usually takes us about three weeks because every account is set up "
    "by hand in three systems."
)
RICH_REPLY = " ".join([RICH_SENTENCE] * 10)


def green_evaluation(score: float = 85) -> dict:
    return {
        "verdict": "GREEN",
        "score": score,
        "breakdown": {
            "stage_alignment": 90,
            "question_type": 85,
            "specificity": 80,
            "neutrality": 85,
        },
        "triggers": [],
        "reasons": ["Open question that fits the stage."],
        "suggested_rewrite": None,
    }


def coaching_response() -> dict:
    return {
        "verdict_label": "Strong question",
        "summary": "Good open question.",
        "what_happened": "You asked an open question about the problem.",
        "why_it_matters": "It lets the stakeholder describe the problem in their own words.",
        "what_to_do": "Follow up on specific examples.",
        "suggested_rewrite": None,
        "rewrite_explanation": None,
        "principle": "Open questions surface detail.",
    }


def memory_response(should_transition: bool = False) -> dict:
    return {
        "topics_covered": ["onboarding duration"],
        "pain_points_identified": [
            {"area": "manual setup", "impact": "three weeks per customer", "emotion": "frustrated", "layer": 3}
        ],
        "information_layers_unlocked": 3,
        "stage_progress": 60,
        "should_transition": should_transition,
        "next_milestone": "Find a second pain point",
    }


@pytest.fixture
def stage_registry():
    """Stage registry loaded from the packaged stages.yaml."""
    return StageRegistry.from_config()


@pytest.fixture
def scenario_catalog():
    """Scenario catalog loaded from the packaged scenarios.yaml."""
    return ScenarioCatalog.from_config()


@pytest.fixture
def onboarding_scenario(scenario_catalog):
    return scenario_catalog.get_scenario("customer-onboarding-optimization")


@pytest.fixture
def mock_oracle():
    """Judgment oracle returning a well-behaved GREEN conversation."""
    oracle = MagicMock(spec=JudgmentOracle)
    oracle.evaluate_question = AsyncMock(return_value=green_evaluation())
    oracle.generate_coaching = AsyncMock(return_value=coaching_response())
    oracle.generate_stakeholder_reply = AsyncMock(return_value=RICH_REPLY)
    oracle.update_context_memory = AsyncMock(return_value=memory_response())
    oracle.health_check = AsyncMock(return_value=True)
    oracle.close = AsyncMock()
    return oracle


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def make_orchestrator(stage_registry, scenario_catalog, session_store):
    """Factory building an orchestrator around a given oracle."""
    def _make(oracle, readiness_mode: str = "oracle") -> SessionOrchestrator:
        return SessionOrchestrator(
            oracle=oracle,
            question_evaluator=QuestionEvaluator(oracle, stage_registry),
            coaching_advisor=CoachingAdvisor(oracle, stage_registry),
            speaker_router=SpeakerRouter(),
            stakeholder_responder=StakeholderResponder(oracle, stage_registry),
            context_memory=ContextMemoryManager(oracle, stage_registry, readiness_mode=readiness_mode),
            session_store=session_store,
            stage_registry=stage_registry,
            scenario_catalog=scenario_catalog,
            history_window=6,
        )
    return _make


@pytest.fixture
def orchestrator(make_orchestrator, mock_oracle):
    return make_orchestrator(mock_oracle)
