"""
Judgment Oracle Interface.

The oracle performs every natural-language judgment the coach needs:
scoring questions, writing coaching, speaking as a stakeholder and
summarising the conversation. Callers treat it as a black box that may
fail or answer with garbage at any time.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict

from stakeholder_coach.models.oracle import (
    RubricContext,
    CoachingContext,
    PersonaContext,
    ConversationContext,
)


class JudgmentOracle(ABC):
    """
    Abstract judgment oracle.

    Every operation raises ``OracleError`` (or a subclass) on failure.
    Structured operations return the raw decoded mapping; validation is
    the calling component's job.
    """

    @abstractmethod
    async def evaluate_question(self, context: RubricContext) -> Dict[str, Any]:
        """
        Score a learner question.

        Returns:
            Mapping with verdict, score, breakdown, triggers, reasons, suggested_rewrite.
        """

    @abstractmethod
    async def generate_coaching(self, context: CoachingContext) -> Dict[str, Any]:
        """
        Turn an evaluation into learner-facing coaching.

        Returns:
            Mapping with verdict_label, summary, what_happened, why_it_matters,
            what_to_do, suggested_rewrite, rewrite_explanation, principle.
        """

    @abstractmethod
    async def generate_stakeholder_reply(self, context: PersonaContext) -> str:
        """Answer the question in the persona's voice."""

    @abstractmethod
    async def update_context_memory(self, context: ConversationContext) -> Dict[str, Any]:
        """
        Summarise what the latest exchange added to the meeting.

        Returns:
            Mapping with topics_covered, pain_points_identified,
            information_layers_unlocked, stage_progress, should_transition,
            next_milestone.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the oracle can be reached."""

    async def close(self) -> None:
        """Release underlying resources."""
