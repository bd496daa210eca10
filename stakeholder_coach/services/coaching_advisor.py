"""
Coaching Advisor Service.

Turns a question evaluation into learner-facing coaching and decides what
the meeting does next. The action and whether acknowledgement is needed
depend on the verdict alone; the oracle only writes the words.
"""
import logging
from typing import Any, Dict, Optional

from stakeholder_coach.core.exceptions import OracleError
from stakeholder_coach.models.oracle import CoachingContext
from stakeholder_coach.models.session import (
    CoachingAction,
    CoachingFeedback,
    QuestionEvaluation,
    StageId,
    Verdict,
)
from stakeholder_coach.providers.oracle import JudgmentOracle, get_judgment_oracle
from stakeholder_coach.services.stage_registry import (
    Stage,
    StageRegistry,
    get_stage_registry,
)

logger = logging.getLogger(__name__)


VERDICT_ACTIONS = {
    Verdict.GREEN: CoachingAction.CONTINUE,
    Verdict.AMBER: CoachingAction.ACKNOWLEDGE_AND_RETRY,
    Verdict.RED: CoachingAction.PAUSE_FOR_COACHING,
}

# Default wording per verdict: label, why it matters, principle
VERDICT_TEMPLATES = {
    Verdict.GREEN: {
        "label": "Strong question",
        "why": "Open, well-placed questions give the stakeholder room to share real detail.",
        "principle": "Ask open questions that serve the purpose of the current stage.",
    },
    Verdict.AMBER: {
        "label": "Good start, could be sharper",
        "why": "Closed or vague questions tend to get short answers, so you learn less from the stakeholder.",
        "principle": "Open questions anchored in the stakeholder's own experience surface richer detail.",
    },
    Verdict.RED: {
        "label": "Pause and rethink",
        "why": "Questions that skip ahead or lead the stakeholder can erode trust and produce misleading answers.",
        "principle": "Respect the purpose of each interview stage before moving on.",
    },
}

TEXT_FIELDS = ("verdict_label", "summary", "what_happened", "why_it_matters", "what_to_do", "principle")


def action_for(verdict: Verdict) -> CoachingAction:
    return VERDICT_ACTIONS[verdict]


def requires_acknowledgement(verdict: Verdict) -> bool:
    return verdict != Verdict.GREEN


class CoachingAdvisor:
    """
    Produces coaching for each evaluated question.

    Always returns a complete CoachingFeedback, even when the oracle fails
    or leaves fields out.
    """

    def __init__(
        self,
        oracle: Optional[JudgmentOracle] = None,
        stage_registry: Optional[StageRegistry] = None,
    ):
        self._oracle = oracle
        self._stage_registry = stage_registry

    @property
    def oracle(self) -> JudgmentOracle:
        if self._oracle is None:
            self._oracle = get_judgment_oracle()
        return self._oracle

    @property
    def stage_registry(self) -> StageRegistry:
        if self._stage_registry is None:
            self._stage_registry = get_stage_registry()
        return self._stage_registry

    async def advise(
        self,
        question: str,
        evaluation: QuestionEvaluation,
        stage_id: StageId,
    ) -> CoachingFeedback:
        """
        Build coaching for an evaluated question.

        Args:
            question: Learner question text
            evaluation: Output of the question evaluator
            stage_id: Stage the question was asked in

        Returns:
            Coaching feedback with a deterministic action
        """
        stage = self.stage_registry.get_stage(stage_id)
        defaults = self.synthesize(question, evaluation, stage)

        context = CoachingContext(
            question=question,
            stage_id=stage.id,
            stage_name=stage.name,
            stage_objective=stage.objective,
            verdict=evaluation.verdict,
            score=evaluation.score,
            reasons=list(evaluation.reasons),
            triggers=list(evaluation.triggers),
            suggested_rewrite=evaluation.suggested_rewrite,
        )

        try:
            raw = await self.oracle.generate_coaching(context)
        except OracleError as e:
            logger.warning(f"Coaching generation failed, using fallback: {e}")
            return defaults

        return self._merge(raw, defaults)

    def _merge(self, raw: Dict[str, Any], defaults: CoachingFeedback) -> CoachingFeedback:
        """Take the oracle's wording where present, the defaults elsewhere."""
        update: Dict[str, Any] = {"is_fallback": False}
        missing = []
        for name in TEXT_FIELDS:
            value = raw.get(name)
            if isinstance(value, str) and value.strip():
                update[name] = value.strip()
            else:
                missing.append(name)

        for name in ("suggested_rewrite", "rewrite_explanation"):
            value = raw.get(name)
            if isinstance(value, str) and value.strip() and value.strip().lower() != "null":
                update[name] = value.strip()

        if missing:
            logger.debug(f"Coaching response missing fields, filled from defaults: {missing}")
        return defaults.model_copy(update=update)

    def synthesize(
        self,
        question: str,
        evaluation: QuestionEvaluation,
        stage: Stage,
    ) -> CoachingFeedback:
        """Deterministic coaching built from the evaluation alone."""
        verdict = evaluation.verdict
        template = VERDICT_TEMPLATES[verdict]
        reasons = evaluation.reasons
        rewrite = evaluation.suggested_rewrite
        if rewrite and rewrite.strip() == question.strip():
            rewrite_explanation = None
        elif rewrite:
            rewrite_explanation = "This version keeps your intent but invites a fuller, more open answer."
        else:
            rewrite_explanation = None

        if verdict == Verdict.GREEN:
            what_happened = reasons[0] if reasons else f"Your question fits the goal of {stage.name}."
            what_to_do = "Listen for specifics in the answer and follow up on anything surprising."
            summary = "Nice work, this question moves the conversation forward."
        elif verdict == Verdict.AMBER:
            what_happened = reasons[0] if reasons else "The question is usable but may get a short or narrow answer."
            what_to_do = (
                f"Try asking it as: \"{rewrite}\"" if rewrite_explanation
                else "Rephrase it as an open question starting with what, how or tell me about."
            )
            summary = "Decent question; a small change would get you a better answer."
        else:
            what_happened = reasons[0] if reasons else f"This question does not fit {stage.name}."
            what_to_do = (
                f"Refocus on the stage goal: {stage.objective}"
                if not rewrite_explanation
                else f"Refocus on the stage goal and try: \"{rewrite}\""
            )
            summary = "Let's pause here before the stakeholder answers."

        return CoachingFeedback(
            verdict_label=template["label"],
            summary=summary,
            what_happened=what_happened,
            why_it_matters=template["why"],
            what_to_do=what_to_do,
            suggested_rewrite=rewrite,
            rewrite_explanation=rewrite_explanation,
            principle=template["principle"],
            action=action_for(verdict),
            acknowledgement_required=requires_acknowledgement(verdict),
            is_fallback=True,
        )


# Global advisor instance (lazy loaded)
_coaching_advisor: Optional[CoachingAdvisor] = None


def get_coaching_advisor() -> CoachingAdvisor:
    """Get or create the global coaching advisor."""
    global _coaching_advisor
    if _coaching_advisor is None:
        _coaching_advisor = CoachingAdvisor()
    return _coaching_advisor
