"""
Question Evaluation Service (LLM-as-Judge).

Scores a learner question against the current stage's rubric. Judgment
is delegated to the oracle; this service assembles the request,
validates what comes back and falls back to a neutral AMBER verdict
when the oracle fails.
"""
import logging
from typing import Any, Dict, List, Optional

from stakeholder_coach.core.exceptions import (
    OracleError,
    OracleMalformedResponseError,
    OracleTimeoutError,
)
from stakeholder_coach.models.oracle import RubricContext, history_from_turns
from stakeholder_coach.models.session import (
    QuestionEvaluation,
    ScoreBreakdown,
    StageId,
    Turn,
    Verdict,
)
from stakeholder_coach.providers.oracle import JudgmentOracle, get_judgment_oracle
from stakeholder_coach.services.question_text import is_closed_question, rewrite_to_open
from stakeholder_coach.services.stage_registry import (
    Stage,
    StageRegistry,
    get_stage_registry,
)

logger = logging.getLogger(__name__)

PARSE_ERROR_TRIGGER = "PARSE_ERROR"
OFF_STAGE_TRIGGER = "OFF_STAGE_TOPIC"

FALLBACK_SCORE = 50.0
# Highest score an off-stage question can keep
OFF_STAGE_MAX_SCORE = 39.0
OFF_STAGE_MAX_ALIGNMENT = 20.0

BREAKDOWN_DIMENSIONS = ["stage_alignment", "question_type", "specificity", "neutrality"]


def _clamp(value: Any, default: float = FALLBACK_SCORE) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(100.0, number))


def coerce_verdict(value: Any) -> Verdict:
    """Force an arbitrary value onto the verdict enum, defaulting to AMBER."""
    label = str(value or "").strip().upper()
    try:
        return Verdict(label)
    except ValueError:
        return Verdict.AMBER


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return []


def _optional_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text or text.lower() in ("null", "none", "n/a"):
        return None
    return text


class QuestionEvaluator:
    """
    Evaluates learner questions using the judgment oracle.

    Guarantees a verdict in {GREEN, AMBER, RED} and a score in [0, 100]
    whatever the oracle returns.
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

    def build_context(
        self,
        question: str,
        stage: Stage,
        history: Optional[List[Turn]] = None,
        project_context: Optional[str] = None,
    ) -> RubricContext:
        return RubricContext(
            question=question,
            stage_id=stage.id,
            stage_name=stage.name,
            stage_objective=stage.objective,
            rubric_focus=list(stage.rubric_focus),
            forbidden_topics=stage.forbidden_tags,
            redirect_message=stage.redirect_message,
            dimensions=list(BREAKDOWN_DIMENSIONS),
            looks_closed=is_closed_question(question),
            history=history_from_turns(history or []),
            project_context=project_context,
        )

    async def evaluate(
        self,
        question: str,
        stage_id: StageId,
        history: Optional[List[Turn]] = None,
        project_context: Optional[str] = None,
    ) -> QuestionEvaluation:
        """
        Evaluate a question for the given stage.

        Args:
            question: Learner question text
            stage_id: Stage active when the question was asked
            history: Recent turns, oldest first
            project_context: Plain-text project brief

        Returns:
            Validated evaluation (never raises for oracle failures)
        """
        stage = self.stage_registry.get_stage(stage_id)
        context = self.build_context(question, stage, history, project_context)

        try:
            raw = await self.oracle.evaluate_question(context)
            evaluation = self._validate(raw)
        except OracleError as e:
            logger.warning(f"Question evaluation failed, using fallback: {e}")
            evaluation = self._fallback(question, e)

        if not evaluation.is_fallback:
            evaluation = self._fill_open_rewrite(question, evaluation)

        off_stage = self.stage_registry.find_forbidden_topics(stage.id, question)
        if off_stage:
            evaluation = self._apply_off_stage(evaluation, stage, off_stage)

        logger.info(
            f"Evaluated question in {stage.id.value}: {evaluation.verdict.value} "
            f"({evaluation.score:.0f})"
        )
        return evaluation

    def _validate(self, raw: Dict[str, Any]) -> QuestionEvaluation:
        """Clamp an oracle answer onto the evaluation model."""
        if raw.get("verdict") is None or raw.get("score") is None:
            raise OracleMalformedResponseError(
                "Evaluation is missing verdict or score", operation="evaluate_question"
            )
        try:
            score = float(raw["score"])
        except (TypeError, ValueError):
            raise OracleMalformedResponseError(
                f"Evaluation score is not a number: {raw['score']!r}",
                operation="evaluate_question",
            ) from None

        breakdown_raw = raw.get("breakdown")
        if not isinstance(breakdown_raw, dict):
            breakdown_raw = {}

        return QuestionEvaluation(
            verdict=coerce_verdict(raw["verdict"]),
            score=max(0.0, min(100.0, score)),
            breakdown=ScoreBreakdown(
                **{dim: _clamp(breakdown_raw.get(dim)) for dim in BREAKDOWN_DIMENSIONS}
            ),
            triggers=[t.upper() for t in _as_string_list(raw.get("triggers"))],
            reasons=_as_string_list(raw.get("reasons")),
            suggested_rewrite=_optional_text(raw.get("suggested_rewrite")),
        )

    def _fallback(self, question: str, error: OracleError) -> QuestionEvaluation:
        if isinstance(error, OracleTimeoutError):
            cause = "the evaluation timed out"
        else:
            cause = "the evaluation response could not be parsed"
        return QuestionEvaluation(
            verdict=Verdict.AMBER,
            score=FALLBACK_SCORE,
            breakdown=ScoreBreakdown(),
            triggers=[PARSE_ERROR_TRIGGER],
            reasons=[f"Could not evaluate this question precisely because {cause}."],
            suggested_rewrite=question,
            is_fallback=True,
        )

    def _fill_open_rewrite(self, question: str, evaluation: QuestionEvaluation) -> QuestionEvaluation:
        if evaluation.verdict == Verdict.GREEN or evaluation.suggested_rewrite:
            return evaluation
        if not is_closed_question(question):
            return evaluation
        rewrite = rewrite_to_open(question)
        if rewrite == question:
            return evaluation
        return evaluation.model_copy(update={"suggested_rewrite": rewrite})

    def _apply_off_stage(
        self,
        evaluation: QuestionEvaluation,
        stage: Stage,
        topics: List[str],
    ) -> QuestionEvaluation:
        """Force RED for a question that raises another stage's topic."""
        readable = ", ".join(t.replace("_", " ") for t in topics)
        reason = (
            f"This question raises {readable}, which does not belong in {stage.name}. "
            f"{stage.redirect_message}"
        )
        triggers = list(evaluation.triggers)
        if OFF_STAGE_TRIGGER not in triggers:
            triggers.append(OFF_STAGE_TRIGGER)

        breakdown = evaluation.breakdown.model_copy(update={
            "stage_alignment": min(evaluation.breakdown.stage_alignment, OFF_STAGE_MAX_ALIGNMENT),
        })
        rewrite = evaluation.suggested_rewrite
        if rewrite is None and stage.sample_questions:
            rewrite = stage.sample_questions[0]

        logger.info(f"Off-stage topic in {stage.id.value}: {readable}")
        return evaluation.model_copy(update={
            "verdict": Verdict.RED,
            "score": min(evaluation.score, OFF_STAGE_MAX_SCORE),
            "breakdown": breakdown,
            "triggers": triggers,
            "reasons": [reason] + list(evaluation.reasons),
            "suggested_rewrite": rewrite,
        })


# Global evaluator instance (lazy loaded)
_question_evaluator: Optional[QuestionEvaluator] = None


def get_question_evaluator() -> QuestionEvaluator:
    """Get or create the global question evaluator."""
    global _question_evaluator
    if _question_evaluator is None:
        _question_evaluator = QuestionEvaluator()
    return _question_evaluator
