"""
LLM-backed Judgment Oracle.

Implements the four oracle operations as prompted chat completions.
Each call is bounded by a timeout and retried at most once; after that
the failure is raised as an ``OracleError`` for the calling component
to absorb.
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx

from stakeholder_coach.core.config import get_settings, load_model_config
from stakeholder_coach.core.exceptions import (
    OracleError,
    OracleMalformedResponseError,
    OracleTimeoutError,
)
from stakeholder_coach.models.oracle import (
    CoachingContext,
    ConversationContext,
    HistoryLine,
    PersonaContext,
    RubricContext,
)
from stakeholder_coach.providers.llm import (
    BaseLLMProvider,
    GenerationConfig,
    Message,
    get_llm_provider,
    system_message,
    user_message,
)
from stakeholder_coach.providers.oracle.base import JudgmentOracle
from stakeholder_coach.providers.oracle.prompts import (
    COACHING_PROMPT,
    COACHING_SYSTEM_PROMPT,
    CONTEXT_SYSTEM_PROMPT,
    CONTEXT_UPDATE_PROMPT,
    EVALUATOR_SYSTEM_PROMPT,
    QUESTION_EVALUATION_PROMPT,
    STAKEHOLDER_REPLY_PROMPT,
    STAKEHOLDER_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _format_history(history: List[HistoryLine]) -> str:
    if not history:
        return "(no prior conversation)"
    return "\n".join(f"{line.role}: {line.content}" for line in history)


def _format_list(items: List[str], empty: str = "none") -> str:
    return ", ".join(items) if items else empty


class LLMJudgmentOracle(JudgmentOracle):
    """
    Judgment oracle driven by a chat-completion LLM provider.

    Generation parameters per operation come from the ``operations``
    section of ``models.yaml``.
    """

    def __init__(
        self,
        llm_provider: Optional[BaseLLMProvider] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        operation_config: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        """
        Initialize the oracle.

        Args:
            llm_provider: LLM provider (defaults to the configured global provider)
            timeout_seconds: Per-attempt timeout
            max_retries: Retries after the first attempt, capped at one
            operation_config: Per-operation generation parameters
        """
        settings = get_settings()
        self._llm = llm_provider
        self.timeout_seconds = timeout_seconds or settings.oracle_timeout_seconds
        retries = settings.oracle_max_retries if max_retries is None else max_retries
        self.max_retries = max(0, min(retries, 1))

        if operation_config is None:
            operation_config = load_model_config().get("operations", {})
        self._operation_config = operation_config

    @property
    def llm(self) -> BaseLLMProvider:
        if self._llm is None:
            self._llm = get_llm_provider()
        return self._llm

    def _generation_config(self, operation: str, **overrides) -> GenerationConfig:
        params = dict(self._operation_config.get(operation, {}))
        params.update(overrides)
        return GenerationConfig.from_dict(params)

    async def _generate_once(
        self,
        operation: str,
        messages: List[Message],
        config: GenerationConfig,
    ) -> str:
        try:
            response = await asyncio.wait_for(
                self.llm.generate(messages, config),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise OracleTimeoutError(
                f"{operation} timed out after {self.timeout_seconds}s", operation=operation
            ) from e
        except httpx.HTTPError as e:
            raise OracleError(f"{operation} failed: {e}", operation=operation) from e
        except (ValueError, KeyError, TypeError, IndexError) as e:
            # Provider answered but the body was not a chat completion
            raise OracleMalformedResponseError(
                f"{operation} got an unreadable provider response: {e!r}", operation=operation
            ) from e

        if not isinstance(response.content, str):
            raise OracleMalformedResponseError(
                f"{operation} got non-text content from the provider", operation=operation
            )
        logger.debug(
            f"Oracle {operation}: {response.tokens_used} tokens in {response.latency_ms or 0:.0f}ms"
        )
        return response.content

    async def _call(
        self,
        operation: str,
        messages: List[Message],
        config: GenerationConfig,
        parse: Callable[[str], T],
    ) -> T:
        """Run one oracle operation with the bounded retry policy."""
        attempts = 1 + self.max_retries
        last_error: Optional[OracleError] = None

        for attempt in range(1, attempts + 1):
            try:
                content = await self._generate_once(operation, messages, config)
                return parse(content)
            except OracleError as e:
                e.operation = operation
                last_error = e
                logger.warning(f"Oracle {operation} attempt {attempt}/{attempts} failed: {e}")

        raise last_error

    def _parse_json_response(self, response: str) -> Dict[str, Any]:
        """Parse a JSON object out of an LLM completion."""
        response = response.strip()

        # Handle markdown code blocks
        if "```json" in response:
            start = response.find("```json") + 7
            end = response.find("```", start)
            response = response[start:end].strip()
        elif "```" in response:
            start = response.find("```") + 3
            end = response.find("```", start)
            response = response[start:end].strip()

        # Find JSON object bounds
        if not response.startswith("{"):
            start = response.find("{")
            if start != -1:
                response = response[start:]

        if not response.endswith("}"):
            end = response.rfind("}")
            if end != -1:
                response = response[:end + 1]

        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            logger.debug(f"Response was: {response[:500]}")
            raise OracleMalformedResponseError(f"Invalid JSON from oracle: {e}") from e

        if not isinstance(data, dict):
            raise OracleMalformedResponseError("Oracle returned JSON that is not an object")
        return data

    def _parse_text_response(self, response: str) -> str:
        text = response.strip().strip('"').strip()
        if not text:
            raise OracleMalformedResponseError("Oracle returned an empty reply")
        return text

    async def evaluate_question(self, context: RubricContext) -> Dict[str, Any]:
        closed_hint = (
            "Note: the question starts like a yes/no question."
            if context.looks_closed else ""
        )
        project = f"Project context:\n{context.project_context}\n" if context.project_context else ""

        prompt = QUESTION_EVALUATION_PROMPT.format(
            stage_name=context.stage_name,
            stage_objective=context.stage_objective,
            rubric_focus=_format_list(context.rubric_focus),
            forbidden_topics=_format_list(context.forbidden_topics),
            closed_hint=closed_hint,
            project_context=project,
            history=_format_history(context.history),
            question=context.question,
        )
        messages = [system_message(EVALUATOR_SYSTEM_PROMPT), user_message(prompt)]
        return await self._call(
            "evaluate_question",
            messages,
            self._generation_config("evaluate_question"),
            self._parse_json_response,
        )

    async def generate_coaching(self, context: CoachingContext) -> Dict[str, Any]:
        prompt = COACHING_PROMPT.format(
            stage_name=context.stage_name,
            stage_objective=context.stage_objective,
            question=context.question,
            verdict=context.verdict.value,
            score=round(context.score),
            reasons="; ".join(context.reasons) or "none given",
            triggers=_format_list(context.triggers),
            suggested_rewrite=context.suggested_rewrite or "none",
        )
        messages = [system_message(COACHING_SYSTEM_PROMPT), user_message(prompt)]
        return await self._call(
            "generate_coaching",
            messages,
            self._generation_config("generate_coaching"),
            self._parse_json_response,
        )

    async def generate_stakeholder_reply(self, context: PersonaContext) -> str:
        persona = context.persona
        system = STAKEHOLDER_SYSTEM_PROMPT.format(
            name=persona.name,
            role=persona.role,
            department=persona.department,
            personality=persona.personality or "professional",
            communication_style=persona.communication_style or "clear and direct",
            priorities=_format_list(list(persona.priorities)),
            bio=persona.bio or "n/a",
            knowledge=persona.knowledge or "n/a",
            project_context=context.project_context or "",
        )
        prompt = STAKEHOLDER_REPLY_PROMPT.format(
            stage_name=context.stage_name,
            stage_objective=context.stage_objective,
            verdict=context.verdict.value,
            history=_format_history(context.history),
            question=context.question,
            name=persona.name,
            min_words=context.length.min_words,
            max_words=context.length.max_words,
        )
        messages = [system_message(system), user_message(prompt)]
        config = self._generation_config(
            "generate_stakeholder_reply",
            max_tokens=context.length.max_tokens,
        )
        return await self._call(
            "generate_stakeholder_reply",
            messages,
            config,
            self._parse_text_response,
        )

    async def update_context_memory(self, context: ConversationContext) -> Dict[str, Any]:
        memory = context.memory
        pain_points = "; ".join(
            f"{p.area} ({p.impact})" if p.impact else p.area
            for p in memory.pain_points
        ) or "none"

        prompt = CONTEXT_UPDATE_PROMPT.format(
            stage_name=context.stage_name,
            milestone=context.milestone,
            topics=_format_list(sorted(memory.topics_covered)),
            pain_points=pain_points,
            information_layer=memory.information_layer,
            question=context.question,
            reply=context.reply,
            emotion=context.reply_metadata.emotion.value,
            reply_layer=context.reply_metadata.information_layer,
        )
        messages = [system_message(CONTEXT_SYSTEM_PROMPT), user_message(prompt)]
        return await self._call(
            "update_context_memory",
            messages,
            self._generation_config("update_context_memory"),
            self._parse_json_response,
        )

    async def health_check(self) -> bool:
        try:
            return await asyncio.wait_for(self.llm.health_check(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Oracle health check timed out")
            return False

    async def close(self) -> None:
        if self._llm is not None:
            await self._llm.close()


# Global oracle instance (lazy loaded)
_judgment_oracle: Optional[JudgmentOracle] = None


def get_judgment_oracle() -> JudgmentOracle:
    """Get or create the global judgment oracle."""
    global _judgment_oracle
    if _judgment_oracle is None:
        _judgment_oracle = LLMJudgmentOracle()
    return _judgment_oracle
