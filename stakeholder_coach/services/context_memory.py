"""
Context Memory Service.

Accumulates what a meeting has uncovered (topics, pain points, the
deepest information layer reached, per-stage progress) and decides
whether the current stage's milestone has been met.

Memory snapshots are immutable; every update returns a new snapshot.
"""
import logging
from typing import Any, Dict, List, Optional

from stakeholder_coach.core.config import get_settings
from stakeholder_coach.core.exceptions import OracleError
from stakeholder_coach.models.oracle import ConversationContext, history_from_turns
from stakeholder_coach.models.session import (
    ContextMemory,
    Emotion,
    PainPoint,
    StageId,
    StageProgress,
    Turn,
)
from stakeholder_coach.providers.oracle import JudgmentOracle, get_judgment_oracle
from stakeholder_coach.services.stage_registry import (
    Stage,
    StageRegistry,
    get_stage_registry,
)

logger = logging.getLogger(__name__)

READINESS_ORACLE = "oracle"
READINESS_HEURISTIC = "heuristic"


def _clamp_layer(value: Any, default: int = 1) -> int:
    try:
        layer = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(5, layer))


def _coerce_emotion(value: Any, default: Emotion = Emotion.NEUTRAL) -> Emotion:
    try:
        return Emotion(str(value).strip().lower())
    except ValueError:
        return default


def _as_items(value: Any) -> List[Any]:
    """Oracle list fields, tolerating a lone string or object."""
    if isinstance(value, (str, dict)):
        return [value]
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return False


class ContextMemoryManager:
    """
    Owns every change to a session's context memory.

    Args:
        oracle: Judgment oracle for summarising exchanges
        stage_registry: Stage definitions (targets, milestones)
        readiness_mode: ``oracle`` trusts the oracle's transition signal,
            ``heuristic`` compares local evidence against the stage target
    """

    def __init__(
        self,
        oracle: Optional[JudgmentOracle] = None,
        stage_registry: Optional[StageRegistry] = None,
        readiness_mode: Optional[str] = None,
    ):
        self._oracle = oracle
        self._stage_registry = stage_registry
        self.readiness_mode = readiness_mode or get_settings().context_readiness
        if self.readiness_mode not in (READINESS_ORACLE, READINESS_HEURISTIC):
            raise ValueError(f"Unknown readiness mode: {self.readiness_mode}")

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

    def initial(self, stage_id: StageId = StageId.KICKOFF) -> ContextMemory:
        """Empty memory for a new session."""
        return self.reset_for_stage(ContextMemory(), stage_id)

    def reset_for_stage(self, memory: ContextMemory, stage_id: StageId) -> ContextMemory:
        """Memory after entering ``stage_id``: readiness cleared, new milestone."""
        stage = self.stage_registry.get_stage(stage_id)
        progress = dict(memory.stage_progress)
        progress.setdefault(
            stage.id, StageProgress(stage=stage.id, target=stage.readiness.target)
        )
        return memory.model_copy(update={
            "stage_progress": progress,
            "ready_to_transition": False,
            "next_milestone": stage.milestone,
        })

    async def update(
        self,
        memory: ContextMemory,
        turn: Turn,
        stage_turns: List[Turn],
        history: Optional[List[Turn]] = None,
    ) -> ContextMemory:
        """
        Fold a replied turn into the memory.

        Args:
            memory: Current snapshot
            turn: Newly recorded turn (must carry a reply)
            stage_turns: All turns of the current stage, including ``turn``
            history: Recent turns for the oracle, oldest first

        Returns:
            New snapshot
        """
        if turn.reply is None:
            return memory

        stage = self.stage_registry.get_stage(turn.stage)
        context = ConversationContext(
            stage_id=stage.id,
            stage_name=stage.name,
            milestone=stage.milestone,
            memory=memory,
            question=turn.question,
            reply=turn.reply.content,
            reply_metadata=turn.reply.metadata,
            history=history_from_turns(history or []),
        )

        oracle_result: Optional[Dict[str, Any]] = None
        try:
            oracle_result = await self.oracle.update_context_memory(context)
        except OracleError as e:
            logger.warning(f"Context memory update failed, merging locally and not ready: {e}")

        return self.merge(memory, turn, stage_turns, oracle_result)

    def merge(
        self,
        memory: ContextMemory,
        turn: Turn,
        stage_turns: List[Turn],
        oracle_result: Optional[Dict[str, Any]] = None,
    ) -> ContextMemory:
        """Pure merge of a turn (and optional oracle summary) into ``memory``."""
        if turn.reply is None:
            return memory

        stage = self.stage_registry.get_stage(turn.stage)
        reply = turn.reply
        result = oracle_result or {}

        topics = set(memory.topics_covered)
        topics.update(k.lower() for k in reply.metadata.keywords)
        for topic in _as_items(result.get("topics_covered")):
            if isinstance(topic, str) and topic.strip():
                topics.add(topic.strip().lower())

        pain_points = self._merge_pain_points(memory.pain_points, turn, result)

        layer = max(
            memory.information_layer,
            reply.metadata.information_layer,
            _clamp_layer(result.get("information_layers_unlocked"), default=1),
        )

        evidence = self._count_evidence(stage, stage_turns, pain_points)
        target = stage.readiness.target
        if "stage_progress" in result:
            score = self._clamp_score(result["stage_progress"], evidence, target)
        else:
            score = self._heuristic_score(evidence, target)

        progress = dict(memory.stage_progress)
        progress[stage.id] = StageProgress(
            stage=stage.id, evidence_count=evidence, target=target, score=score
        )

        ready = self._is_ready(stage, evidence, oracle_result)
        next_stage = self.stage_registry.next_stage(stage.id)
        if ready and next_stage is not None:
            next_milestone = next_stage.milestone
        elif isinstance(result.get("next_milestone"), str) and result["next_milestone"].strip():
            next_milestone = result["next_milestone"].strip()
        else:
            next_milestone = stage.milestone

        if ready and not memory.ready_to_transition:
            logger.info(f"Stage {stage.id.value} milestone met, ready to transition")

        return ContextMemory(
            topics_covered=topics,
            pain_points=pain_points,
            information_layer=layer,
            stage_progress=progress,
            ready_to_transition=ready,
            next_milestone=next_milestone,
        )

    def _merge_pain_points(
        self,
        existing: List[PainPoint],
        turn: Turn,
        result: Dict[str, Any],
    ) -> List[PainPoint]:
        """Append new pain points, de-duplicated by area."""
        reply = turn.reply
        merged = list(existing)
        seen = {p.area.lower() for p in merged}

        candidates: List[PainPoint] = []
        for item in _as_items(result.get("pain_points_identified")):
            if isinstance(item, str):
                item = {"area": item}
            if not isinstance(item, dict) or not str(item.get("area", "")).strip():
                continue
            candidates.append(PainPoint(
                area=str(item["area"]).strip(),
                impact=str(item.get("impact") or "").strip(),
                emotion=_coerce_emotion(item.get("emotion"), reply.metadata.emotion),
                layer=_clamp_layer(item.get("layer"), reply.metadata.information_layer),
                stage=turn.stage,
            ))
        for indicator in reply.metadata.pain_points:
            candidates.append(PainPoint(
                area=indicator,
                emotion=reply.metadata.emotion,
                layer=reply.metadata.information_layer,
                stage=turn.stage,
            ))

        for pain_point in candidates:
            key = pain_point.area.lower()
            if key not in seen:
                seen.add(key)
                merged.append(pain_point)
        return merged

    def _count_evidence(self, stage: Stage, stage_turns: List[Turn], pain_points: List[PainPoint]) -> int:
        rule = stage.readiness
        replied = [t for t in stage_turns if t.reply is not None]

        if rule.evidence == "pain_points":
            return sum(1 for p in pain_points if p.stage == stage.id)
        if rule.evidence == "vocabulary":
            count = 0
            for t in replied:
                text = f"{t.question} {t.reply.content}".lower()
                if any(word in text for word in rule.vocabulary):
                    count += 1
            return count
        return len(replied)

    @staticmethod
    def _heuristic_score(evidence: int, target: int) -> float:
        if target <= 0:
            return 100.0
        return min(100.0, round(evidence / target * 100, 1))

    def _clamp_score(self, value: Any, evidence: int, target: int) -> float:
        try:
            return max(0.0, min(100.0, float(value)))
        except (TypeError, ValueError):
            return self._heuristic_score(evidence, target)

    def _is_ready(self, stage: Stage, evidence: int, oracle_result: Optional[Dict[str, Any]]) -> bool:
        if self.stage_registry.next_stage(stage.id) is None:
            return False
        if self.readiness_mode == READINESS_HEURISTIC:
            return evidence >= stage.readiness.target
        # Oracle mode fails closed
        if oracle_result is None:
            return False
        return _truthy(oracle_result.get("should_transition"))


# Global manager instance (lazy loaded)
_context_memory_manager: Optional[ContextMemoryManager] = None


def get_context_memory_manager() -> ContextMemoryManager:
    """Get or create the global context memory manager."""
    global _context_memory_manager
    if _context_memory_manager is None:
        _context_memory_manager = ContextMemoryManager()
    return _context_memory_manager
