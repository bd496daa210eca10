"""
Stage Registry.

Immutable table of the five interview stages, loaded once from
``stages.yaml``. Pure lookups only.
"""
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple, Union

from stakeholder_coach.core.config import load_stage_config
from stakeholder_coach.core.exceptions import UnknownStageError
from stakeholder_coach.models.session import StageId

logger = logging.getLogger(__name__)


# Stage order for interview flow
STAGE_ORDER = [
    StageId.KICKOFF,
    StageId.PROBLEM_EXPLORATION,
    StageId.AS_IS,
    StageId.TO_BE,
    StageId.WRAP_UP,
]


def _normalize_tag(topic: str) -> str:
    return re.sub(r"[\s\-]+", "_", topic.strip().lower())


@dataclass(frozen=True)
class ForbiddenTopic:
    """A topic tag that belongs to a later stage, with its detection phrases."""
    tag: str
    phrases: Tuple[str, ...] = ()
    _patterns: Tuple[re.Pattern, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForbiddenTopic":
        phrases = tuple(p.lower() for p in data.get("phrases", []))
        patterns = tuple(
            re.compile(r"\b" + re.escape(p) + r"\b", re.IGNORECASE) for p in phrases
        )
        return cls(tag=_normalize_tag(data["tag"]), phrases=phrases, _patterns=patterns)

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self._patterns)


@dataclass(frozen=True)
class ReadinessRule:
    """Local heuristic for stage-transition readiness."""
    evidence: str = "replied_turns"  # replied_turns | pain_points | vocabulary
    target: int = 1
    vocabulary: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Stage:
    """One interview stage."""
    id: StageId
    name: str
    objective: str
    milestone: str
    redirect_message: str
    forbidden_topics: Tuple[ForbiddenTopic, ...] = ()
    rubric_focus: Tuple[str, ...] = ()
    sample_questions: Tuple[str, ...] = ()
    readiness: ReadinessRule = ReadinessRule()

    @property
    def forbidden_tags(self) -> List[str]:
        return [t.tag for t in self.forbidden_topics]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id.value,
            "name": self.name,
            "objective": self.objective,
            "milestone": self.milestone,
            "redirect_message": self.redirect_message,
            "forbidden_topics": self.forbidden_tags,
            "rubric_focus": list(self.rubric_focus),
            "sample_questions": list(self.sample_questions),
            "progress_target": self.readiness.target,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stage":
        readiness = data.get("readiness", {})
        return cls(
            id=StageId(data["id"]),
            name=data["name"],
            objective=data["objective"].strip(),
            milestone=data.get("milestone", "").strip(),
            redirect_message=data.get("redirect_message", "").strip(),
            forbidden_topics=tuple(
                ForbiddenTopic.from_dict(t) for t in data.get("forbidden_topics", [])
            ),
            rubric_focus=tuple(data.get("rubric_focus", [])),
            sample_questions=tuple(data.get("sample_questions", [])),
            readiness=ReadinessRule(
                evidence=readiness.get("evidence", "replied_turns"),
                target=int(readiness.get("target", 1)),
                vocabulary=tuple(v.lower() for v in readiness.get("vocabulary", [])),
            ),
        )


class StageRegistry:
    """
    Lookup table over the fixed stage sequence.

    Raises UnknownStageError for any id outside the five known stages.
    """

    def __init__(self, stages: List[Stage]):
        by_id = {stage.id: stage for stage in stages}
        missing = [s.value for s in STAGE_ORDER if s not in by_id]
        if missing:
            raise ValueError(f"Stage configuration is missing stages: {', '.join(missing)}")
        self._stages: Dict[StageId, Stage] = {s: by_id[s] for s in STAGE_ORDER}

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "StageRegistry":
        config = config if config is not None else load_stage_config()
        stages = [Stage.from_dict(item) for item in config.get("stages", [])]
        logger.info(f"Loaded {len(stages)} interview stages")
        return cls(stages)

    @staticmethod
    def _coerce(stage_id: Union[StageId, str]) -> StageId:
        try:
            return StageId(stage_id)
        except ValueError:
            raise UnknownStageError(stage_id) from None

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages.values())

    def get_stage(self, stage_id: Union[StageId, str]) -> Stage:
        return self._stages[self._coerce(stage_id)]

    def next_stage(self, stage_id: Union[StageId, str]) -> Optional[Stage]:
        """Stage after ``stage_id`` in the fixed order, or None after wrap-up."""
        index = STAGE_ORDER.index(self._coerce(stage_id))
        if index + 1 >= len(STAGE_ORDER):
            return None
        return self._stages[STAGE_ORDER[index + 1]]

    def is_topic_forbidden(self, stage_id: Union[StageId, str], topic: str) -> bool:
        """
        True when ``topic`` is off-limits during the stage.

        ``topic`` may be a tag (``root_cause``) or free text that contains one
        of the tag's detection phrases (``"root cause of churn"``).
        """
        return bool(self.find_forbidden_topics(stage_id, topic))

    def find_forbidden_topics(self, stage_id: Union[StageId, str], text: str) -> List[str]:
        """Tags of every forbidden topic mentioned in ``text``."""
        stage = self.get_stage(stage_id)
        tag = _normalize_tag(text)
        return [
            topic.tag for topic in stage.forbidden_topics
            if topic.tag == tag or topic.matches(text)
        ]


@lru_cache()
def get_stage_registry() -> StageRegistry:
    """Get the process-wide stage registry, loaded on first use."""
    return StageRegistry.from_config()
