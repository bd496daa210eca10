"""
Stakeholder Responder Service.

Generates a persona's reply through the judgment oracle and annotates it
with metadata derived from the reply text alone. Reply length follows
the question verdict: better questions earn longer, richer answers.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from stakeholder_coach.core.config import load_model_config, load_stage_config
from stakeholder_coach.core.exceptions import OracleError
from stakeholder_coach.models.oracle import PersonaContext, ReplyLength, history_from_turns
from stakeholder_coach.models.persona import StakeholderPersona
from stakeholder_coach.models.session import (
    Emotion,
    ReplyMetadata,
    StageId,
    StakeholderReply,
    Turn,
    Verdict,
)
from stakeholder_coach.providers.oracle import JudgmentOracle, get_judgment_oracle
from stakeholder_coach.services.stage_registry import StageRegistry, get_stage_registry

logger = logging.getLogger(__name__)


DEFAULT_KEYWORDS = (
    "onboarding", "customer", "process", "system", "data",
    "manual", "time", "challenge", "frustration",
)
DEFAULT_PAIN_INDICATORS = (
    "manual", "disconnect", "delay", "frustrat", "inefficient", "time-consuming", "error",
)

# Checked in order, first match wins
EMOTION_CUES: List[Tuple[Emotion, Tuple[str, ...]]] = [
    (Emotion.FRUSTRATED, ("frustrat", "annoy", "difficult")),
    (Emotion.OPTIMISTIC, ("excit", "optimistic", "hope")),
    (Emotion.CONCERNED, ("concern", "worr", "risk")),
]

SOLUTION_HINT = re.compile(r"could|might|should|try|attempt")
ROOT_CAUSE = re.compile(r"because|root|underlying|systemic")
EMOTION_WORDS = re.compile(r"frustrat|excit|concern|difficult|challeng")
HAS_NUMBER = re.compile(r"\d+")

DEFAULT_LENGTHS = {
    Verdict.GREEN: ReplyLength(min_words=150, max_words=260, max_tokens=420),
    Verdict.AMBER: ReplyLength(min_words=60, max_words=130, max_tokens=220),
    Verdict.RED: ReplyLength(min_words=20, max_words=60, max_tokens=120),
}


@dataclass(frozen=True)
class ReplyVocabulary:
    """Word lists used to annotate replies."""
    keywords: Tuple[str, ...] = DEFAULT_KEYWORDS
    pain_indicators: Tuple[str, ...] = DEFAULT_PAIN_INDICATORS

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ReplyVocabulary":
        config = config if config is not None else load_stage_config()
        vocab = config.get("reply_vocabulary", {})
        return cls(
            keywords=tuple(vocab.get("keywords", DEFAULT_KEYWORDS)),
            pain_indicators=tuple(vocab.get("pain_indicators", DEFAULT_PAIN_INDICATORS)),
        )


def extract_emotion(text: str) -> Emotion:
    lower = text.lower()
    for emotion, cues in EMOTION_CUES:
        if any(cue in lower for cue in cues):
            return emotion
    return Emotion.NEUTRAL


def estimate_information_layer(text: str) -> int:
    """
    Depth of a reply, 1-5.

    5 hints at a solution, 4 names a root cause, 3 pairs emotion with
    numbers, 2 has numbers only, 1 is surface detail.
    """
    lower = text.lower()
    has_numbers = bool(HAS_NUMBER.search(text))

    if SOLUTION_HINT.search(lower):
        return 5
    if ROOT_CAUSE.search(lower):
        return 4
    if EMOTION_WORDS.search(lower) and has_numbers:
        return 3
    if has_numbers:
        return 2
    return 1


def extract_terms(text: str, vocabulary: Sequence[str]) -> List[str]:
    """Vocabulary entries found in ``text``, in vocabulary order."""
    lower = text.lower()
    return [term for term in vocabulary if term in lower]


def annotate_reply(text: str, vocabulary: Optional[ReplyVocabulary] = None) -> ReplyMetadata:
    vocabulary = vocabulary or ReplyVocabulary()
    return ReplyMetadata(
        emotion=extract_emotion(text),
        information_layer=estimate_information_layer(text),
        keywords=extract_terms(text, vocabulary.keywords),
        pain_points=extract_terms(text, vocabulary.pain_indicators),
    )


def trim_to_words(text: str, max_words: int) -> str:
    """Cut ``text`` to at most ``max_words``, ending on a sentence where possible."""
    words = text.split()
    if len(words) <= max_words:
        return text.strip()

    clipped = " ".join(words[:max_words])
    last_stop = max(clipped.rfind(". "), clipped.rfind("! "), clipped.rfind("? "))
    if clipped[-1:] in ".!?":
        return clipped
    if last_stop > len(clipped) // 2:
        return clipped[:last_stop + 1]
    return clipped.rstrip(",;:") + "."


class StakeholderResponder:
    """
    Produces in-character stakeholder replies.

    The oracle writes the words; emotion, information layer, keywords and
    pain points are always computed locally from the final text.
    """

    def __init__(
        self,
        oracle: Optional[JudgmentOracle] = None,
        stage_registry: Optional[StageRegistry] = None,
        vocabulary: Optional[ReplyVocabulary] = None,
        lengths: Optional[Dict[Verdict, ReplyLength]] = None,
    ):
        self._oracle = oracle
        self._stage_registry = stage_registry
        self.vocabulary = vocabulary or ReplyVocabulary.from_config()
        self.lengths = lengths or self._load_lengths()

    @staticmethod
    def _load_lengths() -> Dict[Verdict, ReplyLength]:
        bands = load_model_config().get("reply_length", {})
        lengths = dict(DEFAULT_LENGTHS)
        for verdict in Verdict:
            if verdict.value in bands:
                lengths[verdict] = ReplyLength(**bands[verdict.value])
        return lengths

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

    def length_for(self, verdict: Verdict) -> ReplyLength:
        return self.lengths[verdict]

    async def respond(
        self,
        question: str,
        verdict: Verdict,
        stage_id: StageId,
        persona: StakeholderPersona,
        history: Optional[List[Turn]] = None,
        project_context: Optional[str] = None,
    ) -> StakeholderReply:
        """
        Generate a persona reply.

        Args:
            question: Learner question text
            verdict: Verdict of the question, drives reply length
            stage_id: Current stage
            persona: Persona answering
            history: Recent turns, oldest first
            project_context: Plain-text project brief

        Returns:
            Reply with derived metadata
        """
        stage = self.stage_registry.get_stage(stage_id)
        length = self.length_for(verdict)

        context = PersonaContext(
            question=question,
            verdict=verdict,
            stage_id=stage.id,
            stage_name=stage.name,
            stage_objective=stage.objective,
            persona=persona,
            length=length,
            history=history_from_turns(history or []),
            project_context=project_context,
        )

        is_fallback = False
        try:
            text = await self.oracle.generate_stakeholder_reply(context)
            text = trim_to_words(text, length.max_words)
        except OracleError as e:
            logger.warning(f"Stakeholder reply failed for {persona.id}, using fallback: {e}")
            text = self.fallback_reply(persona)
            is_fallback = True

        word_count = len(text.split())
        if word_count < length.min_words:
            logger.warning(
                f"{persona.name} reply below the {verdict.value} band "
                f"({word_count} < {length.min_words} words)"
            )

        metadata = annotate_reply(text, self.vocabulary)
        logger.info(
            f"{persona.name} replied ({word_count} words, "
            f"layer {metadata.information_layer}, {metadata.emotion.value})"
        )
        return StakeholderReply(
            persona_id=persona.id,
            persona_name=persona.name,
            content=text,
            stage=stage.id,
            metadata=metadata,
            is_fallback=is_fallback,
        )

    def fallback_reply(self, persona: StakeholderPersona) -> str:
        """Short, neutral holding answer in the persona's voice."""
        focus = persona.priorities[0].lower() if persona.priorities else "keeping things running smoothly"
        return (
            f"That's a fair question. As {persona.role}, most of my attention goes on {focus}. "
            f"Let me think about the specifics and come back to you on that."
        )


# Global responder instance (lazy loaded)
_stakeholder_responder: Optional[StakeholderResponder] = None


def get_stakeholder_responder() -> StakeholderResponder:
    """Get or create the global stakeholder responder."""
    global _stakeholder_responder
    if _stakeholder_responder is None:
        _stakeholder_responder = StakeholderResponder()
    return _stakeholder_responder
