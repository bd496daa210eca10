"""
Question text heuristics.

Cheap, deterministic checks on learner questions: closed-question
detection, a rule-based open rewrite and follow-up detection.
"""
import re
from typing import List, Tuple

CLOSED_PREFIX = re.compile(
    r"^(is|are|do|does|did|can|could|should|would|will|have|has|may|might)\b",
    re.IGNORECASE,
)

FOLLOW_UP_PATTERNS = [
    re.compile(r"^(you mentioned|earlier you said|can you expand|tell me more)", re.IGNORECASE),
    re.compile(r"^(what do you mean|how so|in what way)", re.IGNORECASE),
    re.compile(r"^(thats interesting|that sounds)", re.IGNORECASE),
]

# (leading auxiliary, template for the remainder of the question)
OPEN_REWRITES: List[Tuple[str, str]] = [
    ("is", "What makes {rest} feel that way?"),
    ("are", "How do {rest} typically work?"),
    ("do", "How do {rest} usually happen?"),
    ("does", "How does {rest} typically work?"),
    ("can", "How do {rest} usually work, and what challenges do you face?"),
    ("will", "What would success look like for {rest}?"),
    ("should", "What options have you considered for {rest}, and what would success look like?"),
    ("have", "What has been your experience with {rest}?"),
    ("has", "How has {rest} been working for you?"),
]

_CHOICE_WORDS = (" or ", " either ", " both ")
_BUILD_PROPOSAL = re.compile(r"should\s+we\s+(build|implement|create|add)", re.IGNORECASE)


def normalize(text: str) -> str:
    """Lowercase, trim and drop punctuation."""
    return re.sub(r"[^\w\s]", "", text.lower().strip())


def is_closed_question(question: str) -> bool:
    """True when the question opens like a yes/no question."""
    if not question:
        return False
    return bool(CLOSED_PREFIX.match(normalize(question)))


def rewrite_to_open(question: str) -> str:
    """
    Rewrite a closed question into an open one.

    Returns the question unchanged when no rule applies.
    """
    if not question:
        return question

    original = question.strip()

    if is_closed_question(original):
        for auxiliary, template in OPEN_REWRITES:
            match = re.match(rf"^{auxiliary}\s+(.+?)\s*\?*$", original, re.IGNORECASE)
            if match:
                return template.format(rest=match.group(1))

    # Either/or questions
    if original.endswith("?") and any(word in original for word in _CHOICE_WORDS):
        stripped = re.sub(r"\?\s*$", "", original)
        return re.sub(r"^(do|does|are|is)\s+", "How do you feel about ", stripped, flags=re.IGNORECASE)

    if _BUILD_PROPOSAL.search(original):
        return "What options have you considered, and what would success look like?"

    return question


def looks_like_follow_up(question: str) -> bool:
    """True when the question builds on something the stakeholder said."""
    if not question:
        return False
    normalized = normalize(question)
    return any(pattern.match(normalized) for pattern in FOLLOW_UP_PATTERNS)


def count_words(text: str) -> int:
    if not text or not text.strip():
        return 0
    return len(text.split())
