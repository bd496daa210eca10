"""
Structured context objects passed to the judgment oracle.

One model per oracle operation. Each carries everything the oracle needs,
so an oracle implementation never reaches back into session state.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from stakeholder_coach.models.persona import StakeholderPersona
from stakeholder_coach.models.session import (
    ContextMemory,
    ReplyMetadata,
    StageId,
    Turn,
    Verdict,
)


class HistoryLine(BaseModel):
    """One line of prior conversation."""
    role: str  # "Analyst" or a persona name
    content: str


def history_from_turns(turns: List[Turn]) -> List[HistoryLine]:
    """Flatten recorded turns into alternating analyst/stakeholder lines."""
    lines: List[HistoryLine] = []
    for turn in turns:
        lines.append(HistoryLine(role="Analyst", content=turn.question))
        if turn.reply is not None:
            lines.append(HistoryLine(role=turn.reply.persona_name, content=turn.reply.content))
    return lines


class RubricContext(BaseModel):
    """Input for ``evaluate_question``."""
    question: str
    stage_id: StageId
    stage_name: str
    stage_objective: str
    rubric_focus: List[str] = Field(default_factory=list)
    forbidden_topics: List[str] = Field(default_factory=list)
    redirect_message: str = ""
    dimensions: List[str] = Field(
        default_factory=lambda: ["stage_alignment", "question_type", "specificity", "neutrality"]
    )
    looks_closed: bool = False
    history: List[HistoryLine] = Field(default_factory=list)
    project_context: Optional[str] = None


class CoachingContext(BaseModel):
    """Input for ``generate_coaching``."""
    question: str
    stage_id: StageId
    stage_name: str
    stage_objective: str
    verdict: Verdict
    score: float
    reasons: List[str] = Field(default_factory=list)
    triggers: List[str] = Field(default_factory=list)
    suggested_rewrite: Optional[str] = None


class ReplyLength(BaseModel):
    """Length band a stakeholder reply must respect."""
    min_words: int
    max_words: int
    max_tokens: int


class PersonaContext(BaseModel):
    """Input for ``generate_stakeholder_reply``."""
    question: str
    verdict: Verdict
    stage_id: StageId
    stage_name: str
    stage_objective: str
    persona: StakeholderPersona
    length: ReplyLength
    history: List[HistoryLine] = Field(default_factory=list)
    project_context: Optional[str] = None


class ConversationContext(BaseModel):
    """Input for ``update_context_memory``."""
    stage_id: StageId
    stage_name: str
    milestone: str
    memory: ContextMemory
    question: str
    reply: str
    reply_metadata: ReplyMetadata
    history: List[HistoryLine] = Field(default_factory=list)
