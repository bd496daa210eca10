"""
Session debrief.

Summarises a finished meeting: how the learner's questions were rated,
how open they were, what the stakeholders revealed and what to practise
next time.
"""
from datetime import datetime
from typing import List, Optional

from stakeholder_coach.models.session import (
    ClosedQuestionExample,
    InterviewSession,
    SessionDebrief,
    Verdict,
)
from stakeholder_coach.services.question_text import (
    is_closed_question,
    looks_like_follow_up,
    rewrite_to_open,
)
from stakeholder_coach.services.stage_registry import StageRegistry

MAX_CLOSED_EXAMPLES = 3
MAX_PRACTICE_QUESTIONS = 3
# Stages scoring below this are suggested for practice
LOW_PROGRESS_SCORE = 50.0


def build_debrief(
    session: InterviewSession,
    stage_registry: StageRegistry,
    ended_at: Optional[datetime] = None,
) -> SessionDebrief:
    """Build the end-of-meeting summary for ``session``."""
    turns = session.turns
    total = len(turns)

    verdict_counts = {v: 0 for v in Verdict}
    for turn in turns:
        verdict_counts[turn.evaluation.verdict] += 1

    closed_turns = [t for t in turns if is_closed_question(t.question)]
    closed_examples: List[ClosedQuestionExample] = []
    for turn in closed_turns:
        if len(closed_examples) >= MAX_CLOSED_EXAMPLES:
            break
        rewrite = turn.evaluation.suggested_rewrite
        if not rewrite or rewrite.strip() == turn.question.strip():
            rewrite = rewrite_to_open(turn.question)
        closed_examples.append(ClosedQuestionExample(
            turn_index=turn.index, original=turn.question, rewrite=rewrite,
        ))

    memory = session.context_memory
    practice: List[str] = []
    for stage in stage_registry.stages:
        progress = memory.progress_for(stage.id)
        if progress is not None and progress.score >= LOW_PROGRESS_SCORE:
            continue
        if stage.sample_questions:
            practice.append(stage.sample_questions[0])
        if len(practice) >= MAX_PRACTICE_QUESTIONS:
            break

    ended_at = ended_at or session.archived_at or datetime.utcnow()
    duration = max(0, int((ended_at - session.created_at).total_seconds() // 60))

    return SessionDebrief(
        session_id=session.id,
        scenario_id=session.scenario_id,
        total_turns=total,
        verdict_counts=verdict_counts,
        average_score=round(sum(t.evaluation.score for t in turns) / total, 1) if total else 0.0,
        open_question_ratio=round((total - len(closed_turns)) / total, 2) if total else 0.0,
        follow_up_count=sum(1 for t in turns if looks_like_follow_up(t.question)),
        closed_examples=closed_examples,
        stages_reached=list(session.stages_visited),
        final_stage=session.current_stage,
        pain_points=list(memory.pain_points),
        topics_covered=sorted(memory.topics_covered),
        information_layer=memory.information_layer,
        next_time_questions=practice,
        duration_minutes=duration,
    )
