"""
Unit tests for the Context Memory Manager.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from stakeholder_coach.core.exceptions import OracleMalformedResponseError
from stakeholder_coach.models.session import (
    CoachingAction,
    CoachingFeedback,
    ContextMemory,
    PainPoint,
    QuestionEvaluation,
    StageId,
    StakeholderReply,
    Turn,
    Verdict,
)
from stakeholder_coach.providers.oracle.base import JudgmentOracle
from stakeholder_coach.services.context_memory import ContextMemoryManager
from stakeholder_coach.services.stakeholder_responder import ReplyVocabulary, annotate_reply

from conftest import memory_response


def make_turn(stage: StageId, question: str, reply_text=None, index: int = 0) -> Turn:
    reply = None
    if reply_text is not None:
        reply = StakeholderReply(
            persona_id="james-walker",
            persona_name="James Walker",
            content=reply_text,
            stage=stage,
            metadata=annotate_reply(reply_text, ReplyVocabulary.from_config()),
        )
    return Turn(
        id=f"turn-{index}",
        session_id="session-1",
        index=index,
        stage=stage,
        question=question,
        evaluation=QuestionEvaluation(verdict=Verdict.GREEN, score=80),
        coaching=CoachingFeedback(
            verdict_label="Strong question",
            summary="Good.",
            what_happened="Open question.",
            why_it_matters="Detail.",
            what_to_do="Keep going.",
            principle="Be open.",
            action=CoachingAction.CONTINUE,
            acknowledgement_required=False,
        ),
        persona_id="james-walker" if reply is not None else None,
        reply=reply,
    )


def _oracle(**kwargs) -> MagicMock:
    oracle = MagicMock(spec=JudgmentOracle)
    oracle.update_context_memory = AsyncMock(**kwargs)
    return oracle


class TestInitialMemory:

    def test_initial_kickoff(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial()

        assert memory.ready_to_transition is False
        assert memory.information_layer == 1
        assert memory.next_milestone == "Establish rapport and understand project scope"
        assert memory.progress_for(StageId.KICKOFF).target == 2

    def test_unknown_mode_rejected(self, stage_registry):
        with pytest.raises(ValueError):
            ContextMemoryManager(_oracle(), stage_registry, readiness_mode="vibes")

    def test_reset_for_stage_clears_readiness(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial().model_copy(update={"ready_to_transition": True, "information_layer": 3})

        reset = manager.reset_for_stage(memory, StageId.PROBLEM_EXPLORATION)

        assert reset.ready_to_transition is False
        assert reset.information_layer == 3
        assert reset.next_milestone == "Identify 2-3 specific pain points with examples"
        assert StageId.KICKOFF in reset.stage_progress
        assert StageId.PROBLEM_EXPLORATION in reset.stage_progress


class TestMerge:
    """Test the pure merge."""

    def test_layer_never_decreases(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial().model_copy(update={"information_layer": 4})
        turn = make_turn(StageId.KICKOFF, "How are you?", "We mostly use email.")

        merged = manager.merge(memory, turn, [turn], {"information_layers_unlocked": 2})

        assert merged.information_layer == 4

    def test_oracle_layer_clamped(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.KICKOFF, "How are you?", "We mostly use email.")

        merged = manager.merge(manager.initial(), turn, [turn], {"information_layers_unlocked": 9})

        assert merged.information_layer == 5

    def test_pain_points_deduplicated_by_area(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial().model_copy(update={
            "pain_points": [PainPoint(area="Manual Setup", stage=StageId.PROBLEM_EXPLORATION)],
        })
        turn = make_turn(
            StageId.PROBLEM_EXPLORATION,
            "What slows onboarding down?",
            "Everything is manual and there is a constant delay.",
        )

        merged = manager.merge(memory, turn, [turn], memory_response())

        areas = [p.area.lower() for p in merged.pain_points]
        assert areas.count("manual setup") == 1
        assert "manual" in areas
        assert "delay" in areas
        assert len(areas) == len(set(areas))

    def test_topics_accumulate(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial().model_copy(update={"topics_covered": {"billing"}})
        turn = make_turn(StageId.KICKOFF, "Tell me about onboarding", "Onboarding touches every customer.")

        merged = manager.merge(memory, turn, [turn], {"topics_covered": ["Onboarding Duration", "  "]})

        assert {"billing", "onboarding", "customer", "onboarding duration"} <= merged.topics_covered

    def test_lone_string_topic_kept_whole(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.KICKOFF, "Tell me about onboarding", "Onboarding touches every customer.")

        merged = manager.merge(manager.initial(), turn, [turn], {"topics_covered": "Churn"})

        assert "churn" in merged.topics_covered
        assert not any(len(topic) == 1 for topic in merged.topics_covered)

    @pytest.mark.parametrize("pain_points", [2, 3.5, True, None])
    def test_non_list_pain_points_ignored(self, stage_registry, pain_points):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(
            StageId.PROBLEM_EXPLORATION,
            "What slows onboarding down?",
            "Everything is manual and there is a constant delay.",
        )

        merged = manager.merge(manager.initial(), turn, [turn], {"pain_points_identified": pain_points})

        assert {p.area for p in merged.pain_points} == {"manual", "delay"}

    def test_lone_pain_point_object(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.PROBLEM_EXPLORATION, "What slows onboarding down?", "It is fine.")

        merged = manager.merge(
            manager.initial(), turn, [turn],
            {"pain_points_identified": {"area": "Manual setup", "impact": "three weeks"}},
        )

        assert [p.area for p in merged.pain_points] == ["Manual setup"]

    @pytest.mark.asyncio
    async def test_odd_field_shapes_absorbed_on_update(self, stage_registry):
        oracle = _oracle(return_value={"topics_covered": "churn", "pain_points_identified": 2})
        manager = ContextMemoryManager(oracle, stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.KICKOFF, "Tell me about onboarding", "Onboarding touches every customer.")

        memory = await manager.update(manager.initial(), turn, [turn])

        assert "churn" in memory.topics_covered
        assert memory.pain_points == []

    def test_blocked_turn_leaves_memory_unchanged(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        memory = manager.initial()
        turn = make_turn(StageId.KICKOFF, "What is the root cause?")

        assert manager.merge(memory, turn, [turn], memory_response(True)) is memory


class TestReadiness:
    """Test the readiness decision."""

    def test_oracle_mode_follows_oracle(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.KICKOFF, "What is your role?", "I lead customer success.")

        merged = manager.merge(manager.initial(), turn, [turn], memory_response(should_transition=True))

        assert merged.ready_to_transition is True
        assert merged.next_milestone == stage_registry.get_stage(StageId.PROBLEM_EXPLORATION).milestone

    def test_oracle_mode_string_flag(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="oracle")
        turn = make_turn(StageId.KICKOFF, "What is your role?", "I lead customer success.")

        merged = manager.merge(manager.initial(), turn, [turn], {"should_transition": "no"})

        assert merged.ready_to_transition is False

    @pytest.mark.asyncio
    async def test_oracle_failure_is_not_ready(self, stage_registry):
        oracle = _oracle(side_effect=OracleMalformedResponseError("bad json"))
        manager = ContextMemoryManager(oracle, stage_registry, readiness_mode="oracle")
        turn = make_turn(
            StageId.PROBLEM_EXPLORATION,
            "What slows onboarding down?",
            "Everything is manual and there is a constant delay.",
        )

        memory = await manager.update(manager.initial(), turn, [turn])

        assert memory.ready_to_transition is False
        # Local annotations still land
        assert {p.area for p in memory.pain_points} >= {"manual", "delay"}

    def test_heuristic_mode_counts_replied_turns(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="heuristic")
        first = make_turn(StageId.KICKOFF, "What is your role?", "I lead customer success.", index=0)
        blocked = make_turn(StageId.KICKOFF, "What is the root cause?", index=1)
        second = make_turn(StageId.KICKOFF, "Who else is involved?", "Aisha and David.", index=2)

        memory = manager.merge(manager.initial(), first, [first], None)
        assert memory.ready_to_transition is False
        assert memory.progress_for(StageId.KICKOFF).score == 50

        memory = manager.merge(memory, second, [first, blocked, second], None)
        assert memory.ready_to_transition is True
        assert memory.progress_for(StageId.KICKOFF).evidence_count == 2

    def test_heuristic_mode_pain_points(self, stage_registry):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode="heuristic")
        turn = make_turn(
            StageId.PROBLEM_EXPLORATION,
            "What slows onboarding down?",
            "Everything is manual and there is a constant delay.",
        )

        memory = manager.merge(manager.initial(), turn, [turn], None)

        assert memory.ready_to_transition is True

    @pytest.mark.parametrize("mode", ["oracle", "heuristic"])
    def test_terminal_stage_never_ready(self, stage_registry, mode):
        manager = ContextMemoryManager(_oracle(), stage_registry, readiness_mode=mode)
        turn = make_turn(StageId.WRAP_UP, "What did I miss?", "Nothing much, thanks.")
        memory = manager.reset_for_stage(ContextMemory(), StageId.WRAP_UP)

        merged = manager.merge(memory, turn, [turn], memory_response(should_transition=True))

        assert merged.ready_to_transition is False
