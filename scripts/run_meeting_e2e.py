"""
End-to-End Practice Meeting Simulation.

Runs a complete stakeholder meeting against a live model:
1. Start a session with the onboarding scenario
2. Ask scripted questions stage by stage, including one off-stage question
3. Take the suggested rewrite after RED coaching
4. Advance whenever the stage milestone is met
5. End the meeting and print the debrief

Prerequisites:
- Ollama running with the model named in config/models.yaml (qwen2.5:7b)

Usage:
    python scripts/run_meeting_e2e.py
"""
import asyncio
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stakeholder_coach.core.exceptions import OracleUnavailableError, StageTransitionError
from stakeholder_coach.models.session import StageId, TurnResult
from stakeholder_coach.services.session_orchestrator import SessionOrchestrator


SCRIPTED_QUESTIONS = {
    StageId.KICKOFF: [
        "What is the root cause of customer churn during onboarding?",
        "Could you tell me about your role and how it connects to this project?",
        "What would a successful outcome of this project look like for you?",
    ],
    StageId.PROBLEM_EXPLORATION: [
        "What are the main challenges your team runs into when onboarding a new customer?",
        "Can you give me a recent example where onboarding went wrong?",
        "How does this affect customer satisfaction in the first month?",
    ],
    StageId.AS_IS: [
        "Can you walk me through what happens from the moment a contract is signed?",
        "Which system does each team use at each step today?",
        "Where do handoffs between teams happen, and what gets lost along the way?",
    ],
    StageId.TO_BE: [
        "If onboarding worked perfectly, what would be different for your customers?",
        "Which improvement would make the biggest difference to your team first?",
    ],
    StageId.WRAP_UP: [
        "Let me summarise what I heard. What did I miss or get wrong?",
    ],
}


def print_turn(result: TurnResult) -> None:
    turn = result.turn
    evaluation = turn.evaluation
    print(f"\n  Q{turn.index + 1}: {turn.question}")
    print(f"  Verdict: {evaluation.verdict.value} ({evaluation.score:.0f}) -> {result.action.value}")
    for reason in evaluation.reasons[:2]:
        print(f"    - {reason}")
    print(f"  Coach: {turn.coaching.summary}")
    if turn.reply is not None:
        meta = turn.reply.metadata
        preview = turn.reply.content[:200].replace("\n", " ")
        print(f"  {turn.reply.persona_name} ({turn.reply.word_count} words, layer {meta.information_layer}, "
              f"{meta.emotion.value}): {preview}...")
    else:
        print("  (stakeholder reply held back until coaching is acknowledged)")
    memory = result.context_memory
    print(f"  Memory: layer {memory.information_layer}, {len(memory.pain_points)} pain points, "
          f"ready={memory.ready_to_transition}")


async def run_meeting() -> bool:
    """Run the scripted meeting. Returns True when it reached the debrief."""
    print("=" * 60)
    print("STAKEHOLDER MEETING SIMULATION")
    print("=" * 60)

    orchestrator = SessionOrchestrator()

    print("\n[1] Starting session...")
    try:
        session = await orchestrator.start_session("james-walker")
    except OracleUnavailableError as e:
        print(f"  Cannot start: {e}")
        print("  Is Ollama running? Try: ollama serve")
        return False
    print(f"  Session: {session.id}")
    print(f"  Personas: {', '.join(session.active_persona_ids)}")

    start = time.time()
    for stage, questions in SCRIPTED_QUESTIONS.items():
        print(f"\n[Stage] {stage.value}")
        for question in questions:
            result = await orchestrator.submit_question(session.id, question)
            print_turn(result)

            if result.awaiting_acknowledgement:
                print("\n  Acknowledging coaching and using the suggested rewrite...")
                ack = await orchestrator.acknowledge(session.id, use_rewrite=True)
                if ack.turn_result is not None:
                    print_turn(ack.turn_result)

        if stage == StageId.WRAP_UP:
            break
        try:
            transition = await orchestrator.advance_stage(session.id)
            print(f"\n  Advanced: {transition.previous_stage.value} -> {transition.current_stage.value}")
        except StageTransitionError as e:
            print(f"\n  Staying in {stage.value}: {e}")

    print("\n[2] Ending session...")
    debrief = await orchestrator.end_session(session.id)
    elapsed = time.time() - start

    print("\n" + "=" * 60)
    print("DEBRIEF")
    print("=" * 60)
    print(f"  Turns: {debrief.total_turns}")
    print("  Verdicts: " + ", ".join(f"{v.value}={n}" for v, n in debrief.verdict_counts.items()))
    print(f"  Average score: {debrief.average_score}")
    print(f"  Open question ratio: {debrief.open_question_ratio:.0%}")
    print(f"  Stages reached: {', '.join(s.value for s in debrief.stages_reached)}")
    print(f"  Deepest information layer: {debrief.information_layer}")
    print(f"  Pain points: {', '.join(p.area for p in debrief.pain_points) or 'none'}")
    for example in debrief.closed_examples:
        print(f"  Closed: {example.original} -> {example.rewrite}")
    for question in debrief.next_time_questions:
        print(f"  Practise next time: {question}")
    print(f"\n  Completed in {elapsed:.1f}s")

    await orchestrator.close()
    return True


async def main():
    """Main entry point."""
    try:
        success = await run_meeting()
        return 0 if success else 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
