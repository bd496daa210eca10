"""
Speaker Router.

Decides which stakeholder answers a question. Keyword rules are checked in
scenario order with case-insensitive substring matching; the first rule
that matches and whose persona is in the meeting wins. Otherwise the
persona the learner selected answers.
"""
import logging
from typing import Optional, Sequence

from stakeholder_coach.core.exceptions import UnknownPersonaError
from stakeholder_coach.models.persona import ProjectScenario, RoutingRule

logger = logging.getLogger(__name__)


class SpeakerRouter:
    """Stateless keyword router over a scenario's routing rules."""

    def match_rule(
        self,
        question: str,
        scenario: ProjectScenario,
        active_persona_ids: Sequence[str],
    ) -> Optional[RoutingRule]:
        text = question.lower()
        active = set(active_persona_ids)
        for rule in scenario.routing_rules:
            if rule.persona_id not in active:
                continue
            if any(keyword.lower() in text for keyword in rule.keywords):
                return rule
        return None

    def route(
        self,
        question: str,
        scenario: ProjectScenario,
        active_persona_ids: Sequence[str],
        selected_persona_id: str,
    ) -> str:
        """
        Pick the persona that should answer.

        Args:
            question: Learner question text
            scenario: Scenario holding the routing rules
            active_persona_ids: Personas present in the meeting
            selected_persona_id: Persona the learner chose to address

        Returns:
            Persona id
        """
        if scenario.get_persona(selected_persona_id) is None:
            raise UnknownPersonaError(selected_persona_id, scenario.id)

        rule = self.match_rule(question, scenario, active_persona_ids)
        if rule is None:
            logger.debug(f"No routing rule matched, answering as {selected_persona_id}")
            return selected_persona_id

        logger.info(f"Routed question to {rule.persona_id} ({rule.category})")
        return rule.persona_id


_speaker_router: Optional[SpeakerRouter] = None


def get_speaker_router() -> SpeakerRouter:
    global _speaker_router
    if _speaker_router is None:
        _speaker_router = SpeakerRouter()
    return _speaker_router
