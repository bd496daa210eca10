"""
Unit tests for speaker routing and the scenario catalog.
"""
import pytest

from stakeholder_coach.core.exceptions import UnknownPersonaError, UnknownScenarioError
from stakeholder_coach.services.scenarios import ScenarioCatalog
from stakeholder_coach.services.speaker_router import SpeakerRouter

ALL_PERSONAS = ["james-walker", "aisha-ahmed", "david-thompson"]


class TestRouting:
    """Test keyword routing."""

    @pytest.mark.parametrize("question,expected", [
        ("How does churn affect the team?", "james-walker"),
        ("What happens when a support ticket is raised?", "aisha-ahmed"),
        ("Which SYSTEM holds the customer record?", "david-thompson"),
        ("What does a typical week look like?", "aisha-ahmed"),
    ])
    def test_routes_by_keyword(self, onboarding_scenario, question, expected):
        router = SpeakerRouter()
        persona_id = router.route(question, onboarding_scenario, ALL_PERSONAS, "aisha-ahmed")
        assert persona_id == expected

    def test_first_rule_wins(self, onboarding_scenario):
        """'satisfaction' is checked before 'system'."""
        router = SpeakerRouter()
        persona_id = router.route(
            "Does the system track satisfaction?", onboarding_scenario, ALL_PERSONAS, "aisha-ahmed"
        )
        assert persona_id == "james-walker"

    def test_inactive_persona_skipped(self, onboarding_scenario):
        """A matching rule for someone not in the meeting falls through."""
        router = SpeakerRouter()
        persona_id = router.route(
            "How does the API integration work?",
            onboarding_scenario,
            ["james-walker", "aisha-ahmed"],
            "james-walker",
        )
        assert persona_id == "james-walker"

    def test_unknown_selected_persona(self, onboarding_scenario):
        router = SpeakerRouter()
        with pytest.raises(UnknownPersonaError):
            router.route("Hello?", onboarding_scenario, ALL_PERSONAS, "nobody")

    def test_no_match_returns_none(self, onboarding_scenario):
        router = SpeakerRouter()
        assert router.match_rule("Hello there", onboarding_scenario, ALL_PERSONAS) is None


class TestScenarioCatalog:
    """Test the scenario catalog."""

    def test_lists_onboarding_scenario(self, scenario_catalog):
        ids = [s.id for s in scenario_catalog.list_scenarios()]
        assert "customer-onboarding-optimization" in ids

    def test_personas_loaded(self, onboarding_scenario):
        assert onboarding_scenario.persona_ids == ALL_PERSONAS
        james = onboarding_scenario.get_persona("james-walker")
        assert james.role == "Head of Customer Success"
        assert james.knowledge

    def test_unknown_scenario(self, scenario_catalog):
        with pytest.raises(UnknownScenarioError):
            scenario_catalog.get_scenario("missing")

    def test_unknown_persona(self, scenario_catalog):
        with pytest.raises(UnknownPersonaError):
            scenario_catalog.get_persona("customer-onboarding-optimization", "nobody")

    def test_rule_for_unknown_persona_rejected(self):
        config = {"scenarios": [{
            "id": "tiny",
            "name": "Tiny",
            "personas": [{"id": "a", "name": "A", "role": "Lead", "department": "Ops"}],
            "routing_rules": [{"category": "tech", "keywords": ["api"], "persona_id": "b"}],
        }]}
        with pytest.raises(ValueError, match="unknown persona"):
            ScenarioCatalog.from_config(config)

    def test_describe(self, onboarding_scenario):
        brief = onboarding_scenario.describe()
        assert brief.startswith("Project: Customer Onboarding Optimization")
        assert "Constraints:" in brief
