"""
Scenario Catalog.

Read-only practice projects with their stakeholder personas and
question routing rules, loaded from ``scenarios.yaml``.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from stakeholder_coach.core.config import load_scenario_config
from stakeholder_coach.core.exceptions import UnknownPersonaError, UnknownScenarioError
from stakeholder_coach.models.persona import ProjectScenario, StakeholderPersona

logger = logging.getLogger(__name__)


class ScenarioCatalog:
    """Lookup over the configured practice scenarios."""

    def __init__(self, scenarios: List[ProjectScenario]):
        self._scenarios: Dict[str, ProjectScenario] = {s.id: s for s in scenarios}

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ScenarioCatalog":
        config = config if config is not None else load_scenario_config()
        scenarios = [ProjectScenario.model_validate(item) for item in config.get("scenarios", [])]

        for scenario in scenarios:
            for rule in scenario.routing_rules:
                if scenario.get_persona(rule.persona_id) is None:
                    raise ValueError(
                        f"Routing rule {rule.category} in {scenario.id} "
                        f"points at unknown persona {rule.persona_id}"
                    )

        logger.info(f"Loaded {len(scenarios)} practice scenarios")
        return cls(scenarios)

    def list_scenarios(self) -> List[ProjectScenario]:
        return list(self._scenarios.values())

    def get_scenario(self, scenario_id: str) -> ProjectScenario:
        scenario = self._scenarios.get(scenario_id)
        if scenario is None:
            raise UnknownScenarioError(scenario_id)
        return scenario

    def get_persona(self, scenario_id: str, persona_id: str) -> StakeholderPersona:
        persona = self.get_scenario(scenario_id).get_persona(persona_id)
        if persona is None:
            raise UnknownPersonaError(persona_id, scenario_id)
        return persona


@lru_cache()
def get_scenario_catalog() -> ScenarioCatalog:
    """Get the process-wide scenario catalog, loaded on first use."""
    return ScenarioCatalog.from_config()
