"""
Pydantic models for stakeholder personas and project scenarios.

Read-only reference data: the orchestrator never mutates these.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class StakeholderPersona(BaseModel):
    """A simulated stakeholder the learner can interview."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    department: str
    personality: str = ""
    communication_style: str = ""
    priorities: Tuple[str, ...] = ()
    expertise: Tuple[str, ...] = ()
    bio: str = ""
    knowledge: str = ""  # what this person knows about how things work today


class RoutingRule(BaseModel):
    """Keywords that hand a question to a specific persona."""
    model_config = ConfigDict(frozen=True)

    category: str
    keywords: Tuple[str, ...]
    persona_id: str


class ProjectScenario(BaseModel):
    """A practice project: its context, people and routing rules."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    objective: str = ""
    current_state: str = ""
    challenges: Tuple[str, ...] = ()
    expected_outcomes: Tuple[str, ...] = ()
    constraints: Tuple[str, ...] = ()
    personas: Tuple[StakeholderPersona, ...] = Field(default_factory=tuple)
    routing_rules: Tuple[RoutingRule, ...] = Field(default_factory=tuple)

    @property
    def persona_ids(self) -> List[str]:
        return [p.id for p in self.personas]

    def get_persona(self, persona_id: str) -> Optional[StakeholderPersona]:
        for persona in self.personas:
            if persona.id == persona_id:
                return persona
        return None

    def describe(self) -> str:
        """Short plain-text project brief used in oracle requests."""
        lines = [f"Project: {self.name}"]
        if self.objective:
            lines.append(f"Objective: {self.objective}")
        if self.current_state:
            lines.append(f"Current state: {self.current_state}")
        if self.challenges:
            lines.append("Known challenges: " + "; ".join(self.challenges))
        if self.constraints:
            lines.append("Constraints: " + "; ".join(self.constraints))
        return "\n".join(lines)
