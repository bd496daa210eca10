"""
Judgment Oracle Package.
"""
from stakeholder_coach.providers.oracle.base import JudgmentOracle
from stakeholder_coach.providers.oracle.llm_oracle import (
    LLMJudgmentOracle,
    get_judgment_oracle,
)

__all__ = [
    "JudgmentOracle",
    "LLMJudgmentOracle",
    "get_judgment_oracle",
]
