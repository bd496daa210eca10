"""
Reference data endpoints: interview stages and practice scenarios.
"""
from typing import Any, Dict, List

from fastapi import APIRouter

from stakeholder_coach.models.persona import ProjectScenario
from stakeholder_coach.services.scenarios import get_scenario_catalog
from stakeholder_coach.services.stage_registry import get_stage_registry

router = APIRouter(prefix="/api/v1", tags=["reference"])


@router.get("/stages")
async def list_stages() -> List[Dict[str, Any]]:
    """Interview stages in order."""
    return [stage.to_dict() for stage in get_stage_registry().stages]


@router.get("/scenarios", response_model=List[ProjectScenario])
async def list_scenarios():
    """Practice scenarios with their stakeholders."""
    return get_scenario_catalog().list_scenarios()
