"""
Health check endpoints.
"""
from fastapi import APIRouter
from pydantic import BaseModel

from stakeholder_coach.providers.oracle import get_judgment_oracle
from stakeholder_coach.services.session_store import get_session_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    oracle: bool
    session_store: bool
    version: str = "0.1.0"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Check the health of all system components.
    """
    oracle_ok = await get_judgment_oracle().health_check()
    store_ok = await get_session_store().health_check()

    overall_status = "healthy" if (oracle_ok and store_ok) else "degraded"

    return HealthResponse(
        status=overall_status,
        oracle=oracle_ok,
        session_store=store_ok,
    )


@router.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Stakeholder Interview Coach",
        "version": "0.1.0",
        "docs": "/docs",
    }
