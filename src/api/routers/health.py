"""
Health Check Endpoints

Provides health checks for the authoring API.
Used by monitoring systems and load balancers.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.deps import get_session_registry
from src.api.services.session_registry import SessionRegistry


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    active_sessions: int


@router.get("/health", response_model=HealthResponse)
def health_check(registry: SessionRegistry = Depends(get_session_registry)):
    """
    Basic health check endpoint.

    Returns 200 OK if the API is running.
    Does not call the content backend.
    """
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        active_sessions=len(registry),
    )
