"""
Health check endpoint.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from consultlog.api.dependencies import get_store
from consultlog.shared.config import settings
from consultlog.store.consultations import ConsultationStore

router = APIRouter(tags=["health"])

# Track startup time for uptime
_start_time: Optional[float] = None


def set_start_time(t: float):
    """Set application start time."""
    global _start_time
    _start_time = t


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    store_connected: bool
    default_model: str
    uptime_seconds: float


@router.get("/health", response_model=HealthResponse)
async def health_check(store: ConsultationStore = Depends(get_store)):
    """Service health: store reachability, configured model, uptime."""
    store_connected = store.ping()

    uptime_seconds = 0.0
    if _start_time:
        uptime_seconds = round(time.time() - _start_time, 2)

    return HealthResponse(
        status="healthy" if store_connected else "degraded",
        store_connected=store_connected,
        default_model=settings.llm.default_model,
        uptime_seconds=uptime_seconds,
    )
