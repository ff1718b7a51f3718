"""Health check and metrics endpoints."""

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from core.observability.metrics import get_metrics


SERVICE_NAME = "compute-worker"
SERVICE_VERSION = "0.3.0"

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    worker: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Static liveness payload."""
    return HealthResponse(status="ok", worker=SERVICE_NAME, version=SERVICE_VERSION)


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """Per-operation counters and timings since process start."""
    return get_metrics().get_summary()
