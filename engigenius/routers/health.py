"""
routers/health.py
Kubernetes / Docker / load balancer health check.
"""

from fastapi import APIRouter
from engigenius.models.response import HealthResponse
from engigenius.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        version=settings.APP_VERSION,
        model=settings.AI_MODEL,
        record_store=settings.RECORD_STORE,
    )
