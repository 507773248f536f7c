from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from wallet_service.core.config import Settings, get_settings
from wallet_service.core.constants import API_PREFIX, SERVICE_NAME

router = APIRouter(prefix=f"{API_PREFIX}/health", tags=["health"])
logger = structlog.get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["ok", "error"]
    service: str
    version: str
    timestamp: datetime
    environment: str

    model_config = ConfigDict(extra="ignore")


@router.get("", response_model=HealthResponse, summary="Service health check")
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    logger.debug("health_check")
    return HealthResponse(
        status="ok",
        service=SERVICE_NAME,
        version=settings.project_version,
        timestamp=datetime.now(UTC),
        environment=settings.environment.value,
    )
