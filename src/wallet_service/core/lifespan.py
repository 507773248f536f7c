from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from starlette.types import Lifespan

from wallet_service.core.config import Settings
from wallet_service.db.session import dispose_engine, get_engine


def create_lifespan(settings: Settings) -> Lifespan[FastAPI]:
    logger = structlog.get_logger(__name__).bind(environment=settings.environment)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("application_startup")
        get_engine(settings)
        try:
            yield
        finally:
            await dispose_engine()
            logger.info("application_shutdown")

    return lifespan
