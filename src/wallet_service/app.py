from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

import wallet_service.accounts.models  # noqa: F401 - register models with SQLAlchemy metadata
import wallet_service.earnings.models  # noqa: F401
import wallet_service.ledger.models  # noqa: F401
import wallet_service.referrals.models  # noqa: F401
import wallet_service.withdrawals.models  # noqa: F401
from wallet_service.api.errors import EXCEPTION_HANDLERS
from wallet_service.api.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from wallet_service.api.routes import load_routers
from wallet_service.core.config import Settings, get_settings
from wallet_service.core.lifespan import create_lifespan
from wallet_service.core.logging import configure_logging
from wallet_service.observability import configure_sentry


def _register_middlewares(app: FastAPI, settings: Settings) -> None:
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)


def _register_routers(app: FastAPI) -> None:
    for router in load_routers():
        app.include_router(router)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    configure_sentry(
        settings.sentry,
        environment=settings.environment.value,
        release=settings.project_version,
    )

    app = FastAPI(
        title=settings.project_name,
        description=settings.project_description,
        version=settings.project_version,
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None if settings.is_production else settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=create_lifespan(settings),
    )
    app.state.settings = settings
    app.openapi_tags = [
        {"name": "health", "description": "Service health check operations"},
        {"name": "wallet", "description": "Balances and transaction history"},
        {
            "name": "withdrawals",
            "description": "Withdrawal requests, history and cancellation",
        },
        {"name": "referrals", "description": "Referral link and commission earnings"},
        {
            "name": "admin",
            "description": (
                "Withdrawal review, referral level configuration, earnings intake "
                "and balance adjustments. Requires admin role."
            ),
        },
    ]

    for exc_type, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_type, handler)

    _register_middlewares(app, settings)
    _register_routers(app)
    return app
