from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from wallet_service.core.constants import REQUEST_ID_HEADER, USER_ID_HEADER
from wallet_service.core.logging import bind_request_context, clear_request_context

Logger = structlog.BoundLogger


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tag each request and its log lines with a correlation identifier."""

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(self._header_name) or str(uuid.uuid4())
        context: dict[str, str] = {"request_id": request_id}
        user_id = request.headers.get(USER_ID_HEADER)
        if user_id:
            context["user_id"] = user_id
        bind_request_context(**context)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers[self._header_name] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._logger: Logger = structlog.get_logger("wallet_service.request")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        client = request.client.host if request.client is not None else "unknown"
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception:
            self._logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                client=client,
                duration_ms=round((time.perf_counter() - start) * 1000, 3),
            )
            raise

        self._logger.info(
            "request_completed",
            method=request.method,
            path=path,
            client=client,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return response
