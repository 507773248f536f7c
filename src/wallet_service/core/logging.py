from __future__ import annotations

import logging
import logging.config
from collections.abc import Mapping
from contextvars import ContextVar
from threading import Lock
from typing import Any

import structlog
import structlog.contextvars
import structlog.stdlib
from structlog.typing import EventDict, Processor, WrappedLogger

from wallet_service.core.config import Environment, Settings
from wallet_service.core.constants import REQUEST_ID_CTX_KEY, SERVICE_NAME

_LOGGING_INITIALISED = False
_LOGGING_LOCK = Lock()
_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar(REQUEST_ID_CTX_KEY, default=None)

# Payout destinations are personal data and never reach the log stream whole.
PAYOUT_DETAIL_KEYS = frozenset({"account_number", "email", "pay_id"})


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return f"{'*' * (len(value) - 4)}{value[-4:]}"


def _mask_nested(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: _mask(str(item)) if key in PAYOUT_DETAIL_KEYS else _mask_nested(item)
            for key, item in value.items()
        }
    return value


def mask_payout_details(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask payout identifiers anywhere in the event, keeping the last four chars."""

    for key, value in list(event_dict.items()):
        if key in PAYOUT_DETAIL_KEYS and value is not None:
            event_dict[key] = _mask(str(value))
        elif isinstance(value, Mapping):
            event_dict[key] = _mask_nested(value)
    return event_dict


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if isinstance(resolved, str):
        return logging.INFO
    return int(resolved)


def _renderer(settings: Settings) -> Processor:
    if settings.environment is Environment.DEVELOPMENT and settings.debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_payout_details,
    ]


def configure_logging(settings: Settings) -> None:
    """Route structlog and stdlib records through one renderer, once per process."""

    global _LOGGING_INITIALISED
    if _LOGGING_INITIALISED:
        return

    with _LOGGING_LOCK:
        if _LOGGING_INITIALISED:
            return

        level = _resolve_level(settings.log_level)
        renderer = _renderer(settings)

        structlog.configure(
            processors=[
                *_pre_chain(),
                structlog.processors.dict_tracebacks,
                renderer,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        quiet = {"handlers": ["default"], "level": logging.WARNING, "propagate": False}
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "wallet": {
                        "()": structlog.stdlib.ProcessorFormatter,
                        "foreign_pre_chain": _pre_chain(),
                        "processors": [
                            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                            renderer,
                        ],
                    }
                },
                "handlers": {
                    "default": {
                        "class": "logging.StreamHandler",
                        "formatter": "wallet",
                        "level": level,
                    }
                },
                "loggers": {
                    "": {"handlers": ["default"], "level": level},
                    "uvicorn.access": {**quiet, "level": level},
                    "sqlalchemy.engine": {
                        **quiet,
                        "level": logging.INFO
                        if settings.database.echo
                        else logging.WARNING,
                    },
                    "aiosqlite": quiet,
                },
            }
        )

        structlog.contextvars.bind_contextvars(service=SERVICE_NAME)
        _LOGGING_INITIALISED = True


def bind_request_context(request_id: str, **kwargs: Any) -> None:
    """Attach the request id (and e.g. the calling user) to every log line."""

    _REQUEST_ID_CTX.set(request_id)
    structlog.contextvars.bind_contextvars(**{REQUEST_ID_CTX_KEY: request_id, **kwargs})


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def get_request_id(default: str | None = None) -> str | None:
    return _REQUEST_ID_CTX.get(default)
