"""Error tracking for the wallet service."""

from .sentry import capture_exception, configure_sentry

__all__ = ["capture_exception", "configure_sentry"]
