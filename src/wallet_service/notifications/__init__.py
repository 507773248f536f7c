"""Outbound notification events."""

from .emitter import (
    LoggingNotificationEmitter,
    NotificationEmitter,
    NotificationEvent,
    NotificationKind,
    emit_safely,
)

__all__ = [
    "LoggingNotificationEmitter",
    "NotificationEmitter",
    "NotificationEvent",
    "NotificationKind",
    "emit_safely",
]
