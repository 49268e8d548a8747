"""Listener error isolation for the EventBus."""

from __future__ import annotations

from logging import Logger

from src.core.event.types import EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """
    Log a listener failure with full context. Never raises.

    One failing listener must not prevent the others from running, and must
    never propagate back into the publisher.
    """
    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
