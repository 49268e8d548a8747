"""
Event system for Quarry.

Exposes the process-wide ``event_bus`` singleton plus the types needed to
subscribe to it.
"""

from .bus import EventBus
from .router import EventRouter
from .types import CallbackType, EventListener, EventPayload, ListenerPriority

# Global runtime singleton EventBus
event_bus = EventBus()

__all__ = [
    "event_bus",
    "EventBus",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
