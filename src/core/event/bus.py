"""
Quarry EventBus: async pub/sub with tiered concurrency.

Purpose
-------
Decouple the mining engine from whatever pushes updates to players (socket
gateway, analytics, achievements). Services publish; adapters subscribe.

Responsibilities
----------------
- Register/unregister listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners according to the tiered concurrency model:
  * CRITICAL / HIGH: sequential, ordered, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: one failing listener never blocks the others and never
  reaches the publisher

Design Notes
------------
- Instance-based so tests can build a private bus.
- Listener timeouts come from ConfigManager (``events.listener_timeout_seconds``).
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional

from src.core.config.config_manager import ConfigManager
from src.core.event.errors import handle_listener_error
from src.core.event.router import EventRouter
from src.core.event.types import CallbackType, EventListener, EventPayload, ListenerPriority
from src.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Tiered async EventBus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("mining.*", on_mining_event, priority=ListenerPriority.LOW)
    >>> await bus.publish("mining.session_stopped", {"player_id": 7})
    """

    def __init__(
        self,
        router: Optional[EventRouter] = None,
        *,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._router = router or EventRouter()
        self._listeners: dict[str, list[EventListener]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._published: dict[str, int] = {}
        self._errors: dict[str, int] = {}

        if listener_timeout_seconds is None:
            listener_timeout_seconds = float(
                ConfigManager.get("events.listener_timeout_seconds", 5.0)
            )
        self._timeout = listener_timeout_seconds

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return
        if len(sig.parameters) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(sig.parameters)} for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """Subscribe ``callback`` to an event name or wildcard pattern."""
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda item: item.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [item for item in bucket if item.identifier != identifier]
        removed = len(remaining) != len(bucket)
        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)
        return removed

    def clear(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _collect(self, event_name: str) -> list[EventListener]:
        matched: list[EventListener] = []
        for pattern, bucket in list(self._listeners.items()):
            if not self._router.matches(event_name, pattern):
                continue
            matched.extend(bucket)
            one_shots = {item.identifier for item in bucket if item.once}
            if one_shots:
                # Pruned before execution so a slow listener can't fire twice
                kept = [item for item in bucket if item.identifier not in one_shots]
                if kept:
                    self._listeners[pattern] = kept
                else:
                    self._listeners.pop(pattern, None)
        matched.sort(key=lambda item: item.priority.value)
        return matched

    async def _invoke(self, event_name: str, listener: EventListener, payload: EventPayload) -> Any:
        try:
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    async def _invoke_with_timeout(
        self, event_name: str, listener: EventListener, payload: EventPayload
    ) -> Any:
        try:
            return await asyncio.wait_for(self._invoke(event_name, listener, payload), self._timeout)
        except asyncio.TimeoutError as exc:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            handle_listener_error(logger=logger, event_name=event_name, listener=listener, exc=exc)
            return None

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns results from CRITICAL/HIGH/NORMAL listeners. LOW listeners run
        in the background and are not included.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1
        listeners = self._collect(event_name)

        with LogContext(operation=f"event:{event_name}", player_id=data.get("player_id")):
            logger.debug(
                "EventBus: publishing event",
                extra={"event_name": event_name, "listener_count": len(listeners)},
            )

            if not listeners:
                return []

            results: list[Any] = []
            ordered = [
                item
                for item in listeners
                if item.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH)
            ]
            concurrent = [item for item in listeners if item.priority is ListenerPriority.NORMAL]
            background = [item for item in listeners if item.priority is ListenerPriority.LOW]

            for listener in ordered:
                results.append(await self._invoke_with_timeout(event_name, listener, data))

            if concurrent:
                results.extend(
                    await asyncio.gather(
                        *(self._invoke(event_name, item, data) for item in concurrent)
                    )
                )

            for listener in background:
                task = asyncio.create_task(self._invoke(event_name, listener, data))
                self._background.add(task)
                task.add_done_callback(self._background.discard)

            return results

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority tasks (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return sum(
            len(bucket)
            for pattern, bucket in self._listeners.items()
            if self._router.matches(event_name, pattern)
        )

    def get_metrics_summary(self) -> dict[str, Any]:
        return {
            "total_events_published": sum(self._published.values()),
            "events_by_type": dict(self._published),
            "total_errors": sum(self._errors.values()),
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
        }
