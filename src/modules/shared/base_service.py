"""
Base Service Foundation

Purpose
-------
Provides the foundational class for domain services. Services implement
business logic, open transactions through DatabaseService, enforce business
rules, and emit events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access
- Best-effort event emission
- Input validation helpers raising ``ValidationError``

What this class does NOT do:
- Manage database transactions (DatabaseService's job)
- Hold game rules (domain models' job)

Usage
-----
    class SessionCoordinator(BaseService):
        def __init__(self, config_manager, event_bus, logger, ...):
            super().__init__(config_manager, event_bus, logger)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from src.modules.shared.exceptions import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Balance configuration (class or instance with ``get``)
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and the key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Publish an event. Never raises.

        Publication is a notification, not part of the state change: a failing
        bus is logged and reported through the return value only.
        """
        try:
            await self._events.publish(event_type, {**data, **(context or {})})
            return True
        except Exception as exc:
            self.log.warning(
                f"Event publication failed: {event_type}",
                extra={
                    "event_name": event_type,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
                exc_info=True,
            )
            return False

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
            exc_info=True,
        )

    def validate_positive_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(name, f"{name} must be a positive integer, got {value}")

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(name, f"{name} must be a non-negative integer, got {value}")

    def validate_range(self, value: int, name: str, min_val: int, max_val: int) -> None:
        if not (min_val <= value <= max_val):
            raise ValidationError(
                name, f"{name} must be between {min_val} and {max_val}, got {value}"
            )
