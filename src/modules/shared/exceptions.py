"""
Domain exceptions for the Quarry mining backend.

Purpose
-------
Define the structured exception hierarchy raised by services for business
rule violations and player-facing errors. HTTP controllers (outside this
package) translate these into responses via ``to_dict()``.

Design Notes
------------
- All domain exceptions inherit from ``QuarryDomainException``.
- Each exception carries:
  - ``message``: human-readable description
  - ``details``: structured context (required vs. current values, ids)
  - ``severity``: ``ErrorSeverity`` for logging decisions
  - ``is_retryable``: whether the same call may succeed later unchanged
  - ``error_code``: short, stable identifier for programmatic use
- Precondition failures (already active, level too low, scene locked,
  insufficient energy, no active session) are INFO severity: they are normal
  client outcomes, not server faults. Races on the single-active-session rule
  surface as these same errors.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class QuarryDomainException(Exception):
    """
    Base exception for all Quarry domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r})"
        )


class InsufficientResourcesError(QuarryDomainException):
    """
    Raised when a player lacks a resource required for an action.

    Args:
        resource: Name of the resource type (e.g., "energy", "coins")
        required: Amount required for the action
        current: Amount player currently has
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource: str, required: int, current: int) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        super().__init__(
            f"Insufficient {resource}: need {required:,}, have {current:,}",
            details={
                "resource": resource,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code=f"INSUFFICIENT_{resource.upper()}",
        )


class InsufficientEnergyError(InsufficientResourcesError):
    """
    Energy shortfall. Retryable: regeneration alone will eventually cover it.
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, required: int, current: int) -> None:
        super().__init__("energy", required, current)


class NotFoundError(QuarryDomainException):
    """
    Raised when a requested entity cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Player", "Scene")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(QuarryDomainException):
    """Raised when caller input fails validation."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class AlreadyActiveError(QuarryDomainException):
    """
    Raised when a player already has an active auto-mining session.

    Also produced when two concurrent starts race and the storage uniqueness
    rule rejects the loser.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, player_id: int, session_id: Optional[int] = None) -> None:
        self.player_id = player_id
        self.session_id = session_id
        super().__init__(
            "Auto mining is already active",
            details={"player_id": player_id, "session_id": session_id},
            error_code="AUTO_MINING_ALREADY_ACTIVE",
        )


class NoActiveSessionError(QuarryDomainException):
    """Raised when stopping or reconciling without an active session."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, player_id: int) -> None:
        self.player_id = player_id
        super().__init__(
            "No active auto mining session",
            details={"player_id": player_id},
            error_code="NO_ACTIVE_SESSION",
        )


class LevelTooLowError(QuarryDomainException):
    """
    Raised when the player is below the global auto-mining unlock level.

    Args:
        required_level: Minimum level for the feature
        current_level: Player's level
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, required_level: int, current_level: int) -> None:
        self.required_level = required_level
        self.current_level = current_level
        super().__init__(
            f"Auto mining unlocks at level {required_level} (current level {current_level})",
            details={"required_level": required_level, "current_level": current_level},
            error_code="AUTO_MINING_NOT_UNLOCKED",
        )


class SceneLockedError(QuarryDomainException):
    """
    Raised when a scene is unavailable to the player.

    ``reason`` is "level" when the player is under the scene's unlock level and
    "inactive" when the scene is disabled for everyone.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(
        self,
        scene_id: int,
        required_level: int,
        current_level: int,
        reason: str = "level",
    ) -> None:
        self.scene_id = scene_id
        self.required_level = required_level
        self.current_level = current_level
        self.reason = reason
        if reason == "inactive":
            message = f"Scene {scene_id} is not available"
        else:
            message = f"Scene {scene_id} unlocks at level {required_level} (current level {current_level})"
        super().__init__(
            message,
            details={
                "scene_id": scene_id,
                "required_level": required_level,
                "current_level": current_level,
                "reason": reason,
            },
            error_code="SCENE_LOCKED",
        )


class ConfigurationError(QuarryDomainException):
    """Raised when a required configuration value is missing or malformed."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message, details={"config_key": key}, error_code="CONFIGURATION_ERROR")


def get_error_severity(exc: BaseException) -> ErrorSeverity:
    """Severity for logging; unknown exceptions count as ERROR."""
    if isinstance(exc, QuarryDomainException):
        return exc.severity
    return ErrorSeverity.ERROR
