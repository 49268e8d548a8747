"""
Base domain model classes for Quarry.

Purpose
-------
Foundations for the rich domain models: identity-bearing entities, aggregate
roots that collect domain events, and the validation helpers value objects
call from ``__post_init__``.

Responsibilities
----------------
- Entity identity and equality semantics
- Domain event collection on aggregates
- Invariant validation raising ``DomainValidationError``

Non-Responsibilities
--------------------
- Persistence (repositories)
- Event publication (services drain ``clear_domain_events`` into the bus)

Design Notes
------------
Value objects in this package are ``@dataclass(frozen=True)`` types that
validate in ``__post_init__`` and return new instances from their methods.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change recorded by an aggregate.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "mining.session_stopped")
    payload : Dict[str, Any]
        Event payload
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same id are the same entity. Unsaved entities carry
    ``id is None`` and compare by object identity until persisted.
    """

    def __init__(self, entity_id: Optional[int]) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Optional[int]:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return False
        if self._id is None or other._id is None:
            return self is other
        return type(self) is type(other) and self._id == other._id

    def __hash__(self) -> int:
        if self._id is None:
            return id(self)
        return hash((type(self).__name__, self._id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published after the state change commits.

        Examples
        --------
        >>> self.add_domain_event("mining.session_stopped", {
        ...     "player_id": self.player_id,
        ...     "cycles": self.cycles_completed,
        ... })
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all pending domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Consistency boundary for domain operations.

    All mutations of the aggregate go through its methods, which keep the
    aggregate's invariants and record domain events.
    """

    pass


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Raised when a domain invariant would be broken.

    Parameters
    ----------
    message : str
        Human-readable error message
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    """Raise ``DomainValidationError`` unless ``value > 0``."""
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    """Raise ``DomainValidationError`` unless ``value >= 0``."""
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_range(value: float, min_val: float, max_val: float, field_name: str) -> None:
    """Raise ``DomainValidationError`` unless ``min_val <= value <= max_val``."""
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


def validate_not_empty(value: str, field_name: str) -> None:
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )


def validate_aware(value: datetime, field_name: str) -> None:
    """All engine timestamps are timezone-aware UTC."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise DomainValidationError(
            f"{field_name} must be timezone-aware, got naive {value.isoformat()}",
            field=field_name,
        )
