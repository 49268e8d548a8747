"""
Quarry Shared Module

Domain-level foundations for the feature modules:
- BaseService: logging, config access, event emission, input validation
- BaseRepository: type-safe SQLAlchemy access
- Domain exceptions raised to callers

Usage
-----
    from src.modules.shared import BaseService, NoActiveSessionError
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService
from .exceptions import (
    AlreadyActiveError,
    ConfigurationError,
    ErrorSeverity,
    InsufficientEnergyError,
    InsufficientResourcesError,
    LevelTooLowError,
    NoActiveSessionError,
    NotFoundError,
    QuarryDomainException,
    SceneLockedError,
    ValidationError,
    get_error_severity,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "QuarryDomainException",
    "ErrorSeverity",
    "InsufficientResourcesError",
    "InsufficientEnergyError",
    "NotFoundError",
    "ValidationError",
    "AlreadyActiveError",
    "NoActiveSessionError",
    "LevelTooLowError",
    "SceneLockedError",
    "ConfigurationError",
    "get_error_severity",
]
