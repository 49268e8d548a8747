"""
Database subsystem for Quarry.

Provides the async SQLAlchemy engine, session management, and the ORM base
classes and mixins used by model definitions.
"""

from src.core.database.base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    utc_now,
)
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "UTCDateTime",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
