"""
Database Models Package
========================

SQLAlchemy ORM models for Quarry, organized by domain.

- Schema-only, no business logic
- ``Mapped[]`` syntax with ``mapped_column()``
- Mixins from ``src.core.database.base`` (IdMixin, TimestampMixin)
- Version columns on mutable rows
- Storage-level invariants as CHECK constraints and partial unique indexes

Domain Organization:
--------------------
- player: PlayerData (level, coins, energy ledger columns, lifetime stats)
- mining: Scene, AccrualSessionRecord
- enums: Shared string enumerations
"""

from src.core.database.base import Base

from .enums import EnergyPotion, SessionStatus
from .mining import AccrualSessionRecord, Scene
from .player import PlayerData

__all__ = [
    "Base",
    "PlayerData",
    "Scene",
    "AccrualSessionRecord",
    "SessionStatus",
    "EnergyPotion",
]
