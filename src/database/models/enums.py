"""
Database Model Enums
====================

Categorical values stored in string columns. Shared by the schema and the
domain layer so both agree on the stored spelling.
"""

from __future__ import annotations

import enum


class SessionStatus(str, enum.Enum):
    """
    Lifecycle of an auto-mining session.

    ACTIVE -> CLOSED only. At most one ACTIVE row per player.
    """

    ACTIVE = "active"
    CLOSED = "closed"


class EnergyPotion(str, enum.Enum):
    """Energy potion sizes sold by the shop. Restore amounts live in config."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    FULL = "full"
