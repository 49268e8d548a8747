"""
Scene Model
============

Mining locations. Read-mostly configuration seeded by operators.

Schema-only representation of:
- Cost and reward ranges per mining cycle
- Unlock level and ordering
- Per-scene item names for drops (JSON list)

Rarity tiers are global and live in ``config/mining.yaml``.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.core.database.base import Base, IdMixin, TimestampMixin


class Scene(Base, IdMixin, TimestampMixin):
    """A mining location."""

    # ========================================================================
    # TABLE CONFIGURATION
    # ========================================================================

    __tablename__ = "scenes"
    __table_args__ = (
        CheckConstraint("energy_cost >= 1", name="energy_cost_positive"),
        CheckConstraint("coins_min >= 0 AND coins_max >= coins_min", name="coin_range_valid"),
        CheckConstraint("unlock_level >= 1", name="unlock_level_positive"),
        Index("ix_scenes_name", "name", unique=True),
        Index("ix_scenes_active_order", "is_active", "unlock_order"),
    )

    # ========================================================================
    # IDENTITY
    # ========================================================================

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Display name",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Flavor text",
    )

    # ========================================================================
    # GAMEPLAY
    # ========================================================================

    unlock_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Player level needed to mine here",
    )

    energy_cost: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Energy spent per mining cycle",
    )

    coins_min: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Minimum coins per cycle before multipliers",
    )

    coins_max: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Maximum coins per cycle before multipliers",
    )

    base_experience: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Experience per cycle before multipliers",
    )

    unlock_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Display order in scene lists",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        doc="Inactive scenes cannot be mined by anyone",
    )

    item_names: Mapped[List[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=list,
        doc="Base item names for drops found here",
    )

    def __repr__(self) -> str:
        return f"<Scene(id={self.id}, name={self.name!r}, unlock_level={self.unlock_level})>"
