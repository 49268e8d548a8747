"""
Player Data Model
==================

Game state of a player in Quarry.

Schema-only representation of:
- Progression (level, experience into the current level)
- Wallet (coins)
- Energy ledger columns (current, max, regeneration watermark)
- Lifetime statistics

All behavior and game rules live in service/domain layers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.config.config import Config
from src.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime, utc_now


class PlayerData(Base, IdMixin, TimestampMixin):
    """
    Per-player game state.

    ``current_energy`` is the amount materialized at
    ``energy_last_reconciled_at``; the live amount is derived by the energy
    ledger from the elapsed time.
    """

    # ========================================================================
    # TABLE CONFIGURATION
    # ========================================================================

    __tablename__ = "player_data"
    __table_args__ = (
        CheckConstraint(
            "current_energy >= 0 AND current_energy <= max_energy",
            name="energy_within_cap",
        ),
        CheckConstraint("max_energy >= 1", name="max_energy_positive"),
        CheckConstraint("level >= 1", name="level_positive"),
        CheckConstraint("coins >= 0", name="coins_non_negative"),
        Index("ix_player_data_external_id", "external_id", unique=True),
        Index("ix_player_data_level", "level"),
    )

    # ========================================================================
    # IDENTITY
    # ========================================================================

    external_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        doc="Account identifier from the auth service (opaque)",
    )

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Optimistic locking version for concurrent updates",
    )

    # ========================================================================
    # PROGRESSION
    # ========================================================================

    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Current player level",
    )

    experience: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Experience accumulated toward the next level",
    )

    coins: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=100,
        doc="Spendable coins",
    )

    # ========================================================================
    # ENERGY
    # ========================================================================

    current_energy: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: Config.INITIAL_ENERGY,
        doc="Energy materialized at energy_last_reconciled_at",
    )

    max_energy: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: Config.MAX_ENERGY,
        doc="Energy cap",
    )

    energy_last_reconciled_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
        doc="Regeneration watermark (UTC)",
    )

    # ========================================================================
    # LIFETIME STATISTICS
    # ========================================================================

    total_mining_count: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Mining cycles completed across all sessions",
    )

    total_coins_earned: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Coins earned from mining and level-ups",
    )

    total_experience_gained: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Experience earned across all sources",
    )

    highest_level_reached: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Highest level ever reached",
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerData(id={self.id}, level={self.level}, coins={self.coins}, "
            f"energy={self.current_energy}/{self.max_energy})>"
        )
