"""
Accrual Session Model
======================

Persisted auto-mining sessions.

Schema-only representation of:
- Owner, scene, lifecycle status and timestamps
- The scene as it was at start (JSON), so catalogue edits never reach it
- Replay watermark (last_reconciled_at)
- Running totals and the ordered list of items found (JSON)

The "one ACTIVE session per player" rule is a partial unique index, so a
concurrent second start fails at flush time even if both requests passed
their precondition checks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.core.database.base import Base, IdMixin, TimestampMixin, UTCDateTime
from src.database.models.enums import SessionStatus


class AccrualSessionRecord(Base, IdMixin, TimestampMixin):
    """Row behind the ``AccrualSession`` aggregate."""

    # ========================================================================
    # TABLE CONFIGURATION
    # ========================================================================

    __tablename__ = "accrual_sessions"
    __table_args__ = (
        Index(
            "uq_accrual_sessions_one_active_per_player",
            "player_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_accrual_sessions_player_history", "player_id", "status", "ended_at"),
        Index("ix_accrual_sessions_status", "status"),
        CheckConstraint("status IN ('active', 'closed')", name="status_valid"),
        CheckConstraint(
            "cycles_completed >= 0 AND accumulated_coins >= 0 "
            "AND accumulated_experience >= 0 AND energy_consumed >= 0",
            name="totals_non_negative",
        ),
        CheckConstraint("last_reconciled_at >= started_at", name="watermark_after_start"),
    )

    # ========================================================================
    # OWNERSHIP & LIFECYCLE
    # ========================================================================

    player_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("player_data.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning player",
    )

    scene_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("scenes.id", ondelete="RESTRICT"),
        nullable=False,
        doc="Scene being mined",
    )

    scene_snapshot: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        doc="Scene cost, rewards and drop table as of session start",
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SessionStatus.ACTIVE.value,
        doc="active | closed",
    )

    started_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        doc="Session start (UTC)",
    )

    ended_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(),
        nullable=True,
        doc="Close time, NULL while active",
    )

    last_reconciled_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        doc="Replay watermark; time before it has been converted into cycles",
    )

    bonus_applied: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether the reward bonus multiplier applies to this session",
    )

    version: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        doc="Optimistic locking version for concurrent updates",
    )

    # ========================================================================
    # TOTALS
    # ========================================================================

    cycles_completed: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Cycles replayed so far",
    )

    accumulated_coins: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Coins earned so far",
    )

    accumulated_experience: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Experience earned so far",
    )

    energy_consumed: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Energy spent so far",
    )

    accumulated_items: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=list,
        doc="Items found, in roll order: [{name, rarity, value}, ...]",
    )

    def __repr__(self) -> str:
        return (
            f"<AccrualSessionRecord(id={self.id}, player_id={self.player_id}, "
            f"status={self.status}, cycles={self.cycles_completed})>"
        )
