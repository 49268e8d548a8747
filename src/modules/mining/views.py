"""
Read models returned by the mining coordinator.

Plain frozen dataclasses with ``to_dict()`` for the HTTP layer. They carry
no behavior and never reach back into the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from src.domain.models.accrual import AccrualSession, RewardDelta
from src.domain.models.progression import LevelUpResult
from src.domain.models.scene import MinedItem


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class SessionHandle:
    """Returned by ``start_session``."""

    session_id: int
    player_id: int
    scene_id: int
    scene_name: str
    started_at: datetime
    energy_cost_per_cycle: int
    cycle_interval_ms: int
    current_energy: int
    max_energy: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "player_id": self.player_id,
            "scene_id": self.scene_id,
            "scene_name": self.scene_name,
            "started_at": _iso(self.started_at),
            "energy_cost_per_cycle": self.energy_cost_per_cycle,
            "cycle_interval_ms": self.cycle_interval_ms,
            "current_energy": self.current_energy,
            "max_energy": self.max_energy,
        }


@dataclass(frozen=True)
class StartRequirements:
    """What a player needs to start auto mining, and what they have."""

    min_level: int
    current_level: int
    current_energy: int
    max_energy: int

    @property
    def level_ok(self) -> bool:
        return self.current_level >= self.min_level


@dataclass(frozen=True)
class EstimateView:
    """
    Non-mutating preview of an auto-mining session.

    With no active session only ``can_start`` and ``requirements`` are
    meaningful.
    """

    player_id: int
    active: bool
    as_of: datetime
    requirements: StartRequirements
    session_id: Optional[int] = None
    scene_id: Optional[int] = None
    scene_name: Optional[str] = None
    started_at: Optional[datetime] = None
    duration: timedelta = timedelta(0)
    pending: RewardDelta = field(default_factory=RewardDelta.zero)
    projected_cycles: int = 0
    projected_coins: int = 0
    projected_experience: int = 0
    projected_items: int = 0
    projected_item_value: int = 0
    projected_energy: int = 0

    @property
    def can_start(self) -> bool:
        return not self.active and self.requirements.level_ok

    @classmethod
    def inactive(cls, player_id: int, as_of: datetime, requirements: StartRequirements) -> EstimateView:
        return cls(
            player_id=player_id,
            active=False,
            as_of=as_of,
            requirements=requirements,
            projected_energy=requirements.current_energy,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "player_id": self.player_id,
            "active": self.active,
            "as_of": _iso(self.as_of),
            "can_start": self.can_start,
            "requirements": {
                "min_level": self.requirements.min_level,
                "current_level": self.requirements.current_level,
                "current_energy": self.requirements.current_energy,
                "max_energy": self.requirements.max_energy,
            },
        }
        if self.active:
            data.update(
                {
                    "session_id": self.session_id,
                    "scene_id": self.scene_id,
                    "scene_name": self.scene_name,
                    "started_at": _iso(self.started_at),
                    "duration_seconds": int(self.duration.total_seconds()),
                    "pending": self.pending.to_dict(),
                    "projected": {
                        "cycles": self.projected_cycles,
                        "coins": self.projected_coins,
                        "experience": self.projected_experience,
                        "items": self.projected_items,
                        "item_value": self.projected_item_value,
                        "energy": self.projected_energy,
                    },
                }
            )
        return data


@dataclass(frozen=True)
class RewardSummary:
    """Whole-session totals of a closed session."""

    session_id: int
    player_id: int
    scene_id: int
    scene_name: str
    started_at: datetime
    ended_at: Optional[datetime]
    duration: timedelta
    cycles: int
    coins: int
    experience: int
    energy_consumed: int
    items: Tuple[MinedItem, ...]
    total_item_value: int
    efficiency: int
    final_delta: RewardDelta = field(default_factory=RewardDelta.zero)
    level_up: Optional[LevelUpResult] = None

    @classmethod
    def from_session(
        cls,
        session: AccrualSession,
        final_delta: Optional[RewardDelta] = None,
        level_up: Optional[LevelUpResult] = None,
    ) -> RewardSummary:
        return cls(
            session_id=session.id,
            player_id=session.player_id,
            scene_id=session.scene.scene_id,
            scene_name=session.scene.name,
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration=session.duration(),
            cycles=session.cycles_completed,
            coins=session.accumulated_coins,
            experience=session.accumulated_experience,
            energy_consumed=session.energy_consumed,
            items=tuple(session.accumulated_items),
            total_item_value=session.total_item_value,
            efficiency=session.efficiency(),
            final_delta=final_delta or RewardDelta.zero(),
            level_up=level_up if level_up is not None and level_up.leveled_up else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "player_id": self.player_id,
            "scene_id": self.scene_id,
            "scene_name": self.scene_name,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "duration_seconds": int(self.duration.total_seconds()),
            "cycles": self.cycles,
            "coins": self.coins,
            "experience": self.experience,
            "energy_consumed": self.energy_consumed,
            "items": [item.to_dict() for item in self.items],
            "total_item_value": self.total_item_value,
            "efficiency": self.efficiency,
            "level_up": (
                {
                    "old_level": self.level_up.old_level,
                    "new_level": self.level_up.new_level,
                    "coins_reward": self.level_up.coins_reward,
                }
                if self.level_up
                else None
            ),
        }
