"""
Auto-mining accrual session aggregate for Quarry.

Purpose
-------
An ``AccrualSession`` converts elapsed wall-clock time into mining cycles,
bounded by the energy the player has. Nothing runs while the player is away:
every replay recomputes from the session's watermark.

Responsibilities
----------------
- Replay elapsed time into rewards (``replay_elapsed``), mutating the session
- Preview the same computation without mutating (``project``)
- Close the session exactly once
- Report duration, item value, and efficiency

Non-Responsibilities
--------------------
- Applying rewards to the player (SessionCoordinator via PlayerRepository)
- Random reward generation (RewardRoller, injected)
- Persistence (SessionRepository)

Design Notes
------------
- States: ACTIVE -> CLOSED, one way. Running out of energy is not a state;
  replays just yield nothing until energy regenerates.
- The watermark advances by whole cycles only. The sub-cycle remainder is
  kept for the next replay, so replaying in pieces matches replaying once.
- Elapsed time per replay is capped at ``max_accrual_hours``; when the cap
  bites, the watermark first jumps to ``now - cap`` so skipped time is never
  owed later.
- Energy is spent at its value *now* (regeneration during the window
  included), never more than the player has.

Usage Example
-------------
>>> energy, delta = session.replay_elapsed(energy, player.level, now, roller, config)
>>> session.close(now)
>>> events = session.clear_domain_events()
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from src.database.models.enums import SessionStatus
from src.domain.models.base import AggregateRoot, validate_aware, validate_non_negative
from src.domain.models.energy import EnergyLedger, PlayerEnergyState
from src.domain.models.scene import MinedItem, SceneSnapshot
from src.modules.shared.exceptions import NoActiveSessionError

if TYPE_CHECKING:
    from src.database.models.mining.accrual_session import AccrualSessionRecord
    from src.domain.models.engine_config import MiningEngineConfig


# ============================================================================
# VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class MiningCycleOutcome:
    """Rewards of a single mining cycle."""

    coins: int
    experience: int
    items: Tuple[MinedItem, ...] = ()

    def __post_init__(self) -> None:
        validate_non_negative(self.coins, "coins")
        validate_non_negative(self.experience, "experience")


@dataclass(frozen=True)
class RewardDelta:
    """
    What one replay produced. Applied to the player as-is.

    Attributes
    ----------
    cycles : int
        Cycles replayed by this call
    coins, experience : int
        Summed cycle rewards
    energy_consumed : int
        ``cycles * energy_cost_per_cycle``
    items : Tuple[MinedItem, ...]
        Items in roll order
    """

    cycles: int = 0
    coins: int = 0
    experience: int = 0
    energy_consumed: int = 0
    items: Tuple[MinedItem, ...] = ()

    @classmethod
    def zero(cls) -> RewardDelta:
        return cls()

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[MiningCycleOutcome], energy_cost: int) -> RewardDelta:
        items: List[MinedItem] = []
        for outcome in outcomes:
            items.extend(outcome.items)
        return cls(
            cycles=len(outcomes),
            coins=sum(outcome.coins for outcome in outcomes),
            experience=sum(outcome.experience for outcome in outcomes),
            energy_consumed=len(outcomes) * energy_cost,
            items=tuple(items),
        )

    @property
    def is_zero(self) -> bool:
        return self.cycles == 0

    @property
    def total_item_value(self) -> int:
        return sum(item.value for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "coins": self.coins,
            "experience": self.experience,
            "energy_consumed": self.energy_consumed,
            "items": [item.to_dict() for item in self.items],
        }


class CycleRoller(Protocol):
    def roll_cycles(
        self, scene: SceneSnapshot, player_level: int, count: int, bonus_applied: bool = False
    ) -> List[MiningCycleOutcome]: ...


@dataclass(frozen=True)
class SessionProjection:
    """Result of ``project``: the delta plus the would-be session and energy."""

    delta: RewardDelta
    energy_state: PlayerEnergyState
    session: AccrualSession = field(compare=False)


# ============================================================================
# AGGREGATE
# ============================================================================


class AccrualSession(AggregateRoot):
    """
    One player's auto-mining session in one scene.

    Mutated only through ``replay_elapsed`` and ``close``.
    """

    def __init__(
        self,
        session_id: Optional[int],
        player_id: int,
        scene: SceneSnapshot,
        started_at: datetime,
        *,
        status: SessionStatus = SessionStatus.ACTIVE,
        ended_at: Optional[datetime] = None,
        last_reconciled_at: Optional[datetime] = None,
        cycles_completed: int = 0,
        accumulated_coins: int = 0,
        accumulated_experience: int = 0,
        energy_consumed: int = 0,
        accumulated_items: Iterable[MinedItem] = (),
        bonus_applied: bool = False,
        version: int = 1,
    ) -> None:
        super().__init__(session_id)
        validate_aware(started_at, "started_at")
        self.player_id = player_id
        self.scene = scene
        self.started_at = started_at
        self.status = status
        self.ended_at = ended_at
        self.last_reconciled_at = last_reconciled_at or started_at
        self.cycles_completed = cycles_completed
        self.accumulated_coins = accumulated_coins
        self.accumulated_experience = accumulated_experience
        self.energy_consumed = energy_consumed
        self.accumulated_items: List[MinedItem] = list(accumulated_items)
        self.bonus_applied = bonus_applied
        self.version = version

    @classmethod
    def start(
        cls,
        player_id: int,
        scene: SceneSnapshot,
        now: datetime,
        bonus_applied: bool = False,
    ) -> AccrualSession:
        """New ACTIVE session with its watermark at ``now``. No energy is taken."""
        return cls(None, player_id, scene, now, bonus_applied=bonus_applied)

    @classmethod
    def from_db(cls, record: AccrualSessionRecord) -> AccrualSession:
        """Rebuild from a row; the scene comes from the row's start-time snapshot."""
        return cls(
            record.id,
            record.player_id,
            SceneSnapshot.from_dict(record.scene_snapshot),
            record.started_at,
            status=SessionStatus(record.status),
            ended_at=record.ended_at,
            last_reconciled_at=record.last_reconciled_at,
            cycles_completed=record.cycles_completed,
            accumulated_coins=record.accumulated_coins,
            accumulated_experience=record.accumulated_experience,
            energy_consumed=record.energy_consumed,
            accumulated_items=[MinedItem.from_dict(item) for item in record.accumulated_items or []],
            bonus_applied=record.bonus_applied,
            version=record.version,
        )

    def to_db_updates(self) -> Dict[str, Any]:
        """Column values to write back to the session row."""
        return {
            "status": self.status.value,
            "ended_at": self.ended_at,
            "last_reconciled_at": self.last_reconciled_at,
            "cycles_completed": self.cycles_completed,
            "accumulated_coins": self.accumulated_coins,
            "accumulated_experience": self.accumulated_experience,
            "energy_consumed": self.energy_consumed,
            "accumulated_items": [item.to_dict() for item in self.accumulated_items],
        }

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def _require_active(self) -> None:
        if not self.is_active:
            raise NoActiveSessionError(self.player_id)

    # ------------------------------------------------------------------ #
    # Replay
    # ------------------------------------------------------------------ #

    def replay_elapsed(
        self,
        energy_state: PlayerEnergyState,
        player_level: int,
        now: datetime,
        roller: CycleRoller,
        config: MiningEngineConfig,
    ) -> Tuple[PlayerEnergyState, RewardDelta]:
        """
        Turn time since the watermark into cycles and apply them here.

        Returns the player's new energy state and the rewards of this call
        only. With no whole cycle elapsed, or too little energy for one, the
        session and energy are returned untouched with ``RewardDelta.zero()``.

        Raises
        ------
        NoActiveSessionError
            If the session is closed
        """
        self._require_active()
        validate_aware(now, "now")

        elapsed = now - self.last_reconciled_at
        if elapsed <= timedelta(0):
            return energy_state, RewardDelta.zero()

        cap = config.max_accrual
        watermark = self.last_reconciled_at
        if elapsed > cap:
            watermark = now - cap
            elapsed = cap

        ledger = EnergyLedger(config)
        cost = self.scene.energy_cost_per_cycle
        possible = elapsed // config.cycle_interval
        affordable = ledger.current_energy(energy_state, now) // cost
        actual = min(possible, affordable)
        if actual <= 0:
            return energy_state, RewardDelta.zero()

        outcomes = roller.roll_cycles(self.scene, player_level, actual, self.bonus_applied)
        delta = RewardDelta.from_outcomes(outcomes, cost)

        new_energy = ledger.consume(ledger.reconcile(energy_state, now), delta.energy_consumed)

        self.last_reconciled_at = watermark + actual * config.cycle_interval
        self.cycles_completed += delta.cycles
        self.accumulated_coins += delta.coins
        self.accumulated_experience += delta.experience
        self.energy_consumed += delta.energy_consumed
        self.accumulated_items.extend(delta.items)

        return new_energy, delta

    def project(
        self,
        energy_state: PlayerEnergyState,
        player_level: int,
        now: datetime,
        roller: CycleRoller,
        config: MiningEngineConfig,
    ) -> SessionProjection:
        """
        ``replay_elapsed`` on a copy. This session is left exactly as it was.
        """
        shadow = copy.deepcopy(self)
        shadow._domain_events = []
        projected_energy, delta = shadow.replay_elapsed(energy_state, player_level, now, roller, config)
        return SessionProjection(delta=delta, energy_state=projected_energy, session=shadow)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self, now: datetime) -> None:
        """
        Mark the session CLOSED. Rewards must already have been replayed.

        Raises
        ------
        NoActiveSessionError
            If already closed
        """
        self._require_active()
        validate_aware(now, "now")
        self.status = SessionStatus.CLOSED
        self.ended_at = now
        self.add_domain_event(
            "mining.session_stopped",
            {
                "player_id": self.player_id,
                "session_id": self.id,
                "scene_id": self.scene.scene_id,
                "cycles_completed": self.cycles_completed,
                "coins": self.accumulated_coins,
                "experience": self.accumulated_experience,
                "items_found": len(self.accumulated_items),
                "duration_seconds": int(self.duration(now).total_seconds()),
            },
        )

    # ------------------------------------------------------------------ #
    # Reporting
    # ------------------------------------------------------------------ #

    def duration(self, now: Optional[datetime] = None) -> timedelta:
        """Time from start to close, or to ``now`` while active."""
        end = self.ended_at if self.ended_at is not None else now
        if end is None:
            raise ValueError("duration of an active session needs 'now'")
        return max(end - self.started_at, timedelta(0))

    @property
    def total_item_value(self) -> int:
        return sum(item.value for item in self.accumulated_items)

    def efficiency(self, now: Optional[datetime] = None) -> int:
        """Coins plus item value per hour of session time, rounded."""
        hours = self.duration(now).total_seconds() / 3600
        if hours <= 0:
            return 0
        return math.floor((self.accumulated_coins + self.total_item_value) / hours + 0.5)

    def __repr__(self) -> str:
        return (
            f"AccrualSession(id={self.id}, player_id={self.player_id}, "
            f"scene_id={self.scene.scene_id}, status={self.status.value}, "
            f"cycles={self.cycles_completed})"
        )
