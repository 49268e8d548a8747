"""
Energy ledger for Quarry.

Purpose
-------
Lazy, time-based energy regeneration with a hard cap. Nothing ticks in the
background: energy is a pure function of the last materialized amount, its
watermark, and the time asked about.

Responsibilities
----------------
- Compute current (regenerated) energy at any instant
- Materialize regeneration without losing partial-interval progress
- Consume, restore, and raise the cap while keeping 0 <= current <= max

Design Notes
------------
- All energy quantities are ints. Fractional regeneration progress lives in
  ``last_reconciled_at``: reconciling advances the watermark by whole
  recovery intervals only, so two reconciliations that together cover N
  intervals grant the same energy as one.
- A full bar owes nothing. When a reconcile leaves the state full, the
  watermark jumps to ``as_of`` and regeneration restarts from there.
- A time earlier than the watermark counts as zero elapsed time.

Usage Example
-------------
>>> ledger = EnergyLedger(MiningEngineConfig())
>>> state = ledger.reconcile(state, now)
>>> state = ledger.consume(state, 3)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional, Tuple

from src.domain.models.base import (
    DomainValidationError,
    validate_aware,
    validate_non_negative,
    validate_positive,
)
from src.domain.models.engine_config import MiningEngineConfig
from src.modules.shared.exceptions import InsufficientEnergyError


@dataclass(frozen=True)
class PlayerEnergyState:
    """
    Immutable snapshot of a player's energy.

    Attributes
    ----------
    current_energy : int
        Materialized energy, ``0 <= current_energy <= max_energy``
    max_energy : int
        Cap, at least 1
    last_reconciled_at : datetime
        Watermark up to which regeneration has been materialized (UTC)
    """

    current_energy: int
    max_energy: int
    last_reconciled_at: datetime

    def __post_init__(self) -> None:
        validate_positive(self.max_energy, "max_energy")
        validate_non_negative(self.current_energy, "current_energy")
        if self.current_energy > self.max_energy:
            raise DomainValidationError(
                f"current_energy {self.current_energy} exceeds max_energy {self.max_energy}",
                field="current_energy",
            )
        validate_aware(self.last_reconciled_at, "last_reconciled_at")

    @property
    def is_full(self) -> bool:
        return self.current_energy >= self.max_energy


class EnergyLedger:
    """Regeneration rules over ``PlayerEnergyState``. Stateless apart from config."""

    def __init__(self, config: MiningEngineConfig) -> None:
        self._interval = config.recovery_interval
        self._amount = config.recovery_amount_per_interval

    @property
    def recovery_interval(self) -> timedelta:
        return self._interval

    @property
    def recovery_amount(self) -> int:
        return self._amount

    def _elapsed_intervals(self, state: PlayerEnergyState, as_of: datetime) -> int:
        elapsed = as_of - state.last_reconciled_at
        if elapsed <= timedelta(0):
            return 0
        return elapsed // self._interval

    def current_energy(self, state: PlayerEnergyState, as_of: datetime) -> int:
        """Energy the player has at ``as_of``, regeneration included, capped at max."""
        if state.is_full:
            return state.max_energy
        regenerated = self._elapsed_intervals(state, as_of) * self._amount
        return min(state.max_energy, state.current_energy + regenerated)

    def reconcile(self, state: PlayerEnergyState, as_of: datetime) -> PlayerEnergyState:
        """
        Materialize regeneration up to ``as_of``.

        The watermark advances by whole intervals only (never backwards), or
        straight to ``as_of`` when the result is full.
        """
        if state.is_full:
            if as_of > state.last_reconciled_at:
                return replace(state, last_reconciled_at=as_of)
            return state

        intervals = self._elapsed_intervals(state, as_of)
        if intervals == 0:
            return state

        energy = min(state.max_energy, state.current_energy + intervals * self._amount)
        if energy >= state.max_energy:
            return replace(state, current_energy=energy, last_reconciled_at=as_of)
        return replace(
            state,
            current_energy=energy,
            last_reconciled_at=state.last_reconciled_at + intervals * self._interval,
        )

    def consume(self, state: PlayerEnergyState, amount: int) -> PlayerEnergyState:
        """
        Spend ``amount`` of materialized energy. Reconcile first.

        Raises
        ------
        InsufficientEnergyError
            If ``amount`` exceeds the materialized energy
        DomainValidationError
            If ``amount`` is negative
        """
        validate_non_negative(amount, "amount")
        if amount > state.current_energy:
            raise InsufficientEnergyError(required=amount, current=state.current_energy)
        if amount == 0:
            return state
        return replace(state, current_energy=state.current_energy - amount)

    def raise_max(self, state: PlayerEnergyState, delta: int) -> PlayerEnergyState:
        """Grow the cap (level-up). Current energy is left as is."""
        validate_non_negative(delta, "delta")
        if delta == 0:
            return state
        return replace(state, max_energy=state.max_energy + delta)

    def restore(self, state: PlayerEnergyState, amount: int) -> Tuple[PlayerEnergyState, int]:
        """
        Grant up to ``amount`` energy, capped at max.

        Returns the new state and the amount actually restored.
        """
        validate_non_negative(amount, "amount")
        restored = min(amount, state.max_energy - state.current_energy)
        if restored == 0:
            return state, 0
        return replace(state, current_energy=state.current_energy + restored), restored

    def time_to_full(self, state: PlayerEnergyState, as_of: datetime) -> Optional[timedelta]:
        """
        Time until regeneration alone fills the bar.

        Zero when already full at ``as_of``; None when regeneration is
        disabled (recovery amount 0) and the bar is not full.
        """
        current = self.current_energy(state, as_of)
        if current >= state.max_energy:
            return timedelta(0)
        if self._amount == 0:
            return None

        reconciled = self.reconcile(state, as_of)
        missing = state.max_energy - current
        steps = -(-missing // self._amount)
        # Partial progress into the running interval counts toward the first step
        return steps * self._interval - (as_of - reconciled.last_reconciled_at)
