"""
Mining engine configuration value object.

The engine never reads global settings. Services build one
``MiningEngineConfig`` at construction (normally ``from_settings(Config)``)
and pass it down to the ledger and the session replay.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from src.domain.models.base import validate_non_negative, validate_positive


@dataclass(frozen=True)
class MiningEngineConfig:
    """
    Timing and gating constants of the accrual engine.

    Attributes
    ----------
    recovery_interval_ms : int
        Milliseconds of elapsed time per regeneration step
    recovery_amount_per_interval : int
        Energy granted per regeneration step
    cycle_interval_ms : int
        Milliseconds of session time per mining cycle
    max_accrual_hours : float
        Cap on elapsed time counted by a single replay
    auto_mining_min_level : int
        Global player level gate for starting a session
    """

    recovery_interval_ms: int = 300_000
    recovery_amount_per_interval: int = 1
    cycle_interval_ms: int = 10_000
    max_accrual_hours: float = 24
    auto_mining_min_level: int = 5

    def __post_init__(self) -> None:
        validate_positive(self.recovery_interval_ms, "recovery_interval_ms")
        validate_non_negative(self.recovery_amount_per_interval, "recovery_amount_per_interval")
        validate_positive(self.cycle_interval_ms, "cycle_interval_ms")
        validate_positive(self.max_accrual_hours, "max_accrual_hours")
        validate_positive(self.auto_mining_min_level, "auto_mining_min_level")

    @property
    def recovery_interval(self) -> timedelta:
        return timedelta(milliseconds=self.recovery_interval_ms)

    @property
    def cycle_interval(self) -> timedelta:
        return timedelta(milliseconds=self.cycle_interval_ms)

    @property
    def max_accrual(self) -> timedelta:
        return timedelta(hours=self.max_accrual_hours)

    @classmethod
    def from_settings(cls, settings: Any) -> MiningEngineConfig:
        """Build from the ``Config`` class (or any object with the same attributes)."""
        return cls(
            recovery_interval_ms=settings.ENERGY_RECOVERY_INTERVAL_MS,
            recovery_amount_per_interval=settings.ENERGY_RECOVERY_AMOUNT,
            cycle_interval_ms=settings.AUTO_MINING_INTERVAL_MS,
            max_accrual_hours=settings.MAX_OFFLINE_HOURS,
            auto_mining_min_level=settings.AUTO_MINING_MIN_LEVEL,
        )
