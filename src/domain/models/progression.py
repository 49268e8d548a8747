"""
Player progression rules: level curve and level-up rewards.

``experience`` on the player is progress into the current level. Gaining
experience may cross several thresholds at once; leftover experience carries
into the next level. At ``max_level`` experience keeps accumulating but no
further levels are granted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from src.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_positive,
)


@dataclass(frozen=True)
class LevelUpResult:
    """
    Outcome of applying experience.

    Attributes
    ----------
    old_level, new_level : int
        Level before and after
    experience : int
        Progress into ``new_level``
    levels_gained : int
        ``new_level - old_level``
    coins_reward : int
        Coins granted for the levels gained
    max_energy_increase : int
        Cap growth granted for the levels gained
    """

    old_level: int
    new_level: int
    experience: int
    levels_gained: int
    coins_reward: int
    max_energy_increase: int

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0


@dataclass(frozen=True)
class ProgressionRules:
    """Level curve and per-level rewards (``progression.*`` in config)."""

    base_experience: int = 100
    experience_multiplier: float = 1.5
    max_level: int = 100
    coins_per_level_up: int = 50
    max_energy_per_level: int = 0

    def __post_init__(self) -> None:
        validate_positive(self.base_experience, "base_experience")
        if self.experience_multiplier < 1:
            raise DomainValidationError(
                f"experience_multiplier must be >= 1, got {self.experience_multiplier}",
                field="experience_multiplier",
            )
        validate_positive(self.max_level, "max_level")
        validate_non_negative(self.coins_per_level_up, "coins_per_level_up")
        validate_non_negative(self.max_energy_per_level, "max_energy_per_level")

    @classmethod
    def from_config(cls, config_manager: Any) -> ProgressionRules:
        defaults = cls()
        return cls(
            base_experience=int(config_manager.get("progression.base_experience", defaults.base_experience)),
            experience_multiplier=float(
                config_manager.get("progression.experience_multiplier", defaults.experience_multiplier)
            ),
            max_level=int(config_manager.get("progression.max_level", defaults.max_level)),
            coins_per_level_up=int(
                config_manager.get("progression.coins_per_level_up", defaults.coins_per_level_up)
            ),
            max_energy_per_level=int(
                config_manager.get("progression.max_energy_per_level", defaults.max_energy_per_level)
            ),
        )

    def experience_to_next(self, level: int) -> int:
        """Experience needed to go from ``level`` to ``level + 1``."""
        validate_positive(level, "level")
        return math.floor(self.base_experience * self.experience_multiplier ** (level - 1))

    def apply_experience(self, level: int, experience: int, gained: int) -> LevelUpResult:
        validate_positive(level, "level")
        validate_non_negative(experience, "experience")
        validate_non_negative(gained, "gained")

        new_level = level
        remaining = experience + gained
        while new_level < self.max_level:
            needed = self.experience_to_next(new_level)
            if remaining < needed:
                break
            remaining -= needed
            new_level += 1

        levels_gained = new_level - level
        return LevelUpResult(
            old_level=level,
            new_level=new_level,
            experience=remaining,
            levels_gained=levels_gained,
            coins_reward=levels_gained * self.coins_per_level_up,
            max_energy_increase=levels_gained * self.max_energy_per_level,
        )
