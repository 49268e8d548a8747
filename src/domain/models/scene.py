"""
Mining scene value objects.

A ``SceneSnapshot`` is the immutable view of a scene the reward roller works
from: cost, reward ranges, unlock level, and the drop table. Snapshots are
built from the ``scenes`` row plus the rarity tiers in ``config/mining.yaml``
when a session starts, then stored on the session row (``to_dict``) so later
catalogue edits never reach a running or closed session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Tuple

from src.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
    validate_range,
)


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class RarityTier:
    """
    One row of a drop table.

    Attributes
    ----------
    rarity : Rarity
        Tier identity
    drop_rate : float
        Per-cycle probability in [0, 1]
    value_multiplier : float
        Item value multiplier applied to the scene's minimum coin reward
    prefixes : Tuple[str, ...]
        Name prefixes, one chosen at random per drop
    """

    rarity: Rarity
    drop_rate: float
    value_multiplier: float
    prefixes: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_range(self.drop_rate, 0.0, 1.0, "drop_rate")
        if self.value_multiplier < 0:
            raise DomainValidationError(
                f"value_multiplier must be non-negative, got {self.value_multiplier}",
                field="value_multiplier",
            )

    @classmethod
    def from_config(cls, name: str, data: Mapping[str, Any]) -> RarityTier:
        return cls(
            rarity=Rarity(name.lower()),
            drop_rate=float(data["drop_rate"]),
            value_multiplier=float(data["value_multiplier"]),
            prefixes=tuple(data.get("prefixes", ())),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "drop_rate": self.drop_rate,
            "value_multiplier": self.value_multiplier,
            "prefixes": list(self.prefixes),
        }


@dataclass(frozen=True)
class DropTable:
    """Ordered rarity tiers, COMMON first."""

    tiers: Tuple[RarityTier, ...]

    def __post_init__(self) -> None:
        seen = [tier.rarity for tier in self.tiers]
        if len(set(seen)) != len(seen):
            raise DomainValidationError("drop table has duplicate rarity tiers", field="tiers")

    @classmethod
    def from_config(cls, rarities: Mapping[str, Mapping[str, Any]]) -> DropTable:
        """Build from the ``mining.rarity`` config mapping, kept in ``Rarity`` order."""
        by_rarity = {
            Rarity(name.lower()): RarityTier.from_config(name, data)
            for name, data in rarities.items()
        }
        return cls(tiers=tuple(by_rarity[r] for r in Rarity if r in by_rarity))

    @classmethod
    def empty(cls) -> DropTable:
        return cls(tiers=())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Same shape as the ``mining.rarity`` config mapping."""
        return {tier.rarity.value: tier.to_dict() for tier in self.tiers}


@dataclass(frozen=True)
class MinedItem:
    """An item found during a cycle."""

    name: str
    rarity: Rarity
    value: int

    def __post_init__(self) -> None:
        validate_non_negative(self.value, "value")

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "rarity": self.rarity.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MinedItem:
        return cls(name=data["name"], rarity=Rarity(data["rarity"]), value=int(data["value"]))


@dataclass(frozen=True)
class SceneSnapshot:
    """
    Immutable scene configuration for the lifetime of a session.

    Attributes
    ----------
    scene_id : int
        Scene primary key
    name : str
        Display name
    energy_cost_per_cycle : int
        Energy spent by one mining cycle (>= 1)
    coins_min, coins_max : int
        Inclusive coin range per cycle before multipliers
    base_experience : int
        Experience per cycle before multipliers
    unlock_level : int
        Player level needed to mine here
    is_active : bool
        Inactive scenes are locked for everyone
    item_names : Tuple[str, ...]
        Base names for items found here
    drop_table : DropTable
        Rarity tiers rolled every cycle
    """

    scene_id: int
    name: str
    energy_cost_per_cycle: int
    coins_min: int
    coins_max: int
    base_experience: int
    unlock_level: int = 1
    is_active: bool = True
    item_names: Tuple[str, ...] = ()
    drop_table: DropTable = field(default_factory=DropTable.empty)

    def __post_init__(self) -> None:
        validate_not_empty(self.name, "name")
        validate_positive(self.energy_cost_per_cycle, "energy_cost_per_cycle")
        validate_non_negative(self.coins_min, "coins_min")
        validate_non_negative(self.base_experience, "base_experience")
        validate_positive(self.unlock_level, "unlock_level")
        if self.coins_max < self.coins_min:
            raise DomainValidationError(
                f"coins_max {self.coins_max} is below coins_min {self.coins_min}",
                field="coins_max",
            )
        if self.drop_table.tiers and not self.item_names:
            raise DomainValidationError(
                "a scene with a drop table needs at least one item name",
                field="item_names",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene_id": self.scene_id,
            "name": self.name,
            "energy_cost_per_cycle": self.energy_cost_per_cycle,
            "coins_min": self.coins_min,
            "coins_max": self.coins_max,
            "base_experience": self.base_experience,
            "unlock_level": self.unlock_level,
            "is_active": self.is_active,
            "item_names": list(self.item_names),
            "drop_table": self.drop_table.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SceneSnapshot:
        return cls(
            scene_id=int(data["scene_id"]),
            name=data["name"],
            energy_cost_per_cycle=int(data["energy_cost_per_cycle"]),
            coins_min=int(data["coins_min"]),
            coins_max=int(data["coins_max"]),
            base_experience=int(data["base_experience"]),
            unlock_level=int(data.get("unlock_level", 1)),
            is_active=bool(data.get("is_active", True)),
            item_names=tuple(data.get("item_names", ())),
            drop_table=DropTable.from_config(data.get("drop_table") or {}),
        )

    def is_unlocked_for(self, player_level: int) -> bool:
        return self.is_active and player_level >= self.unlock_level

    def level_bonus(self, player_level: int) -> float:
        """5% reward bonus per level above the unlock level."""
        return 1 + 0.05 * max(0, player_level - self.unlock_level)

