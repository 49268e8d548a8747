"""
Reward generation for mining cycles.

Purpose
-------
Turn a scene and a player level into the coins, experience and items of one
mining cycle. All randomness comes from an injected ``random.Random`` so a
seed reproduces the exact sequence of outcomes.

Design Notes
------------
- Coins and experience scale by +5% per level above the scene's unlock
  level, then by the bonus multiplier when the session has the bonus.
  Each multiplication floors.
- Every rarity tier is an independent trial: one cycle can drop nothing,
  one item, or several items of different rarities.
- Item value = floor(coins_min * tier multiplier * uniform(0.8, 1.2)).
"""

from __future__ import annotations

import math
import random
from typing import Any, List, Optional

from src.core.logging.logger import get_logger
from src.domain.models.accrual import MiningCycleOutcome
from src.domain.models.scene import MinedItem, RarityTier, SceneSnapshot

logger = get_logger(__name__)

DEFAULT_BONUS_MULTIPLIER = 1.2
ITEM_VALUE_SPREAD = (0.8, 1.2)


class RewardRoller:
    """
    Rolls mining cycle outcomes.

    Args:
        rng: Random source; a fresh unseeded ``random.Random`` by default
        bonus_multiplier: Extra reward multiplier for bonus sessions
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        bonus_multiplier: float = DEFAULT_BONUS_MULTIPLIER,
    ) -> None:
        self._rng = rng or random.Random()
        self._bonus_multiplier = bonus_multiplier

    @classmethod
    def seeded(cls, seed: Any, bonus_multiplier: float = DEFAULT_BONUS_MULTIPLIER) -> RewardRoller:
        return cls(random.Random(seed), bonus_multiplier)

    @classmethod
    def from_config(cls, config_manager: Any, rng: Optional[random.Random] = None) -> RewardRoller:
        return cls(
            rng,
            float(config_manager.get("mining.bonus_multiplier", DEFAULT_BONUS_MULTIPLIER)),
        )

    @property
    def bonus_multiplier(self) -> float:
        return self._bonus_multiplier

    def roll_cycle(
        self,
        scene: SceneSnapshot,
        player_level: int,
        bonus_applied: bool = False,
    ) -> MiningCycleOutcome:
        level_bonus = scene.level_bonus(player_level)

        coins = math.floor(self._rng.randint(scene.coins_min, scene.coins_max) * level_bonus)
        experience = math.floor(scene.base_experience * level_bonus)
        if bonus_applied:
            coins = math.floor(coins * self._bonus_multiplier)
            experience = math.floor(experience * self._bonus_multiplier)

        items = tuple(
            self._make_item(scene, tier)
            for tier in scene.drop_table.tiers
            if tier.drop_rate > 0 and self._rng.random() <= tier.drop_rate
        )
        return MiningCycleOutcome(coins=coins, experience=experience, items=items)

    def roll_cycles(
        self,
        scene: SceneSnapshot,
        player_level: int,
        count: int,
        bonus_applied: bool = False,
    ) -> List[MiningCycleOutcome]:
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        outcomes = [self.roll_cycle(scene, player_level, bonus_applied) for _ in range(count)]
        if count:
            logger.debug(
                "Rolled mining cycles",
                extra={
                    "scene_id": scene.scene_id,
                    "player_level": player_level,
                    "cycles": count,
                    "items": sum(len(outcome.items) for outcome in outcomes),
                },
            )
        return outcomes

    def _make_item(self, scene: SceneSnapshot, tier: RarityTier) -> MinedItem:
        base_name = self._rng.choice(scene.item_names)
        prefix = self._rng.choice(tier.prefixes) if tier.prefixes else ""
        spread = self._rng.uniform(*ITEM_VALUE_SPREAD)
        return MinedItem(
            name=f"{prefix} {base_name}" if prefix else base_name,
            rarity=tier.rarity,
            value=math.floor(scene.coins_min * tier.value_multiplier * spread),
        )
