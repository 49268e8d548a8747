"""
Domain models package for Quarry.

Rich domain models holding the game rules of the mining engine. They are
separate from the SQLAlchemy schemas in ``src/database/models``; services
convert between the two with ``from_db`` / ``to_db_updates``.

- base: Entity, AggregateRoot, DomainEvent, validators
- engine_config: MiningEngineConfig
- energy: PlayerEnergyState, EnergyLedger
- scene: SceneSnapshot, DropTable, RarityTier, MinedItem
- accrual: AccrualSession, RewardDelta, MiningCycleOutcome
- progression: ProgressionRules, LevelUpResult
"""

from .accrual import (
    AccrualSession,
    MiningCycleOutcome,
    RewardDelta,
    SessionProjection,
    SessionStatus,
)
from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_non_negative,
    validate_positive,
    validate_range,
)
from .energy import EnergyLedger, PlayerEnergyState
from .engine_config import MiningEngineConfig
from .progression import LevelUpResult, ProgressionRules
from .scene import DropTable, MinedItem, Rarity, RarityTier, SceneSnapshot

__all__ = [
    # Base
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    "validate_positive",
    "validate_non_negative",
    "validate_range",
    # Engine
    "MiningEngineConfig",
    "PlayerEnergyState",
    "EnergyLedger",
    "Rarity",
    "RarityTier",
    "DropTable",
    "MinedItem",
    "SceneSnapshot",
    "SessionStatus",
    "MiningCycleOutcome",
    "RewardDelta",
    "SessionProjection",
    "AccrualSession",
    "ProgressionRules",
    "LevelUpResult",
]
