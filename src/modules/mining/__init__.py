"""
Auto-mining module.

- SessionCoordinator: start / peek / reconcile / stop / history
- RewardRoller: per-cycle rewards from an injected random source
- AccrualSweep: optional periodic reconcile of ACTIVE sessions
- Repositories and per-player lock providers
"""

from .coordinator import SessionCoordinator
from .locks import LocalPlayerLockProvider, PlayerLockProvider, RedisPlayerLockProvider, build_lock_provider
from .repository import AppliedDelta, PlayerDelta, PlayerRepository, SceneRepository, SessionRepository
from .reward_roller import RewardRoller
from .sweep import AccrualSweep
from .views import EstimateView, RewardSummary, SessionHandle, StartRequirements

__all__ = [
    "SessionCoordinator",
    "RewardRoller",
    "AccrualSweep",
    "PlayerLockProvider",
    "LocalPlayerLockProvider",
    "RedisPlayerLockProvider",
    "build_lock_provider",
    "PlayerRepository",
    "SceneRepository",
    "SessionRepository",
    "PlayerDelta",
    "AppliedDelta",
    "SessionHandle",
    "StartRequirements",
    "EstimateView",
    "RewardSummary",
]
