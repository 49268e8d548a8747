"""
Energy service.

Purpose
-------
Player-facing energy operations outside of auto mining: status with time to
full, materializing regeneration on demand, and energy potions.

Design Notes
------------
- Reads compute regeneration on the fly and never write.
- Writes go through ``PlayerRepository`` under the same per-player lock the
  mining coordinator uses, so a potion cannot interleave with a stop.
- Potion restore amounts come from ``energy.potions.<size>`` in config.
  Payment is the shop's concern.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext
from src.database.models.enums import EnergyPotion
from src.domain.models.energy import EnergyLedger, PlayerEnergyState
from src.domain.models.engine_config import MiningEngineConfig
from src.domain.models.progression import ProgressionRules
from src.modules.mining.locks import PlayerLockProvider, build_lock_provider
from src.modules.mining.repository import PlayerDelta, PlayerRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus

DEFAULT_POTION_AMOUNTS: Dict[EnergyPotion, int] = {
    EnergyPotion.SMALL: 10,
    EnergyPotion.MEDIUM: 25,
    EnergyPotion.LARGE: 50,
    EnergyPotion.FULL: 100,
}


@dataclass(frozen=True)
class EnergyStatus:
    player_id: int
    current_energy: int
    max_energy: int
    recovery_amount: int
    recovery_interval: timedelta
    time_to_full: Optional[timedelta]
    as_of: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "current_energy": self.current_energy,
            "max_energy": self.max_energy,
            "recovery_amount": self.recovery_amount,
            "recovery_interval_seconds": int(self.recovery_interval.total_seconds()),
            "time_to_full_seconds": (
                int(self.time_to_full.total_seconds()) if self.time_to_full is not None else None
            ),
            "as_of": self.as_of.isoformat(),
        }


@dataclass(frozen=True)
class PotionResult:
    player_id: int
    potion: EnergyPotion
    restored: int
    current_energy: int
    max_energy: int


class EnergyService(BaseService):
    """Energy status, manual recovery, and potions."""

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        engine_config: MiningEngineConfig,
        lock_provider: Optional[PlayerLockProvider] = None,
        progression: Optional[ProgressionRules] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = EnergyLedger(engine_config)
        self._locks = lock_provider or build_lock_provider(config_manager)
        self._progression = progression or ProgressionRules.from_config(config_manager)
        self._clock = clock
        self._players = PlayerRepository(self._ledger, logger)

    def _resolve_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return self._clock()
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValidationError("now", "timestamp must be timezone-aware")
        return now

    def potion_amount(self, potion: EnergyPotion) -> int:
        amount = int(self.get_config(f"energy.potions.{potion.value}", DEFAULT_POTION_AMOUNTS[potion]))
        self.validate_positive_int(amount, f"energy.potions.{potion.value}")
        return amount

    async def get_energy_status(self, player_id: int, now: Optional[datetime] = None) -> EnergyStatus:
        now = self._resolve_now(now)
        self.validate_positive_int(player_id, "player_id")

        async with DatabaseService.get_session() as session:
            player = await self._players.get(session, player_id)
            if player is None:
                raise NotFoundError("Player", player_id)
            state = self._players.energy_state(player)

        return EnergyStatus(
            player_id=player_id,
            current_energy=self._ledger.current_energy(state, now),
            max_energy=state.max_energy,
            recovery_amount=self._ledger.recovery_amount,
            recovery_interval=self._ledger.recovery_interval,
            time_to_full=self._ledger.time_to_full(state, now),
            as_of=now,
        )

    async def recover_energy(self, player_id: int, now: Optional[datetime] = None) -> int:
        """Materialize regeneration up to ``now``. Returns the energy gained."""
        now = self._resolve_now(now)
        self.validate_positive_int(player_id, "player_id")

        async with LogContext(player_id=player_id, component="energy", operation="recover_energy"):
            async with self._locks.lock(player_id):
                try:
                    async with DatabaseService.get_transaction() as session:
                        player = await self._players.get(session, player_id, for_update=True)
                        if player is None:
                            raise NotFoundError("Player", player_id)

                        before: PlayerEnergyState = self._players.energy_state(player)
                        after = self._ledger.reconcile(before, now)
                        if after != before:
                            self._players.write_energy(player, after)
                            player.version += 1
                            await self._players.flush(session)
                except NotFoundError:
                    raise
                except Exception as exc:
                    self.log_error("recover_energy", exc, player_id=player_id)
                    raise

        recovered = after.current_energy - before.current_energy
        if recovered:
            self.log.debug(
                "Energy recovered",
                extra={"player_id": player_id, "recovered": recovered, "energy": after.current_energy},
            )
        return recovered

    async def use_energy_potion(
        self,
        player_id: int,
        potion: Union[EnergyPotion, str],
        now: Optional[datetime] = None,
    ) -> PotionResult:
        """
        Restore energy from a potion, capped at max.

        A potion used on a full bar restores nothing and is not an error.
        """
        now = self._resolve_now(now)
        self.validate_positive_int(player_id, "player_id")
        try:
            potion = EnergyPotion(potion)
        except ValueError:
            raise ValidationError("potion", f"unknown potion '{potion}'") from None
        amount = self.potion_amount(potion)

        async with LogContext(player_id=player_id, component="energy", operation="use_energy_potion"):
            async with self._locks.lock(player_id):
                try:
                    async with DatabaseService.get_transaction() as session:
                        player = await self._players.get(session, player_id, for_update=True)
                        if player is None:
                            raise NotFoundError("Player", player_id)
                        applied = await self._players.apply_delta(
                            session, player, PlayerDelta(energy_delta=amount), now, self._progression
                        )
                except NotFoundError:
                    raise
                except Exception as exc:
                    self.log_error("use_energy_potion", exc, player_id=player_id, potion=potion.value)
                    raise

        result = PotionResult(
            player_id=player_id,
            potion=potion,
            restored=applied.energy_restored,
            current_energy=applied.energy_state.current_energy,
            max_energy=applied.energy_state.max_energy,
        )
        self.log_operation(
            "use_energy_potion",
            player_id=player_id,
            potion=potion.value,
            restored=result.restored,
            energy=result.current_energy,
        )
        await self.emit_event(
            "energy.restored",
            {
                "player_id": player_id,
                "potion": potion.value,
                "restored": result.restored,
                "current_energy": result.current_energy,
                "max_energy": result.max_energy,
            },
        )
        return result
