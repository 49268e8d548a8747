"""
Repositories for the mining engine.

Purpose
-------
Data access for players, scenes and accrual sessions, plus the conversions
between rows and domain objects.

Design Notes
------------
- No commits here; callers own the transaction.
- ``PlayerRepository.apply_delta`` is the single place player rows change
  during mining. It reconciles energy to ``now`` first, so the energy
  delta lands on exactly the state the session replay computed.
- Level-ups are applied inside ``apply_delta`` so they commit together with
  the rewards that caused them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional

from src.database.models.enums import SessionStatus
from src.database.models.mining.accrual_session import AccrualSessionRecord
from src.database.models.mining.scene import Scene
from src.database.models.player.player_data import PlayerData
from src.domain.models.accrual import AccrualSession
from src.domain.models.energy import EnergyLedger, PlayerEnergyState
from src.domain.models.progression import LevelUpResult, ProgressionRules
from src.domain.models.scene import DropTable, SceneSnapshot
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


# ============================================================================
# PLAYER
# ============================================================================


@dataclass(frozen=True)
class PlayerDelta:
    """
    Change requested on a player row.

    ``energy_delta`` < 0 consumes, > 0 restores (capped at max).
    """

    energy_delta: int = 0
    coins_delta: int = 0
    experience_delta: int = 0
    mining_count_delta: int = 0


@dataclass(frozen=True)
class AppliedDelta:
    """What ``apply_delta`` actually did."""

    energy_state: PlayerEnergyState
    energy_restored: int
    level_up: LevelUpResult
    coins: int


class PlayerRepository(BaseRepository[PlayerData]):
    def __init__(self, ledger: EnergyLedger, logger: Logger) -> None:
        super().__init__(PlayerData, logger)
        self._ledger = ledger

    @staticmethod
    def energy_state(player: PlayerData) -> PlayerEnergyState:
        return PlayerEnergyState(
            current_energy=player.current_energy,
            max_energy=player.max_energy,
            last_reconciled_at=player.energy_last_reconciled_at,
        )

    @staticmethod
    def write_energy(player: PlayerData, state: PlayerEnergyState) -> None:
        player.current_energy = state.current_energy
        player.max_energy = state.max_energy
        player.energy_last_reconciled_at = state.last_reconciled_at

    async def apply_delta(
        self,
        session: AsyncSession,
        player: PlayerData,
        delta: PlayerDelta,
        now: datetime,
        progression: ProgressionRules,
    ) -> AppliedDelta:
        """
        Apply ``delta`` to ``player`` (already row-locked by the caller).

        Raises:
            InsufficientEnergyError: If ``energy_delta`` consumes more than
                the player has at ``now``
        """
        state = self._ledger.reconcile(self.energy_state(player), now)
        restored = 0
        if delta.energy_delta < 0:
            state = self._ledger.consume(state, -delta.energy_delta)
        elif delta.energy_delta > 0:
            state, restored = self._ledger.restore(state, delta.energy_delta)

        level_up = progression.apply_experience(player.level, player.experience, delta.experience_delta)
        if level_up.max_energy_increase:
            state = self._ledger.raise_max(state, level_up.max_energy_increase)

        coins_gained = max(delta.coins_delta, 0) + level_up.coins_reward
        player.coins = player.coins + delta.coins_delta + level_up.coins_reward
        player.level = level_up.new_level
        player.experience = level_up.experience
        player.highest_level_reached = max(player.highest_level_reached, level_up.new_level)
        player.total_coins_earned += coins_gained
        player.total_experience_gained += delta.experience_delta
        player.total_mining_count += delta.mining_count_delta
        self.write_energy(player, state)
        player.version += 1

        await self.flush(session)

        self.log.debug(
            "Player delta applied",
            extra={
                "player_id": player.id,
                "energy_delta": delta.energy_delta,
                "coins_delta": delta.coins_delta,
                "experience_delta": delta.experience_delta,
                "mining_count_delta": delta.mining_count_delta,
                "levels_gained": level_up.levels_gained,
            },
        )
        return AppliedDelta(
            energy_state=state,
            energy_restored=restored,
            level_up=level_up,
            coins=player.coins,
        )


# ============================================================================
# SCENE
# ============================================================================

_SCENE_COLUMNS = (
    "description",
    "unlock_level",
    "energy_cost",
    "coins_min",
    "coins_max",
    "base_experience",
    "unlock_order",
    "is_active",
    "item_names",
)


class SceneRepository(BaseRepository[Scene]):
    """Scene rows combined with the global drop table into snapshots."""

    def __init__(self, drop_table: DropTable, logger: Logger) -> None:
        super().__init__(Scene, logger)
        self._drop_table = drop_table

    def to_snapshot(self, row: Scene) -> SceneSnapshot:
        return SceneSnapshot(
            scene_id=row.id,
            name=row.name,
            energy_cost_per_cycle=row.energy_cost,
            coins_min=row.coins_min,
            coins_max=row.coins_max,
            base_experience=row.base_experience,
            unlock_level=row.unlock_level,
            is_active=row.is_active,
            item_names=tuple(row.item_names or ()),
            drop_table=self._drop_table if row.item_names else DropTable.empty(),
        )

    async def get_snapshot(self, session: AsyncSession, scene_id: int) -> Optional[SceneSnapshot]:
        row = await self.get(session, scene_id)
        return self.to_snapshot(row) if row is not None else None

    async def upsert_catalogue(self, session: AsyncSession, entries: Iterable[Mapping[str, Any]]) -> int:
        """
        Insert or update scenes by name from the ``scenes`` config list.

        Every entry is validated as a ``SceneSnapshot`` first, so a bad
        catalogue fails before anything is written. Returns the number of
        rows inserted or changed.
        """
        entries = list(entries)
        for entry in entries:
            SceneSnapshot(
                scene_id=0,
                name=entry["name"],
                energy_cost_per_cycle=int(entry["energy_cost"]),
                coins_min=int(entry["coins_min"]),
                coins_max=int(entry["coins_max"]),
                base_experience=int(entry["base_experience"]),
                unlock_level=int(entry.get("unlock_level", 1)),
                item_names=tuple(entry.get("item_names", ())),
                drop_table=self._drop_table,
            )

        changed = 0
        for entry in entries:
            values = {column: entry[column] for column in _SCENE_COLUMNS if column in entry}
            row = await self.find_one_where(session, Scene.name == entry["name"])
            if row is None:
                self.add(session, Scene(name=entry["name"], **values))
                changed += 1
                continue
            if any(getattr(row, column) != value for column, value in values.items()):
                for column, value in values.items():
                    setattr(row, column, value)
                changed += 1

        await self.flush(session)
        self.log.info(
            "Scene catalogue synchronized",
            extra={"scenes": len(entries), "changed": changed},
        )
        return changed


# ============================================================================
# SESSION
# ============================================================================


class SessionRepository(BaseRepository[AccrualSessionRecord]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(AccrualSessionRecord, logger)

    async def find_active(
        self,
        session: AsyncSession,
        player_id: int,
        for_update: bool = False,
    ) -> Optional[AccrualSessionRecord]:
        return await self.find_one_where(
            session,
            AccrualSessionRecord.player_id == player_id,
            AccrualSessionRecord.status == SessionStatus.ACTIVE.value,
            for_update=for_update,
        )

    async def create(self, session: AsyncSession, accrual: AccrualSession) -> AccrualSessionRecord:
        """
        Insert a new session and flush to obtain its id.

        Raises:
            IntegrityError: If the player already has an ACTIVE session
        """
        record = AccrualSessionRecord(
            player_id=accrual.player_id,
            scene_id=accrual.scene.scene_id,
            scene_snapshot=accrual.scene.to_dict(),
            started_at=accrual.started_at,
            bonus_applied=accrual.bonus_applied,
            version=accrual.version,
            **accrual.to_db_updates(),
        )
        self.add(session, record)
        await self.flush(session)
        return record

    async def save(
        self,
        session: AsyncSession,
        record: AccrualSessionRecord,
        accrual: AccrualSession,
    ) -> AccrualSessionRecord:
        """Write the aggregate's state back to its row and bump the version."""
        for column, value in accrual.to_db_updates().items():
            setattr(record, column, value)
        record.version += 1
        accrual.version = record.version
        await self.flush(session)
        return record

    async def list_closed(
        self,
        session: AsyncSession,
        player_id: int,
        limit: int,
        offset: int = 0,
    ) -> List[AccrualSessionRecord]:
        """Closed sessions, newest first."""
        return await self.find_many_where(
            session,
            AccrualSessionRecord.player_id == player_id,
            AccrualSessionRecord.status == SessionStatus.CLOSED.value,
            order_by=[AccrualSessionRecord.ended_at.desc(), AccrualSessionRecord.id.desc()],
            limit=limit,
            offset=offset,
        )

    async def list_active_player_ids(self, session: AsyncSession) -> List[int]:
        records = await self.find_many_where(
            session,
            AccrualSessionRecord.status == SessionStatus.ACTIVE.value,
            order_by=[AccrualSessionRecord.player_id],
        )
        return [record.player_id for record in records]
