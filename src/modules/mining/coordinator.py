"""
Auto-mining session coordinator.

Purpose
-------
Entry point for auto-mining: start a session, preview it, fold elapsed time
into the player's balances, stop it, and list past sessions.

Responsibilities
----------------
- Check start preconditions in a fixed order before any write
- Run every mutation as one transaction under the player's lock, with the
  player row locked (``SELECT ... FOR UPDATE``)
- Apply replayed rewards and close the session in the same commit
- Publish ``mining.session_started``, ``mining.session_stopped`` and
  ``player.leveled_up`` after commit (best effort)

Design Notes
------------
- Nothing is pre-charged at start. Energy is spent only when elapsed time is
  replayed, so a failed apply rolls back to the old watermark and a retry
  neither loses nor repeats cycles.
- The scene is read from the catalogue once, at start, and stored on the
  session row. Replays, peeks and history use that copy only.
- The partial unique index on ``accrual_sessions`` is the last line of
  defense for "one ACTIVE session per player"; an ``IntegrityError`` on
  insert becomes ``AlreadyActiveError``.
- ``peek_session`` reads without a lock or a transaction commit and uses a
  roller seeded from the session's id and watermark, so repeated peeks at
  the same instant return the same estimate.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext
from src.domain.models.accrual import AccrualSession, RewardDelta
from src.domain.models.energy import EnergyLedger
from src.domain.models.engine_config import MiningEngineConfig
from src.domain.models.progression import LevelUpResult, ProgressionRules
from src.domain.models.scene import DropTable, SceneSnapshot
from src.modules.mining.locks import PlayerLockProvider, build_lock_provider
from src.modules.mining.repository import (
    PlayerDelta,
    PlayerRepository,
    SceneRepository,
    SessionRepository,
)
from src.modules.mining.reward_roller import RewardRoller
from src.modules.mining.views import EstimateView, RewardSummary, SessionHandle, StartRequirements
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import (
    AlreadyActiveError,
    InsufficientEnergyError,
    LevelTooLowError,
    NoActiveSessionError,
    NotFoundError,
    QuarryDomainException,
    SceneLockedError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.database.models.player.player_data import PlayerData
    from src.domain.models.base import DomainEvent


class SessionCoordinator(BaseService):
    """
    Auto-mining session service.

    Args:
        config_manager: Balance config (drop table, progression, locks)
        event_bus: Bus for post-commit notifications
        logger: Structured logger
        engine_config: Timing and gating constants
        roller: Reward roller; built from config when omitted
        lock_provider: Per-player lock; chosen by ``locks.mode`` when omitted
        clock: Source of "now" when callers pass none
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        *,
        engine_config: MiningEngineConfig,
        roller: Optional[RewardRoller] = None,
        lock_provider: Optional[PlayerLockProvider] = None,
        progression: Optional[ProgressionRules] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._engine = engine_config
        self._ledger = EnergyLedger(engine_config)
        self._roller = roller or RewardRoller.from_config(config_manager)
        self._locks = lock_provider or build_lock_provider(config_manager)
        self._progression = progression or ProgressionRules.from_config(config_manager)
        self._clock = clock

        drop_table = DropTable.from_config(self.get_config("mining.rarity", {}))
        self._players = PlayerRepository(self._ledger, logger)
        self._scenes = SceneRepository(drop_table, logger)
        self._sessions = SessionRepository(logger)

    @property
    def engine_config(self) -> MiningEngineConfig:
        return self._engine

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _resolve_now(self, now: Optional[datetime]) -> datetime:
        if now is None:
            return self._clock()
        if now.tzinfo is None or now.utcoffset() is None:
            raise ValidationError("now", "timestamp must be timezone-aware")
        return now

    @asynccontextmanager
    async def _player_operation(
        self, operation: str, player_id: int, *, exclusive: bool = True
    ) -> AsyncIterator[None]:
        """Log context, player lock and error logging around one operation."""
        self.validate_positive_int(player_id, "player_id")
        async with LogContext(player_id=player_id, component="mining", operation=operation):
            try:
                if exclusive:
                    async with self._locks.lock(player_id):
                        yield
                else:
                    yield
            except QuarryDomainException as exc:
                self.log.info(
                    f"{operation} rejected: {exc.error_code}",
                    extra={"player_id": player_id, "error_code": exc.error_code, "details": exc.details},
                )
                raise
            except Exception as exc:
                self.log_error(operation, exc, player_id=player_id)
                raise

    async def _load_player(
        self, session: AsyncSession, player_id: int, for_update: bool = False
    ) -> PlayerData:
        player = await self._players.get(session, player_id, for_update=for_update)
        if player is None:
            raise NotFoundError("Player", player_id)
        return player

    async def _load_scene(self, session: AsyncSession, scene_id: int) -> SceneSnapshot:
        scene = await self._scenes.get_snapshot(session, scene_id)
        if scene is None:
            raise NotFoundError("Scene", scene_id)
        return scene

    async def _publish(self, events: List[DomainEvent], level_up: Optional[LevelUpResult], player_id: int) -> None:
        for event in events:
            await self.emit_event(event.event_name, event.payload)
        if level_up is not None and level_up.leveled_up:
            await self.emit_event(
                "player.leveled_up",
                {
                    "player_id": player_id,
                    "old_level": level_up.old_level,
                    "new_level": level_up.new_level,
                    "coins_reward": level_up.coins_reward,
                    "source": "auto_mining",
                },
            )

    # ------------------------------------------------------------------ #
    # Start
    # ------------------------------------------------------------------ #

    async def start_session(
        self,
        player_id: int,
        scene_id: int,
        now: Optional[datetime] = None,
        bonus_applied: bool = False,
    ) -> SessionHandle:
        """
        Open an ACTIVE session for ``player_id`` in ``scene_id``.

        Raises (checked in this order):
            AlreadyActiveError: The player already has an ACTIVE session
            LevelTooLowError: Below the global auto-mining level
            NotFoundError: Unknown scene (or player)
            SceneLockedError: Scene inactive or above the player's level
            InsufficientEnergyError: Not enough energy for one cycle
        """
        now = self._resolve_now(now)
        self.validate_positive_int(scene_id, "scene_id")

        async with self._player_operation("start_session", player_id):
            async with DatabaseService.get_transaction() as session:
                player = await self._load_player(session, player_id, for_update=True)

                existing = await self._sessions.find_active(session, player_id)
                if existing is not None:
                    raise AlreadyActiveError(player_id, existing.id)

                min_level = self._engine.auto_mining_min_level
                if player.level < min_level:
                    raise LevelTooLowError(required_level=min_level, current_level=player.level)

                scene = await self._load_scene(session, scene_id)
                if not scene.is_active:
                    raise SceneLockedError(scene_id, scene.unlock_level, player.level, reason="inactive")
                if player.level < scene.unlock_level:
                    raise SceneLockedError(scene_id, scene.unlock_level, player.level)

                energy_state = self._players.energy_state(player)
                energy = self._ledger.current_energy(energy_state, now)
                if energy < scene.energy_cost_per_cycle:
                    raise InsufficientEnergyError(required=scene.energy_cost_per_cycle, current=energy)

                accrual = AccrualSession.start(player_id, scene, now, bonus_applied=bonus_applied)
                try:
                    record = await self._sessions.create(session, accrual)
                except IntegrityError as exc:
                    raise AlreadyActiveError(player_id) from exc

                handle = SessionHandle(
                    session_id=record.id,
                    player_id=player_id,
                    scene_id=scene.scene_id,
                    scene_name=scene.name,
                    started_at=now,
                    energy_cost_per_cycle=scene.energy_cost_per_cycle,
                    cycle_interval_ms=self._engine.cycle_interval_ms,
                    current_energy=energy,
                    max_energy=energy_state.max_energy,
                )

            self.log.info(
                f"Auto mining started: player {player_id} in {scene.name}",
                extra={
                    "player_id": player_id,
                    "session_id": handle.session_id,
                    "scene_id": scene_id,
                    "energy": energy,
                    "bonus_applied": bonus_applied,
                },
            )

        await self.emit_event(
            "mining.session_started",
            {
                "player_id": player_id,
                "session_id": handle.session_id,
                "scene_id": scene_id,
                "started_at": now.isoformat(),
            },
        )
        return handle

    # ------------------------------------------------------------------ #
    # Peek
    # ------------------------------------------------------------------ #

    async def peek_session(self, player_id: int, now: Optional[datetime] = None) -> EstimateView:
        """
        Preview the active session (or start eligibility). Never writes.
        """
        now = self._resolve_now(now)

        async with self._player_operation("peek_session", player_id, exclusive=False):
            async with DatabaseService.get_session() as session:
                player = await self._load_player(session, player_id)
                energy_state = self._players.energy_state(player)
                player_level = player.level
                requirements = StartRequirements(
                    min_level=self._engine.auto_mining_min_level,
                    current_level=player_level,
                    current_energy=self._ledger.current_energy(energy_state, now),
                    max_energy=energy_state.max_energy,
                )

                record = await self._sessions.find_active(session, player_id)
                if record is None:
                    return EstimateView.inactive(player_id, now, requirements)

                accrual = AccrualSession.from_db(record)

        roller = RewardRoller.seeded(
            f"{accrual.id}:{accrual.last_reconciled_at.isoformat()}:{accrual.cycles_completed}",
            bonus_multiplier=self._roller.bonus_multiplier,
        )
        projection = accrual.project(energy_state, player_level, now, roller, self._engine)
        projected = projection.session

        return EstimateView(
            player_id=player_id,
            active=True,
            as_of=now,
            requirements=requirements,
            session_id=accrual.id,
            scene_id=accrual.scene.scene_id,
            scene_name=accrual.scene.name,
            started_at=accrual.started_at,
            duration=accrual.duration(now),
            pending=projection.delta,
            projected_cycles=projected.cycles_completed,
            projected_coins=projected.accumulated_coins,
            projected_experience=projected.accumulated_experience,
            projected_items=len(projected.accumulated_items),
            projected_item_value=projected.total_item_value,
            projected_energy=self._ledger.current_energy(projection.energy_state, now),
        )

    # ------------------------------------------------------------------ #
    # Reconcile / Stop
    # ------------------------------------------------------------------ #

    async def _replay_and_apply(
        self,
        session: AsyncSession,
        player_id: int,
        now: datetime,
        close: bool,
    ) -> tuple[AccrualSession, RewardDelta, Optional[LevelUpResult]]:
        player = await self._load_player(session, player_id, for_update=True)
        record = await self._sessions.find_active(session, player_id, for_update=True)
        if record is None:
            raise NoActiveSessionError(player_id)

        accrual = AccrualSession.from_db(record)

        _, delta = accrual.replay_elapsed(
            self._players.energy_state(player), player.level, now, self._roller, self._engine
        )

        level_up: Optional[LevelUpResult] = None
        if not delta.is_zero:
            applied = await self._players.apply_delta(
                session,
                player,
                PlayerDelta(
                    energy_delta=-delta.energy_consumed,
                    coins_delta=delta.coins,
                    experience_delta=delta.experience,
                    mining_count_delta=delta.cycles,
                ),
                now,
                self._progression,
            )
            level_up = applied.level_up

        if close:
            accrual.close(now)
        if close or not delta.is_zero:
            await self._sessions.save(session, record, accrual)

        return accrual, delta, level_up

    async def reconcile_session(self, player_id: int, now: Optional[datetime] = None) -> RewardDelta:
        """
        Fold elapsed time into the player's balances; the session stays open.

        Returns the delta applied by this call (zero when nothing was due).
        """
        now = self._resolve_now(now)

        async with self._player_operation("reconcile_session", player_id):
            async with DatabaseService.get_transaction() as session:
                accrual, delta, level_up = await self._replay_and_apply(session, player_id, now, close=False)

            if not delta.is_zero:
                self.log.debug(
                    "Auto mining reconciled",
                    extra={"player_id": player_id, "session_id": accrual.id, "cycles": delta.cycles},
                )

        await self._publish(accrual.clear_domain_events(), level_up, player_id)
        return delta

    async def stop_session(self, player_id: int, now: Optional[datetime] = None) -> RewardSummary:
        """
        Replay the remaining time, apply it, and close the session.

        Raises:
            NoActiveSessionError: No ACTIVE session (including a second stop)
        """
        now = self._resolve_now(now)

        async with self._player_operation("stop_session", player_id):
            async with DatabaseService.get_transaction() as session:
                accrual, delta, level_up = await self._replay_and_apply(session, player_id, now, close=True)

            summary = RewardSummary.from_session(accrual, delta, level_up)
            self.log.info(
                f"Auto mining stopped: player {player_id}, {summary.cycles} cycles",
                extra={
                    "player_id": player_id,
                    "session_id": summary.session_id,
                    "cycles": summary.cycles,
                    "coins": summary.coins,
                    "experience": summary.experience,
                    "items": len(summary.items),
                    "efficiency": summary.efficiency,
                    "leveled_up": summary.level_up is not None,
                },
            )

        await self._publish(accrual.clear_domain_events(), level_up, player_id)
        return summary

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def get_session_history(
        self, player_id: int, limit: int = 20, offset: int = 0
    ) -> List[RewardSummary]:
        """Closed sessions, newest first."""
        self.validate_range(limit, "limit", 1, int(self.get_config("mining.history.max_limit", 100)))
        self.validate_non_negative_int(offset, "offset")

        async with self._player_operation("get_session_history", player_id, exclusive=False):
            async with DatabaseService.get_session() as session:
                records = await self._sessions.list_closed(session, player_id, limit, offset)

        return [RewardSummary.from_session(AccrualSession.from_db(record)) for record in records]

    async def list_active_player_ids(self) -> List[int]:
        async with DatabaseService.get_session() as session:
            return await self._sessions.list_active_player_ids(session)

    # ------------------------------------------------------------------ #
    # Catalogue
    # ------------------------------------------------------------------ #

    async def sync_scene_catalogue(self, entries: Optional[List[Dict[str, Any]]] = None) -> int:
        """
        Upsert scenes by name from ``entries`` (default: the ``scenes`` config list).

        Returns the number of scenes inserted or changed.
        """
        if entries is None:
            entries = self.get_config("scenes", [])
        if not entries:
            self.log.warning("Scene catalogue is empty; nothing to synchronize")
            return 0

        async with DatabaseService.get_transaction() as session:
            return await self._scenes.upsert_catalogue(session, entries)
