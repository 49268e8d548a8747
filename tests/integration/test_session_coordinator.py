"""
Integration Tests for SessionCoordinator
========================================

Purpose
-------
Drive the auto-mining lifecycle end to end through the real
``DatabaseService`` on a throwaway SQLite database.

Test Coverage
-------------
- Start preconditions and their order
- Offline replay on stop, applied exactly once
- Scene frozen at start; failed applies leave the session untouched
- Reconcile + stop equivalence
- Non-mutating peek
- Level-ups from mining rewards
- History, catalogue sync, sweep
- Same-player concurrency
- Post-commit events

Testing Strategy
----------------
- Scenes without item names have no drop table, so rewards are exact
- Scene unlock level equal to the player level keeps the level bonus at 1
"""

import asyncio

import pytest
from sqlalchemy import select, update

from src.core.database.service import DatabaseService
from src.database.models.mining.accrual_session import AccrualSessionRecord
from src.database.models.mining.scene import Scene
from src.domain.models.engine_config import MiningEngineConfig
from src.modules.mining.repository import PlayerRepository
from src.modules.mining.sweep import AccrualSweep
from src.modules.shared.exceptions import (
    AlreadyActiveError,
    InsufficientEnergyError,
    LevelTooLowError,
    NoActiveSessionError,
    NotFoundError,
    SceneLockedError,
    ValidationError,
)
from tests.conftest import T0, at, load_player


@pytest.fixture
def engine_config() -> MiningEngineConfig:
    # 3 s cycles
    return MiningEngineConfig(cycle_interval_ms=3000)


async def session_rows(player_id: int):
    async with DatabaseService.get_session() as session:
        result = await session.execute(
            select(AccrualSessionRecord).where(AccrualSessionRecord.player_id == player_id)
        )
        return list(result.scalars().all())


async def edit_scene(scene_id: int, **values) -> None:
    async with DatabaseService.get_transaction() as session:
        await session.execute(update(Scene).where(Scene.id == scene_id).values(**values))


# ============================================================================
# START
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestStartSession:
    async def test_start_returns_handle_without_charging_energy(self, coordinator, make_player, make_scene):
        # Arrange
        player_id = await make_player(level=10, current_energy=40)
        scene_id = await make_scene(unlock_level=10)

        # Act
        handle = await coordinator.start_session(player_id, scene_id, now=T0)

        # Assert
        assert handle.player_id == player_id
        assert handle.scene_id == scene_id
        assert handle.current_energy == 40
        assert handle.cycle_interval_ms == 3000
        player = await load_player(player_id)
        assert player.current_energy == 40

    async def test_second_start_is_rejected(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene()
        handle = await coordinator.start_session(player_id, scene_id, now=T0)

        with pytest.raises(AlreadyActiveError) as exc_info:
            await coordinator.start_session(player_id, scene_id, now=at(seconds=5))

        assert exc_info.value.session_id == handle.session_id
        assert len(await session_rows(player_id)) == 1

    async def test_level_gate(self, coordinator, make_player, make_scene):
        player_id = await make_player(level=4)
        scene_id = await make_scene()

        with pytest.raises(LevelTooLowError) as exc_info:
            await coordinator.start_session(player_id, scene_id, now=T0)

        assert exc_info.value.details == {"required_level": 5, "current_level": 4}

    async def test_level_gate_is_checked_before_scene_lookup(self, coordinator, make_player):
        player_id = await make_player(level=1)

        with pytest.raises(LevelTooLowError):
            await coordinator.start_session(player_id, 999, now=T0)

    async def test_unknown_scene(self, coordinator, make_player, database):
        player_id = await make_player()

        with pytest.raises(NotFoundError) as exc_info:
            await coordinator.start_session(player_id, 999, now=T0)

        assert exc_info.value.error_code == "SCENE_NOT_FOUND"

    async def test_unknown_player(self, coordinator, database):
        with pytest.raises(NotFoundError) as exc_info:
            await coordinator.start_session(12345, 1, now=T0)

        assert exc_info.value.error_code == "PLAYER_NOT_FOUND"

    async def test_inactive_scene(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene(is_active=False)

        with pytest.raises(SceneLockedError) as exc_info:
            await coordinator.start_session(player_id, scene_id, now=T0)

        assert exc_info.value.reason == "inactive"

    async def test_scene_above_player_level(self, coordinator, make_player, make_scene):
        player_id = await make_player(level=10)
        scene_id = await make_scene(name="Gold Mine", unlock_level=20, energy_cost=5)

        with pytest.raises(SceneLockedError) as exc_info:
            await coordinator.start_session(player_id, scene_id, now=T0)

        assert exc_info.value.details["required_level"] == 20

    async def test_not_enough_energy_for_one_cycle(self, coordinator, make_player, make_scene):
        player_id = await make_player(current_energy=4)
        scene_id = await make_scene(energy_cost=5)

        with pytest.raises(InsufficientEnergyError) as exc_info:
            await coordinator.start_session(player_id, scene_id, now=T0)

        assert exc_info.value.details["current"] == 4
        assert await session_rows(player_id) == []

    async def test_regenerated_energy_counts_at_start(self, coordinator, make_player, make_scene):
        # 4 materialized + 1 regenerated after 5 minutes
        player_id = await make_player(current_energy=4)
        scene_id = await make_scene(energy_cost=5)

        handle = await coordinator.start_session(player_id, scene_id, now=at(minutes=5))

        assert handle.current_energy == 5

    async def test_naive_timestamp_rejected(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene()

        with pytest.raises(ValidationError):
            await coordinator.start_session(player_id, scene_id, now=T0.replace(tzinfo=None))

    async def test_concurrent_starts_yield_one_session(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene()

        results = await asyncio.gather(
            coordinator.start_session(player_id, scene_id, now=T0),
            coordinator.start_session(player_id, scene_id, now=T0),
            return_exceptions=True,
        )

        assert sum(isinstance(result, AlreadyActiveError) for result in results) == 1
        assert len(await session_rows(player_id)) == 1


# ============================================================================
# STOP
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestStopSession:
    async def test_offline_scenario(self, coordinator, make_player, make_scene):
        """Level 10, cost 1, 3 s cycles, 100/100 energy, stop at 310 s."""
        # Arrange
        player_id = await make_player(level=10, coins=100, current_energy=100, max_energy=100)
        scene_id = await make_scene(unlock_level=10, energy_cost=1, coins_min=10, coins_max=10, base_experience=5)
        await coordinator.start_session(player_id, scene_id, now=T0)

        # Act
        summary = await coordinator.stop_session(player_id, now=at(milliseconds=310_000))

        # Assert
        assert summary.cycles == 100
        assert summary.coins == 1000
        assert summary.experience == 500
        assert summary.energy_consumed == 100
        assert summary.final_delta.cycles == 100
        assert summary.level_up is None

        player = await load_player(player_id)
        assert player.current_energy == 0
        assert player.coins == 1100
        assert player.experience == 500
        assert player.total_mining_count == 100
        assert player.total_coins_earned == 1000

        (record,) = await session_rows(player_id)
        assert record.status == "closed"
        assert record.ended_at == at(milliseconds=310_000)
        assert record.last_reconciled_at == at(milliseconds=300_000)

    async def test_second_stop_raises_and_changes_nothing(self, coordinator, make_player, make_scene):
        # Arrange
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(player_id, scene_id, now=T0)
        await coordinator.stop_session(player_id, now=at(minutes=1))
        before = await load_player(player_id)

        # Act
        with pytest.raises(NoActiveSessionError):
            await coordinator.stop_session(player_id, now=at(minutes=10))

        # Assert
        after = await load_player(player_id)
        assert (after.coins, after.experience, after.current_energy, after.version) == (
            before.coins,
            before.experience,
            before.current_energy,
            before.version,
        )

    async def test_scene_edits_do_not_reach_running_session(self, coordinator, make_player, make_scene):
        # Arrange
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10, energy_cost=1, coins_min=10, coins_max=10)
        await coordinator.start_session(player_id, scene_id, now=T0)
        await edit_scene(scene_id, energy_cost=5, coins_min=100, coins_max=100)

        # Act
        summary = await coordinator.stop_session(player_id, now=at(seconds=30))

        # Assert: costs and rewards as of start
        assert summary.cycles == 10
        assert summary.coins == 100
        assert summary.energy_consumed == 10
        player = await load_player(player_id)
        assert player.current_energy == 90
        assert player.coins == 200

    async def test_failed_apply_leaves_session_active(self, coordinator, make_player, make_scene, mocker):
        # Arrange
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(player_id, scene_id, now=T0)
        mocker.patch.object(
            PlayerRepository, "apply_delta", side_effect=RuntimeError("connection lost")
        )

        # Act
        with pytest.raises(RuntimeError):
            await coordinator.stop_session(player_id, now=at(seconds=30))

        # Assert: nothing moved
        (record,) = await session_rows(player_id)
        assert record.status == "active"
        assert record.last_reconciled_at == T0
        assert record.cycles_completed == 0
        player = await load_player(player_id)
        assert player.coins == 100
        assert player.current_energy == 100
        assert player.energy_last_reconciled_at == T0

        # Act: retry once the store is back
        mocker.stopall()
        summary = await coordinator.stop_session(player_id, now=at(seconds=30))

        # Assert: the full reward, once
        assert summary.cycles == 10
        assert summary.coins == 100
        player = await load_player(player_id)
        assert player.coins == 200
        assert player.current_energy == 90
        (record,) = await session_rows(player_id)
        assert record.status == "closed"

    async def test_stop_without_session(self, coordinator, make_player):
        player_id = await make_player()

        with pytest.raises(NoActiveSessionError):
            await coordinator.stop_session(player_id, now=T0)

    async def test_stop_bounded_by_energy(self, coordinator, make_player, make_scene):
        player_id = await make_player(current_energy=10)
        scene_id = await make_scene(unlock_level=10, energy_cost=3)
        await coordinator.start_session(player_id, scene_id, now=T0)

        summary = await coordinator.stop_session(player_id, now=at(seconds=60))

        assert summary.cycles == 3
        player = await load_player(player_id)
        assert player.current_energy == 1

    async def test_reconcile_then_stop_matches_single_stop(self, coordinator, make_player, make_scene):
        # Arrange
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(player_id, scene_id, now=T0)

        # Act
        partial = await coordinator.reconcile_session(player_id, now=at(seconds=31))
        again = await coordinator.reconcile_session(player_id, now=at(seconds=31))
        summary = await coordinator.stop_session(player_id, now=at(milliseconds=310_000))

        # Assert
        assert partial.cycles == 10
        assert again.is_zero
        assert summary.final_delta.cycles == 90
        assert summary.cycles == 100
        player = await load_player(player_id)
        assert player.coins == 1100
        assert player.current_energy == 0

    async def test_stop_levels_up_player(self, coordinator, make_player, make_scene, captured_events):
        # Arrange: level 5 needs 506 experience; 100 cycles x 5 + 10 = 510
        player_id = await make_player(level=5, experience=10, coins=100)
        scene_id = await make_scene(unlock_level=5)
        await coordinator.start_session(player_id, scene_id, now=T0)

        # Act
        summary = await coordinator.stop_session(player_id, now=at(seconds=300))

        # Assert
        assert summary.level_up is not None
        assert summary.level_up.new_level == 6
        player = await load_player(player_id)
        assert player.level == 6
        assert player.experience == 4
        assert player.coins == 100 + 1000 + 50
        assert player.highest_level_reached == 6
        assert captured_events["player.leveled_up"][0]["new_level"] == 6

    async def test_events_after_commit(self, coordinator, make_player, make_scene, captured_events):
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)

        handle = await coordinator.start_session(player_id, scene_id, now=T0)
        await coordinator.stop_session(player_id, now=at(seconds=30))

        assert captured_events["mining.session_started"][0]["session_id"] == handle.session_id
        stopped = captured_events["mining.session_stopped"][0]
        assert stopped["session_id"] == handle.session_id
        assert stopped["cycles_completed"] == 10

    async def test_concurrent_stops_apply_once(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(player_id, scene_id, now=T0)

        results = await asyncio.gather(
            coordinator.stop_session(player_id, now=at(seconds=30)),
            coordinator.stop_session(player_id, now=at(seconds=30)),
            return_exceptions=True,
        )

        assert sum(isinstance(result, NoActiveSessionError) for result in results) == 1
        player = await load_player(player_id)
        assert player.total_mining_count == 10


# ============================================================================
# PEEK
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestPeekSession:
    async def test_peek_without_session(self, coordinator, make_player):
        player_id = await make_player(level=3, current_energy=20)

        view = await coordinator.peek_session(player_id, now=T0)

        assert not view.active
        assert not view.can_start
        assert view.requirements.min_level == 5
        assert view.to_dict()["requirements"]["current_energy"] == 20

    async def test_peek_is_repeatable_and_read_only(self, coordinator, make_player, make_scene):
        # Arrange
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10, item_names=["Copper Ore", "Coal"])
        await coordinator.start_session(player_id, scene_id, now=T0)
        before = await load_player(player_id)

        # Act
        first = await coordinator.peek_session(player_id, now=at(seconds=90))
        second = await coordinator.peek_session(player_id, now=at(seconds=90))

        # Assert
        assert first == second
        assert first.active
        assert first.pending.cycles == 30
        assert first.projected_energy == 70
        assert first.duration.total_seconds() == 90
        after = await load_player(player_id)
        assert after.version == before.version
        (record,) = await session_rows(player_id)
        assert record.cycles_completed == 0
        assert record.last_reconciled_at == T0


# ============================================================================
# HISTORY, CATALOGUE & SWEEP
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestHistoryAndCatalogue:
    async def test_history_newest_first(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        for start in (0, 600):
            await coordinator.start_session(player_id, scene_id, now=at(seconds=start))
            await coordinator.stop_session(player_id, now=at(seconds=start + 30))

        history = await coordinator.get_session_history(player_id, limit=10)

        assert [summary.ended_at for summary in history] == [at(seconds=630), at(seconds=30)]
        assert all(summary.cycles == 10 for summary in history)

    async def test_history_keeps_scene_as_mined(self, coordinator, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(player_id, scene_id, now=T0)
        await coordinator.stop_session(player_id, now=at(seconds=30))
        await edit_scene(scene_id, name="Flooded Mine")

        (summary,) = await coordinator.get_session_history(player_id)

        assert summary.scene_name == "Copper Mine"
        assert summary.coins == 100

    async def test_history_limit_is_capped(self, coordinator, make_player):
        player_id = await make_player()

        with pytest.raises(ValidationError):
            await coordinator.get_session_history(player_id, limit=1000)

    async def test_sync_scene_catalogue_is_idempotent(self, coordinator, database):
        # Act
        inserted = await coordinator.sync_scene_catalogue()
        unchanged = await coordinator.sync_scene_catalogue()
        changed = await coordinator.sync_scene_catalogue(
            [
                {
                    "name": "Copper Mine",
                    "unlock_level": 1,
                    "energy_cost": 2,
                    "coins_min": 5,
                    "coins_max": 15,
                    "base_experience": 10,
                    "item_names": ["Copper Ore"],
                }
            ]
        )

        # Assert
        assert inserted == 6
        assert unchanged == 0
        assert changed == 1

    async def test_sweep_reconciles_active_sessions(
        self, coordinator, make_player, make_scene, clock
    ):
        # Arrange
        first = await make_player()
        second = await make_player()
        scene_id = await make_scene(unlock_level=10)
        await coordinator.start_session(first, scene_id, now=T0)
        await coordinator.start_session(second, scene_id, now=T0)
        sweep = AccrualSweep(coordinator, interval_seconds=60)

        # Act
        clock.advance(seconds=60)
        reconciled = await sweep.run_once()

        # Assert
        assert reconciled == 2
        assert await coordinator.list_active_player_ids() == [first, second]
        player = await load_player(first)
        assert player.total_mining_count == 20
