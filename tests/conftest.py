"""
Pytest Configuration and Fixtures for Quarry Tests
==================================================

Purpose
-------
Shared fixtures for the Quarry test suite: a temporary SQLite database,
the mining services wired the way the service container wires them, row
factories, and mocks for unit tests.

Architecture Notes
------------------
- Unit tests use mocks and pure domain objects (fast, isolated)
- Integration tests run against a throwaway SQLite file per test through
  the real ``DatabaseService``; the optional PostgreSQL test brings its own
  testcontainer
- Every time-dependent call passes an explicit ``now``
"""

from __future__ import annotations

import os

# Must be set before src.core.config is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, Optional

import pytest
import pytest_asyncio

from src.core.config.config_manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.database.models.mining.scene import Scene
from src.database.models.player.player_data import PlayerData
from src.domain.models.engine_config import MiningEngineConfig
from src.domain.models.scene import DropTable, Rarity, RarityTier, SceneSnapshot
from src.modules.energy.service import EnergyService
from src.modules.mining.coordinator import SessionCoordinator
from src.modules.mining.locks import LocalPlayerLockProvider
from src.modules.mining.reward_roller import RewardRoller

logger = get_logger(__name__)

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(**delta: float) -> datetime:
    """``T0`` shifted by ``timedelta(**delta)``."""
    return T0 + timedelta(**delta)


class FakeClock:
    """Callable clock for services; starts at ``T0`` and only moves when told."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def engine_config() -> MiningEngineConfig:
    """Default timing: 5 min regeneration, 10 s cycles, 24 h cap, level 5 gate."""
    return MiningEngineConfig()


@pytest.fixture
def drop_table() -> DropTable:
    return DropTable(
        tiers=(
            RarityTier(Rarity.COMMON, 0.6, 1.0, ("Plain",)),
            RarityTier(Rarity.RARE, 0.1, 5.0, ("Rare",)),
        )
    )


@pytest.fixture
def copper_scene(drop_table: DropTable) -> SceneSnapshot:
    return SceneSnapshot(
        scene_id=1,
        name="Copper Mine",
        energy_cost_per_cycle=1,
        coins_min=5,
        coins_max=15,
        base_experience=10,
        unlock_level=1,
        item_names=("Copper Ore", "Coal"),
        drop_table=drop_table,
    )


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """
    Fresh SQLite database with the full schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize(f"sqlite+aiosqlite:///{tmp_path / 'quarry.db'}")
    await DatabaseService.create_schema()
    yield
    await DatabaseService.shutdown()


@pytest.fixture
def make_player(database) -> Callable[..., Awaitable[int]]:
    """Insert a player row; returns its id."""

    async def _make(
        *,
        level: int = 10,
        experience: int = 0,
        coins: int = 100,
        current_energy: int = 100,
        max_energy: int = 100,
        reconciled_at: datetime = T0,
    ) -> int:
        async with DatabaseService.get_transaction() as session:
            player = PlayerData(
                level=level,
                experience=experience,
                coins=coins,
                current_energy=current_energy,
                max_energy=max_energy,
                energy_last_reconciled_at=reconciled_at,
                highest_level_reached=level,
            )
            session.add(player)
            await session.flush()
            return player.id

    return _make


@pytest.fixture
def make_scene(database) -> Callable[..., Awaitable[int]]:
    """Insert a scene row; returns its id."""

    async def _make(
        *,
        name: str = "Copper Mine",
        unlock_level: int = 1,
        energy_cost: int = 1,
        coins_min: int = 10,
        coins_max: int = 10,
        base_experience: int = 5,
        is_active: bool = True,
        item_names: Optional[list] = None,
    ) -> int:
        async with DatabaseService.get_transaction() as session:
            scene = Scene(
                name=name,
                unlock_level=unlock_level,
                energy_cost=energy_cost,
                coins_min=coins_min,
                coins_max=coins_max,
                base_experience=base_experience,
                is_active=is_active,
                item_names=item_names or [],
            )
            session.add(scene)
            await session.flush()
            return scene.id

    return _make


async def load_player(player_id: int) -> PlayerData:
    async with DatabaseService.get_session() as session:
        player = await session.get(PlayerData, player_id)
        assert player is not None
        return player


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


@pytest.fixture
def captured_events(event_bus: EventBus) -> Dict[str, list]:
    """Every event published on ``event_bus``, by name."""
    captured: Dict[str, list] = {}

    def _record(name: str) -> Callable[[Dict[str, Any]], None]:
        def _listener(payload: Dict[str, Any]) -> None:
            captured.setdefault(name, []).append(payload)

        return _listener

    for name in ("mining.session_started", "mining.session_stopped", "player.leveled_up", "energy.restored"):
        event_bus.subscribe(name, _record(name), identifier=f"test:{name}")
    return captured


@pytest.fixture
def lock_provider() -> LocalPlayerLockProvider:
    return LocalPlayerLockProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinator(
    database, event_bus: EventBus, engine_config: MiningEngineConfig, lock_provider, clock
) -> SessionCoordinator:
    return SessionCoordinator(
        ConfigManager,
        event_bus,
        get_logger("tests.coordinator"),
        engine_config=engine_config,
        roller=RewardRoller.seeded(1234),
        lock_provider=lock_provider,
        clock=clock,
    )


@pytest.fixture
def energy_service(
    database, event_bus: EventBus, engine_config: MiningEngineConfig, lock_provider, clock
) -> EnergyService:
    return EnergyService(
        ConfigManager,
        event_bus,
        get_logger("tests.energy"),
        engine_config=engine_config,
        lock_provider=lock_provider,
        clock=clock,
    )


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to mock event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager backed by a plain dict of dotted keys.

    Tests set values with ``mock_config_manager.values["key"] = value``.
    """
    values: Dict[str, Any] = {}
    mock_config = mocker.MagicMock()
    mock_config.values = values
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: values.get(key, default))
    return mock_config


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def assert_domain_event_emitted(domain_model, event_name: str) -> bool:
    """
    Assert that a domain model emitted a specific event.

    Usage:
        session.close(now)
        assert assert_domain_event_emitted(session, "mining.session_stopped")
    """
    events = domain_model.get_pending_events()
    return any(event.event_name == event_name for event in events)


def get_domain_event_payload(domain_model, event_name: str) -> dict | None:
    events = domain_model.get_pending_events()
    for event in events:
        if event.event_name == event_name:
            return event.payload
    return None
