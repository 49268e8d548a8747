"""
Integration Tests for the ServiceContainer
==========================================

Wiring, lifecycle and the process-wide container helpers.
"""

import pytest
import pytest_asyncio

from src.core.config.config_manager import ConfigManager
from src.core.logging.logger import get_logger
from src.core.services.container import (
    ServiceContainer,
    get_service_container,
    initialize_service_container,
    shutdown_service_container,
)
from src.domain.models.engine_config import MiningEngineConfig
from src.modules.mining.locks import LocalPlayerLockProvider
from tests.conftest import T0, at


@pytest_asyncio.fixture
async def container(database, event_bus, lock_provider):
    container = ServiceContainer(
        ConfigManager,
        event_bus,
        get_logger("tests.container"),
        engine_config=MiningEngineConfig(cycle_interval_ms=3000),
        lock_provider=lock_provider,
    )
    await container.initialize()
    yield container
    await container.shutdown()


@pytest.fixture
def sweep_enabled():
    ConfigManager.set_override("mining.sweep.enabled", True)
    yield
    ConfigManager.clear_overrides()


@pytest.mark.integration
class TestServiceContainer:
    def test_services_require_initialize(self, event_bus):
        container = ServiceContainer(ConfigManager, event_bus, get_logger("tests.container"))

        assert not container.is_initialized
        with pytest.raises(RuntimeError):
            container.coordinator

    async def test_services_share_config_and_lock(self, container, lock_provider):
        assert container.is_initialized
        assert container.engine_config.cycle_interval_ms == 3000
        assert container.coordinator.engine_config is container.engine_config
        assert container.coordinator._locks is lock_provider
        assert container.energy._locks is lock_provider

    async def test_health_check(self, container):
        health = await container.health_check()

        assert health["initialized"] is True
        assert health["service_count"] == 3
        assert health["sweep_running"] is False

    async def test_default_lock_provider_follows_config(self, database, event_bus):
        container = ServiceContainer(ConfigManager, event_bus, get_logger("tests.container"))

        await container.initialize()

        assert isinstance(container.coordinator._locks, LocalPlayerLockProvider)
        await container.shutdown()

    async def test_sweep_starts_when_enabled(self, database, event_bus, sweep_enabled):
        container = ServiceContainer(ConfigManager, event_bus, get_logger("tests.container"))

        await container.initialize()
        assert container.sweep.is_running
        await container.shutdown()

        assert not container.is_initialized
        assert not container._sweep.is_running

    @pytest.mark.database
    async def test_services_work_end_to_end(self, container, make_player, make_scene):
        player_id = await make_player()
        scene_id = await make_scene(unlock_level=10)

        await container.coordinator.start_session(player_id, scene_id, now=T0)
        summary = await container.coordinator.stop_session(player_id, now=at(seconds=30))
        status = await container.energy.get_energy_status(player_id, now=at(seconds=30))

        assert summary.cycles == 10
        assert status.current_energy == 90


@pytest.mark.integration
class TestProcessContainer:
    async def test_initialize_get_shutdown(self, database, event_bus):
        container = initialize_service_container(ConfigManager, event_bus, get_logger("tests.container"))
        try:
            assert get_service_container() is container
            with pytest.raises(RuntimeError):
                initialize_service_container(ConfigManager, event_bus, get_logger("tests.container"))
        finally:
            await shutdown_service_container()

        with pytest.raises(RuntimeError):
            get_service_container()
