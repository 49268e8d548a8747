"""
Service Container
=================

Purpose
-------
Builds the mining engine's services once, wires their shared
dependencies, and hands out the same instances for the life of the
process.

Responsibilities
----------------
- Build ``MiningEngineConfig`` from ``Config`` and one lock provider from
  ``locks.mode``
- Create ``SessionCoordinator``, ``EnergyService`` and ``AccrualSweep``
  sharing that config, lock provider and progression rules
- Start the sweep when ``mining.sweep.enabled`` is set, and stop it on
  shutdown

Non-Responsibilities
--------------------
- Infrastructure startup order (database, Redis) belongs to ``src.main``

Architecture Notes
------------------
- Services follow one constructor shape: ``(config_manager, event_bus,
  logger, **dependencies)``
- A module-level container is exposed through ``initialize_service_container``
  / ``get_service_container`` / ``shutdown_service_container``
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.config.config import Config
from src.core.logging.logger import get_logger
from src.domain.models.engine_config import MiningEngineConfig
from src.domain.models.progression import ProgressionRules
from src.modules.energy.service import EnergyService
from src.modules.mining.coordinator import SessionCoordinator
from src.modules.mining.locks import PlayerLockProvider, build_lock_provider
from src.modules.mining.sweep import AccrualSweep

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus

logger = get_logger(__name__)

_NOT_INITIALIZED = "ServiceContainer not initialized. Call initialize() first."


class ServiceContainer:
    """
    Dependency container for the mining engine.

    Usage:
        container = ServiceContainer(config_manager, event_bus, logger)
        await container.initialize()

        await container.coordinator.start_session(player_id, scene_id)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        engine_config: Optional[MiningEngineConfig] = None,
        lock_provider: Optional[PlayerLockProvider] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._engine_config = engine_config
        self._lock_provider = lock_provider

        self._coordinator: Optional[SessionCoordinator] = None
        self._energy: Optional[EnergyService] = None
        self._sweep: Optional[AccrualSweep] = None

        self._initialized = False
        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """Create every service. Call after ConfigManager and the database are ready."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            if self._engine_config is None:
                self._engine_config = MiningEngineConfig.from_settings(Config)
            if self._lock_provider is None:
                self._lock_provider = build_lock_provider(self._config_manager)
            progression = ProgressionRules.from_config(self._config_manager)

            self._coordinator = self._create_service(
                "coordinator",
                SessionCoordinator,
                engine_config=self._engine_config,
                lock_provider=self._lock_provider,
                progression=progression,
            )
            self._energy = self._create_service(
                "energy",
                EnergyService,
                engine_config=self._engine_config,
                lock_provider=self._lock_provider,
                progression=progression,
            )

            start = time.perf_counter()
            self._sweep = AccrualSweep.from_config(self._coordinator, self._config_manager)
            self._service_init_times["sweep"] = time.perf_counter() - start

            if self._config_manager.get("mining.sweep.enabled", False):
                self._sweep.start()

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
                "sweep_running": self._sweep.is_running,
            }
            if self._service_init_times:
                slowest = max(self._service_init_times, key=self._service_init_times.__getitem__)
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """Instantiate ``cls`` with the shared constructor arguments and record timing."""
        start = time.perf_counter()
        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        if self._sweep is not None:
            await self._sweep.stop()
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "sweep_running": self._sweep.is_running if self._sweep else False,
            "sweep_runs": self._sweep.runs if self._sweep else 0,
        }

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def engine_config(self) -> MiningEngineConfig:
        if not self._initialized or self._engine_config is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._engine_config

    @property
    def coordinator(self) -> SessionCoordinator:
        if not self._initialized or self._coordinator is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._coordinator

    @property
    def energy(self) -> EnergyService:
        if not self._initialized or self._energy is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._energy

    @property
    def sweep(self) -> AccrualSweep:
        if not self._initialized or self._sweep is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._sweep


# ============================================================================
# Process-wide container
# ============================================================================

_container: Optional[ServiceContainer] = None


def initialize_service_container(
    config_manager: ConfigManager,
    event_bus: EventBus,
    logger: Logger,
    **kwargs: Any,
) -> ServiceContainer:
    """Create the process-wide container. Call ``initialize()`` on the result."""
    global _container
    if _container is not None:
        raise RuntimeError("Service container already created")
    _container = ServiceContainer(config_manager, event_bus, logger, **kwargs)
    return _container


def get_service_container() -> ServiceContainer:
    if _container is None:
        raise RuntimeError("Service container has not been created")
    return _container


async def shutdown_service_container() -> None:
    global _container
    if _container is None:
        return
    try:
        await _container.shutdown()
    finally:
        _container = None
