"""
Quarry - Application Entry Point
================================

Headless runtime for the mining engine:
- Config validation
- Database initialization and schema
- ConfigManager initialization
- Redis (only for distributed player locks)
- Service container and scene catalogue
- Graceful shutdown on SIGINT / SIGTERM
"""

import asyncio
import signal
import sys

from src.core.config.config import Config
from src.core.config.config_manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import event_bus
from src.core.logging.logger import get_logger, shutdown_logging
from src.core.redis.service import RedisService
from src.core.services.container import (
    ServiceContainer,
    initialize_service_container,
    shutdown_service_container,
)

logger = get_logger(__name__)


# ============================================================================
# Application Bootstrap
# ============================================================================

async def _startup() -> ServiceContainer:
    """Initialize infrastructure and services in dependency order."""
    logger.info("========== QUARRY INITIALIZATION START ==========")

    # Step 1: Validate configuration early
    try:
        Config.validate()
        logger.info("✓ Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    # Step 2: Initialize database service
    try:
        await DatabaseService.initialize()
        await DatabaseService.create_schema()
        logger.info("✓ Database service initialized")
    except Exception as exc:
        logger.critical(f"Database initialization failed: {exc}", exc_info=True)
        raise

    # Step 3: Initialize config manager
    try:
        ConfigManager.initialize()
        logger.info("✓ Config manager initialized")
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    # Step 4: Redis, only when player locks are distributed
    if str(ConfigManager.get("locks.mode", "local")).lower() == "redis":
        try:
            await RedisService.initialize()
            logger.info("✓ Redis service initialized")
        except Exception as exc:
            logger.critical(f"Redis initialization failed: {exc}", exc_info=True)
            raise

    # Step 5: Initialize service container
    try:
        container = initialize_service_container(
            config_manager=ConfigManager,
            event_bus=event_bus,
            logger=get_logger("src.core.services.container"),
        )
        await container.initialize()
        logger.info("✓ Service container initialized")
    except Exception as exc:
        logger.critical(f"Service container initialization failed: {exc}", exc_info=True)
        raise

    # Step 6: Scene catalogue
    try:
        changed = await container.coordinator.sync_scene_catalogue()
        logger.info("✓ Scene catalogue synchronized", extra={"changed": changed})
    except Exception as exc:
        logger.critical(f"Scene catalogue synchronization failed: {exc}", exc_info=True)
        raise

    logger.info("========== INFRASTRUCTURE INITIALIZED SUCCESSFULLY ==========")
    return container


# ============================================================================
# Application Shutdown
# ============================================================================

async def _shutdown() -> None:
    """Stop services, then infrastructure. Every step runs even if one fails."""
    logger.info("========== QUARRY SHUTDOWN START ==========")

    # Step 1: Shutdown service container (stops the sweep)
    try:
        await shutdown_service_container()
        logger.info("✓ Service container shut down")
    except Exception as exc:
        logger.error(f"Service container shutdown error: {exc}", exc_info=True)

    # Step 2: Let in-flight event listeners finish
    try:
        await event_bus.drain()
        logger.info("✓ Event bus drained")
    except Exception as exc:
        logger.error(f"Event bus drain error: {exc}", exc_info=True)

    # Step 3: Shutdown Redis
    try:
        await RedisService.shutdown()
    except Exception as exc:
        logger.error(f"Redis service shutdown error: {exc}", exc_info=True)

    # Step 4: Shutdown database
    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================

def _install_signal_handlers(stop: asyncio.Event) -> None:
    """Set ``stop`` on SIGINT / SIGTERM where the platform allows it."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            logger.debug(f"{sig.name} handler installed")
        except NotImplementedError:
            logger.debug(f"{sig.name} not supported on this platform (likely Windows)")


async def main() -> None:
    """
    Quarry entry point.

    Lifecycle:
        1. Validate configuration
        2. Initialize infrastructure (DB, ConfigManager, Redis, Services)
        3. Run until signalled
        4. Handle shutdown gracefully
    """
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    try:
        await _startup()
        logger.info("Quarry mining engine running; waiting for shutdown signal")
        await stop.wait()
        logger.info("Shutdown signal received")

    except asyncio.CancelledError:
        logger.warning("Asyncio task cancellation received; shutting down gracefully.")
        raise

    except Exception as exc:
        logger.critical(f"Fatal startup error: {exc}", exc_info=True)
        raise

    finally:
        await _shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Quarry manually stopped via keyboard interrupt.")
    except Exception:
        sys.exit(1)
    finally:
        shutdown_logging()
