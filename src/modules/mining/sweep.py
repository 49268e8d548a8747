"""
Periodic accrual sweep.

Every ``mining.sweep.interval_seconds`` the sweep reconciles each ACTIVE
session so balances and estimates stay fresh while players are away. It is
a convenience only: stop and peek recompute from the watermark on their own,
so a sweep that never runs changes nothing about the final rewards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from src.core.logging.logger import LogContext, get_logger
from src.modules.shared.exceptions import ErrorSeverity, NoActiveSessionError, get_error_severity

if TYPE_CHECKING:
    from src.modules.mining.coordinator import SessionCoordinator

logger = get_logger(__name__)

_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class AccrualSweep:
    """
    Background task reconciling every ACTIVE session on a fixed interval.

    Usage:
        sweep = AccrualSweep(coordinator, interval_seconds=60)
        sweep.start()
        ...
        await sweep.stop()
    """

    def __init__(self, coordinator: SessionCoordinator, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self.runs = 0

    @classmethod
    def from_config(cls, coordinator: SessionCoordinator, config_manager) -> AccrualSweep:
        return cls(coordinator, float(config_manager.get("mining.sweep.interval_seconds", 60)))

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Reconcile all ACTIVE sessions once. Returns how many produced cycles."""
        player_ids = await self._coordinator.list_active_player_ids()
        reconciled = 0

        for player_id in player_ids:
            try:
                delta = await self._coordinator.reconcile_session(player_id)
            except NoActiveSessionError:
                # Stopped between listing and reconciling
                continue
            except Exception as exc:
                logger.log(
                    _SEVERITY_LEVELS[get_error_severity(exc)],
                    f"Sweep failed for player {player_id}: {exc}",
                    extra={"player_id": player_id, "error_type": type(exc).__name__},
                    exc_info=get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL),
                )
                continue
            if not delta.is_zero:
                reconciled += 1

        self.runs += 1
        logger.debug(
            "Accrual sweep finished",
            extra={"active_sessions": len(player_ids), "reconciled": reconciled},
        )
        return reconciled

    async def _loop(self) -> None:
        async with LogContext(component="mining", operation="accrual_sweep"):
            while True:
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error(
                        f"Accrual sweep run failed: {exc}",
                        extra={"error_type": type(exc).__name__},
                        exc_info=True,
                    )
                await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="accrual-sweep")
        logger.info("Accrual sweep started", extra={"interval_seconds": self._interval})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Accrual sweep stopped", extra={"runs": self.runs})
