"""Energy module: status, manual recovery, potions."""

from .service import EnergyService, EnergyStatus, PotionResult

__all__ = ["EnergyService", "EnergyStatus", "PotionResult"]
