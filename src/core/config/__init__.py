"""
Configuration subsystem for Quarry.

**Static (Config):** loaded from environment variables at import time.
Connection strings, logging switches, and the engine timing constants.

**Balance (ConfigManager):** loaded from config/*.yaml with dot-notation
access. Rarity tiers, level curve, potions, item names.
"""

from src.core.config.config import Config, Environment
from src.core.config.config_manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
]
