"""
Game balance configuration backed by YAML files.

Features:
- Hierarchical config access with dot notation (e.g., 'rarity.tiers')
- All YAML files under config/ merged into one tree at load time
- Runtime overrides for live balance changes and tests
- Lightweight access metrics

Balance parameters (rarity tiers, level curve, potions, item names) live in
config/*.yaml. Timing constants of the engine live in Config (environment).
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Class-level registry of game balance values.

    Lookups never raise: a missing key returns the caller's default.
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _initialized: bool = False

    _metrics: Dict[str, int] = {
        "gets": 0,
        "cache_hits": 0,
        "cache_misses": 0,
        "overrides": 0,
    }

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Merge every *.yaml / *.yml under ``config_dir`` into ``_defaults``."""
        if not config_dir.exists():
            logger.warning(
                "Config directory not found, skipping YAML loading",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with open(yaml_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(
                    f"Failed to load YAML config {yaml_file.name}: {e}",
                    extra={"file": str(yaml_file), "error": str(e)},
                )
                continue

            if data:
                cls._defaults.update(data)
                loaded_count += 1
                logger.debug(f"Loaded YAML config: {yaml_file.relative_to(config_dir)}")

        logger.info(
            f"Loaded {loaded_count} YAML config files",
            extra={"yaml_count": loaded_count, "total_keys": len(cls._defaults)},
        )

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load YAML defaults and rebuild the cache. Idempotent per directory."""
        cls._defaults = {}
        cls._load_yaml_configs(Path(config_dir) if config_dir else Config.CONFIG_DIR)
        cls._rebuild_cache()
        cls._initialized = True

    @classmethod
    def _rebuild_cache(cls) -> None:
        cache = copy.deepcopy(cls._defaults)
        for key, value in cls._overrides.items():
            cls._assign(cache, key, value)
        cls._cache = cache

    @staticmethod
    def _assign(tree: Dict[str, Any], key: str, value: Any) -> None:
        keys = key.split(".")
        current = tree
        for k in keys[:-1]:
            nxt = current.get(k)
            if not isinstance(nxt, dict):
                nxt = {}
                current[k] = nxt
            current = nxt
        current[keys[-1]] = value

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve config value by dot notation path.

        Example:
            >>> ConfigManager.get('progression.base_exp', 100)
            100
        """
        cls._metrics["gets"] += 1

        if not cls._initialized:
            cls.initialize()

        value: Any = cls._cache
        for k in key.split("."):
            if not isinstance(value, dict):
                value = _MISSING
                break
            value = value.get(k, _MISSING)
            if value is _MISSING:
                break

        if value is _MISSING or value is None:
            cls._metrics["cache_misses"] += 1
            return default

        cls._metrics["cache_hits"] += 1
        return value

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Override a single value at runtime (survives reloads until cleared)."""
        if not cls._initialized:
            cls.initialize()
        cls._overrides[key] = value
        cls._assign(cls._cache, key, value)
        cls._metrics["overrides"] += 1
        logger.info("ConfigManager override applied", extra={"config_key": key})

    @classmethod
    def clear_overrides(cls) -> None:
        cls._overrides.clear()
        cls._rebuild_cache()

    @classmethod
    def clear_cache(cls) -> None:
        """Forget everything; the next ``get`` reloads from disk."""
        cls._cache = {}
        cls._defaults = {}
        cls._overrides.clear()
        cls._initialized = False

    @classmethod
    def get_all_keys(cls) -> List[str]:
        return list(cls._cache.keys())

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        gets = cls._metrics["gets"]
        return {
            **cls._metrics,
            "cache_hit_rate": round(cls._metrics["cache_hits"] / gets * 100, 2) if gets else 0.0,
            "initialized": cls._initialized,
            "cached_configs": len(cls._cache),
        }
