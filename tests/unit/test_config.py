"""
Unit Tests for Configuration
============================

ConfigManager YAML loading, dot-notation access and overrides, the shipped
balance files, and MiningEngineConfig.
"""

import pytest

from src.core.config.config import Config
from src.core.config.config_manager import ConfigManager
from src.domain.models.base import DomainValidationError
from src.domain.models.engine_config import MiningEngineConfig
from src.domain.models.scene import DropTable, Rarity


@pytest.fixture
def reset_config_manager():
    yield
    ConfigManager.clear_cache()


@pytest.mark.unit
class TestConfigManager:
    def test_merges_yaml_files(self, tmp_path, reset_config_manager):
        # Arrange
        (tmp_path / "a.yaml").write_text("mining:\n  bonus_multiplier: 1.5\n")
        (tmp_path / "b.yaml").write_text("progression:\n  max_level: 30\n")

        # Act
        ConfigManager.initialize(tmp_path)

        # Assert
        assert ConfigManager.get("mining.bonus_multiplier") == 1.5
        assert ConfigManager.get("progression.max_level") == 30
        assert ConfigManager.get("progression.missing", 7) == 7
        assert ConfigManager.get("mining.bonus_multiplier.deeper", "x") == "x"

    def test_override_survives_reload(self, tmp_path, reset_config_manager):
        (tmp_path / "a.yaml").write_text("locks:\n  mode: local\n")
        ConfigManager.initialize(tmp_path)

        ConfigManager.set_override("locks.mode", "redis")
        ConfigManager.initialize(tmp_path)

        assert ConfigManager.get("locks.mode") == "redis"
        ConfigManager.clear_overrides()
        assert ConfigManager.get("locks.mode") == "local"

    def test_broken_yaml_is_skipped(self, tmp_path, reset_config_manager):
        (tmp_path / "good.yaml").write_text("energy:\n  potions:\n    small: 10\n")
        (tmp_path / "bad.yaml").write_text("energy: [unclosed\n")

        ConfigManager.initialize(tmp_path)

        assert ConfigManager.get("energy.potions.small") == 10


@pytest.mark.unit
class TestShippedBalanceFiles:
    def test_rarity_tiers_build_a_drop_table(self, reset_config_manager):
        ConfigManager.initialize(Config.CONFIG_DIR)

        table = DropTable.from_config(ConfigManager.get("mining.rarity"))

        assert [tier.rarity for tier in table.tiers] == list(Rarity)

    def test_scene_catalogue(self, reset_config_manager):
        ConfigManager.initialize(Config.CONFIG_DIR)

        scenes = ConfigManager.get("scenes")

        assert [scene["unlock_level"] for scene in scenes] == [1, 5, 10, 20, 35, 50]
        assert [scene["energy_cost"] for scene in scenes] == [1, 2, 3, 5, 8, 12]
        assert all(scene["item_names"] for scene in scenes)


@pytest.mark.unit
class TestMiningEngineConfig:
    def test_defaults(self):
        config = MiningEngineConfig()

        assert config.recovery_interval.total_seconds() == 300
        assert config.cycle_interval.total_seconds() == 10
        assert config.max_accrual.total_seconds() == 24 * 3600
        assert config.auto_mining_min_level == 5

    def test_from_settings(self):
        config = MiningEngineConfig.from_settings(Config)

        assert config.cycle_interval_ms == Config.AUTO_MINING_INTERVAL_MS
        assert config.max_accrual_hours == Config.MAX_OFFLINE_HOURS

    def test_rejects_zero_cycle_interval(self):
        with pytest.raises(DomainValidationError):
            MiningEngineConfig(cycle_interval_ms=0)
