"""
Unit Tests for Player Progression Rules
=======================================

Level curve, multi-level gains with remainder carry, max level cap, and
per-level rewards.
"""

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.models.progression import ProgressionRules


@pytest.mark.unit
@pytest.mark.domain
class TestExperienceCurve:
    def test_default_curve(self):
        rules = ProgressionRules()

        assert rules.experience_to_next(1) == 100
        assert rules.experience_to_next(2) == 150
        assert rules.experience_to_next(3) == 225
        assert rules.experience_to_next(4) == 337

    def test_rejects_level_zero(self):
        with pytest.raises(DomainValidationError):
            ProgressionRules().experience_to_next(0)

    def test_rejects_shrinking_multiplier(self):
        with pytest.raises(DomainValidationError):
            ProgressionRules(experience_multiplier=0.9)


@pytest.mark.unit
@pytest.mark.domain
class TestApplyExperience:
    def test_no_level_up(self):
        result = ProgressionRules().apply_experience(level=1, experience=20, gained=50)

        assert not result.leveled_up
        assert result.new_level == 1
        assert result.experience == 70
        assert result.coins_reward == 0

    def test_single_level_up_carries_remainder(self):
        # Arrange
        rules = ProgressionRules()

        # Act
        result = rules.apply_experience(level=1, experience=90, gained=30)

        # Assert
        assert result.new_level == 2
        assert result.experience == 20
        assert result.levels_gained == 1
        assert result.coins_reward == 50

    def test_multiple_levels_in_one_gain(self):
        # 100 + 150 + 225 = 475 to reach level 4
        result = ProgressionRules().apply_experience(level=1, experience=0, gained=500)

        assert result.old_level == 1
        assert result.new_level == 4
        assert result.experience == 25
        assert result.levels_gained == 3
        assert result.coins_reward == 150

    def test_max_level_stops_leveling(self):
        rules = ProgressionRules(max_level=3)

        result = rules.apply_experience(level=2, experience=0, gained=10_000)

        assert result.new_level == 3
        assert result.experience == 10_000 - 150

    def test_max_energy_per_level(self):
        rules = ProgressionRules(max_energy_per_level=5)

        result = rules.apply_experience(level=1, experience=0, gained=250)

        assert result.levels_gained == 2
        assert result.max_energy_increase == 10

    def test_negative_gain_rejected(self):
        with pytest.raises(DomainValidationError):
            ProgressionRules().apply_experience(level=1, experience=0, gained=-1)


@pytest.mark.unit
class TestProgressionFromConfig:
    def test_reads_progression_keys(self, mock_config_manager):
        mock_config_manager.values.update(
            {
                "progression.base_experience": 50,
                "progression.coins_per_level_up": 10,
                "progression.max_energy_per_level": 2,
            }
        )

        rules = ProgressionRules.from_config(mock_config_manager)

        assert rules.base_experience == 50
        assert rules.experience_multiplier == 1.5
        assert rules.coins_per_level_up == 10
        assert rules.max_energy_per_level == 2
