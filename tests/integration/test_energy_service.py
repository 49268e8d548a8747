"""
Integration Tests for EnergyService
===================================

Status reads, on-demand regeneration, and potions against SQLite.
"""

from datetime import timedelta

import pytest

from src.database.models.enums import EnergyPotion
from src.modules.shared.exceptions import NotFoundError, ValidationError
from tests.conftest import T0, at, load_player


@pytest.mark.integration
@pytest.mark.database
class TestEnergyStatus:
    async def test_status_includes_regeneration(self, energy_service, make_player):
        # Arrange
        player_id = await make_player(current_energy=50)

        # Act
        status = await energy_service.get_energy_status(player_id, now=at(minutes=12))

        # Assert
        assert status.current_energy == 52
        assert status.max_energy == 100
        assert status.time_to_full == timedelta(minutes=238)
        assert status.to_dict()["time_to_full_seconds"] == 238 * 60

    async def test_status_does_not_write(self, energy_service, make_player):
        player_id = await make_player(current_energy=50)

        await energy_service.get_energy_status(player_id, now=at(hours=1))

        player = await load_player(player_id)
        assert player.current_energy == 50
        assert player.energy_last_reconciled_at == T0

    async def test_full_bar_needs_no_time(self, energy_service, make_player):
        player_id = await make_player()

        status = await energy_service.get_energy_status(player_id, now=T0)

        assert status.time_to_full == timedelta(0)

    async def test_unknown_player(self, energy_service, database):
        with pytest.raises(NotFoundError):
            await energy_service.get_energy_status(404, now=T0)


@pytest.mark.integration
@pytest.mark.database
class TestRecoverEnergy:
    async def test_recover_persists_whole_intervals(self, energy_service, make_player):
        # Arrange
        player_id = await make_player(current_energy=50)

        # Act
        recovered = await energy_service.recover_energy(player_id, now=at(minutes=12))

        # Assert: partial interval is carried in the watermark
        assert recovered == 2
        player = await load_player(player_id)
        assert player.current_energy == 52
        assert player.energy_last_reconciled_at == at(minutes=10)

    async def test_recover_twice_is_idempotent(self, energy_service, make_player):
        player_id = await make_player(current_energy=50)

        await energy_service.recover_energy(player_id, now=at(minutes=12))
        again = await energy_service.recover_energy(player_id, now=at(minutes=12))

        assert again == 0

    async def test_unknown_player(self, energy_service, database):
        with pytest.raises(NotFoundError):
            await energy_service.recover_energy(404, now=T0)


@pytest.mark.integration
@pytest.mark.database
class TestEnergyPotions:
    async def test_small_potion(self, energy_service, make_player, captured_events):
        # Arrange
        player_id = await make_player(current_energy=40)

        # Act
        result = await energy_service.use_energy_potion(player_id, EnergyPotion.SMALL, now=T0)

        # Assert
        assert result.restored == 10
        assert result.current_energy == 50
        assert (await load_player(player_id)).current_energy == 50
        assert captured_events["energy.restored"] == [
            {
                "player_id": player_id,
                "potion": "small",
                "restored": 10,
                "current_energy": 50,
                "max_energy": 100,
            }
        ]

    async def test_potion_is_capped_at_max(self, energy_service, make_player):
        player_id = await make_player(current_energy=95)

        result = await energy_service.use_energy_potion(player_id, "small", now=T0)

        assert result.restored == 5
        assert result.current_energy == 100

    async def test_potion_on_full_bar_restores_nothing(self, energy_service, make_player):
        player_id = await make_player()

        result = await energy_service.use_energy_potion(player_id, "large", now=T0)

        assert result.restored == 0
        assert result.current_energy == 100

    async def test_potion_counts_regeneration_first(self, energy_service, make_player):
        player_id = await make_player(current_energy=50)

        result = await energy_service.use_energy_potion(player_id, "small", now=at(minutes=12))

        assert result.current_energy == 62

    async def test_unknown_potion(self, energy_service, make_player):
        player_id = await make_player()

        with pytest.raises(ValidationError) as exc_info:
            await energy_service.use_energy_potion(player_id, "gigantic", now=T0)

        assert exc_info.value.error_code == "VALIDATION_POTION"

    async def test_unknown_player(self, energy_service, database):
        with pytest.raises(NotFoundError):
            await energy_service.use_energy_potion(404, "small", now=T0)
