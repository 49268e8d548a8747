"""
Unit Tests for the Energy Ledger
================================

Test Coverage
-------------
- PlayerEnergyState validation
- Lazy regeneration with partial-interval carry
- Full-bar watermark handling
- consume / restore / raise_max
- time_to_full
- Cap invariant and split-reconcile equivalence (hypothesis)

Testing Strategy
----------------
- Pure domain tests, no database
- AAA pattern (Arrange, Act, Assert)
"""

from datetime import datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.domain.models.base import DomainValidationError
from src.domain.models.energy import EnergyLedger, PlayerEnergyState
from src.domain.models.engine_config import MiningEngineConfig
from src.modules.shared.exceptions import InsufficientEnergyError
from tests.conftest import T0, at


@pytest.fixture
def ledger() -> EnergyLedger:
    # 5 minutes per point
    return EnergyLedger(MiningEngineConfig())


def state(current: int = 50, maximum: int = 100, when: datetime = T0) -> PlayerEnergyState:
    return PlayerEnergyState(current_energy=current, max_energy=maximum, last_reconciled_at=when)


# ============================================================================
# STATE VALIDATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestPlayerEnergyState:
    def test_rejects_energy_above_cap(self):
        with pytest.raises(DomainValidationError) as exc_info:
            state(current=101, maximum=100)

        assert exc_info.value.field == "current_energy"

    def test_rejects_negative_energy(self):
        with pytest.raises(DomainValidationError):
            state(current=-1)

    def test_rejects_zero_cap(self):
        with pytest.raises(DomainValidationError):
            state(current=0, maximum=0)

    def test_rejects_naive_watermark(self):
        with pytest.raises(DomainValidationError):
            state(when=datetime(2025, 1, 1))

    def test_is_full(self):
        assert state(current=100).is_full
        assert not state(current=99).is_full


# ============================================================================
# REGENERATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestRegeneration:
    def test_current_energy_counts_whole_intervals(self, ledger):
        # Arrange
        energy = state(current=50)

        # Act & Assert
        assert ledger.current_energy(energy, at(minutes=4, seconds=59)) == 50
        assert ledger.current_energy(energy, at(minutes=5)) == 51
        assert ledger.current_energy(energy, at(minutes=12)) == 52

    def test_current_energy_is_capped(self, ledger):
        assert ledger.current_energy(state(current=99), at(hours=10)) == 100

    def test_time_before_watermark_counts_as_zero(self, ledger):
        assert ledger.current_energy(state(current=50), at(hours=-1)) == 50
        assert ledger.reconcile(state(current=50), at(hours=-1)) == state(current=50)

    def test_reconcile_keeps_partial_interval(self, ledger):
        # Act
        reconciled = ledger.reconcile(state(current=50), at(minutes=12))

        # Assert
        assert reconciled.current_energy == 52
        assert reconciled.last_reconciled_at == at(minutes=10)

    def test_split_reconcile_matches_single(self, ledger):
        # Arrange
        energy = state(current=50)

        # Act
        split = ledger.reconcile(ledger.reconcile(energy, at(minutes=7)), at(minutes=12))
        single = ledger.reconcile(energy, at(minutes=12))

        # Assert
        assert split == single

    def test_reconcile_without_whole_interval_is_noop(self, ledger):
        energy = state(current=50)
        assert ledger.reconcile(energy, at(minutes=3)) is energy

    def test_reconcile_to_full_moves_watermark_to_as_of(self, ledger):
        # Act
        reconciled = ledger.reconcile(state(current=99), at(minutes=23))

        # Assert
        assert reconciled.current_energy == 100
        assert reconciled.last_reconciled_at == at(minutes=23)

    def test_full_bar_does_not_bank_time(self, ledger):
        # Arrange: full for an hour, then spend 10
        full = ledger.reconcile(state(current=100), at(hours=1))
        spent = ledger.consume(full, 10)

        # Act: two minutes later nothing has regenerated yet
        assert ledger.current_energy(spent, at(hours=1, minutes=2)) == 90
        assert ledger.current_energy(spent, at(hours=1, minutes=5)) == 91

    def test_zero_recovery_amount_never_regenerates(self):
        ledger = EnergyLedger(MiningEngineConfig(recovery_amount_per_interval=0))
        assert ledger.current_energy(state(current=10), at(days=3)) == 10


# ============================================================================
# MUTATIONS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestConsume:
    def test_consume_reduces_energy(self, ledger):
        assert ledger.consume(state(current=50), 20).current_energy == 30

    def test_consume_to_zero(self, ledger):
        assert ledger.consume(state(current=50), 50).current_energy == 0

    def test_consume_more_than_available_raises(self, ledger):
        # Act
        with pytest.raises(InsufficientEnergyError) as exc_info:
            ledger.consume(state(current=50), 60)

        # Assert
        assert exc_info.value.details["required"] == 60
        assert exc_info.value.details["current"] == 50
        assert exc_info.value.is_retryable

    def test_consume_negative_raises(self, ledger):
        with pytest.raises(DomainValidationError):
            ledger.consume(state(), -1)

    def test_consume_ignores_unreconciled_regeneration(self, ledger):
        # Materialized energy is 5 even though 20 more would have regenerated
        with pytest.raises(InsufficientEnergyError):
            ledger.consume(state(current=5), 10)


@pytest.mark.unit
@pytest.mark.domain
class TestRestoreAndRaiseMax:
    def test_restore_is_capped(self, ledger):
        # Act
        restored_state, restored = ledger.restore(state(current=95), 10)

        # Assert
        assert restored_state.current_energy == 100
        assert restored == 5

    def test_restore_on_full_bar_restores_nothing(self, ledger):
        energy = state(current=100)
        restored_state, restored = ledger.restore(energy, 25)

        assert restored == 0
        assert restored_state is energy

    def test_raise_max_keeps_current(self, ledger):
        raised = ledger.raise_max(state(current=40, maximum=100), 10)

        assert raised.max_energy == 110
        assert raised.current_energy == 40

    def test_raise_max_rejects_negative(self, ledger):
        with pytest.raises(DomainValidationError):
            ledger.raise_max(state(), -5)


# ============================================================================
# TIME TO FULL
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestTimeToFull:
    def test_full_bar_is_zero(self, ledger):
        assert ledger.time_to_full(state(current=100), T0) == timedelta(0)

    def test_counts_partial_progress(self, ledger):
        # Two points missing, two minutes into the first interval
        assert ledger.time_to_full(state(current=98), at(minutes=2)) == timedelta(minutes=8)

    def test_after_materialized_intervals(self, ledger):
        # At +12 min: 52 energy, watermark +10 min, 48 points to go
        assert ledger.time_to_full(state(current=50), at(minutes=12)) == timedelta(minutes=48 * 5 - 2)

    def test_no_regeneration_returns_none(self):
        ledger = EnergyLedger(MiningEngineConfig(recovery_amount_per_interval=0))
        assert ledger.time_to_full(state(current=10), T0) is None


# ============================================================================
# PROPERTIES
# ============================================================================


energy_levels = st.integers(min_value=0, max_value=200)
minutes = st.integers(min_value=0, max_value=60 * 48)


@pytest.mark.unit
@pytest.mark.domain
class TestLedgerProperties:
    @given(current=energy_levels, elapsed=minutes, spend=st.integers(min_value=0, max_value=300))
    def test_cap_invariant_holds(self, current, elapsed, spend):
        ledger = EnergyLedger(MiningEngineConfig())
        energy = state(current=min(current, 200), maximum=200)

        reconciled = ledger.reconcile(energy, at(minutes=elapsed))
        assert 0 <= reconciled.current_energy <= reconciled.max_energy

        if spend <= reconciled.current_energy:
            spent = ledger.consume(reconciled, spend)
            assert 0 <= spent.current_energy <= spent.max_energy

        restored, amount = ledger.restore(reconciled, spend)
        assert restored.current_energy <= restored.max_energy
        assert amount <= spend

    @given(current=energy_levels, first=minutes, second=minutes)
    def test_split_reconciliation_equals_single(self, current, first, second):
        ledger = EnergyLedger(MiningEngineConfig())
        energy = state(current=min(current, 150), maximum=200)
        end = at(minutes=first + second)

        split = ledger.reconcile(ledger.reconcile(energy, at(minutes=first)), end)
        single = ledger.reconcile(energy, end)

        assert split.current_energy == single.current_energy
        assert ledger.current_energy(split, end) == ledger.current_energy(single, end)

    @given(current=energy_levels, elapsed=minutes)
    def test_reconcile_agrees_with_current_energy(self, current, elapsed):
        ledger = EnergyLedger(MiningEngineConfig())
        energy = state(current=min(current, 200), maximum=200)
        as_of = at(minutes=elapsed)

        assert ledger.reconcile(energy, as_of).current_energy == ledger.current_energy(energy, as_of)
