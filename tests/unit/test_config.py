"""
test_config.py - Unit tests for deployment configuration and wiring

Tests:
- StakingConfig defaults and validation
- deploy() registers and wires every component
"""

import pytest

from yieldy import (
    StakingConfig, deploy, OutOfRange, MAX_UINT256, INITIAL_FRAGMENTS_SUPPLY, TOTAL_GONS,
    EPOCH_LENGTH, BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL, RequestedWithdrawal,
)

from tests.conftest import new_ledger


class TestStakingConfig:
    """Tests for StakingConfig."""

    def test_defaults(self):
        config = StakingConfig()
        assert config.epoch_length == EPOCH_LENGTH
        assert config.venue_cycle_duration == 45_500
        assert config.blocks_left_to_request_withdrawal == BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL
        assert config.warmup_period == 0
        assert config.cooldown_period == 0
        assert config.instant_unstake_fee == 2_000

    @pytest.mark.parametrize("field", ["epoch_length", "venue_cycle_duration"])
    def test_non_positive_lengths_rejected(self, field):
        with pytest.raises(OutOfRange):
            StakingConfig(**{field: 0})

    @pytest.mark.parametrize("field", ["warmup_period", "cooldown_period", "blocks_left_to_request_withdrawal"])
    def test_negative_periods_rejected(self, field):
        with pytest.raises(OutOfRange):
            StakingConfig(**{field: -1})

    def test_fee_bounds(self):
        StakingConfig(instant_unstake_fee=10_000)
        with pytest.raises(OutOfRange):
            StakingConfig(instant_unstake_fee=10_001)


class TestDeploy:
    """Tests for deploy()."""

    def test_units_registered(self, default_deployment):
        ledger = default_deployment.staking.ledger
        assert set(ledger.list_units()) == {"FOX", "TOKE", "FOXy", "tFOX", "lrFOX", "STAKING"}

    def test_receipt_initialized_to_controller(self, default_deployment):
        d = default_deployment
        assert d.receipt_token.balance_of(d.staking.wallet) == INITIAL_FRAGMENTS_SUPPLY
        assert d.receipt_token.gons_of(d.staking.wallet) == TOTAL_GONS
        assert d.staking.circulating_supply() == 0

    def test_venue_pool_allowance(self, default_deployment):
        d = default_deployment
        assert d.staking_token.allowance(d.staking.wallet, d.config.venue_pool_wallet) == MAX_UINT256

    def test_first_epoch_follows_deployment_block(self):
        ledger = new_ledger()
        ledger.advance_to(500)
        d = deploy(ledger, StakingConfig(epoch_length=100), admin="admin")
        assert d.staking.epoch().end_block == 600
        assert d.venue.state().cycle_start == 500

    def test_explicit_first_epoch_block(self):
        d = deploy(new_ledger(), StakingConfig(first_epoch_block=42), admin="admin")
        assert d.staking.epoch().end_block == 42

    def test_adapter_tracks_controller(self, default_deployment):
        d = default_deployment
        ledger = d.staking.ledger
        assert d.adapter.owner == d.staking.wallet
        assert d.adapter.position(ledger) == 0
        assert d.adapter.requested(ledger) == RequestedWithdrawal()
        assert d.venue.current_cycle_index() == 1

    def test_reserve_registered_but_disabled(self, default_deployment):
        assert not default_deployment.reserve.state().enabled

    def test_without_optional_components(self):
        d = deploy(new_ledger(), StakingConfig(liquidity_reserve=None, venue_reward_token=None))
        assert d.reserve is None
        assert d.venue_reward_token is None
        assert d.staking.wiring().reserve is None

    def test_admin_owns_access(self, default_deployment):
        assert default_deployment.access.owner == "admin"
        assert default_deployment.access.is_admin("admin")
