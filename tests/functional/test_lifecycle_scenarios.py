"""
test_lifecycle_scenarios.py - End-to-end lifecycle scenario tests

Tests complete staking lifecycles:
- Stake, warmup, reward, unstake, cooldown and claim_withdraw
- Emergency exit from the venue
- Liquidity provider earning instant-unstake fees
- Keeper-driven run through the LifecycleEngine
"""

import pytest

from yieldy import (
    LifecycleEngine, rollover_event, add_rewards_event, RequestedWithdrawal,
    FeaturePaused, TOTAL_GONS, UNIT_TYPE_STAKING_CONTROLLER,
)
from yieldy.staking import staking_contract

from tests.conftest import (
    make_deployment, stake, fund, rollover, advance_epoch, enable_reserve, add_liquidity, TIMED,
)


def _assert_backed(d):
    result = d.staking.ledger.verify_double_entry({d.config.receipt_token: TOTAL_GONS})
    assert result['valid'], result['discrepancies']
    assert d.staking.circulating_supply() <= d.staking.contract_balance()


class TestFullStakingCycle:
    """One staker through every phase with a reward doubling the index."""

    def test_stake_to_claim_withdraw(self, timed_deployment):
        d = timed_deployment
        stake(d, "alice", 10_000)
        fund(d, "funder", 10_000)
        d.staking.add_rewards_for_stakers("funder", 10_000)
        assert d.staking.warmup_info("alice").expiry == 2

        # epoch 2: the reward is scheduled, warmup has expired
        advance_epoch(d)
        d.staking.claim("alice")
        assert d.receipt_token.balance_of("alice") == 10_000

        # epoch 3: the reward lands
        advance_epoch(d)
        assert d.receipt_token.balance_of("alice") == 20_000
        _assert_backed(d)

        d.staking.unstake("alice", 20_000)
        assert d.staking.cooldown_info("alice").expiry == 4
        assert d.staking.requested_withdrawal() == RequestedWithdrawal(20_000, 2)

        rollover(d)
        d.staking.claim_withdraw("alice")
        assert d.staking_token.balance_of("alice") == 0

        # epoch 4: cooldown expired
        advance_epoch(d)
        d.staking.claim_withdraw("alice")
        assert d.staking_token.balance_of("alice") == 20_000
        assert d.staking.circulating_supply() == 0
        assert d.staking.contract_balance() == 0
        _assert_backed(d)


class TestEmergencyExitScenario:
    """Admin pulls the whole position; stakers exit from withdrawn funds."""

    def test_exit_and_recover(self, deployment):
        d = deployment
        stake(d, "alice", 10_000)
        stake(d, "bob", 5_000)

        d.staking.unstake_all_from_venue("admin")
        assert d.staking.requested_withdrawal() == RequestedWithdrawal(15_000, 2)
        rollover(d)

        d.staking.unstake("alice", 10_000)
        assert not d.staking.setting('emergency_exit')
        assert d.staking.withdrawal_amount() == 15_000
        d.staking.claim_withdraw("alice")
        assert d.staking_token.balance_of("alice") == 10_000

        d.staking.unstake("bob", 5_000)
        d.staking.claim_withdraw("bob")
        assert d.staking_token.balance_of("bob") == 5_000
        assert d.staking.withdrawal_amount() == 0
        _assert_backed(d)

        fund(d, "carol", 100)
        with pytest.raises(FeaturePaused):
            d.staking.stake("carol", 100)
        d.staking.should_pause_staking("admin", False)
        d.staking.stake("carol", 100)
        assert d.adapter.position(d.staking.ledger) == 100
        _assert_backed(d)


class TestReserveFeeScenario:
    """A liquidity provider earns the instant-unstake fee."""

    def test_provider_earns_fee(self, deployment):
        d = deployment
        enable_reserve(d)
        add_liquidity(d, "lp", 10**16)
        stake(d, "alice", 10**16)

        d.staking.instant_unstake("alice")
        assert d.staking_token.balance_of("alice") == 8 * 10**15

        d.reserve.unstake_all_reward_tokens("keeper")
        rollover(d)
        d.reserve.unstake_all_reward_tokens("keeper")
        assert d.staking_token.balance_of(d.reserve.wallet) == 13 * 10**15

        d.reserve.remove_liquidity("lp", 10**16)
        assert d.staking_token.balance_of("lp") == 11_818_181_818_181_818
        assert d.reserve.total_supply() == d.config.minimum_liquidity
        _assert_backed(d)


class TestKeeperDrivenRun:
    """The LifecycleEngine runs rebases, rollovers and batching."""

    def test_engine_schedule(self):
        d = make_deployment(**TIMED)
        ledger = d.staking.ledger
        engine = LifecycleEngine(ledger)
        engine.register(UNIT_TYPE_STAKING_CONTROLLER, staking_contract)
        engine.schedule_many([
            rollover_event(d.config.venue, block, d.config.venue_manager) for block in (100, 200, 300)
        ])
        engine.schedule(add_rewards_event(d.config.staking_unit, 50, "funder", 10_000))

        stake(d, "alice", 10_000)
        fund(d, "funder", 10_000)

        engine.run(range(10, 101, 10))
        assert d.staking.epoch().number == 2
        d.staking.claim("alice")

        engine.run(range(110, 201, 10))
        assert d.receipt_token.balance_of("alice") == 20_000
        d.staking.unstake("alice", 20_000)
        assert d.staking.requested_withdrawal().amount == 0

        # the request window of cycle 3 opens at block 290
        engine.run(range(210, 291, 10))
        assert d.staking.requested_withdrawal() == RequestedWithdrawal(20_000, 4)
        assert d.staking.last_cycle_index() == 3

        engine.run([300])
        assert d.staking.epoch().number == 4
        d.staking.claim_withdraw("alice")
        assert d.staking_token.balance_of("alice") == 20_000
        _assert_backed(d)
