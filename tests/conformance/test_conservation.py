"""
Conservation Conformance Tests

INVARIANT: Every unit nets to zero across all wallets, SYSTEM_WALLET included.

    ∀ unit u: Σ balance(w, u) over all wallets = 0

and, for the staking system:

    receipt gons in existence = TOTAL_GONS, always
    circulating receipt supply <= base asset backing (idle + venue position)
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from yieldy import TOTAL_GONS

from tests.conftest import make_deployment, stake, fund, rollover, advance_epoch, add_liquidity


def _assert_conserved(d):
    result = d.staking.ledger.verify_double_entry({d.config.receipt_token: TOTAL_GONS})
    assert result['valid'], result['discrepancies']
    assert d.staking.circulating_supply() <= d.staking.contract_balance()


class TestConservationScenarios:
    """Conservation across full staking lifecycles."""

    def test_after_deploy(self, deployment):
        _assert_conserved(deployment)

    def test_stake_unstake_claim(self, deployment):
        d = deployment
        stake(d, "alice", 10_000)
        _assert_conserved(d)
        d.staking.unstake("alice", 10_000)
        _assert_conserved(d)
        rollover(d)
        d.staking.claim_withdraw("alice")
        _assert_conserved(d)

    def test_rewards_and_rebases(self, deployment):
        d = deployment
        stake(d, "alice", 10_000)
        stake(d, "bob", 1_000)
        fund(d, "funder", 1_000)
        d.staking.add_rewards_for_stakers("funder", 1_000)
        advance_epoch(d)
        advance_epoch(d)
        _assert_conserved(d)

    def test_reserve_flows(self, reserve_deployment):
        d = reserve_deployment
        add_liquidity(d, "lp", 10**16)
        stake(d, "alice", 10**16)
        d.staking.instant_unstake("alice")
        d.reserve.unstake_all_reward_tokens("keeper")
        _assert_conserved(d)
        rollover(d)
        d.reserve.unstake_all_reward_tokens("keeper")
        _assert_conserved(d)
        result = d.staking.ledger.verify_double_entry()
        assert result['supplies'][d.config.liquidity_reserve] == d.reserve.total_supply()


class TestConservationProperties:
    """Property-based conservation tests."""

    @given(
        stakes=st.lists(st.integers(min_value=1, max_value=10**21), min_size=1, max_size=4),
        reward_pct=st.integers(min_value=0, max_value=100),
        unstake_share=st.integers(min_value=0, max_value=100),
    )
    @settings(max_examples=30, deadline=None)
    def test_random_lifecycle_conserves(self, stakes, reward_pct, unstake_share):
        """
        PROPERTY: stakes, a reward, two rebases and partial unstakes never
        create or destroy value.
        """
        d = make_deployment()
        holders = [f"holder{i}" for i in range(len(stakes))]
        reward = sum(stakes) * reward_pct // 100
        for holder, amount in zip(holders, stakes):
            stake(d, holder, amount)
        if reward:
            fund(d, "funder", reward)
            d.staking.add_rewards_for_stakers("funder", reward)
        advance_epoch(d)
        advance_epoch(d)
        _assert_conserved(d)

        for holder in holders:
            amount = d.receipt_token.balance_of(holder) * unstake_share // 100
            if amount:
                d.staking.unstake(holder, amount)
        _assert_conserved(d)

        rollover(d)
        for holder in holders:
            d.staking.claim_withdraw(holder)
        _assert_conserved(d)

    @given(amount=st.integers(min_value=1, max_value=10**24))
    @settings(max_examples=30, deadline=None)
    def test_base_asset_fully_returned(self, amount):
        """
        PROPERTY: without rewards, a full unstake returns exactly the stake.
        """
        d = make_deployment()
        stake(d, "alice", amount)
        d.staking.unstake("alice", amount)
        rollover(d)
        d.staking.claim_withdraw("alice")
        assert d.staking_token.balance_of("alice") == amount
        assert d.staking.circulating_supply() == 0
