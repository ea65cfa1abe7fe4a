"""
test_rebasing.py - Unit tests for the elastic-supply receipt token

Tests:
- Gon constants and conversions
- GonAmount value type
- calculate_rebase (no-ops, overflow)
- initialize() and rebase() permissions
- Proportional distribution across holders (909/90 split)
- Index tracking and rebase history
- Allowance helpers
"""

import pytest
from hypothesis import given, settings, strategies as st

from yieldy import (
    Ledger, AccessControl, RebasingToken, GonAmount, create_rebasing_token,
    INITIAL_FRAGMENTS_SUPPLY, TOTAL_GONS, MAX_SUPPLY, MAX_UINT256,
    AlreadyInitialized, Unauthorized, SupplyOverflow, InvalidAmount,
    InsufficientAllowance, InsufficientFunds,
    balance_for_gons, gons_for_balance, calculate_rebase,
)
from yieldy.rebasing import calculate_gons_per_fragment

INITIAL_GPF = TOTAL_GONS // INITIAL_FRAGMENTS_SUPPLY


def _distribute(receipt: RebasingToken, **holdings) -> None:
    for account, amount in holdings.items():
        receipt.transfer("staking", account, amount)


class TestConstants:
    """Tests for gon constants."""

    def test_total_gons_divisible_by_initial_supply(self):
        assert TOTAL_GONS % INITIAL_FRAGMENTS_SUPPLY == 0
        assert TOTAL_GONS <= MAX_UINT256

    def test_gons_per_fragment(self):
        assert calculate_gons_per_fragment(INITIAL_FRAGMENTS_SUPPLY) == INITIAL_GPF

    def test_gons_per_fragment_rejects_zero_supply(self):
        with pytest.raises(ValueError):
            calculate_gons_per_fragment(0)


class TestConversions:
    """Tests for gon/fragment conversions."""

    def test_balance_for_gons_truncates(self):
        assert balance_for_gons(INITIAL_GPF * 3 + INITIAL_GPF - 1, INITIAL_GPF) == 3

    def test_gons_for_balance_overflow(self):
        amount = MAX_UINT256 // INITIAL_GPF + 1
        with pytest.raises(SupplyOverflow):
            gons_for_balance(amount, INITIAL_GPF)

    @given(
        amount=st.integers(min_value=0, max_value=10**24),
        supply=st.integers(min_value=INITIAL_FRAGMENTS_SUPPLY, max_value=MAX_SUPPLY),
    )
    @settings(max_examples=50)
    def test_fragments_survive_gon_conversion(self, amount, supply):
        """Fragment amounts converted to gons and back are unchanged."""
        gpf = calculate_gons_per_fragment(supply)
        assert balance_for_gons(gons_for_balance(amount, gpf), gpf) == amount


class TestGonAmount:
    """Tests for the GonAmount value type."""

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            GonAmount(-1)

    def test_fragment_conversion(self):
        gons = GonAmount.from_fragments(10, INITIAL_GPF)
        assert gons.gons == 10 * INITIAL_GPF
        assert gons.to_fragments(INITIAL_GPF) == 10

    def test_arithmetic_and_truth(self):
        assert GonAmount(5) + GonAmount(3) == GonAmount(8)
        assert GonAmount(5) - GonAmount(5) == GonAmount(0)
        assert not GonAmount(0)
        assert GonAmount(1)

    def test_subtraction_below_zero_rejected(self):
        with pytest.raises(ValueError):
            GonAmount(1) - GonAmount(2)


class TestCalculateRebase:
    """Tests for the pure rebase formula."""

    def test_zero_profit_is_noop(self):
        assert calculate_rebase(1_000, 500, 0) == 1_000

    def test_zero_circulating_is_noop(self):
        assert calculate_rebase(1_000, 0, 100) == 1_000

    def test_rebase_amount(self):
        # profit * total // circulating
        assert calculate_rebase(1_000, 500, 100) == 1_200

    def test_negative_profit_rejected(self):
        with pytest.raises(InvalidAmount):
            calculate_rebase(1_000, 500, -1)

    def test_overflow_rejected(self):
        with pytest.raises(SupplyOverflow):
            calculate_rebase(MAX_SUPPLY - 10, 1, 1)


class TestInitialize:
    """Tests for initialize()."""

    def test_staking_contract_holds_everything(self, receipt):
        assert receipt.gons_of("staking") == TOTAL_GONS
        assert receipt.balance_of("staking") == INITIAL_FRAGMENTS_SUPPLY
        assert receipt.circulating_supply() == 0

    def test_second_initialize_rejected(self, receipt_ledger):
        receipt = RebasingToken(receipt_ledger, "FOXy", AccessControl("admin"))
        with pytest.raises(AlreadyInitialized):
            receipt.initialize("admin", "staking")

    def test_non_admin_initialize_rejected(self):
        ledger = Ledger("test", verbose=False)
        ledger.register_unit(create_rebasing_token("FOXy", "Staked Fox"))
        receipt = RebasingToken(ledger, "FOXy", AccessControl("admin"))
        with pytest.raises(Unauthorized):
            receipt.initialize("mallory", "staking")

    def test_initial_index(self, receipt):
        assert receipt.get_index() == 10**18


class TestRebase:
    """Tests for rebase()."""

    def test_only_staking_contract_rebases(self, receipt):
        _distribute(receipt, alice=1_000)
        with pytest.raises(Unauthorized):
            receipt.rebase("alice", 100, 1)

    def test_two_holders_split(self, receipt):
        """10000 and 1000 staked, 1000 distributed: +909 and +90."""
        _distribute(receipt, alice=10_000, bob=1_000)
        receipt.rebase("staking", 1_000, 1)
        assert receipt.balance_of("alice") == 10_909
        assert receipt.balance_of("bob") == 1_090

    def test_gons_unchanged_by_rebase(self, receipt):
        _distribute(receipt, alice=10_000)
        before = receipt.gons_of("alice")
        receipt.rebase("staking", 500, 1)
        assert receipt.gons_of("alice") == before

    def test_circulating_grows_by_profit(self, receipt):
        """Every balance scales; circulation grows by exactly the profit."""
        _distribute(receipt, alice=1_000)
        receipt.rebase("staking", 1_000, 1)
        assert receipt.total_supply() == 2 * INITIAL_FRAGMENTS_SUPPLY
        assert receipt.circulating_supply() == 2_000

    def test_index_doubles(self, receipt):
        _distribute(receipt, alice=1_000)
        receipt.rebase("staking", 1_000, 1)
        assert receipt.get_index() == 2 * 10**18
        assert receipt.balance_of("alice") == 2_000

    def test_noop_rebase_commits_nothing(self, receipt):
        assert receipt.rebase("staking", 1_000, 1) is None
        assert receipt.rebase_history() == []

    def test_rebase_history(self, receipt, receipt_ledger):
        _distribute(receipt, alice=1_000)
        receipt_ledger.advance_to(77)
        receipt.rebase("staking", 100, 4)
        (record,) = receipt.rebase_history()
        assert record['epoch'] == 4
        assert record['amount_rebased'] == 100
        assert record['total_staked_before'] == 1_000
        assert record['total_staked_after'] == 1_100
        assert record['rebase'] == 100 * 10**18 // 1_000
        assert record['block'] == 77

    @given(
        b1=st.integers(min_value=1, max_value=10**24),
        b2=st.integers(min_value=1, max_value=10**24),
        data=st.data(),
    )
    @settings(max_examples=50, deadline=None)
    def test_proportional_distribution(self, b1, b2, data):
        """Each holder gains profit * balance // circulating, give or take one unit of truncation."""
        profit = data.draw(st.integers(min_value=0, max_value=b1 + b2))
        ledger = Ledger("prop", verbose=False)
        ledger.register_unit(create_rebasing_token("FOXy", "Staked Fox"))
        for wallet in ("admin", "alice", "bob", "staking"):
            ledger.register_wallet(wallet)
        receipt = RebasingToken(ledger, "FOXy", AccessControl("admin"))
        receipt.initialize("admin", "staking")
        _distribute(receipt, alice=b1, bob=b2)

        receipt.rebase("staking", profit, 1)

        for holder, before in (("alice", b1), ("bob", b2)):
            expected = profit * before // (b1 + b2)
            gain = receipt.balance_of(holder) - before
            assert expected - 1 <= gain <= expected


class TestTransfers:
    """Tests for receipt transfers and allowances."""

    def test_transfer_moves_gons(self, receipt):
        _distribute(receipt, alice=1_000)
        receipt.transfer("alice", "bob", 400)
        assert receipt.balance_of("alice") == 600
        assert receipt.balance_of("bob") == 400
        assert receipt.gons_of("bob") == 400 * INITIAL_GPF

    def test_transfer_overdraft(self, receipt):
        _distribute(receipt, alice=10)
        with pytest.raises(InsufficientFunds):
            receipt.transfer("alice", "bob", 11)

    def test_transfer_from(self, receipt):
        _distribute(receipt, alice=1_000)
        receipt.approve("alice", "bob", 300)
        receipt.transfer_from("bob", "alice", "bob", 300)
        assert receipt.balance_of("bob") == 300
        assert receipt.allowance("alice", "bob") == 0

    def test_increase_and_decrease_allowance(self, receipt):
        receipt.increase_allowance("alice", "bob", 100)
        receipt.increase_allowance("alice", "bob", 50)
        assert receipt.allowance("alice", "bob") == 150
        receipt.decrease_allowance("alice", "bob", 120)
        assert receipt.allowance("alice", "bob") == 30

    def test_decrease_below_zero_rejected(self, receipt):
        receipt.approve("alice", "bob", 10)
        with pytest.raises(InsufficientAllowance, match="Not enough allowance"):
            receipt.decrease_allowance("alice", "bob", 11)
