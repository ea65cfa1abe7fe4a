"""
test_ledger_operations.py - Unit tests for Ledger class operations

Tests:
- Ledger creation and configuration
- Wallet and unit registration
- Balance reads and set_balance()
- Block clock
- Transaction execution, commit and rejection
- Double-entry verification
- Clone and replay
"""

import pytest
from yieldy import (
    Ledger, Move, ExecuteResult, Token, PendingTransaction, TransactionOrigin, OriginType,
    build_transaction, create_token,
    LedgerError, TransactionRejected, WalletNotRegistered, UnitNotRegistered,
    SYSTEM_WALLET,
)

from tests.conftest import compare_ledger_states


def _fox_ledger(**kwargs) -> Ledger:
    ledger = Ledger("test", verbose=False, **kwargs)
    ledger.register_unit(create_token("FOX", "Fox Token"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


class TestLedgerCreation:
    """Tests for Ledger initialization."""

    def test_create_ledger_minimal(self):
        ledger = Ledger("test")
        assert ledger.name == "test"
        assert ledger.current_block == 0
        assert ledger.next_sequence == 0

    def test_create_ledger_with_options(self):
        ledger = Ledger(name="test", initial_block=1_000, verbose=False)
        assert ledger.current_block == 1_000
        assert ledger.verbose is False

    def test_system_wallet_registered(self):
        ledger = Ledger("test", verbose=False)
        assert SYSTEM_WALLET in ledger.list_wallets()


class TestRegistration:
    """Tests for wallet and unit registration."""

    def test_register_wallet(self):
        ledger = Ledger("test", verbose=False)
        assert ledger.register_wallet("alice") == "alice"
        assert ledger.is_registered("alice")

    def test_register_duplicate_wallet_raises(self):
        ledger = Ledger("test", verbose=False)
        ledger.register_wallet("alice")
        with pytest.raises(ValueError, match="already registered"):
            ledger.register_wallet("alice")

    def test_ensure_wallet_is_idempotent(self):
        ledger = Ledger("test", verbose=False)
        ledger.ensure_wallet("alice")
        ledger.ensure_wallet("alice")
        assert len(ledger.list_wallets()) == 2

    def test_opening_wallets_keeps_wallets_on_success(self):
        ledger = _fox_ledger()
        with ledger.opening_wallets("carol", "alice"):
            pass
        assert ledger.is_registered("carol")
        assert ledger.is_registered("alice")

    def test_opening_wallets_drops_new_wallets_on_error(self):
        ledger = _fox_ledger()
        with pytest.raises(TransactionRejected):
            with ledger.opening_wallets("carol", "alice"):
                ledger.commit(build_transaction(ledger, [Move(10, "FOX", "alice", "carol", "pay")]))
        assert not ledger.is_registered("carol")
        assert ledger.is_registered("alice")
        assert "carol" not in ledger.balances

    def test_rejected_transfer_does_not_register_recipient(self):
        ledger = _fox_ledger()
        with pytest.raises(LedgerError):
            Token(ledger, "FOX").transfer("alice", "carol", 10)
        assert not ledger.is_registered("carol")

    def test_register_duplicate_unit_raises(self):
        ledger = _fox_ledger()
        with pytest.raises(ValueError, match="already registered"):
            ledger.register_unit(create_token("FOX", "Fox Token"))

    def test_list_units_sorted(self):
        ledger = _fox_ledger()
        ledger.register_unit(create_token("ABC", "Abc"))
        assert ledger.list_units() == ["ABC", "FOX"]


class TestBalances:
    """Tests for balance reads."""

    def test_unregistered_wallet_raises(self):
        ledger = _fox_ledger()
        with pytest.raises(WalletNotRegistered):
            ledger.get_balance("carol", "FOX")

    def test_unregistered_unit_raises(self):
        ledger = _fox_ledger()
        with pytest.raises(UnitNotRegistered):
            ledger.get_balance("alice", "BTC")
        with pytest.raises(UnitNotRegistered):
            ledger.get_unit_state("BTC")

    def test_unit_state_is_a_copy(self):
        ledger = _fox_ledger()
        state = ledger.get_unit_state("FOX")
        state["allowances"]["alice"] = {"bob": 1}
        assert ledger.get_unit_state("FOX")["allowances"] == {}

    def test_set_balance_requires_test_mode(self):
        ledger = _fox_ledger()
        with pytest.raises(LedgerError, match="test_mode"):
            ledger.set_balance("alice", "FOX", 100)

    def test_set_balance_books_offset_to_system(self):
        ledger = _fox_ledger(test_mode=True)
        ledger.set_balance("alice", "FOX", 100)
        assert ledger.get_balance("alice", "FOX") == 100
        assert ledger.get_balance(SYSTEM_WALLET, "FOX") == -100
        assert ledger.total_supply("FOX") == 0
        assert ledger.issued_supply("FOX") == 100

    def test_positions(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 10)
        assert ledger.get_positions("FOX") == {"alice": 10, SYSTEM_WALLET: -10}


class TestBlockClock:
    """Tests for block clock management."""

    def test_advance_to(self):
        ledger = Ledger("test", verbose=False)
        ledger.advance_to(500)
        assert ledger.current_block == 500

    def test_advance_backwards_raises(self):
        ledger = Ledger("test", initial_block=10, verbose=False)
        with pytest.raises(ValueError, match="backwards"):
            ledger.advance_to(9)

    def test_advance_block(self):
        ledger = Ledger("test", verbose=False)
        assert ledger.advance_block() == 1
        assert ledger.advance_block(9) == 10

    def test_advance_block_negative_raises(self):
        ledger = Ledger("test", verbose=False)
        with pytest.raises(ValueError):
            ledger.advance_block(-1)


class TestExecution:
    """Tests for execute() and commit()."""

    def test_execute_applies_moves(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 100)
        pending = build_transaction(ledger, [Move(40, "FOX", "alice", "bob", "pay")])
        assert ledger.execute(pending) == ExecuteResult.APPLIED
        assert ledger.get_balance("bob", "FOX") == 40
        assert ledger.next_sequence == 2

    def test_execute_is_idempotent(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 100)
        pending = build_transaction(ledger, [Move(40, "FOX", "alice", "bob", "pay")])
        ledger.execute(pending)
        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
        assert ledger.get_balance("bob", "FOX") == 40

    def test_overdraft_rejected(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 50)
        pending = build_transaction(ledger, [Move(100, "FOX", "alice", "bob", "pay")])
        assert ledger.execute(pending) == ExecuteResult.REJECTED
        assert ledger.get_balance("alice", "FOX") == 50

    def test_commit_raises_on_rejection(self):
        ledger = _fox_ledger()
        pending = build_transaction(ledger, [Move(1, "FOX", "alice", "bob", "pay")])
        with pytest.raises(TransactionRejected):
            ledger.commit(pending)

    def test_commit_returns_none_for_empty(self):
        ledger = _fox_ledger()
        assert ledger.commit(build_transaction(ledger, [])) is None

    def test_unregistered_wallet_rejected(self):
        ledger = _fox_ledger()
        pending = build_transaction(ledger, [Move(1, "FOX", SYSTEM_WALLET, "carol", "mint")])
        assert ledger.execute(pending) == ExecuteResult.REJECTED

    def test_future_block_rejected(self):
        ledger = _fox_ledger()
        pending = PendingTransaction(
            moves=(Move(1, "FOX", SYSTEM_WALLET, "alice", "mint"),),
            state_changes=(),
            origin=TransactionOrigin(OriginType.SYSTEM, SYSTEM_WALLET),
            block=5,
        )
        assert ledger.execute(pending) == ExecuteResult.REJECTED

    def test_transaction_log(self):
        ledger = _fox_ledger()
        tx = Token(ledger, "FOX").mint("alice", 100)
        assert ledger.transaction_log == [tx]
        assert tx.sequence_number == 0
        assert tx.execution_block == 0
        assert "mint" in tx.contract_ids


class TestDoubleEntry:
    """Tests for verify_double_entry()."""

    def test_valid_after_moves(self):
        ledger = _fox_ledger()
        fox = Token(ledger, "FOX")
        fox.mint("alice", 100)
        fox.transfer("alice", "bob", 30)
        result = ledger.verify_double_entry({"FOX": 100})
        assert result['valid'], result['discrepancies']
        assert result['supplies']["FOX"] == 100

    def test_reports_expected_supply_mismatch(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 100)
        result = ledger.verify_double_entry({"FOX": 99})
        assert not result['valid']
        assert result['discrepancies'][0]['difference'] == 1

    def test_reports_unknown_unit(self):
        ledger = _fox_ledger()
        result = ledger.verify_double_entry({"BTC": 1})
        assert not result['valid']


class TestCloneAndReplay:
    """Tests for clone() and replay()."""

    def test_clone_is_independent(self):
        ledger = _fox_ledger()
        Token(ledger, "FOX").mint("alice", 100)
        cloned = ledger.clone()
        Token(cloned, "FOX").transfer("alice", "bob", 60)
        assert ledger.get_balance("alice", "FOX") == 100
        assert cloned.get_balance("alice", "FOX") == 40

    def test_replay_reproduces_state(self):
        ledger = _fox_ledger()
        fox = Token(ledger, "FOX")
        fox.mint("alice", 100)
        ledger.advance_to(10)
        fox.approve("alice", "bob", 70)
        fox.transfer_from("bob", "alice", "bob", 50)
        replayed = ledger.replay()
        diff = compare_ledger_states(ledger, replayed)
        assert diff["equal"], diff
        assert replayed.current_block == 10
