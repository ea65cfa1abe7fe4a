"""
ledger.py - Stateful Double-Entry Ledger

The Ledger class is the central state manager for the staking system.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Executes transactions atomically (all moves and state changes, or nothing)
    - Maintains wallet balances and unit definitions
    - Tracks the block clock and supports replay of the transaction log
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, Iterator, List, Set, Optional, Tuple, Any
import copy

from .core import (
    # Types
    Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, TransactionRejected, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)


class Ledger:
    """
    Double-entry ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to pure
    functions that access only read-only methods.

    Design Principles:
        - Always validates: every transaction is checked against registration,
          balance constraints and the block clock before anything changes.
        - Always logs: every applied transaction is recorded in the audit trail,
          enabling replay() for state reconstruction.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(create_token("FOX", "Fox Token"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        tx = build_transaction(ledger, [
            Move(100, "FOX", "alice", "bob", "payment_001")
        ])
        result = ledger.execute(tx)
    """

    def __init__(
        self,
        name: str,
        initial_block: int = 0,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_block: Starting block height (default: 0)
            verbose: Print applied and rejected transactions (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_block: int = initial_block
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity} for O(1) position lookups
        self._positions_by_unit: Dict[str, Dict[str, int]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_block(self) -> int:
        """Current block height of the ledger."""
        return self._current_block

    @property
    def next_sequence(self) -> int:
        """Sequence number the next applied transaction will receive."""
        return self._next_sequence

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        The returned dictionary can be mutated freely without affecting the ledger.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def total_supply(self, unit_symbol: str) -> int:
        """
        Sum of a unit's balances across all wallets, SYSTEM_WALLET included.

        Issuance debits SYSTEM_WALLET, so this is zero for every unit whose
        value only ever entered through moves.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(self.balances[w].get(unit_symbol, 0) for w in sorted(self.registered_wallets))

    def issued_supply(self, unit_symbol: str) -> int:
        """Sum of a unit's balances held outside SYSTEM_WALLET."""
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(
        self,
        expected_supplies: Optional[Dict[str, int]] = None,
    ) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Without expected_supplies, returns the current issued supply of each
        unit. With expected_supplies, reports every unit whose issued supply
        differs from the expected value.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every unit nets to zero and matches expectations
            - 'supplies': Dict[str, int] - Issued supply (outside SYSTEM_WALLET) per unit
            - 'discrepancies': List[Dict] - Details of any violations

        Example:
            result = ledger.verify_double_entry({"FOXy": TOTAL_GONS})
            assert result['valid'], result['discrepancies']
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in sorted(self.units):
            net = self.total_supply(unit_symbol)
            if net != 0:
                discrepancies.append({
                    'unit': unit_symbol,
                    'expected': 0,
                    'actual': net,
                    'difference': net,
                    'error': 'moves do not net to zero',
                })
            supplies[unit_symbol] = self.issued_supply(unit_symbol)

            if expected_supplies and unit_symbol in expected_supplies:
                expected = expected_supplies[unit_symbol]
                if supplies[unit_symbol] != expected:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': supplies[unit_symbol],
                        'difference': supplies[unit_symbol] - expected,
                    })

        if expected_supplies:
            for unit_symbol, expected in expected_supplies.items():
                if unit_symbol not in supplies:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'expected': expected,
                        'actual': 0,
                        'difference': -expected,
                        'error': 'unit not registered',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # BLOCK CLOCK
    # ========================================================================

    def advance_to(self, block: int) -> None:
        """
        Move the block clock to a new height.

        Raises:
            ValueError: If block is below the current height
        """
        if block < self._current_block:
            raise ValueError(
                f"Cannot move block clock backwards: {block} < {self._current_block}"
            )
        self._current_block = block

    def advance_block(self, count: int = 1) -> int:
        """Mine `count` blocks and return the new height."""
        if count < 0:
            raise ValueError(f"Block count must be non-negative, got {count}")
        self._current_block += count
        return self._current_block

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        """Register wallet_id unless it is already known."""
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    @contextmanager
    def opening_wallets(self, *wallet_ids: str) -> Iterator[None]:
        """
        Register wallet_ids for the duration of one operation.

        Wallets registered here are dropped again if the block raises, so a
        rejected call leaves the wallet set as it found it.

        Example:
            with ledger.opening_wallets("bob"):
                ledger.commit(compute_transfer(ledger, "FOX", "alice", "bob", 10, ledger.next_sequence))
        """
        opened = [w for w in dict.fromkeys(wallet_ids) if w not in self.registered_wallets]
        for wallet_id in opened:
            self.register_wallet(wallet_id)
        try:
            yield
        except Exception:
            for wallet_id in opened:
                self.registered_wallets.discard(wallet_id)
                self.balances.pop(wallet_id, None)
            raise

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode. The offsetting amount is booked against SYSTEM_WALLET
        so that total_supply() still nets to zero.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        delta = quantity - self.balances[wallet_id][unit_symbol]
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)
        if wallet_id != SYSTEM_WALLET:
            system_balance = self.balances[SYSTEM_WALLET][unit_symbol] - delta
            self.balances[SYSTEM_WALLET][unit_symbol] = system_balance
            self._update_position_index(SYSTEM_WALLET, unit_symbol, system_balance)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{block}"""
        return f"exec:{self.name}:{sequence:012d}:{self._current_block}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves and state changes apply together or not at all.
        Execution is idempotent: a pending transaction with the same intent_id
        will not be applied twice.

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed
        """
        result, _ = self._execute(pending)
        return result

    def commit(self, pending: PendingTransaction) -> Optional[Transaction]:
        """
        Execute a PendingTransaction and return the logged Transaction.

        Returns None for empty or already-applied transactions.

        Raises:
            TransactionRejected: If validation rejects the transaction
        """
        result, reason = self._execute(pending)
        if result == ExecuteResult.REJECTED:
            raise TransactionRejected(f"{pending.origin}: {reason}")
        if result == ExecuteResult.APPLIED and not pending.is_empty():
            return self.transaction_log[-1]
        return None

    def _execute(self, pending: PendingTransaction) -> Tuple[ExecuteResult, str]:
        if pending.is_empty():
            return ExecuteResult.APPLIED, ""

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED, ""

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED, reason

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            block=pending.block,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_block=self._current_block,
            sequence_number=sequence,
        )

        self._execute_moves(tx.moves)

        # Unit is frozen, so each state change installs a new Unit instance
        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED, ""

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print the transaction box with a result line appended."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines[-1] = f"├{bar}┤"
        lines.append(f"│{pad(' ' + icon + ' ' + result)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Checks performed:
        1. Block check (transaction must not be built in the future)
        2. Unit and wallet registration
        3. State changes only target registered units
        4. Balance constraint validation (min/max balance limits)

        Returns:
            Tuple of (success: bool, reason: str)
        """
        if pending.block > self._current_block:
            return False, f"future block {pending.block} > {self._current_block}"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return False, f"unit not registered: {sc.unit}"

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt: it is the issuance/burn counterparty
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue

            unit = self.units[unit_sym]
            proposed = self.balances[wallet][unit_sym] + delta

            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if unit.max_balance is not None and proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: int) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero balances are dropped."""
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        for move in moves:
            new_src_balance = self.balances[move.source][move.unit_symbol] - move.quantity
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)

            new_dst_balance = self.balances[move.dest][move.unit_symbol] + move.quantity
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a fully independent deep copy of this ledger.

        Cloned state includes units and their state, wallets and balances,
        the transaction log, the block clock and configuration.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_block = self._current_block
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode

        cloned.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(copy.deepcopy(unit.state)))
            for symbol, unit in self.units.items()
        }

        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence

        cloned.balances = {}
        for wallet, bals in self.balances.items():
            cloned.balances[wallet] = defaultdict(int, bals)

        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)

        return cloned

    def replay(self, from_tx: int = 0) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Registration state is not logged, so each unit starts from the
        old_state of its first logged change (or its current state if it
        never changed). Balances set via set_balance() are not part of the
        log and are not replayed.

        Raises:
            LedgerError: If a logged transaction is rejected during replay
        """
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            initial_block=0,
            verbose=self.verbose,
            test_mode=self._test_mode
        )

        initial_states: Dict[str, UnitState] = {}
        for tx in self.transaction_log[from_tx:]:
            for sc in tx.state_changes:
                if sc.unit not in initial_states:
                    initial_states[sc.unit] = sc.old_state or {}

        for symbol, unit in self.units.items():
            state = initial_states.get(symbol, unit.state)
            new_ledger.units[symbol] = replace(
                unit, _frozen_state=_freeze_state(copy.deepcopy(state))
            )

        for wallet in self.registered_wallets:
            if wallet != SYSTEM_WALLET:
                new_ledger.register_wallet(wallet)

        for tx in self.transaction_log[from_tx:]:
            if tx.execution_block > new_ledger._current_block:
                new_ledger.advance_to(tx.execution_block)

            pending = PendingTransaction(
                moves=tx.moves,
                state_changes=tx.state_changes,
                origin=tx.origin,
                block=tx.block,
            )

            result = new_ledger.execute(pending)
            if result == ExecuteResult.REJECTED:
                raise LedgerError(f"Replay failed at tx {tx.exec_id}")

        return new_ledger
