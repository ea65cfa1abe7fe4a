"""
Core types and pure functions for the staking ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access, SmartContract for keepers
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. TransactionDraft: accumulates the moves and state edits of one operation
4. Exceptions: LedgerError and domain-specific error types
5. Type aliases: Positions, BalanceMap, UnitState

All quantities are exact integers in token base units; gon balances of
the rebasing token reach ~1e77.

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance and burning.
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# Address that never owns anything; rejected wherever a recipient is named.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Unit type constants (strings, not enum).
UNIT_TYPE_TOKEN = "TOKEN"
UNIT_TYPE_REBASING_TOKEN = "REBASING_TOKEN"
UNIT_TYPE_LIQUIDITY_SHARE = "LIQUIDITY_SHARE"
UNIT_TYPE_VENUE_RECEIPT = "VENUE_RECEIPT"
UNIT_TYPE_STAKING_CONTROLLER = "STAKING_CONTROLLER"

MAX_UINT256 = 2**256 - 1

# Fees are expressed in basis points of this denominator.
BASIS_POINTS = 10_000

DEFAULT_DECIMALS = 18


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, int]

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Internal state for a unit: configuration, per-account records, flags.
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Functions accepting a LedgerView parameter declare their read-only intent.
    The Ledger class implements this protocol but also provides mutation
    methods. For testing, FakeView provides a truly immutable implementation.
    """

    @property
    def current_block(self) -> int:
        """Return the current block height of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Return the balance of a specific unit in a wallet.

        Returns 0 if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


class SmartContract(Protocol):
    """
    Protocol for block-driven keeper contracts.

    Contracts inspect the ledger at a block height and return the
    PendingTransaction that should run, or an empty one when nothing is due.
    """

    def check_lifecycle(
        self,
        view: LedgerView,
        symbol: str,
        block: int,
    ) -> 'PendingTransaction':
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: intent_id was previously processed (idempotent behavior).
    REJECTED: Transaction failed validation (insufficient funds, unknown
              wallet or unit, future block).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    USER_ACTION = "user_action"           # Account-initiated call (stake, unstake, ...)
    CONTRACT = "contract"                 # Contract-to-contract call
    LIFECYCLE = "lifecycle"               # Keeper-driven (rebase, batching, rollover)
    SYSTEM = "system"                     # Issuance, initial setup
    ADMIN = "admin"                       # Administrative configuration


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when an operation needs more balance than the account holds."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a spender's allowance does not cover a transfer."""
    pass


class BalanceConstraintViolation(LedgerError):
    """Raised when a move would cause a wallet balance to violate the unit's min/max constraints."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class TransactionRejected(LedgerError):
    """Raised by Ledger.commit() when validation rejects a transaction."""
    pass


class Unauthorized(LedgerError):
    """Raised when the caller lacks the role an operation requires."""
    pass


class FeaturePaused(LedgerError):
    """Raised when an administratively paused feature is used."""
    pass


class AccountLocked(LedgerError):
    """Raised when an account has locked its own withdrawals."""
    pass


class InvalidAmount(LedgerError):
    """Raised for zero or negative amounts."""
    pass


class InvalidAddress(LedgerError):
    """Raised when a recipient or contract address is missing or the zero address."""
    pass


class OutOfRange(LedgerError):
    """Raised when a configuration value falls outside its permitted range."""
    pass


class AlreadyInitialized(LedgerError):
    """Raised when a one-shot initializer runs a second time."""
    pass


class SupplyOverflow(LedgerError):
    """Raised when a rebase or gon conversion exceeds its representable range."""
    pass


class WithdrawalNotReady(LedgerError):
    """Raised by the venue when a withdrawal request has not matured."""
    pass


def require_address(address: Optional[str], what: str = "address") -> str:
    """Return address unchanged, or raise InvalidAddress for a missing/zero address."""
    if not address or not address.strip() or address == ZERO_ADDRESS:
        raise InvalidAddress(f"Invalid {what}: {address!r}")
    return address


def require_positive(amount: int, what: str = "amount") -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"{what} must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"Must have valid {what}: {amount}")
    return amount


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the caller (account, contract or keeper)
        unit_symbol: Symbol of the unit whose operation produced this
        event_type: Operation name (e.g., "STAKE", "REBASE", "CLAIM_WITHDRAW")
        nonce: Distinguishes otherwise identical calls; part of intent_id
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None
    nonce: int = 0

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        if self.nonce:
            parts.append(f"nonce={self.nonce}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change for transaction logging and replay.

    Stores complete before/after state snapshots:
    - Forward replay: apply new_state
    - Audit queries: compute changed_fields() on demand

    Attributes:
        unit: Symbol of the unit whose state changed
        old_state: Complete state before the change (dict or None)
        new_state: Complete state after the change (dict)
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """
        Compute fields that differ between old and new state.

        Returns:
            Dict mapping field name to (old_value, new_value) tuples.
        """
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: Amount in base units (int, non-zero). Rebasing tokens move gons.
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
        metadata: Optional additional information about the move.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity == 0:
            raise ValueError("Move quantity is zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Output is independent of dict insertion order and set iteration order.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    return f"R:{repr(value)}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    The hash covers moves, state changes and origin (including its nonce),
    never the block or ledger name. Used for idempotency checking.
    """
    sorted_moves = sorted(
        moves,
        key=lambda m: (m.quantity, m.unit_symbol, m.source, m.dest, m.contract_id)
    )

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")
    content_parts.append(f"nonce:{origin.nonce}")

    for m in sorted_moves:
        content_parts.append(f"move:{m.quantity}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        old_canonical = _canonicalize(sc.old_state)
        new_canonical = _canonicalize(sc.new_state)
        content_parts.append(f"state_change:{sc.unit}|{old_canonical}|{new_canonical}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Lifecycle:
    1. A component builds a PendingTransaction (usually via TransactionDraft)
    2. intent_id is auto-computed from content (deterministic hash)
    3. Ledger.execute() validates and executes, creating a Transaction record

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        block: Block height at which this was built
        intent_id: Content-addressable hash of the transaction intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    block: int
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(self.moves, self.state_changes, self.origin)
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves and no state deltas."""
        return not self.moves and not self.state_changes

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state deltas.

    Args:
        view: Read-only ledger view (provides current_block)
        moves: List of moves to include in the transaction
        state_changes: Optional list of UnitStateChange objects
        origin: Transaction origin (defaults to CONTRACT origin)

    Example:
        old_state = view.get_unit_state("STAKING")
        new_state = {**old_state, "warmup_period": 2}
        tx = build_transaction(view, [], [UnitStateChange("STAKING", old_state, new_state)])
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        block=view.current_block,
    )


def empty_pending_transaction(view: LedgerView) -> PendingTransaction:
    """Create an empty PendingTransaction for contracts with nothing to do."""
    return PendingTransaction(
        moves=(),
        state_changes=(),
        origin=TransactionOrigin(OriginType.CONTRACT, "noop"),
        block=view.current_block,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        state_changes: Tuple of unit state changes (with old_state and new_state)
        origin: Who/what created this transaction and why
        block: Block at which the PendingTransaction was built
        intent_id: Content hash from PendingTransaction (for idempotency)
        exec_id: Unique execution identifier (ledger + sequence + block)
        ledger_name: Name of the ledger that executed this
        execution_block: Block at which this was executed and logged
        sequence_number: Monotonic sequence within the ledger (for ordering)
        contract_ids: Set of contract IDs from moves (auto-populated)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    block: int
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_block: int
    sequence_number: int
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if not self.moves and not self.state_changes:
            raise ValueError("Transaction must have moves or state_changes")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   block          : ' + str(self.block))}│",
            f"│{pad('   ledger_name    : ' + self.ledger_name)}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        lines.append(f"├{bar}┤")
        lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
        for i, move in enumerate(self.moves):
            move_str = f"   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}"
            lines.append(f"│{pad(move_str)}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a sorted tuple of (key, value) pairs."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit (token or stateful contract) in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "FOX", "FOXy").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (TOKEN, REBASING_TOKEN, ...).
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any wallet (None = unbounded).
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: int = 0
    max_balance: Optional[int] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Return the unit's state as a new dict each time."""
        return _thaw_state(self._frozen_state)


# ============================================================================
# TRANSACTION DRAFT
# ============================================================================

class TransactionDraft:
    """
    Working area for one atomic operation.

    Components append moves and edit unit state through the draft; reads
    through balance() and state() observe earlier edits of the same draft.
    Nothing touches the ledger until build() is executed, so an operation
    that raises halfway leaves no trace.

    A draft also satisfies LedgerView, so read functions written against a
    view can be pointed at a draft to see its pending effects.

    Example:
        draft = TransactionDraft(ledger, origin)
        draft.move(100, "FOX", "alice", "staking", "stake")
        draft.state("STAKING")["warmup_info"]["alice"] = {...}
        ledger.commit(draft.build())
    """

    def __init__(self, view: LedgerView, origin: TransactionOrigin):
        self.view = view
        self.origin = origin
        self.moves: List[Move] = []
        self._old_states: Dict[str, UnitState] = {}
        self._new_states: Dict[str, UnitState] = {}
        self._deltas: Dict[Tuple[str, str], int] = {}

    @property
    def current_block(self) -> int:
        return self.view.current_block

    def balance(self, wallet_id: str, unit_symbol: str) -> int:
        """Ledger balance plus the net effect of moves already drafted."""
        return self.view.get_balance(wallet_id, unit_symbol) + self._deltas.get((wallet_id, unit_symbol), 0)

    def state(self, unit_symbol: str) -> UnitState:
        """Mutable working copy of a unit's state, shared across the draft."""
        if unit_symbol not in self._new_states:
            old = self.view.get_unit_state(unit_symbol)
            self._old_states[unit_symbol] = old
            self._new_states[unit_symbol] = copy.deepcopy(old)
        return self._new_states[unit_symbol]

    # LedgerView
    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        return self.balance(wallet_id, unit_symbol)

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        if unit_symbol in self._new_states:
            return copy.deepcopy(self._new_states[unit_symbol])
        return self.view.get_unit_state(unit_symbol)

    def get_positions(self, unit_symbol: str) -> Positions:
        positions = self.view.get_positions(unit_symbol)
        for (wallet, symbol), delta in self._deltas.items():
            if symbol != unit_symbol:
                continue
            quantity = positions.get(wallet, 0) + delta
            if quantity:
                positions[wallet] = quantity
            else:
                positions.pop(wallet, None)
        return positions

    def list_wallets(self) -> Set[str]:
        return self.view.list_wallets()

    def get_unit(self, symbol: str) -> 'Unit':
        return self.view.get_unit(symbol)

    def move(
        self,
        quantity: int,
        unit_symbol: str,
        source: str,
        dest: str,
        contract_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append a move; zero quantities are dropped."""
        if quantity == 0:
            return
        self.moves.append(Move(quantity, unit_symbol, source, dest, contract_id, metadata))
        self._deltas[(source, unit_symbol)] = self._deltas.get((source, unit_symbol), 0) - quantity
        self._deltas[(dest, unit_symbol)] = self._deltas.get((dest, unit_symbol), 0) + quantity

    def build(self) -> PendingTransaction:
        changes = [
            UnitStateChange(symbol, self._old_states[symbol], self._new_states[symbol])
            for symbol in sorted(self._new_states)
            if self._new_states[symbol] != self._old_states[symbol]
        ]
        return build_transaction(self.view, self.moves, changes, self.origin)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def contract_unit(
    symbol: str,
    name: str,
    unit_type: str,
    state: UnitState,
) -> Unit:
    """Create a unit that carries contract state alongside (or instead of) balances."""
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=unit_type,
        _frozen_state=_freeze_state(state),
    )
