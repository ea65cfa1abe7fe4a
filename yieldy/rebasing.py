"""
rebasing.py - Elastic-Supply Receipt Token ("gons" accounting)

This module provides the rebasing receipt token using a pure function
architecture with explicit inputs.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - GonAmount: internal unit value type with explicit fragment conversions
   - RebasingState: snapshot of supply, scaling factor and wiring

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No LedgerView, no hidden state

3. ADAPTER FUNCTIONS (load_rebasing_token):
   - Extract state from a LedgerView (or TransactionDraft) once

4. DRAFT OPERATIONS (apply_*) and TRANSACTIONS (compute_*):
   - apply_* edit a TransactionDraft so the controller can fold token
     operations into its own atomic call
   - compute_* wrap a single apply_* into a PendingTransaction

Ledger balances of this unit are denominated in gons. The public balance
of an account is gons // gons_per_fragment. A rebase only changes
total_supply and gons_per_fragment, so no account's gon count changes and
every balance scales by the same factor.

Key Formulas:
    TOTAL_GONS = MAX_UINT256 - MAX_UINT256 % INITIAL_FRAGMENTS_SUPPLY
    gons_per_fragment = TOTAL_GONS // total_supply
    rebase_amount = profit * total_supply // circulating_supply
    circulating_supply = total_supply - balance_of(staking_contract)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType, Unit,
    SYSTEM_WALLET, UNIT_TYPE_REBASING_TOKEN, MAX_UINT256, DEFAULT_DECIMALS,
    InsufficientFunds, InsufficientAllowance, InvalidAmount, Unauthorized,
    AlreadyInitialized, SupplyOverflow,
    contract_unit, require_address, require_positive,
)
from . import token as plain_token


INITIAL_FRAGMENTS_SUPPLY = 5_000_000 * 10**18

# Divisible by INITIAL_FRAGMENTS_SUPPLY so the initial scaling factor is exact.
TOTAL_GONS = MAX_UINT256 - (MAX_UINT256 % INITIAL_FRAGMENTS_SUPPLY)

MAX_SUPPLY = 2**128 - 1


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True, order=True)
class GonAmount:
    """
    An amount expressed in gons, the fixed internal unit.

    Conversions to and from public (fragment) amounts are explicit and
    always truncate, so rounding is visible at every call site.
    """
    gons: int

    def __post_init__(self):
        if not isinstance(self.gons, int) or self.gons < 0:
            raise ValueError(f"GonAmount must be a non-negative int, got {self.gons!r}")

    @classmethod
    def from_fragments(cls, amount: int, gons_per_fragment: int) -> 'GonAmount':
        return cls(gons_for_balance(amount, gons_per_fragment))

    def to_fragments(self, gons_per_fragment: int) -> int:
        return balance_for_gons(self.gons, gons_per_fragment)

    def __add__(self, other: 'GonAmount') -> 'GonAmount':
        return GonAmount(self.gons + other.gons)

    def __sub__(self, other: 'GonAmount') -> 'GonAmount':
        return GonAmount(self.gons - other.gons)

    def __bool__(self) -> bool:
        return self.gons != 0


@dataclass(frozen=True, slots=True)
class RebasingState:
    """Immutable snapshot of the receipt token's supply and wiring."""
    total_supply: int
    gons_per_fragment: int
    index_gons: int
    staking_contract: Optional[str]
    initialized: bool
    decimals: int


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_rebasing_token(view: LedgerView, symbol: str) -> RebasingState:
    """Load the token's supply state as a frozen dataclass."""
    raw = view.get_unit_state(symbol)
    return RebasingState(
        total_supply=raw['total_supply'],
        gons_per_fragment=raw['gons_per_fragment'],
        index_gons=raw['index_gons'],
        staking_contract=raw.get('staking_contract'),
        initialized=raw.get('initialized', False),
        decimals=raw.get('decimals', DEFAULT_DECIMALS),
    )


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_gons_per_fragment(total_supply: int) -> int:
    if total_supply <= 0:
        raise ValueError(f"total_supply must be positive, got {total_supply}")
    return TOTAL_GONS // total_supply


def balance_for_gons(gons: int, gons_per_fragment: int) -> int:
    """Public amount represented by `gons`, truncated."""
    return gons // gons_per_fragment


def gons_for_balance(amount: int, gons_per_fragment: int) -> int:
    """
    Gons needed to represent `amount`.

    Raises:
        SupplyOverflow: If the product does not fit in 256 bits
    """
    gons = amount * gons_per_fragment
    if gons > MAX_UINT256:
        raise SupplyOverflow(f"{amount} fragments overflow the gon range")
    return gons


def calculate_rebase(total_supply: int, circulating: int, profit: int) -> int:
    """
    Total supply after distributing `profit` to circulating holders.

    Holders outside circulation (the staking contract) keep the same share
    of the larger supply, so circulating balances grow by exactly
    profit * balance // circulating.

    Returns:
        The new total supply (unchanged when profit or circulating is 0)

    Raises:
        SupplyOverflow: If the new supply would exceed MAX_SUPPLY
    """
    if profit < 0:
        raise InvalidAmount(f"Rebase profit must be non-negative, got {profit}")
    if profit == 0 or circulating == 0:
        return total_supply
    rebase_amount = profit * total_supply // circulating
    new_supply = total_supply + rebase_amount
    if new_supply > MAX_SUPPLY:
        raise SupplyOverflow(
            f"Rebase of {profit} would raise total supply to {new_supply} > {MAX_SUPPLY}"
        )
    return new_supply


# ============================================================================
# READS (work on a Ledger or a TransactionDraft)
# ============================================================================

def gons_of(view: LedgerView, symbol: str, account: str) -> int:
    return plain_token.balance_of(view, symbol, account)


def balance_of(view: LedgerView, symbol: str, account: str) -> int:
    return balance_for_gons(gons_of(view, symbol, account), view.get_unit_state(symbol)['gons_per_fragment'])


def circulating_supply(view: LedgerView, symbol: str) -> int:
    state = load_rebasing_token(view, symbol)
    if not state.staking_contract:
        return state.total_supply
    held = balance_for_gons(gons_of(view, symbol, state.staking_contract), state.gons_per_fragment)
    return state.total_supply - held


def get_index(view: LedgerView, symbol: str) -> int:
    state = load_rebasing_token(view, symbol)
    return balance_for_gons(state.index_gons, state.gons_per_fragment)


def to_gons(view: LedgerView, symbol: str, amount: Union[int, GonAmount]) -> GonAmount:
    """Normalize a fragment amount or GonAmount to a GonAmount at the current scale."""
    if isinstance(amount, GonAmount):
        return amount
    return GonAmount.from_fragments(amount, view.get_unit_state(symbol)['gons_per_fragment'])


# ============================================================================
# UNIT FACTORY
# ============================================================================

def create_rebasing_token(
    symbol: str,
    name: str,
    decimals: int = DEFAULT_DECIMALS,
    initial_supply: int = INITIAL_FRAGMENTS_SUPPLY,
) -> Unit:
    """
    Create the elastic-supply receipt token.

    The token holds no balances until initialize() mints TOTAL_GONS to the
    staking contract.
    """
    gons_per_fragment = calculate_gons_per_fragment(initial_supply)
    return contract_unit(symbol, name, UNIT_TYPE_REBASING_TOKEN, {
        'decimals': decimals,
        'allowances': {},
        'staking_contract': None,
        'initialized': False,
        'total_supply': initial_supply,
        'gons_per_fragment': gons_per_fragment,
        'index_gons': gons_for_balance(10**decimals, gons_per_fragment),
        'rebases': [],
    })


# ============================================================================
# DRAFT OPERATIONS
# ============================================================================

def apply_initialize(draft: TransactionDraft, symbol: str, staking_contract: str) -> None:
    """Hand the entire gon supply to the staking contract (one-shot)."""
    require_address(staking_contract, "staking contract")
    state = draft.state(symbol)
    if state.get('initialized'):
        raise AlreadyInitialized(f"{symbol} already initialized")
    state['initialized'] = True
    state['staking_contract'] = staking_contract
    draft.move(TOTAL_GONS, symbol, SYSTEM_WALLET, staking_contract, "initialize")


def apply_rebase(draft: TransactionDraft, symbol: str, caller: str, profit: int, epoch: int) -> int:
    """
    Grow total supply by distributing `profit` to circulating holders.

    Returns:
        The supply increase (0 for a no-op rebase)

    Raises:
        Unauthorized: If caller is not the staking contract
        SupplyOverflow: If the new supply would exceed MAX_SUPPLY
    """
    state = draft.state(symbol)
    if caller != state.get('staking_contract'):
        raise Unauthorized(f"{caller} may not rebase {symbol}")

    previous_circulating = circulating_supply(draft, symbol)
    old_supply = state['total_supply']
    new_supply = calculate_rebase(old_supply, previous_circulating, profit)
    if new_supply == old_supply:
        return 0

    state['total_supply'] = new_supply
    state['gons_per_fragment'] = calculate_gons_per_fragment(new_supply)

    state['rebases'].append({
        'epoch': epoch,
        'rebase': profit * 10**18 // previous_circulating,
        'total_staked_before': previous_circulating,
        'total_staked_after': circulating_supply(draft, symbol),
        'amount_rebased': profit,
        'index': get_index(draft, symbol),
        'block': draft.current_block,
    })
    return new_supply - old_supply


def apply_transfer_gons(
    draft: TransactionDraft,
    symbol: str,
    sender: str,
    to: str,
    amount: GonAmount,
    contract_id: str = "transfer",
) -> None:
    """Move an exact gon amount; raises InsufficientFunds on overdraft."""
    require_address(to, "recipient")
    if draft.balance(sender, symbol) < amount.gons:
        raise InsufficientFunds(f"{symbol}: {sender} holds fewer gons than {amount.gons}")
    draft.move(amount.gons, symbol, sender, to, contract_id)


def apply_transfer(
    draft: TransactionDraft,
    symbol: str,
    sender: str,
    to: str,
    amount: int,
    contract_id: str = "transfer",
) -> GonAmount:
    """Move `amount` public units as gons; returns the gons moved."""
    if amount < 0:
        raise InvalidAmount(f"Negative transfer amount: {amount}")
    gons = to_gons(draft, symbol, amount)
    if balance_of(draft, symbol, sender) < amount:
        raise InsufficientFunds(f"{symbol}: transfer amount {amount} exceeds balance of {sender}")
    apply_transfer_gons(draft, symbol, sender, to, gons, contract_id)
    return gons


def apply_transfer_from(
    draft: TransactionDraft,
    symbol: str,
    spender: str,
    owner: str,
    to: str,
    amount: int,
) -> GonAmount:
    plain_token.apply_spend_allowance(draft, symbol, owner, spender, amount)
    return apply_transfer(draft, symbol, owner, to, amount, "transfer_from")


def apply_increase_allowance(draft: TransactionDraft, symbol: str, owner: str, spender: str, added: int) -> None:
    current = plain_token.allowance(draft, symbol, owner, spender)
    plain_token.apply_approve(draft, symbol, owner, spender, current + added)


def apply_decrease_allowance(draft: TransactionDraft, symbol: str, owner: str, spender: str, subtracted: int) -> None:
    current = plain_token.allowance(draft, symbol, owner, spender)
    if subtracted > current:
        raise InsufficientAllowance("Not enough allowance")
    plain_token.apply_approve(draft, symbol, owner, spender, current - subtracted)


# ============================================================================
# STAND-ALONE TRANSACTIONS
# ============================================================================

def _draft(view: LedgerView, caller: str, symbol: str, event: str, nonce: int) -> TransactionDraft:
    return TransactionDraft(view, TransactionOrigin(OriginType.USER_ACTION, caller, symbol, event, nonce))


def compute_initialize(view: LedgerView, symbol: str, caller: str, staking_contract: str, nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, TransactionOrigin(OriginType.ADMIN, caller, symbol, "INITIALIZE", nonce))
    apply_initialize(draft, symbol, staking_contract)
    return draft.build()


def compute_rebase(view: LedgerView, symbol: str, caller: str, profit: int, epoch: int, nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, TransactionOrigin(OriginType.CONTRACT, caller, symbol, "REBASE", nonce))
    apply_rebase(draft, symbol, caller, profit, epoch)
    return draft.build()


def compute_transfer(view: LedgerView, symbol: str, sender: str, to: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, sender, symbol, "TRANSFER", nonce)
    apply_transfer(draft, symbol, sender, to, amount)
    return draft.build()


def compute_transfer_from(
    view: LedgerView, symbol: str, spender: str, owner: str, to: str, amount: int, nonce: int = 0
) -> PendingTransaction:
    draft = _draft(view, spender, symbol, "TRANSFER_FROM", nonce)
    apply_transfer_from(draft, symbol, spender, owner, to, amount)
    return draft.build()


def compute_increase_allowance(
    view: LedgerView, symbol: str, owner: str, spender: str, added: int, nonce: int = 0
) -> PendingTransaction:
    draft = _draft(view, owner, symbol, "INCREASE_ALLOWANCE", nonce)
    apply_increase_allowance(draft, symbol, owner, spender, added)
    return draft.build()


def compute_decrease_allowance(
    view: LedgerView, symbol: str, owner: str, spender: str, subtracted: int, nonce: int = 0
) -> PendingTransaction:
    draft = _draft(view, owner, symbol, "DECREASE_ALLOWANCE", nonce)
    apply_decrease_allowance(draft, symbol, owner, spender, subtracted)
    return draft.build()


# ============================================================================
# CALLER-ORIENTED WRAPPER
# ============================================================================

class RebasingToken:
    """
    The receipt token bound to a ledger.

    Only the staking contract named at initialize() may rebase.

    Example:
        foxy = RebasingToken(ledger, "FOXy", access)
        foxy.initialize("admin", "staking")
        foxy.balance_of("alice")
    """

    def __init__(self, ledger, symbol: str, access=None):
        self.ledger = ledger
        self.symbol = symbol
        self.access = access

    def _commit(self, pending: PendingTransaction):
        return self.ledger.commit(pending)

    # Reads
    def state(self) -> RebasingState:
        return load_rebasing_token(self.ledger, self.symbol)

    def balance_of(self, account: str) -> int:
        return balance_of(self.ledger, self.symbol, account)

    def gons_of(self, account: str) -> int:
        return gons_of(self.ledger, self.symbol, account)

    def total_supply(self) -> int:
        return self.state().total_supply

    def circulating_supply(self) -> int:
        return circulating_supply(self.ledger, self.symbol)

    def get_index(self) -> int:
        return get_index(self.ledger, self.symbol)

    def balance_for_gons(self, gons: int) -> int:
        return balance_for_gons(gons, self.state().gons_per_fragment)

    def gons_for_balance(self, amount: int) -> int:
        return gons_for_balance(amount, self.state().gons_per_fragment)

    def allowance(self, owner: str, spender: str) -> int:
        return plain_token.allowance(self.ledger, self.symbol, owner, spender)

    def rebase_history(self) -> List[Dict[str, Any]]:
        return self.ledger.get_unit_state(self.symbol)['rebases']

    # Mutations
    def initialize(self, caller: str, staking_contract: str):
        if self.access is not None:
            self.access.require_admin(caller)
        with self.ledger.opening_wallets(require_address(staking_contract, "staking contract")):
            return self._commit(compute_initialize(self.ledger, self.symbol, caller, staking_contract, self.ledger.next_sequence))

    def rebase(self, caller: str, profit: int, epoch: int):
        return self._commit(compute_rebase(self.ledger, self.symbol, caller, profit, epoch, self.ledger.next_sequence))

    def transfer(self, caller: str, to: str, amount: int):
        with self.ledger.opening_wallets(require_address(to, "recipient")):
            return self._commit(compute_transfer(self.ledger, self.symbol, caller, to, amount, self.ledger.next_sequence))

    def transfer_from(self, spender: str, owner: str, to: str, amount: int):
        with self.ledger.opening_wallets(require_address(to, "recipient")):
            return self._commit(
                compute_transfer_from(self.ledger, self.symbol, spender, owner, to, amount, self.ledger.next_sequence)
            )

    def approve(self, owner: str, spender: str, amount: int):
        return self._commit(
            plain_token.compute_approve(self.ledger, self.symbol, owner, spender, amount, self.ledger.next_sequence)
        )

    def increase_allowance(self, owner: str, spender: str, added: int):
        require_positive(added, "allowance increase")
        return self._commit(
            compute_increase_allowance(self.ledger, self.symbol, owner, spender, added, self.ledger.next_sequence)
        )

    def decrease_allowance(self, owner: str, spender: str, subtracted: int):
        return self._commit(
            compute_decrease_allowance(self.ledger, self.symbol, owner, spender, subtracted, self.ledger.next_sequence)
        )
