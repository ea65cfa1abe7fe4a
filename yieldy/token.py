"""
token.py - Plain Fungible Token Units

Standard fungible-token semantics (transfer, approve, allowance,
transfer_from) on top of the ledger. Balances are ordinary ledger
positions; allowances live in the unit state as
{owner: {spender: amount}}.

Functions come in two layers:
    apply_*(draft, ...)    edit a TransactionDraft, so several token
                           operations can be folded into one atomic call
    compute_*(view, ...)   build a stand-alone PendingTransaction

The Token class is a thin caller-oriented wrapper that commits
compute_* results against a Ledger.
"""

from __future__ import annotations
from typing import Dict

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType, Unit,
    SYSTEM_WALLET, UNIT_TYPE_TOKEN, MAX_UINT256, DEFAULT_DECIMALS,
    InsufficientFunds, InsufficientAllowance, InvalidAmount,
    contract_unit, require_address, require_positive,
)


def create_token(symbol: str, name: str, decimals: int = DEFAULT_DECIMALS) -> Unit:
    """
    Create a plain fungible token unit.

    Args:
        symbol: Token symbol (e.g., "FOX")
        name: Human-readable name
        decimals: Display decimals; quantities are always integer base units
    """
    return contract_unit(symbol, name, UNIT_TYPE_TOKEN, {
        'decimals': decimals,
        'allowances': {},
    })


# ============================================================================
# READS
# ============================================================================

def allowance(view: LedgerView, token: str, owner: str, spender: str) -> int:
    """Amount spender may still move out of owner's balance."""
    return view.get_unit_state(token).get('allowances', {}).get(owner, {}).get(spender, 0)


def balance_of(view: LedgerView, token: str, account: str) -> int:
    """Balance of account, 0 for wallets the ledger has never seen."""
    if account not in view.list_wallets():
        return 0
    return view.get_balance(account, token)


# ============================================================================
# DRAFT OPERATIONS
# ============================================================================

def apply_transfer(
    draft: TransactionDraft,
    token: str,
    sender: str,
    to: str,
    amount: int,
    contract_id: str = "transfer",
) -> None:
    """Move amount from sender to to; raises InsufficientFunds on overdraft."""
    require_address(to, "recipient")
    if amount < 0:
        raise InvalidAmount(f"Negative transfer amount: {amount}")
    if sender != SYSTEM_WALLET and draft.balance(sender, token) < amount:
        raise InsufficientFunds(
            f"{token}: transfer amount {amount} exceeds balance of {sender}"
        )
    draft.move(amount, token, sender, to, contract_id)


def apply_approve(draft: TransactionDraft, token: str, owner: str, spender: str, amount: int) -> None:
    require_address(spender, "spender")
    if amount < 0:
        raise InvalidAmount(f"Negative allowance: {amount}")
    allowances: Dict[str, Dict[str, int]] = draft.state(token).setdefault('allowances', {})
    allowances.setdefault(owner, {})[spender] = amount


def apply_spend_allowance(draft: TransactionDraft, token: str, owner: str, spender: str, amount: int) -> None:
    """
    Consume amount of spender's allowance over owner's tokens.

    An allowance of MAX_UINT256 is treated as unlimited and never decreases.
    """
    if owner == spender:
        return
    allowances = draft.state(token).setdefault('allowances', {})
    current = allowances.get(owner, {}).get(spender, 0)
    if current == MAX_UINT256:
        return
    if current < amount:
        raise InsufficientAllowance(
            f"{token}: allowance {current} of {spender} over {owner} is below {amount}"
        )
    allowances.setdefault(owner, {})[spender] = current - amount


def apply_transfer_from(
    draft: TransactionDraft,
    token: str,
    spender: str,
    owner: str,
    to: str,
    amount: int,
    contract_id: str = "transfer_from",
) -> None:
    apply_spend_allowance(draft, token, owner, spender, amount)
    apply_transfer(draft, token, owner, to, amount, contract_id)


def apply_mint(draft: TransactionDraft, token: str, to: str, amount: int) -> None:
    """Issue new tokens from SYSTEM_WALLET."""
    require_positive(amount)
    apply_transfer(draft, token, SYSTEM_WALLET, to, amount, "mint")


# ============================================================================
# STAND-ALONE TRANSACTIONS
# ============================================================================

def _origin(caller: str, token: str, event: str, nonce: int, origin_type: OriginType = OriginType.USER_ACTION) -> TransactionOrigin:
    return TransactionOrigin(origin_type, caller, token, event, nonce)


def compute_transfer(view: LedgerView, token: str, sender: str, to: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, _origin(sender, token, "TRANSFER", nonce))
    apply_transfer(draft, token, sender, to, amount)
    return draft.build()


def compute_approve(view: LedgerView, token: str, owner: str, spender: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, _origin(owner, token, "APPROVE", nonce))
    apply_approve(draft, token, owner, spender, amount)
    return draft.build()


def compute_transfer_from(
    view: LedgerView,
    token: str,
    spender: str,
    owner: str,
    to: str,
    amount: int,
    nonce: int = 0,
) -> PendingTransaction:
    draft = TransactionDraft(view, _origin(spender, token, "TRANSFER_FROM", nonce))
    apply_transfer_from(draft, token, spender, owner, to, amount)
    return draft.build()


def compute_mint(view: LedgerView, token: str, to: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, _origin(SYSTEM_WALLET, token, "MINT", nonce, OriginType.SYSTEM))
    apply_mint(draft, token, to, amount)
    return draft.build()


# ============================================================================
# CALLER-ORIENTED WRAPPER
# ============================================================================

class Token:
    """
    Plain token bound to a ledger.

    Example:
        fox = Token(ledger, "FOX")
        fox.mint("alice", 10_000)
        fox.approve("alice", "staking", 10_000)
    """

    def __init__(self, ledger, symbol: str):
        self.ledger = ledger
        self.symbol = symbol

    def balance_of(self, account: str) -> int:
        return balance_of(self.ledger, self.symbol, account)

    def allowance(self, owner: str, spender: str) -> int:
        return allowance(self.ledger, self.symbol, owner, spender)

    def total_supply(self) -> int:
        return self.ledger.issued_supply(self.symbol)

    def mint(self, to: str, amount: int):
        with self.ledger.opening_wallets(to):
            return self.ledger.commit(compute_mint(self.ledger, self.symbol, to, amount, self.ledger.next_sequence))

    def transfer(self, caller: str, to: str, amount: int):
        require_address(to, "recipient")
        with self.ledger.opening_wallets(to):
            return self.ledger.commit(
                compute_transfer(self.ledger, self.symbol, caller, to, amount, self.ledger.next_sequence)
            )

    def approve(self, owner: str, spender: str, amount: int):
        return self.ledger.commit(
            compute_approve(self.ledger, self.symbol, owner, spender, amount, self.ledger.next_sequence)
        )

    def transfer_from(self, spender: str, owner: str, to: str, amount: int):
        require_address(to, "recipient")
        with self.ledger.opening_wallets(to):
            return self.ledger.commit(
                compute_transfer_from(self.ledger, self.symbol, spender, owner, to, amount, self.ledger.next_sequence)
            )
