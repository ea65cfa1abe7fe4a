"""
venue.py - Cycle-Based Yield Venue and the Controller's Adapter

The venue is an external pooled system that this package cannot control,
only synchronize with. It operates in discrete, monotonically increasing
cycles advanced by its operator:

    deposit(amount)              base asset in, venue receipt out (1:1)
    request_withdrawal(amount)   one outstanding request per account;
                                 re-submitting OVERWRITES the request and
                                 re-gates it to the next cycle
    withdraw(amount)             only once request.min_cycle <= cycle_index
    complete_rollover(hash)      operator-only, advances the cycle
    claim(claim)                 reward token up to the published allotment

CycleVenue simulates that system on the shared ledger. VenueAdapter is the
controller-side layer: it knows the controller's position, whether the
batching window is open, and how to withdraw a matured request without
ever failing on an immature one.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType, Unit,
    SYSTEM_WALLET, UNIT_TYPE_VENUE_RECEIPT, DEFAULT_DECIMALS,
    InsufficientFunds, InvalidAmount, Unauthorized, WithdrawalNotReady,
    contract_unit, require_address, require_positive,
)
from . import token as plain_token


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class RequestedWithdrawal:
    """An account's outstanding request; released once min_cycle is reached."""
    amount: int = 0
    min_cycle: int = 0


@dataclass(frozen=True, slots=True)
class VenueState:
    """Cycle clock and wiring of a venue."""
    underlyer: str
    pool_wallet: str
    manager: str
    cycle_index: int
    cycle_start: int
    cycle_duration: int
    reward_token: Optional[str]
    reward_wallet: Optional[str]


@dataclass(frozen=True, slots=True)
class RewardClaim:
    """A cumulative reward claim, checked against the operator's published allotment."""
    account: str
    cycle: int
    amount: int


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_venue(view: LedgerView, symbol: str) -> VenueState:
    raw = view.get_unit_state(symbol)
    return VenueState(
        underlyer=raw['underlyer'],
        pool_wallet=raw['pool_wallet'],
        manager=raw['manager'],
        cycle_index=raw['cycle_index'],
        cycle_start=raw['cycle_start'],
        cycle_duration=raw['cycle_duration'],
        reward_token=raw.get('reward_token'),
        reward_wallet=raw.get('reward_wallet'),
    )


def load_requested_withdrawal(view: LedgerView, symbol: str, account: str) -> RequestedWithdrawal:
    raw = view.get_unit_state(symbol).get('requested_withdrawals', {}).get(account)
    if not raw:
        return RequestedWithdrawal()
    return RequestedWithdrawal(amount=raw['amount'], min_cycle=raw['min_cycle'])


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_can_batch(
    cycle_index: int,
    cycle_start: int,
    cycle_duration: int,
    last_cycle_index: int,
    current_block: int,
    blocks_left: int,
) -> bool:
    """
    Whether a withdrawal request may be (re)submitted now.

    Requires a rollover since the last submission and that the current
    block is inside the window of blocks_left before the next rollover.
    """
    if cycle_index <= last_cycle_index:
        return False
    return current_block + blocks_left >= cycle_start + cycle_duration


def calculate_is_matured(request: RequestedWithdrawal, cycle_index: int) -> bool:
    return request.amount > 0 and request.min_cycle <= cycle_index


# ============================================================================
# UNIT FACTORY
# ============================================================================

def create_venue(
    symbol: str,
    name: str,
    underlyer: str,
    pool_wallet: str,
    manager: str,
    cycle_duration: int,
    start_block: int = 0,
    cycle_index: int = 0,
    reward_token: Optional[str] = None,
    reward_wallet: Optional[str] = None,
    decimals: int = DEFAULT_DECIMALS,
) -> Unit:
    """
    Create a venue; the unit itself is the venue's receipt token.

    Args:
        symbol: Receipt token symbol (e.g., "tFOX")
        name: Human-readable name
        underlyer: Base asset accepted by the pool
        pool_wallet: Wallet that custodies deposited base asset
        manager: Operator allowed to complete rollovers and publish rewards
        cycle_duration: Nominal cycle length in blocks
        start_block: Block at which the first cycle started
        cycle_index: Index of the first cycle
        reward_token: Token paid by claim(), if any
        reward_wallet: Wallet funding reward claims
    """
    require_positive(cycle_duration, "cycle duration")
    return contract_unit(symbol, name, UNIT_TYPE_VENUE_RECEIPT, {
        'decimals': decimals,
        'underlyer': underlyer,
        'pool_wallet': pool_wallet,
        'manager': manager,
        'cycle_index': cycle_index,
        'cycle_start': start_block,
        'cycle_duration': cycle_duration,
        'requested_withdrawals': {},
        'reward_token': reward_token,
        'reward_wallet': reward_wallet,
        'allotments': {},
        'claimed': {},
        'last_rollover_hash': None,
    })


# ============================================================================
# DRAFT OPERATIONS
# ============================================================================

def apply_deposit(draft: TransactionDraft, venue: str, account: str, amount: int) -> None:
    """Pull base asset from account (needs allowance to the pool) and mint receipt 1:1."""
    require_positive(amount)
    state = draft.state(venue)
    pool = state['pool_wallet']
    plain_token.apply_transfer_from(draft, state['underlyer'], pool, account, pool, amount, f"venue_deposit:{venue}")
    draft.move(amount, venue, SYSTEM_WALLET, account, f"venue_deposit:{venue}")


def apply_request_withdrawal(draft: TransactionDraft, venue: str, account: str, amount: int) -> RequestedWithdrawal:
    """Replace the account's outstanding request with `amount`, gated to the next cycle."""
    require_positive(amount)
    if amount > draft.balance(account, venue):
        raise InsufficientFunds(f"{venue}: request {amount} exceeds position of {account}")
    state = draft.state(venue)
    request = RequestedWithdrawal(amount=amount, min_cycle=state['cycle_index'] + 1)
    state['requested_withdrawals'][account] = {'amount': request.amount, 'min_cycle': request.min_cycle}
    return request


def apply_withdraw(draft: TransactionDraft, venue: str, account: str, amount: int) -> None:
    """Burn receipt and pay base asset against a matured request."""
    require_positive(amount)
    state = draft.state(venue)
    request = load_requested_withdrawal(draft, venue, account)
    if request.amount == 0 or request.min_cycle > state['cycle_index']:
        raise WithdrawalNotReady(f"{venue}: no matured request for {account}")
    if amount > request.amount:
        raise InsufficientFunds(f"{venue}: withdraw {amount} exceeds requested {request.amount}")

    draft.move(amount, venue, account, SYSTEM_WALLET, f"venue_withdraw:{venue}")
    plain_token.apply_transfer(draft, state['underlyer'], state['pool_wallet'], account, amount, f"venue_withdraw:{venue}")

    remaining = request.amount - amount
    if remaining:
        state['requested_withdrawals'][account] = {'amount': remaining, 'min_cycle': request.min_cycle}
    else:
        del state['requested_withdrawals'][account]


def apply_complete_rollover(draft: TransactionDraft, venue: str, caller: str, rewards_hash: str = "") -> int:
    """Advance the venue to its next cycle; returns the new cycle index."""
    state = draft.state(venue)
    if caller != state['manager']:
        raise Unauthorized(f"{caller} may not complete rollovers of {venue}")
    state['cycle_index'] += 1
    state['cycle_start'] = draft.current_block
    state['last_rollover_hash'] = rewards_hash or None
    return state['cycle_index']


def apply_publish_rewards(draft: TransactionDraft, venue: str, caller: str, account: str, cumulative_amount: int) -> None:
    state = draft.state(venue)
    if caller != state['manager']:
        raise Unauthorized(f"{caller} may not publish rewards for {venue}")
    if cumulative_amount < state['claimed'].get(account, 0):
        raise InvalidAmount("Cumulative allotment below amount already claimed")
    state['allotments'][account] = cumulative_amount


def apply_claim_rewards(draft: TransactionDraft, venue: str, claim: RewardClaim) -> int:
    """
    Pay claim.account the part of its cumulative claim not yet paid.

    Returns:
        Amount paid (0 when everything up to claim.amount was already claimed)
    """
    state = draft.state(venue)
    if not state.get('reward_token'):
        raise InvalidAmount(f"{venue} pays no rewards")
    if claim.cycle > state['cycle_index'] or claim.amount > state['allotments'].get(claim.account, 0):
        raise InvalidAmount("Invalid claim")
    claimable = claim.amount - state['claimed'].get(claim.account, 0)
    if claimable <= 0:
        return 0
    plain_token.apply_transfer(
        draft, state['reward_token'], state['reward_wallet'], claim.account, claimable, f"venue_claim:{venue}"
    )
    state['claimed'][claim.account] = claim.amount
    return claimable


# ============================================================================
# STAND-ALONE TRANSACTIONS
# ============================================================================

def _draft(view: LedgerView, caller: str, venue: str, event: str, nonce: int,
           origin_type: OriginType = OriginType.USER_ACTION) -> TransactionDraft:
    return TransactionDraft(view, TransactionOrigin(origin_type, caller, venue, event, nonce))


def compute_deposit(view: LedgerView, venue: str, account: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, account, venue, "VENUE_DEPOSIT", nonce)
    apply_deposit(draft, venue, account, amount)
    return draft.build()


def compute_request_withdrawal(view: LedgerView, venue: str, account: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, account, venue, "VENUE_REQUEST_WITHDRAWAL", nonce)
    apply_request_withdrawal(draft, venue, account, amount)
    return draft.build()


def compute_withdraw(view: LedgerView, venue: str, account: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, account, venue, "VENUE_WITHDRAW", nonce)
    apply_withdraw(draft, venue, account, amount)
    return draft.build()


def compute_complete_rollover(view: LedgerView, venue: str, caller: str, rewards_hash: str = "", nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, caller, venue, "VENUE_ROLLOVER", nonce, OriginType.LIFECYCLE)
    apply_complete_rollover(draft, venue, caller, rewards_hash)
    return draft.build()


def compute_publish_rewards(
    view: LedgerView, venue: str, caller: str, account: str, cumulative_amount: int, nonce: int = 0
) -> PendingTransaction:
    draft = _draft(view, caller, venue, "VENUE_PUBLISH_REWARDS", nonce)
    apply_publish_rewards(draft, venue, caller, account, cumulative_amount)
    return draft.build()


def compute_claim_rewards(view: LedgerView, venue: str, claim: RewardClaim, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, claim.account, venue, "VENUE_CLAIM", nonce)
    apply_claim_rewards(draft, venue, claim)
    return draft.build()


# ============================================================================
# VENUE SIMULATOR
# ============================================================================

class CycleVenue:
    """
    The external venue bound to a ledger.

    Example:
        venue = CycleVenue(ledger, "tFOX")
        venue.deposit("alice", 1_000)
        venue.request_withdrawal("alice", 1_000)
        venue.complete_rollover("operator", "QmHash")
        venue.withdraw("alice", 1_000)
    """

    def __init__(self, ledger, symbol: str):
        self.ledger = ledger
        self.symbol = symbol

    def _commit(self, pending: PendingTransaction):
        return self.ledger.commit(pending)

    # Reads
    def state(self) -> VenueState:
        return load_venue(self.ledger, self.symbol)

    def current_cycle_index(self) -> int:
        return self.state().cycle_index

    def balance_of(self, account: str) -> int:
        return plain_token.balance_of(self.ledger, self.symbol, account)

    def requested_withdrawal(self, account: str) -> RequestedWithdrawal:
        return load_requested_withdrawal(self.ledger, self.symbol, account)

    def next_rollover_block(self) -> int:
        state = self.state()
        return state.cycle_start + state.cycle_duration

    # Mutations
    def deposit(self, caller: str, amount: int):
        return self._commit(compute_deposit(self.ledger, self.symbol, caller, amount, self.ledger.next_sequence))

    def request_withdrawal(self, caller: str, amount: int):
        return self._commit(compute_request_withdrawal(self.ledger, self.symbol, caller, amount, self.ledger.next_sequence))

    def withdraw(self, caller: str, amount: int):
        return self._commit(compute_withdraw(self.ledger, self.symbol, caller, amount, self.ledger.next_sequence))

    def complete_rollover(self, caller: str, rewards_hash: str = ""):
        tx = self._commit(compute_complete_rollover(self.ledger, self.symbol, caller, rewards_hash, self.ledger.next_sequence))
        if self.ledger.verbose:
            print(f"🔄 {self.symbol}: rollover to cycle {self.current_cycle_index()} at block {self.ledger.current_block}")
        return tx

    def publish_rewards(self, caller: str, account: str, cumulative_amount: int):
        return self._commit(
            compute_publish_rewards(self.ledger, self.symbol, caller, account, cumulative_amount, self.ledger.next_sequence)
        )

    def claim(self, claim: RewardClaim):
        return self._commit(compute_claim_rewards(self.ledger, self.symbol, claim, self.ledger.next_sequence))


# ============================================================================
# CONTROLLER-SIDE ADAPTER
# ============================================================================

@dataclass(frozen=True, slots=True)
class VenueAdapter:
    """
    The controller's synchronization layer around a venue.

    Every method is safe to call at any time: reads never fail, and
    withdraw_matured() is a no-op until the venue has rolled past the
    cycle in which the request was accepted.
    """
    venue: str
    owner: str

    def state(self, view: LedgerView) -> VenueState:
        return load_venue(view, self.venue)

    def current_cycle_index(self, view: LedgerView) -> int:
        return self.state(view).cycle_index

    def position(self, view: LedgerView) -> int:
        return plain_token.balance_of(view, self.venue, self.owner)

    def requested(self, view: LedgerView) -> RequestedWithdrawal:
        return load_requested_withdrawal(view, self.venue, self.owner)

    def can_batch(self, view: LedgerView, last_cycle_index: int, blocks_left: int) -> bool:
        state = self.state(view)
        return calculate_can_batch(
            state.cycle_index, state.cycle_start, state.cycle_duration,
            last_cycle_index, view.current_block, blocks_left,
        )

    def is_matured(self, view: LedgerView) -> bool:
        return calculate_is_matured(self.requested(view), self.current_cycle_index(view))

    def deposit(self, draft: TransactionDraft, amount: int) -> int:
        if amount <= 0:
            return 0
        apply_deposit(draft, self.venue, self.owner, amount)
        return amount

    def request_withdrawal(self, draft: TransactionDraft, amount: int) -> RequestedWithdrawal:
        return apply_request_withdrawal(draft, self.venue, self.owner, amount)

    def withdraw_matured(self, draft: TransactionDraft) -> int:
        """Withdraw the whole matured request; returns the base asset received."""
        if not self.is_matured(draft):
            return 0
        amount = self.requested(draft).amount
        apply_withdraw(draft, self.venue, self.owner, amount)
        return amount

    def claim_rewards(self, draft: TransactionDraft, claim: RewardClaim) -> int:
        if claim.account != self.owner:
            raise InvalidAmount(f"Claim for {claim.account} submitted by {self.owner}")
        return apply_claim_rewards(draft, self.venue, claim)
