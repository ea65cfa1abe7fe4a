"""
staking.py - Staking Controller

The controller owns every piece of shared mutable state of the system:
the live Epoch, per-account warmup and cooldown records, the batched
withdrawal watermark and the pause/lock flags. All of it lives in the
STAKING_CONTROLLER unit state, so every public operation is one atomic
ledger transaction.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES: Epoch, Claim, Wiring
2. PURE CALCULATION FUNCTIONS (calculate_*): no LedgerView
3. ADAPTER FUNCTIONS (load_*): read controller state from a view or draft
4. DRAFT OPERATIONS (apply_*): edit a TransactionDraft
5. SMART CONTRACT (staking_contract): keeper entry point for the
   LifecycleEngine; rebases when due and batches withdrawal requests
6. Staking: caller-oriented wrapper that checks roles and commits

Per-account state machine:

    Idle --stake--> Warming --claim--> Active --unstake--> Cooling
    Cooling --claim_withdraw--> Idle
    Active/Warming --instant_unstake--> Idle

Reward lag: each rollover first applies the distribute amount locked in
by the previous rollover, then locks in the current surplus
(contract_balance - circulating_supply) for the next one. A reward added
during epoch N is therefore paid at the rollover ending epoch N+1.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType, Unit,
    UNIT_TYPE_STAKING_CONTROLLER, BASIS_POINTS,
    AccountLocked, FeaturePaused, InsufficientFunds, InvalidAmount, OutOfRange,
    contract_unit, require_address, require_positive,
)
from .escrow import Escrow
from .rebasing import GonAmount
from .venue import RequestedWithdrawal, RewardClaim, VenueAdapter
from . import token as plain_token
from . import rebasing
from . import liquidity_reserve


EPOCH_LENGTH = 44_800
FIRST_EPOCH_NUMBER = 1
BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL = 500

WARMUP = 'warmup_info'
COOLDOWN = 'cooldown_info'


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Epoch:
    """
    The controller's reward clock.

    Attributes:
        length: Blocks per epoch
        number: Current epoch number
        end_block: Block at which the epoch becomes due
        distribute: Reward fed into the next rebase
    """
    length: int
    number: int
    end_block: int
    distribute: int


@dataclass(frozen=True, slots=True)
class Claim:
    """
    A warmup or cooldown record.

    `amount` is informational. The redeemable value is always recomputed
    from `gons`, so escrowed value grows with rebases like wallet balances.
    """
    amount: int = 0
    gons: int = 0
    expiry: int = 0


@dataclass(frozen=True, slots=True)
class Wiring:
    """Addresses and collaborators of a controller."""
    symbol: str
    wallet: str
    staking_token: str
    receipt_token: str
    warmup: Escrow
    cooldown: Escrow
    venue: VenueAdapter
    reserve: Optional[str]


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_wiring(view: LedgerView, symbol: str) -> Wiring:
    raw = view.get_unit_state(symbol)
    wallet = raw['wallet']
    return Wiring(
        symbol=symbol,
        wallet=wallet,
        staking_token=raw['staking_token'],
        receipt_token=raw['receipt_token'],
        warmup=Escrow(raw['warmup_wallet'], raw['receipt_token'], wallet),
        cooldown=Escrow(raw['cooldown_wallet'], raw['receipt_token'], wallet),
        venue=VenueAdapter(raw['venue'], wallet),
        reserve=raw.get('liquidity_reserve'),
    )


def load_epoch(view: LedgerView, symbol: str) -> Epoch:
    raw = view.get_unit_state(symbol)['epoch']
    return Epoch(
        length=raw['length'],
        number=raw['number'],
        end_block=raw['end_block'],
        distribute=raw['distribute'],
    )


def load_claim(view: LedgerView, symbol: str, kind: str, account: str) -> Claim:
    raw = view.get_unit_state(symbol)[kind].get(account)
    if not raw:
        return Claim()
    return Claim(amount=raw['amount'], gons=raw['gons'], expiry=raw['expiry'])


def claim_value(view: LedgerView, symbol: str, claim: Claim) -> int:
    receipt = view.get_unit_state(symbol)['receipt_token']
    return rebasing.balance_for_gons(claim.gons, view.get_unit_state(receipt)['gons_per_fragment'])


def is_locked(view: LedgerView, symbol: str, account: str) -> bool:
    return view.get_unit_state(symbol)['withdraw_locks'].get(account, False)


def contract_balance(view: LedgerView, symbol: str) -> int:
    """Base asset backing the receipt token: idle balance plus the venue position."""
    wiring = load_wiring(view, symbol)
    return plain_token.balance_of(view, wiring.staking_token, wiring.wallet) + wiring.venue.position(view)


def circulating_supply(view: LedgerView, symbol: str) -> int:
    return rebasing.circulating_supply(view, load_wiring(view, symbol).receipt_token)


def can_batch_transactions(view: LedgerView, symbol: str) -> bool:
    state = view.get_unit_state(symbol)
    return load_wiring(view, symbol).venue.can_batch(
        view, state['last_cycle_index'], state['blocks_left_to_request_withdrawal']
    )


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_distribute(balance: int, circulating: int) -> int:
    """Surplus backing to hand out at the next rollover."""
    return max(balance - circulating, 0)


def calculate_next_epoch(epoch: Epoch, distribute: int) -> Epoch:
    return Epoch(
        length=epoch.length,
        number=epoch.number + 1,
        end_block=epoch.end_block + epoch.length,
        distribute=distribute,
    )


def calculate_pending_withdrawal(cooling: int, withdrawal_amount: int, outstanding: int, position: int) -> int:
    """
    Cooldown value not yet covered by withdrawn or requested base asset.

    Capped at the part of the venue position that is not already requested.
    """
    pending = cooling - withdrawal_amount - outstanding
    if pending <= 0:
        return 0
    return min(pending, max(position - outstanding, 0))


def calculate_is_expired(epoch_number: int, expiry: int) -> bool:
    return epoch_number >= expiry


def calculate_affiliate_fee(amount: int, fee_bps: int) -> int:
    return amount * fee_bps // BASIS_POINTS


def merge_claim(existing: Claim, amount: int, gons: int, expiry: int) -> Claim:
    return Claim(amount=existing.amount + amount, gons=existing.gons + gons, expiry=expiry)


# ============================================================================
# UNIT FACTORY
# ============================================================================

def create_staking_unit(
    symbol: str,
    name: str,
    staking_token: str,
    receipt_token: str,
    wallet: str,
    warmup_wallet: str,
    cooldown_wallet: str,
    venue: str,
    first_epoch_block: int,
    epoch_length: int = EPOCH_LENGTH,
    first_epoch_number: int = FIRST_EPOCH_NUMBER,
    warmup_period: int = 0,
    cooldown_period: int = 0,
    blocks_left_to_request_withdrawal: int = BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL,
    liquidity_reserve: Optional[str] = None,
) -> Unit:
    """
    Create the controller unit.

    Args:
        symbol: Controller unit symbol
        staking_token: Base asset accepted by stake()
        receipt_token: Rebasing receipt token; `wallet` must be its staking contract
        wallet: Controller wallet (venue position owner, undistributed gons)
        warmup_wallet: Warmup escrow wallet
        cooldown_wallet: Cooldown escrow wallet
        venue: Venue receipt symbol
        first_epoch_block: Block at which the first epoch becomes due
        liquidity_reserve: Reserve share symbol used by instant_unstake
    """
    for address, what in ((staking_token, "staking token"), (receipt_token, "reward token"),
                          (wallet, "controller"), (venue, "venue")):
        require_address(address, what)
    require_positive(epoch_length, "epoch length")
    return contract_unit(symbol, name, UNIT_TYPE_STAKING_CONTROLLER, {
        'staking_token': staking_token,
        'receipt_token': receipt_token,
        'wallet': wallet,
        'warmup_wallet': warmup_wallet,
        'cooldown_wallet': cooldown_wallet,
        'venue': venue,
        'liquidity_reserve': liquidity_reserve,
        'epoch': {
            'length': epoch_length,
            'number': first_epoch_number,
            'end_block': first_epoch_block,
            'distribute': 0,
        },
        'warmup_period': warmup_period,
        'cooldown_period': cooldown_period,
        'blocks_left_to_request_withdrawal': blocks_left_to_request_withdrawal,
        'warmup_info': {},
        'cooldown_info': {},
        'withdraw_locks': {},
        'affiliate': None,
        'affiliate_fee': 0,
        'staking_paused': False,
        'unstaking_paused': False,
        'instant_unstaking_paused': False,
        'emergency_exit': False,
        'last_cycle_index': 0,
        'withdrawal_amount': 0,
    })


# ============================================================================
# DRAFT OPERATIONS
# ============================================================================

def _put_claim(state: Dict[str, Any], kind: str, account: str, claim: Claim) -> None:
    if claim.gons == 0:
        state[kind].pop(account, None)
    else:
        state[kind][account] = {'amount': claim.amount, 'gons': claim.gons, 'expiry': claim.expiry}


def _require_unlocked(state: Dict[str, Any], account: str) -> None:
    if state['withdraw_locks'].get(account):
        raise AccountLocked("Withdraws for account are locked")


def apply_rebase(draft: TransactionDraft, symbol: str) -> bool:
    """
    Roll the epoch over if it is due.

    Returns:
        True if a rollover happened, False while the epoch is accumulating
    """
    epoch = load_epoch(draft, symbol)
    if epoch.end_block > draft.current_block:
        return False

    wiring = load_wiring(draft, symbol)
    rebasing.apply_rebase(draft, wiring.receipt_token, wiring.wallet, epoch.distribute, epoch.number)
    distribute = calculate_distribute(contract_balance(draft, symbol), circulating_supply(draft, symbol))
    nxt = calculate_next_epoch(epoch, distribute)
    draft.state(symbol)['epoch'] = {
        'length': nxt.length,
        'number': nxt.number,
        'end_block': nxt.end_block,
        'distribute': nxt.distribute,
    }
    return True


def apply_claim(draft: TransactionDraft, symbol: str, recipient: str) -> int:
    """Release an expired warmup record to its owner; returns the value released."""
    info = load_claim(draft, symbol, WARMUP, recipient)
    if not info.gons or not calculate_is_expired(load_epoch(draft, symbol).number, info.expiry):
        return 0
    wiring = load_wiring(draft, symbol)
    value = claim_value(draft, symbol, info)
    wiring.warmup.release(draft, wiring.wallet, recipient, GonAmount(info.gons))
    _put_claim(draft.state(symbol), WARMUP, recipient, Claim())
    return value


def _withdraw_matured(draft: TransactionDraft, symbol: str) -> int:
    wiring = load_wiring(draft, symbol)
    state = draft.state(symbol)
    withdrawn = wiring.venue.withdraw_matured(draft)
    state['withdrawal_amount'] += withdrawn
    if state['emergency_exit'] and wiring.venue.requested(draft).amount == 0:
        state['emergency_exit'] = False
    return withdrawn


def apply_claim_withdraw(draft: TransactionDraft, symbol: str, recipient: str) -> int:
    """
    Pay out an expired cooldown record in base asset; returns the payout.

    A no-op (0) until the record has expired and enough base asset has been
    withdrawn from the venue, or is withdrawable now, to cover it.
    """
    info = load_claim(draft, symbol, COOLDOWN, recipient)
    if not info.gons:
        return 0
    state = draft.state(symbol)
    _require_unlocked(state, recipient)
    if not calculate_is_expired(load_epoch(draft, symbol).number, info.expiry):
        return 0

    wiring = load_wiring(draft, symbol)
    payout = claim_value(draft, symbol, info)
    matured = wiring.venue.is_matured(draft)
    available = state['withdrawal_amount'] + (wiring.venue.requested(draft).amount if matured else 0)
    if available < payout:
        return 0

    if matured:
        _withdraw_matured(draft, symbol)
    state['withdrawal_amount'] -= payout
    wiring.cooldown.release(draft, wiring.wallet, wiring.wallet, GonAmount(info.gons))
    plain_token.apply_transfer(draft, wiring.staking_token, wiring.wallet, recipient, payout, f"claim_withdraw:{symbol}")
    _put_claim(state, COOLDOWN, recipient, Claim())
    return payout


def apply_send_withdrawal_requests(draft: TransactionDraft, symbol: str) -> int:
    """
    Synchronize the batched withdrawal request with the venue.

    Does nothing unless the venue rolled over since the last submission
    and the request window is open. The matured request is withdrawn first,
    then the outstanding amount plus everything still pending is
    re-requested in one request. The watermark only moves when a request
    is actually submitted.

    Returns:
        The newly requested pending amount
    """
    state = draft.state(symbol)
    wiring = load_wiring(draft, symbol)
    if state['emergency_exit']:
        _withdraw_matured(draft, symbol)
        return 0
    if not wiring.venue.can_batch(draft, state['last_cycle_index'], state['blocks_left_to_request_withdrawal']):
        return 0

    _withdraw_matured(draft, symbol)
    outstanding = wiring.venue.requested(draft).amount
    pending = calculate_pending_withdrawal(
        wiring.cooldown.held(draft), state['withdrawal_amount'], outstanding, wiring.venue.position(draft)
    )
    if pending > 0:
        wiring.venue.request_withdrawal(draft, outstanding + pending)
        state['last_cycle_index'] = wiring.venue.current_cycle_index(draft)
    return pending


def _redeemable(draft: TransactionDraft, symbol: str, account: str, from_warmup: bool, from_wallet: bool) -> int:
    wiring = load_wiring(draft, symbol)
    total = 0
    if from_warmup:
        total += claim_value(draft, symbol, load_claim(draft, symbol, WARMUP, account))
    if from_wallet:
        total += rebasing.balance_of(draft, wiring.receipt_token, account)
    return total


def _retrieve_balance(
    draft: TransactionDraft,
    symbol: str,
    account: str,
    amount: int,
    from_warmup: bool,
    from_wallet: bool,
) -> GonAmount:
    """
    Move `amount` of account's receipt value into the controller wallet.

    The warmup record is drawn first and keeps its expiry; the wallet
    covers the rest.
    """
    wiring = load_wiring(draft, symbol)
    needed = rebasing.to_gons(draft, wiring.receipt_token, amount)
    taken = GonAmount(0)

    if from_warmup:
        info = load_claim(draft, symbol, WARMUP, account)
        taken = GonAmount(min(info.gons, needed.gons))
        if taken:
            wiring.warmup.release(draft, wiring.wallet, wiring.wallet, taken)
            used = rebasing.balance_for_gons(taken.gons, draft.get_unit_state(wiring.receipt_token)['gons_per_fragment'])
            _put_claim(draft.state(symbol), WARMUP, account,
                       Claim(max(info.amount - used, 0), info.gons - taken.gons, info.expiry))

    rest = needed - taken
    if rest:
        if not from_wallet:
            raise InsufficientFunds("Insufficient Balance")
        rebasing.apply_transfer_gons(draft, wiring.receipt_token, account, wiring.wallet, rest, f"retrieve:{symbol}")
    return needed


def apply_stake(draft: TransactionDraft, symbol: str, caller: str, amount: int, recipient: str) -> None:
    require_positive(amount)
    require_address(recipient, "recipient")
    state = draft.state(symbol)
    if state['staking_paused'] or state['emergency_exit']:
        raise FeaturePaused("Staking is paused")
    wiring = load_wiring(draft, symbol)
    if plain_token.balance_of(draft, wiring.staking_token, caller) < amount:
        raise InsufficientFunds("Insufficient Balance")

    apply_rebase(draft, symbol)
    plain_token.apply_transfer_from(draft, wiring.staking_token, wiring.wallet, caller, wiring.wallet, amount, f"stake:{symbol}")
    apply_claim(draft, symbol, recipient)
    wiring.venue.deposit(draft, amount)

    if state['warmup_period'] == 0:
        rebasing.apply_transfer(draft, wiring.receipt_token, wiring.wallet, recipient, amount, f"stake:{symbol}")
    else:
        gons = wiring.warmup.deposit(draft, wiring.wallet, amount)
        info = load_claim(draft, symbol, WARMUP, recipient)
        expiry = load_epoch(draft, symbol).number + state['warmup_period']
        _put_claim(state, WARMUP, recipient, merge_claim(info, amount, gons.gons, expiry))

    apply_send_withdrawal_requests(draft, symbol)


def apply_unstake(draft: TransactionDraft, symbol: str, caller: str, amount: int, trigger_claim: bool) -> None:
    require_positive(amount)
    state = draft.state(symbol)
    if state['unstaking_paused']:
        raise FeaturePaused("Unstaking is paused")
    _require_unlocked(state, caller)

    apply_rebase(draft, symbol)
    if trigger_claim:
        apply_claim(draft, symbol, caller)
    apply_claim_withdraw(draft, symbol, caller)

    if amount > _redeemable(draft, symbol, caller, True, True):
        raise InsufficientFunds("Insufficient Balance")

    wiring = load_wiring(draft, symbol)
    gons = _retrieve_balance(draft, symbol, caller, amount, True, True)
    wiring.cooldown.deposit(draft, wiring.wallet, gons)
    info = load_claim(draft, symbol, COOLDOWN, caller)
    expiry = load_epoch(draft, symbol).number + state['cooldown_period']
    _put_claim(state, COOLDOWN, caller, merge_claim(info, amount, gons.gons, expiry))

    apply_send_withdrawal_requests(draft, symbol)


def apply_instant_unstake(
    draft: TransactionDraft,
    symbol: str,
    caller: str,
    amount: Optional[int],
    use_warmup: bool,
) -> liquidity_reserve.InstantUnstakeQuote:
    """Swap caller's receipt value (all of it when amount is None) through the reserve."""
    state = draft.state(symbol)
    if state['unstaking_paused'] or state['instant_unstaking_paused']:
        raise FeaturePaused("Unstaking is paused")
    _require_unlocked(state, caller)
    wiring = load_wiring(draft, symbol)
    if not wiring.reserve:
        raise FeaturePaused("No liquidity reserve")

    apply_rebase(draft, symbol)
    available = _redeemable(draft, symbol, caller, use_warmup, not use_warmup)
    if amount is None:
        amount = available
    require_positive(amount)
    if amount > available:
        raise InsufficientFunds("Insufficient Balance")

    _retrieve_balance(draft, symbol, caller, amount, use_warmup, not use_warmup)
    return liquidity_reserve.apply_instant_unstake(draft, wiring.reserve, wiring.wallet, amount, caller)


def apply_add_rewards(draft: TransactionDraft, symbol: str, caller: str, amount: int, trigger_rebase: bool) -> None:
    """Pull rewards from caller and put every unearmarked base unit to work in the venue."""
    require_positive(amount)
    wiring = load_wiring(draft, symbol)
    if plain_token.balance_of(draft, wiring.staking_token, caller) < amount:
        raise InsufficientFunds("Insufficient Balance")

    plain_token.apply_transfer_from(draft, wiring.staking_token, wiring.wallet, caller, wiring.wallet, amount, f"add_rewards:{symbol}")
    state = draft.state(symbol)
    if not state['emergency_exit']:
        idle = plain_token.balance_of(draft, wiring.staking_token, wiring.wallet) - state['withdrawal_amount']
        wiring.venue.deposit(draft, idle)
    if trigger_rebase:
        apply_rebase(draft, symbol)


def apply_claim_from_venue(draft: TransactionDraft, symbol: str, claim: RewardClaim) -> int:
    if claim.amount <= 0:
        raise InvalidAmount("Must enter valid amount")
    return load_wiring(draft, symbol).venue.claim_rewards(draft, claim)


def apply_transfer_rewards(draft: TransactionDraft, symbol: str, recipient: str) -> int:
    """
    Forward every venue reward token held by the controller.

    When an affiliate is set, affiliate_fee bps of the amount go to it and
    the recipient gets the rest.

    Returns:
        The amount paid to recipient
    """
    require_address(recipient, "recipient")
    wiring = load_wiring(draft, symbol)
    reward_token = wiring.venue.state(draft).reward_token
    if not reward_token:
        return 0
    amount = plain_token.balance_of(draft, reward_token, wiring.wallet)
    state = draft.state(symbol)
    fee = calculate_affiliate_fee(amount, state['affiliate_fee']) if state['affiliate'] else 0
    if fee:
        plain_token.apply_transfer(draft, reward_token, wiring.wallet, state['affiliate'], fee, f"affiliate_fee:{symbol}")
    plain_token.apply_transfer(draft, reward_token, wiring.wallet, recipient, amount - fee, f"transfer_rewards:{symbol}")
    return amount - fee


def apply_unstake_all_from_venue(draft: TransactionDraft, symbol: str) -> int:
    """
    Emergency exit: request the whole venue position and pause staking.

    Returns:
        The amount requested
    """
    state = draft.state(symbol)
    wiring = load_wiring(draft, symbol)
    state['staking_paused'] = True
    _withdraw_matured(draft, symbol)
    position = wiring.venue.position(draft)
    if position:
        wiring.venue.request_withdrawal(draft, position)
        state['emergency_exit'] = True
    return position


def apply_toggle_withdraw_lock(draft: TransactionDraft, symbol: str, account: str) -> bool:
    locks = draft.state(symbol)['withdraw_locks']
    if locks.pop(account, False):
        return False
    locks[account] = True
    return True


def apply_setting(draft: TransactionDraft, symbol: str, key: str, value: Any) -> None:
    state = draft.state(symbol)
    if key == 'epoch_length':
        require_positive(value, "epoch length")
        state['epoch']['length'] = value
    elif key in ('warmup_period', 'cooldown_period', 'blocks_left_to_request_withdrawal'):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise OutOfRange(f"{key} must be a non-negative int, got {value!r}")
        state[key] = value
    elif key in ('staking_paused', 'unstaking_paused', 'instant_unstaking_paused'):
        state[key] = bool(value)
    elif key == 'affiliate':
        state[key] = require_address(value, "affiliate")
    elif key == 'affiliate_fee':
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= BASIS_POINTS:
            raise OutOfRange(f"affiliate fee must be within 0..{BASIS_POINTS} bps, got {value!r}")
        state[key] = value
    else:
        raise KeyError(f"Unknown setting: {key}")


# ============================================================================
# SMART CONTRACT
# ============================================================================

def staking_contract(view: LedgerView, symbol: str, block: int) -> PendingTransaction:
    """
    Keeper hook for the LifecycleEngine.

    Rebases when the epoch is due and synchronizes withdrawal requests when
    the venue's request window is open. Returns an empty transaction when
    neither applies.
    """
    draft = TransactionDraft(view, TransactionOrigin(OriginType.LIFECYCLE, "keeper", symbol, "KEEPER", block))
    apply_rebase(draft, symbol)
    apply_send_withdrawal_requests(draft, symbol)
    return draft.build()


# ============================================================================
# CALLER-ORIENTED WRAPPER
# ============================================================================

class Staking:
    """
    The controller bound to a ledger.

    Every mutation builds one TransactionDraft and commits it; a raised
    exception leaves the ledger untouched. Not-yet-eligible calls commit
    nothing and return None.

    Example:
        staking = Staking(ledger, "STAKING", access)
        staking.stake("alice", 10_000)
        staking.unstake("alice", 10_000, trigger_claim=True)
        staking.claim_withdraw("alice")
    """

    def __init__(self, ledger, symbol: str, access=None):
        self.ledger = ledger
        self.symbol = symbol
        self.access = access

    def _require_admin(self, caller: str) -> None:
        if self.access is not None:
            self.access.require_admin(caller)

    def _draft(self, caller: str, event: str, origin_type: OriginType = OriginType.USER_ACTION) -> TransactionDraft:
        origin = TransactionOrigin(origin_type, caller, self.symbol, event, self.ledger.next_sequence)
        return TransactionDraft(self.ledger, origin)

    def _commit(self, draft: TransactionDraft):
        return self.ledger.commit(draft.build())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def wallet(self) -> str:
        return self.wiring().wallet

    def wiring(self) -> Wiring:
        return load_wiring(self.ledger, self.symbol)

    def epoch(self) -> Epoch:
        return load_epoch(self.ledger, self.symbol)

    def warmup_info(self, account: str) -> Claim:
        return load_claim(self.ledger, self.symbol, WARMUP, account)

    def cooldown_info(self, account: str) -> Claim:
        return load_claim(self.ledger, self.symbol, COOLDOWN, account)

    def warmup_value(self, account: str) -> int:
        return claim_value(self.ledger, self.symbol, self.warmup_info(account))

    def cooldown_value(self, account: str) -> int:
        return claim_value(self.ledger, self.symbol, self.cooldown_info(account))

    def get_index(self) -> int:
        return rebasing.get_index(self.ledger, self.wiring().receipt_token)

    def circulating_supply(self) -> int:
        return circulating_supply(self.ledger, self.symbol)

    def contract_balance(self) -> int:
        return contract_balance(self.ledger, self.symbol)

    def can_batch_transactions(self) -> bool:
        return can_batch_transactions(self.ledger, self.symbol)

    def requested_withdrawal(self) -> RequestedWithdrawal:
        return self.wiring().venue.requested(self.ledger)

    def withdrawal_amount(self) -> int:
        return self.ledger.get_unit_state(self.symbol)['withdrawal_amount']

    def last_cycle_index(self) -> int:
        return self.ledger.get_unit_state(self.symbol)['last_cycle_index']

    def is_locked(self, account: str) -> bool:
        return is_locked(self.ledger, self.symbol, account)

    def setting(self, key: str) -> Any:
        """Current value of a setting or flag (e.g. 'warmup_period', 'staking_paused')."""
        return self.ledger.get_unit_state(self.symbol)[key]

    def affiliate_fee(self) -> int:
        return self.setting('affiliate_fee')

    # ------------------------------------------------------------------
    # Account operations
    # ------------------------------------------------------------------

    def stake(self, caller: str, amount: int, recipient: Optional[str] = None):
        recipient = require_address(recipient or caller, "recipient")
        with self.ledger.opening_wallets(recipient):
            draft = self._draft(caller, "STAKE")
            apply_stake(draft, self.symbol, caller, amount, recipient)
            return self._commit(draft)

    def claim(self, caller: str, recipient: Optional[str] = None):
        recipient = require_address(recipient or caller, "recipient")
        draft = self._draft(caller, "CLAIM")
        apply_claim(draft, self.symbol, recipient)
        return self._commit(draft)

    def unstake(self, caller: str, amount: int, trigger_claim: bool = False):
        draft = self._draft(caller, "UNSTAKE")
        apply_unstake(draft, self.symbol, caller, amount, trigger_claim)
        return self._commit(draft)

    def instant_unstake(self, caller: str, amount: Optional[int] = None, use_warmup: bool = False):
        draft = self._draft(caller, "INSTANT_UNSTAKE")
        quote = apply_instant_unstake(draft, self.symbol, caller, amount, use_warmup)
        tx = self._commit(draft)
        if self.ledger.verbose:
            print(f"⚡ {caller}: instant unstake {quote.amount} -> {quote.payout} (fee {quote.fee})")
        return tx

    def claim_withdraw(self, caller: str, recipient: Optional[str] = None):
        recipient = require_address(recipient or caller, "recipient")
        draft = self._draft(caller, "CLAIM_WITHDRAW")
        apply_claim_withdraw(draft, self.symbol, recipient)
        return self._commit(draft)

    def toggle_withdraw_lock(self, caller: str):
        draft = self._draft(caller, "TOGGLE_WITHDRAW_LOCK")
        apply_toggle_withdraw_lock(draft, self.symbol, caller)
        return self._commit(draft)

    # ------------------------------------------------------------------
    # Keeper operations (anyone may call)
    # ------------------------------------------------------------------

    def rebase(self, caller: str):
        draft = self._draft(caller, "REBASE", OriginType.LIFECYCLE)
        if apply_rebase(draft, self.symbol) and self.ledger.verbose:
            print(f"📈 {self.symbol}: epoch rolled over at block {self.ledger.current_block}")
        return self._commit(draft)

    def send_withdrawal_requests(self, caller: str):
        draft = self._draft(caller, "SEND_WITHDRAWAL_REQUESTS", OriginType.LIFECYCLE)
        apply_send_withdrawal_requests(draft, self.symbol)
        return self._commit(draft)

    def add_rewards_for_stakers(self, caller: str, amount: int, trigger_rebase: bool = False):
        draft = self._draft(caller, "ADD_REWARDS")
        apply_add_rewards(draft, self.symbol, caller, amount, trigger_rebase)
        return self._commit(draft)

    def claim_from_venue(self, caller: str, claim: RewardClaim):
        draft = self._draft(caller, "CLAIM_FROM_VENUE", OriginType.CONTRACT)
        apply_claim_from_venue(draft, self.symbol, claim)
        return self._commit(draft)

    def unstake_reserve_holdings(self, caller: str):
        """Claim the reserve's matured cooldown and unstake all receipt tokens it holds."""
        wiring = self.wiring()
        if not wiring.reserve:
            raise FeaturePaused("No liquidity reserve")
        reserve_wallet = liquidity_reserve.load_reserve(self.ledger, wiring.reserve).wallet
        draft = self._draft(caller, "UNSTAKE_RESERVE_HOLDINGS", OriginType.CONTRACT)
        apply_claim_withdraw(draft, self.symbol, reserve_wallet)
        amount = rebasing.balance_of(draft, wiring.receipt_token, reserve_wallet)
        if amount > 0:
            apply_unstake(draft, self.symbol, reserve_wallet, amount, False)
        return self._commit(draft)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def transfer_rewards(self, caller: str, recipient: str):
        self._require_admin(caller)
        with self.ledger.opening_wallets(require_address(recipient, "recipient")):
            draft = self._draft(caller, "TRANSFER_REWARDS", OriginType.ADMIN)
            apply_transfer_rewards(draft, self.symbol, recipient)
            return self._commit(draft)

    def unstake_all_from_venue(self, caller: str):
        self._require_admin(caller)
        draft = self._draft(caller, "UNSTAKE_ALL_FROM_VENUE", OriginType.ADMIN)
        requested = apply_unstake_all_from_venue(draft, self.symbol)
        tx = self._commit(draft)
        if self.ledger.verbose:
            print(f"⚠️  {self.symbol}: emergency exit requested {requested} from venue")
        return tx

    def _set(self, caller: str, key: str, value: Any):
        self._require_admin(caller)
        draft = self._draft(caller, f"SET_{key.upper()}", OriginType.ADMIN)
        apply_setting(draft, self.symbol, key, value)
        return self._commit(draft)

    def set_epoch_length(self, caller: str, length: int):
        return self._set(caller, 'epoch_length', length)

    def set_warmup_period(self, caller: str, period: int):
        return self._set(caller, 'warmup_period', period)

    def set_cooldown_period(self, caller: str, period: int):
        return self._set(caller, 'cooldown_period', period)

    def set_blocks_left_to_request_withdrawal(self, caller: str, blocks: int):
        return self._set(caller, 'blocks_left_to_request_withdrawal', blocks)

    def should_pause_staking(self, caller: str, paused: bool):
        return self._set(caller, 'staking_paused', paused)

    def should_pause_unstaking(self, caller: str, paused: bool):
        return self._set(caller, 'unstaking_paused', paused)

    def should_pause_instant_unstaking(self, caller: str, paused: bool):
        return self._set(caller, 'instant_unstaking_paused', paused)

    def set_affiliate_address(self, caller: str, affiliate: str):
        with self.ledger.opening_wallets(require_address(affiliate, "affiliate")):
            return self._set(caller, 'affiliate', affiliate)

    def set_affiliate_fee(self, caller: str, fee: int):
        return self._set(caller, 'affiliate_fee', fee)
