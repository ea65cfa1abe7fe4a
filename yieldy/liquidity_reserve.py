"""
liquidity_reserve.py - Fee-Bearing Liquidity Buffer for Instant Unstaking

Liquidity providers deposit base asset and receive reserve shares
(LIQUIDITY_SHARE unit, minted from SYSTEM_WALLET). Stakers who do not want
to wait for a cooldown swap receipt tokens into the reserve for base asset
minus a fee. The fee stays in the reserve and raises the value of every
share; that is the buffer's only source of yield.

Key Formulas:
    total_locked_value = base balance + receipt balance + own cooldown value
    shares_minted      = amount * total_shares // total_locked_value
                         (1:1 while no shares exist)
    payout             = shares * total_locked_value // total_shares
    fee                = amount * fee_bps // BASIS_POINTS

The first MINIMUM_LIQUIDITY shares are minted to the reserve wallet itself
when the reserve is enabled and can never be redeemed, so total_shares
never returns to zero.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType, Unit,
    SYSTEM_WALLET, UNIT_TYPE_LIQUIDITY_SHARE, BASIS_POINTS, DEFAULT_DECIMALS,
    AlreadyInitialized, FeaturePaused, InsufficientFunds, OutOfRange, Unauthorized,
    contract_unit, require_address, require_positive,
)
from . import token as plain_token
from . import rebasing

if TYPE_CHECKING:
    from .access import AccessControl
    from .staking import Staking


MINIMUM_LIQUIDITY = 10**15
INSTANT_UNSTAKE_FEE = 2000


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class ReserveState:
    """Wiring and parameters of a liquidity reserve."""
    staking_token: str
    reward_token: str
    wallet: str
    fee: int
    enabled: bool
    staking_contract: Optional[str]
    staking_unit: Optional[str]
    minimum_liquidity: int


@dataclass(frozen=True, slots=True)
class InstantUnstakeQuote:
    amount: int
    fee: int
    payout: int


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_reserve(view: LedgerView, symbol: str) -> ReserveState:
    raw = view.get_unit_state(symbol)
    return ReserveState(
        staking_token=raw['staking_token'],
        reward_token=raw['reward_token'],
        wallet=raw['wallet'],
        fee=raw['fee'],
        enabled=raw['enabled'],
        staking_contract=raw.get('staking_contract'),
        staking_unit=raw.get('staking_unit'),
        minimum_liquidity=raw['minimum_liquidity'],
    )


def total_shares(view: LedgerView, symbol: str) -> int:
    """Shares in existence; every share was minted from SYSTEM_WALLET."""
    return -view.get_balance(SYSTEM_WALLET, symbol)


def cooldown_value(view: LedgerView, state: ReserveState) -> int:
    """Value of the reserve's own cooldown record at the controller."""
    if not state.staking_unit:
        return 0
    record = view.get_unit_state(state.staking_unit)['cooldown_info'].get(state.wallet)
    if not record:
        return 0
    return rebasing.balance_for_gons(record['gons'], view.get_unit_state(state.reward_token)['gons_per_fragment'])


def total_locked_value(view: LedgerView, symbol: str) -> int:
    state = load_reserve(view, symbol)
    return calculate_total_locked_value(
        plain_token.balance_of(view, state.staking_token, state.wallet),
        rebasing.balance_of(view, state.reward_token, state.wallet),
        cooldown_value(view, state),
    )


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_total_locked_value(base_balance: int, receipt_balance: int, cooling: int) -> int:
    return base_balance + receipt_balance + cooling


def calculate_shares_to_mint(amount: int, shares: int, locked_value: int) -> int:
    if shares == 0 or locked_value == 0:
        return amount
    return amount * shares // locked_value


def calculate_share_value(share_amount: int, shares: int, locked_value: int) -> int:
    if shares == 0:
        return 0
    return share_amount * locked_value // shares


def calculate_instant_unstake(amount: int, fee_bps: int) -> InstantUnstakeQuote:
    """
    Split an instant unstake into fee and payout.

    Example:
        >>> calculate_instant_unstake(10_000, 2000)
        InstantUnstakeQuote(amount=10000, fee=2000, payout=8000)
    """
    fee = amount * fee_bps // BASIS_POINTS
    return InstantUnstakeQuote(amount=amount, fee=fee, payout=amount - fee)


# ============================================================================
# UNIT FACTORY
# ============================================================================

def create_liquidity_reserve(
    symbol: str,
    name: str,
    staking_token: str,
    reward_token: str,
    wallet: str,
    fee: int = INSTANT_UNSTAKE_FEE,
    minimum_liquidity: int = MINIMUM_LIQUIDITY,
    decimals: int = DEFAULT_DECIMALS,
) -> Unit:
    """
    Create the reserve's share unit.

    Args:
        symbol: Share token symbol (e.g., "lrFOX")
        staking_token: Base asset paid out on instant unstake
        reward_token: Receipt token accepted on instant unstake
        wallet: Wallet holding the reserve's base asset and receipt tokens
        fee: Instant unstake fee in basis points
    """
    require_address(staking_token, "staking token")
    require_address(reward_token, "reward token")
    if not 0 <= fee <= BASIS_POINTS:
        raise OutOfRange("Out of range")
    return contract_unit(symbol, name, UNIT_TYPE_LIQUIDITY_SHARE, {
        'decimals': decimals,
        'allowances': {},
        'staking_token': staking_token,
        'reward_token': reward_token,
        'wallet': wallet,
        'fee': fee,
        'enabled': False,
        'staking_contract': None,
        'staking_unit': None,
        'minimum_liquidity': minimum_liquidity,
    })


# ============================================================================
# DRAFT OPERATIONS
# ============================================================================

def apply_enable(
    draft: TransactionDraft,
    symbol: str,
    caller: str,
    staking_contract: str,
    staking_unit: str,
) -> None:
    """Seed MINIMUM_LIQUIDITY from caller and lock the matching shares in the reserve."""
    require_address(staking_contract, "staking contract")
    state = draft.state(symbol)
    if state['enabled']:
        raise AlreadyInitialized(f"{symbol} already enabled")
    minimum = state['minimum_liquidity']
    if plain_token.balance_of(draft, state['staking_token'], caller) < minimum:
        raise InsufficientFunds("Must have required minimum liquidity")

    plain_token.apply_transfer_from(draft, state['staking_token'], state['wallet'], caller, state['wallet'], minimum, f"lr_enable:{symbol}")
    draft.move(minimum, symbol, SYSTEM_WALLET, state['wallet'], f"lr_enable:{symbol}")
    state['enabled'] = True
    state['staking_contract'] = staking_contract
    state['staking_unit'] = staking_unit


def _require_enabled(state) -> None:
    if not state['enabled']:
        raise FeaturePaused("Liquidity reserve is not enabled")


def apply_add_liquidity(draft: TransactionDraft, symbol: str, caller: str, amount: int) -> int:
    """Pull base asset from caller and mint shares; returns shares minted."""
    require_positive(amount)
    state = draft.state(symbol)
    _require_enabled(state)
    if plain_token.balance_of(draft, state['staking_token'], caller) < amount:
        raise InsufficientFunds("Not enough staking tokens")

    shares = calculate_shares_to_mint(amount, total_shares(draft, symbol), total_locked_value(draft, symbol))
    require_positive(shares, "share amount")
    plain_token.apply_transfer_from(draft, state['staking_token'], state['wallet'], caller, state['wallet'], amount, f"lr_add:{symbol}")
    draft.move(shares, symbol, SYSTEM_WALLET, caller, f"lr_add:{symbol}")
    return shares


def apply_remove_liquidity(draft: TransactionDraft, symbol: str, caller: str, share_amount: int) -> int:
    """Burn shares and pay their value in base asset; returns the payout."""
    require_positive(share_amount)
    state = draft.state(symbol)
    _require_enabled(state)
    if plain_token.balance_of(draft, symbol, caller) < share_amount:
        raise InsufficientFunds("Not enough lr tokens")

    payout = calculate_share_value(share_amount, total_shares(draft, symbol), total_locked_value(draft, symbol))
    if payout > plain_token.balance_of(draft, state['staking_token'], state['wallet']):
        raise InsufficientFunds("Not enough funds")

    draft.move(share_amount, symbol, caller, SYSTEM_WALLET, f"lr_remove:{symbol}")
    plain_token.apply_transfer(draft, state['staking_token'], state['wallet'], caller, payout, f"lr_remove:{symbol}")
    return payout


def apply_instant_unstake(
    draft: TransactionDraft,
    symbol: str,
    caller: str,
    amount: int,
    recipient: str,
) -> InstantUnstakeQuote:
    """
    Take `amount` receipt tokens from caller and pay recipient the base asset
    minus the fee.

    Raises:
        Unauthorized: If caller is not the staking contract
        InsufficientFunds: If the reserve cannot cover the payout
    """
    require_positive(amount)
    require_address(recipient, "recipient")
    state = draft.state(symbol)
    _require_enabled(state)
    if caller != state['staking_contract']:
        raise Unauthorized(f"{caller} is not the staking contract of {symbol}")

    quote = calculate_instant_unstake(amount, state['fee'])
    if quote.payout > plain_token.balance_of(draft, state['staking_token'], state['wallet']):
        raise InsufficientFunds("Not enough funds in reserve")

    rebasing.apply_transfer(draft, state['reward_token'], caller, state['wallet'], amount, f"lr_instant_unstake:{symbol}")
    plain_token.apply_transfer(draft, state['staking_token'], state['wallet'], recipient, quote.payout, f"lr_instant_unstake:{symbol}")
    return quote


def apply_set_fee(draft: TransactionDraft, symbol: str, fee: int) -> None:
    if not isinstance(fee, int) or not 0 <= fee <= BASIS_POINTS:
        raise OutOfRange("Out of range")
    draft.state(symbol)['fee'] = fee


# ============================================================================
# STAND-ALONE TRANSACTIONS
# ============================================================================

def _draft(view: LedgerView, caller: str, symbol: str, event: str, nonce: int,
           origin_type: OriginType = OriginType.USER_ACTION) -> TransactionDraft:
    return TransactionDraft(view, TransactionOrigin(origin_type, caller, symbol, event, nonce))


def compute_add_liquidity(view: LedgerView, symbol: str, caller: str, amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, caller, symbol, "ADD_LIQUIDITY", nonce)
    apply_add_liquidity(draft, symbol, caller, amount)
    return draft.build()


def compute_remove_liquidity(view: LedgerView, symbol: str, caller: str, share_amount: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, caller, symbol, "REMOVE_LIQUIDITY", nonce)
    apply_remove_liquidity(draft, symbol, caller, share_amount)
    return draft.build()


def compute_instant_unstake(
    view: LedgerView, symbol: str, caller: str, amount: int, recipient: str, nonce: int = 0
) -> PendingTransaction:
    draft = _draft(view, caller, symbol, "INSTANT_UNSTAKE", nonce, OriginType.CONTRACT)
    apply_instant_unstake(draft, symbol, caller, amount, recipient)
    return draft.build()


def compute_set_fee(view: LedgerView, symbol: str, caller: str, fee: int, nonce: int = 0) -> PendingTransaction:
    draft = _draft(view, caller, symbol, "SET_FEE", nonce, OriginType.ADMIN)
    apply_set_fee(draft, symbol, fee)
    return draft.build()


# ============================================================================
# CALLER-ORIENTED WRAPPER
# ============================================================================

class LiquidityReserve:
    """
    The reserve bound to a ledger.

    Example:
        reserve = LiquidityReserve(ledger, "lrFOX", access)
        reserve.enable("admin", staking)
        reserve.add_liquidity("lp", 50_000)
        reserve.remove_liquidity("lp", reserve.balance_of("lp"))
    """

    def __init__(self, ledger, symbol: str, access: Optional['AccessControl'] = None):
        self.ledger = ledger
        self.symbol = symbol
        self.access = access
        self.staking: Optional['Staking'] = None

    def _require_admin(self, caller: str) -> None:
        if self.access is not None:
            self.access.require_admin(caller)

    # Reads
    def state(self) -> ReserveState:
        return load_reserve(self.ledger, self.symbol)

    @property
    def wallet(self) -> str:
        return self.state().wallet

    def fee(self) -> int:
        return self.state().fee

    def balance_of(self, account: str) -> int:
        return plain_token.balance_of(self.ledger, self.symbol, account)

    def total_supply(self) -> int:
        return total_shares(self.ledger, self.symbol)

    def total_locked_value(self) -> int:
        return total_locked_value(self.ledger, self.symbol)

    def quote_instant_unstake(self, amount: int) -> InstantUnstakeQuote:
        return calculate_instant_unstake(amount, self.fee())

    # Mutations
    def enable(self, caller: str, staking: 'Staking'):
        """Attach the controller and seed the locked minimum liquidity (admin, once)."""
        self._require_admin(caller)
        draft = _draft(self.ledger, caller, self.symbol, "ENABLE", self.ledger.next_sequence, OriginType.ADMIN)
        apply_enable(draft, self.symbol, caller, staking.wallet, staking.symbol)
        tx = self.ledger.commit(draft.build())
        self.staking = staking
        if self.ledger.verbose:
            print(f"💧 {self.symbol}: enabled with {self.state().minimum_liquidity} locked liquidity")
        return tx

    def add_liquidity(self, caller: str, amount: int):
        with self.ledger.opening_wallets(caller):
            return self.ledger.commit(compute_add_liquidity(self.ledger, self.symbol, caller, amount, self.ledger.next_sequence))

    def remove_liquidity(self, caller: str, share_amount: int):
        return self.ledger.commit(
            compute_remove_liquidity(self.ledger, self.symbol, caller, share_amount, self.ledger.next_sequence)
        )

    def instant_unstake(self, caller: str, amount: int, recipient: str):
        """Swap receipt tokens held by the staking contract; callable by the staking contract only."""
        with self.ledger.opening_wallets(require_address(recipient, "recipient")):
            return self.ledger.commit(
                compute_instant_unstake(self.ledger, self.symbol, caller, amount, recipient, self.ledger.next_sequence)
            )

    def set_fee(self, caller: str, fee: int):
        self._require_admin(caller)
        return self.ledger.commit(compute_set_fee(self.ledger, self.symbol, caller, fee, self.ledger.next_sequence))

    def unstake_all_reward_tokens(self, caller: str):
        """
        Claim the reserve's matured cooldown and unstake every receipt token
        it holds, so instant-unstake inflow is turned back into base asset.
        """
        if self.staking is None:
            raise FeaturePaused("Liquidity reserve is not enabled")
        return self.staking.unstake_reserve_holdings(caller)
