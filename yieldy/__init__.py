"""
yieldy - Elastic-Supply Staking on a Double-Entry Ledger

Holders of a base asset stake it into a position managed by a cycle-based
external venue and receive a rebasing receipt token that grows as rewards
are distributed. Redemption goes through a cooldown synchronized with the
venue's withdrawal cycles, or instantly through a fee-bearing liquidity
reserve.

Usage:
    from yieldy import Ledger, StakingConfig, deploy

    ledger = Ledger("main", verbose=False)
    d = deploy(ledger, StakingConfig(), admin="admin")

    d.staking_token.mint("alice", 10_000)
    d.staking_token.approve("alice", d.staking.wallet, 10_000)
    d.staking.stake("alice", 10_000)

    d.staking.unstake("alice", 10_000)
    d.venue.complete_rollover("venue_manager")
    d.staking.claim_withdraw("alice")
"""

# Core types
from .core import (
    LedgerView,
    SmartContract,
    Move,
    Transaction,
    PendingTransaction,
    TransactionDraft,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    InsufficientFunds,
    InsufficientAllowance,
    BalanceConstraintViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    TransactionRejected,
    Unauthorized,
    FeaturePaused,
    AccountLocked,
    InvalidAmount,
    InvalidAddress,
    OutOfRange,
    AlreadyInitialized,
    SupplyOverflow,
    WithdrawalNotReady,
    SYSTEM_WALLET,
    ZERO_ADDRESS,
    MAX_UINT256,
    BASIS_POINTS,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_REBASING_TOKEN,
    UNIT_TYPE_LIQUIDITY_SHARE,
    UNIT_TYPE_VENUE_RECEIPT,
    UNIT_TYPE_STAKING_CONTROLLER,
)

# Ledger
from .ledger import Ledger

# Access control
from .access import AccessControl

# Plain tokens
from .token import Token, create_token

# Rebasing receipt token
from .rebasing import (
    GonAmount,
    RebasingToken,
    create_rebasing_token,
    balance_for_gons,
    gons_for_balance,
    calculate_rebase,
    INITIAL_FRAGMENTS_SUPPLY,
    TOTAL_GONS,
    MAX_SUPPLY,
)

# Escrow
from .escrow import Escrow

# Venue
from .venue import (
    CycleVenue,
    VenueAdapter,
    RequestedWithdrawal,
    RewardClaim,
    create_venue,
    calculate_can_batch,
)

# Liquidity reserve
from .liquidity_reserve import (
    LiquidityReserve,
    InstantUnstakeQuote,
    create_liquidity_reserve,
    calculate_instant_unstake,
    INSTANT_UNSTAKE_FEE,
    MINIMUM_LIQUIDITY,
)

# Staking controller
from .staking import (
    Staking,
    Epoch,
    Claim,
    create_staking_unit,
    staking_contract,
    EPOCH_LENGTH,
    FIRST_EPOCH_NUMBER,
    BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL,
)

# Configuration
from .config import StakingConfig, Deployment, deploy

# Lifecycle
from .scheduled_events import Event, EventScheduler, rollover_event, add_rewards_event
from .event_handlers import create_default_scheduler
from .lifecycle_engine import LifecycleEngine

__all__ = [
    # Core
    'LedgerView', 'SmartContract', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionDraft', 'TransactionOrigin', 'OriginType', 'build_transaction',
    'empty_pending_transaction', 'Unit', 'UnitStateChange', 'ExecuteResult',
    'LedgerError', 'InsufficientFunds', 'InsufficientAllowance', 'BalanceConstraintViolation',
    'UnitNotRegistered', 'WalletNotRegistered', 'TransactionRejected', 'Unauthorized',
    'FeaturePaused', 'AccountLocked', 'InvalidAmount', 'InvalidAddress', 'OutOfRange',
    'AlreadyInitialized', 'SupplyOverflow', 'WithdrawalNotReady',
    'SYSTEM_WALLET', 'ZERO_ADDRESS', 'MAX_UINT256', 'BASIS_POINTS',
    'UNIT_TYPE_TOKEN', 'UNIT_TYPE_REBASING_TOKEN', 'UNIT_TYPE_LIQUIDITY_SHARE',
    'UNIT_TYPE_VENUE_RECEIPT', 'UNIT_TYPE_STAKING_CONTROLLER',
    # Ledger
    'Ledger',
    # Components
    'AccessControl', 'Token', 'create_token',
    'GonAmount', 'RebasingToken', 'create_rebasing_token', 'balance_for_gons',
    'gons_for_balance', 'calculate_rebase', 'INITIAL_FRAGMENTS_SUPPLY', 'TOTAL_GONS', 'MAX_SUPPLY',
    'Escrow',
    'CycleVenue', 'VenueAdapter', 'RequestedWithdrawal', 'RewardClaim', 'create_venue',
    'calculate_can_batch',
    'LiquidityReserve', 'InstantUnstakeQuote', 'create_liquidity_reserve',
    'calculate_instant_unstake', 'INSTANT_UNSTAKE_FEE', 'MINIMUM_LIQUIDITY',
    'Staking', 'Epoch', 'Claim', 'create_staking_unit', 'staking_contract',
    'EPOCH_LENGTH', 'FIRST_EPOCH_NUMBER', 'BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL',
    # Configuration
    'StakingConfig', 'Deployment', 'deploy',
    # Lifecycle
    'Event', 'EventScheduler', 'rollover_event', 'add_rewards_event',
    'create_default_scheduler', 'LifecycleEngine',
]

__version__ = "0.1.0"
