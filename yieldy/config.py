"""
config.py - Deployment Parameters and Wiring

StakingConfig carries every parameter of one deployment. deploy() turns a
config into registered units and wallets on a ledger and returns the
caller-oriented wrappers bundled as a Deployment.

Example:
    ledger = Ledger("main", verbose=False)
    d = deploy(ledger, StakingConfig(warmup_period=1, cooldown_period=1), admin="admin")
    d.staking_token.mint("alice", 10_000)
    d.staking_token.approve("alice", d.staking.wallet, 10_000)
    d.staking.stake("alice", 10_000)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .core import MAX_UINT256, BASIS_POINTS, DEFAULT_DECIMALS, OutOfRange, require_address
from .access import AccessControl
from .token import Token, create_token, compute_approve
from .rebasing import RebasingToken, create_rebasing_token, INITIAL_FRAGMENTS_SUPPLY
from .venue import CycleVenue, VenueAdapter, create_venue
from .liquidity_reserve import (
    LiquidityReserve, create_liquidity_reserve, INSTANT_UNSTAKE_FEE, MINIMUM_LIQUIDITY,
)
from .staking import (
    Staking, create_staking_unit,
    EPOCH_LENGTH, FIRST_EPOCH_NUMBER, BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL,
)


VENUE_CYCLE_DURATION = 45_500
FIRST_VENUE_CYCLE_INDEX = 1


@dataclass(frozen=True, slots=True)
class StakingConfig:
    """
    Parameters of one deployment. Symbols name units, the *_wallet fields
    name ledger wallets.

    first_epoch_block defaults to one epoch after the deployment block.
    """
    staking_token: str = "FOX"
    staking_token_name: str = "Fox Token"
    receipt_token: str = "FOXy"
    receipt_token_name: str = "Staked Fox"
    staking_unit: str = "STAKING"
    staking_wallet: str = "staking"
    warmup_wallet: str = "staking_warmup"
    cooldown_wallet: str = "staking_cooldown"

    venue: str = "tFOX"
    venue_name: str = "Venue FOX Pool"
    venue_pool_wallet: str = "venue_pool"
    venue_manager: str = "venue_manager"
    venue_cycle_duration: int = VENUE_CYCLE_DURATION
    venue_cycle_index: int = FIRST_VENUE_CYCLE_INDEX
    venue_reward_token: Optional[str] = "TOKE"
    venue_reward_wallet: str = "venue_rewards"

    liquidity_reserve: Optional[str] = "lrFOX"
    liquidity_reserve_name: str = "Liquidity Reserve FOX"
    reserve_wallet: str = "liquidity_reserve"
    instant_unstake_fee: int = INSTANT_UNSTAKE_FEE
    minimum_liquidity: int = MINIMUM_LIQUIDITY

    epoch_length: int = EPOCH_LENGTH
    first_epoch_number: int = FIRST_EPOCH_NUMBER
    first_epoch_block: Optional[int] = None
    warmup_period: int = 0
    cooldown_period: int = 0
    blocks_left_to_request_withdrawal: int = BLOCKS_LEFT_TO_REQUEST_WITHDRAWAL
    initial_fragments_supply: int = INITIAL_FRAGMENTS_SUPPLY
    decimals: int = DEFAULT_DECIMALS

    def __post_init__(self):
        if self.epoch_length <= 0:
            raise OutOfRange(f"epoch_length must be positive, got {self.epoch_length}")
        if self.venue_cycle_duration <= 0:
            raise OutOfRange(f"venue_cycle_duration must be positive, got {self.venue_cycle_duration}")
        if not 0 <= self.instant_unstake_fee <= BASIS_POINTS:
            raise OutOfRange("Out of range")
        for value, what in ((self.warmup_period, "warmup_period"), (self.cooldown_period, "cooldown_period"),
                            (self.blocks_left_to_request_withdrawal, "blocks_left_to_request_withdrawal")):
            if value < 0:
                raise OutOfRange(f"{what} must be non-negative, got {value}")


@dataclass(frozen=True, slots=True)
class Deployment:
    """Wrappers for every component of a deployment."""
    config: StakingConfig
    access: AccessControl
    staking_token: Token
    receipt_token: RebasingToken
    venue: CycleVenue
    adapter: VenueAdapter
    staking: Staking
    reserve: Optional[LiquidityReserve] = None
    venue_reward_token: Optional[Token] = None


def deploy(ledger, config: Optional[StakingConfig] = None, admin: str = "admin") -> Deployment:
    """
    Register all units and wallets of a deployment and wire them together.

    The receipt token is initialized to the controller and the controller
    grants the venue pool an unlimited base-asset allowance. The liquidity
    reserve (if configured) is registered but not enabled; enabling needs
    the admin to provide the minimum liquidity.
    """
    config = config or StakingConfig()
    access = AccessControl(require_address(admin, "admin"))
    first_epoch_block = config.first_epoch_block
    if first_epoch_block is None:
        first_epoch_block = ledger.current_block + config.epoch_length

    wallets = [admin, config.staking_wallet, config.warmup_wallet, config.cooldown_wallet,
               config.venue_pool_wallet, config.venue_manager]
    if config.venue_reward_token:
        wallets.append(config.venue_reward_wallet)
    if config.liquidity_reserve:
        wallets.append(config.reserve_wallet)
    for wallet in wallets:
        ledger.ensure_wallet(wallet)

    ledger.register_unit(create_token(config.staking_token, config.staking_token_name, config.decimals))
    if config.venue_reward_token:
        ledger.register_unit(create_token(config.venue_reward_token, f"{config.venue_reward_token} Reward"))
    ledger.register_unit(create_rebasing_token(
        config.receipt_token, config.receipt_token_name, config.decimals, config.initial_fragments_supply,
    ))
    ledger.register_unit(create_venue(
        config.venue, config.venue_name,
        underlyer=config.staking_token,
        pool_wallet=config.venue_pool_wallet,
        manager=config.venue_manager,
        cycle_duration=config.venue_cycle_duration,
        start_block=ledger.current_block,
        cycle_index=config.venue_cycle_index,
        reward_token=config.venue_reward_token,
        reward_wallet=config.venue_reward_wallet if config.venue_reward_token else None,
        decimals=config.decimals,
    ))
    if config.liquidity_reserve:
        ledger.register_unit(create_liquidity_reserve(
            config.liquidity_reserve, config.liquidity_reserve_name,
            staking_token=config.staking_token,
            reward_token=config.receipt_token,
            wallet=config.reserve_wallet,
            fee=config.instant_unstake_fee,
            minimum_liquidity=config.minimum_liquidity,
            decimals=config.decimals,
        ))
    ledger.register_unit(create_staking_unit(
        config.staking_unit, "Staking Controller",
        staking_token=config.staking_token,
        receipt_token=config.receipt_token,
        wallet=config.staking_wallet,
        warmup_wallet=config.warmup_wallet,
        cooldown_wallet=config.cooldown_wallet,
        venue=config.venue,
        first_epoch_block=first_epoch_block,
        epoch_length=config.epoch_length,
        first_epoch_number=config.first_epoch_number,
        warmup_period=config.warmup_period,
        cooldown_period=config.cooldown_period,
        blocks_left_to_request_withdrawal=config.blocks_left_to_request_withdrawal,
        liquidity_reserve=config.liquidity_reserve,
    ))

    receipt = RebasingToken(ledger, config.receipt_token, access)
    receipt.initialize(admin, config.staking_wallet)
    ledger.commit(compute_approve(
        ledger, config.staking_token, config.staking_wallet, config.venue_pool_wallet, MAX_UINT256,
        ledger.next_sequence,
    ))

    if ledger.verbose:
        print(f"🚀 Deployed {config.staking_unit}: {config.staking_token} -> {config.receipt_token} via {config.venue}")

    return Deployment(
        config=config,
        access=access,
        staking_token=Token(ledger, config.staking_token),
        receipt_token=receipt,
        venue=CycleVenue(ledger, config.venue),
        adapter=VenueAdapter(config.venue, config.staking_wallet),
        staking=Staking(ledger, config.staking_unit, access),
        reserve=LiquidityReserve(ledger, config.liquidity_reserve, access) if config.liquidity_reserve else None,
        venue_reward_token=Token(ledger, config.venue_reward_token) if config.venue_reward_token else None,
    )
