"""
conftest.py - Shared pytest fixtures for staking tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, with plain and rebasing tokens)
- Deployments (default timing, instant timing, warmup/cooldown timing)
- Deployments with an enabled liquidity reserve
- Funding helpers and comparison utilities
"""

import pytest
from typing import Dict, Tuple

from yieldy import (
    Ledger, StakingConfig, Deployment, deploy,
    AccessControl, RebasingToken, create_rebasing_token, create_token,
    MINIMUM_LIQUIDITY,
)

from tests.fake_view import FakeView


# =============================================================================
# TIMING CONFIGURATIONS
# =============================================================================

# Short epochs and cycles; the request window spans the whole cycle, so a
# withdrawal request can go out as soon as the venue has rolled over.
INSTANT = dict(
    epoch_length=100,
    venue_cycle_duration=100,
    blocks_left_to_request_withdrawal=100,
)

# One epoch of warmup and cooldown, and a 10-block request window.
TIMED = dict(
    epoch_length=100,
    venue_cycle_duration=100,
    blocks_left_to_request_withdrawal=10,
    warmup_period=1,
    cooldown_period=1,
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def new_ledger(name: str = "test") -> Ledger:
    return Ledger(name, verbose=False, test_mode=True)


def make_deployment(**overrides) -> Deployment:
    """Deploy on a fresh ledger with the INSTANT timing plus overrides."""
    params = {**INSTANT, **overrides}
    return deploy(new_ledger(), StakingConfig(**params), admin="admin")


def fund(d: Deployment, account: str, amount: int, spender: str = None) -> None:
    """Mint base asset to account and approve spender (the controller by default)."""
    d.staking_token.mint(account, amount)
    d.staking_token.approve(account, spender or d.staking.wallet, amount)


def stake(d: Deployment, account: str, amount: int, recipient: str = None):
    fund(d, account, amount)
    return d.staking.stake(account, amount, recipient)


def rollover(d: Deployment):
    return d.venue.complete_rollover(d.config.venue_manager)


def advance_epoch(d: Deployment) -> int:
    """Move the block clock to the end of the current epoch and rebase."""
    ledger = d.staking.ledger
    ledger.advance_to(max(ledger.current_block, d.staking.epoch().end_block))
    d.staking.rebase("keeper")
    return ledger.current_block


def enable_reserve(d: Deployment, admin: str = "admin") -> None:
    fund(d, admin, MINIMUM_LIQUIDITY, spender=d.reserve.wallet)
    d.reserve.enable(admin, d.staking)


def add_liquidity(d: Deployment, provider: str, amount: int):
    fund(d, provider, amount, spender=d.reserve.wallet)
    return d.reserve.add_liquidity(provider, amount)


def ledger_state_equals(ledger1: Ledger, ledger2: Ledger) -> bool:
    """Check if two ledgers have equivalent state (balances and unit states)."""
    return compare_ledger_states(ledger1, ledger2)["equal"]


def compare_ledger_states(ledger1: Ledger, ledger2: Ledger) -> dict:
    """Compare two ledger states and return differences."""
    balance_diffs = []
    state_diffs = []

    all_wallets = ledger1.registered_wallets | ledger2.registered_wallets
    all_units = set(ledger1.units.keys()) | set(ledger2.units.keys())

    for wallet in sorted(all_wallets):
        for unit in sorted(all_units):
            bal1 = ledger1.balances.get(wallet, {}).get(unit, 0)
            bal2 = ledger2.balances.get(wallet, {}).get(unit, 0)
            if bal1 != bal2:
                balance_diffs.append({
                    "wallet": wallet,
                    "unit": unit,
                    "ledger1": bal1,
                    "ledger2": bal2,
                    "diff": bal1 - bal2,
                })

    for unit_sym in sorted(all_units):
        if unit_sym in ledger1.units and unit_sym in ledger2.units:
            state1 = ledger1.get_unit_state(unit_sym)
            state2 = ledger2.get_unit_state(unit_sym)
            field_diffs = {
                key: {"ledger1": state1.get(key), "ledger2": state2.get(key)}
                for key in set(state1) | set(state2)
                if state1.get(key) != state2.get(key)
            }
            if field_diffs:
                state_diffs.append({"unit": unit_sym, "diffs": field_diffs})

    return {
        "equal": len(balance_diffs) == 0 and len(state_diffs) == 0,
        "balance_diffs": balance_diffs,
        "state_diffs": state_diffs,
    }


def snapshot(ledger: Ledger) -> Tuple[Dict[str, Dict[str, int]], Dict[str, dict]]:
    """Balances and unit states, for before/after comparisons."""
    balances = {w: dict(b) for w, b in ledger.balances.items()}
    states = {symbol: ledger.get_unit_state(symbol) for symbol in ledger.units}
    return balances, states


def base_backing(d: Deployment) -> int:
    """Base asset held by the controller, directly or through the venue."""
    return d.staking.contract_balance()


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no registrations."""
    return new_ledger()


@pytest.fixture
def token_ledger():
    """Ledger with a plain FOX token and alice, bob funded by mint."""
    ledger = new_ledger()
    ledger.register_unit(create_token("FOX", "Fox Token"))
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def receipt_ledger():
    """Ledger with an initialized FOXy token whose staking contract is 'staking'."""
    ledger = new_ledger()
    ledger.register_unit(create_rebasing_token("FOXy", "Staked Fox"))
    for wallet in ("admin", "alice", "bob", "staking"):
        ledger.register_wallet(wallet)
    access = AccessControl("admin")
    RebasingToken(ledger, "FOXy", access).initialize("admin", "staking")
    return ledger


@pytest.fixture
def receipt(receipt_ledger):
    return RebasingToken(receipt_ledger, "FOXy", AccessControl("admin"))


@pytest.fixture
def fake_view():
    return FakeView(balances={'alice': {'FOX': 1000}}, block=10)


# =============================================================================
# DEPLOYMENT FIXTURES
# =============================================================================

@pytest.fixture
def deployment():
    """Deployment with short epochs, zero warmup/cooldown and an open request window."""
    return make_deployment()


@pytest.fixture
def timed_deployment():
    """Deployment with one epoch of warmup and cooldown and a 10-block request window."""
    return make_deployment(**TIMED)


@pytest.fixture
def default_deployment():
    """Deployment with the production defaults."""
    return deploy(new_ledger(), StakingConfig(), admin="admin")


@pytest.fixture
def reserve_deployment():
    """Instant-timing deployment with the liquidity reserve enabled."""
    d = make_deployment()
    enable_reserve(d)
    return d
