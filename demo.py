#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn Elastic-Supply Staking Step by Step

This is a pedagogical demonstration of the staking ledger. Each step builds
on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation    - Deployment, staking with warmup, the reward lag
  4-6:  Redemption    - Rebases, cooldown, batched venue withdrawals
  7-8:  Liquidity     - Instant unstake through the fee-bearing reserve
  9-10: Guarantees    - Keeper idempotency, replay, conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from yieldy import (
    Ledger, StakingConfig, Deployment, deploy,
    LifecycleEngine, rollover_event,
    UNIT_TYPE_STAKING_CONTROLLER, SYSTEM_WALLET, TOTAL_GONS, MINIMUM_LIQUIDITY,
)
from yieldy.staking import staking_contract


FOX = 10**18


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Timing (blocks)
    epoch_length: int = 100
    venue_cycle_duration: int = 100
    blocks_left_to_request_withdrawal: int = 10
    warmup_period: int = 1
    cooldown_period: int = 1

    # Amounts
    alice_stake: int = 100 * FOX
    bob_stake: int = 50 * FOX
    reward: int = 15 * FOX
    lp_liquidity: int = 50 * FOX


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fox(amount: int) -> str:
    return f"{amount / FOX:>12,.4f}"


def show_positions(d: Deployment, accounts):
    for account in accounts:
        print(f"{account:<10} FOX {fox(d.staking_token.balance_of(account))}   "
              f"FOXy {fox(d.receipt_token.balance_of(account))}   "
              f"warmup {fox(d.staking.warmup_value(account))}   "
              f"cooldown {fox(d.staking.cooldown_value(account))}")


def show_controller(d: Deployment):
    epoch = d.staking.epoch()
    print(f"Block:              {d.staking.ledger.current_block}")
    print(f"Epoch:              #{epoch.number} (ends at block {epoch.end_block}, distributes {fox(epoch.distribute).strip()})")
    print(f"Circulating FOXy:   {fox(d.staking.circulating_supply())}")
    print(f"Backing FOX:        {fox(d.staking.contract_balance())}")
    print(f"Index:              {fox(d.staking.get_index())}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_deploy() -> Deployment:
    """Deploy every component onto an empty ledger."""
    step_header(1, "Deployment",
        "See which units and wallets make up a staking deployment.")

    print("""
    The whole system lives on one double-entry ledger:

      FOX      - the base asset people stake
      FOXy     - the rebasing receipt token (balances are stored in gons)
      tFOX     - the venue's receipt for deposited FOX
      lrFOX    - liquidity reserve shares
      STAKING  - the controller: epochs, warmup/cooldown records, settings

    deploy() registers them, mints all gons to the controller and lets the
    venue pull the controller's FOX.
    """)

    ledger = Ledger("demo", verbose=True)
    d = deploy(ledger, StakingConfig(
        epoch_length=CONFIG.epoch_length,
        venue_cycle_duration=CONFIG.venue_cycle_duration,
        blocks_left_to_request_withdrawal=CONFIG.blocks_left_to_request_withdrawal,
        warmup_period=CONFIG.warmup_period,
        cooldown_period=CONFIG.cooldown_period,
    ), admin="admin")

    print(f"\nUnits:   {ledger.list_units()}")
    print(f"Wallets: {sorted(ledger.registered_wallets)}")
    print(f"Controller gons: {d.receipt_token.gons_of(d.staking.wallet)} (TOTAL_GONS = {TOTAL_GONS})")
    show_controller(d)
    return d


def step_02_stake(d: Deployment) -> Deployment:
    """Stake into warmup."""
    step_header(2, "Staking With Warmup",
        "Stake FOX and watch the receipt wait in the warmup escrow.")

    for account, amount in (("alice", CONFIG.alice_stake), ("bob", CONFIG.bob_stake)):
        d.staking_token.mint(account, amount)
        d.staking_token.approve(account, d.staking.wallet, amount)
        d.staking.stake(account, amount)

    section_header("Positions")
    show_positions(d, ["alice", "bob"])
    print(f"\nalice warmup expires at epoch {d.staking.warmup_info('alice').expiry}")
    print(f"venue position: {fox(d.adapter.position(d.staking.ledger))}")
    return d


def step_03_reward_lag(d: Deployment) -> Deployment:
    """Rewards are distributed one epoch after they arrive."""
    step_header(3, "The Reward Lag",
        "Rewards added now are scheduled at the next rebase and paid at the one after.")

    ledger = d.staking.ledger
    ledger.advance_to(10)
    d.staking_token.mint("funder", CONFIG.reward)
    d.staking_token.approve("funder", d.staking.wallet, CONFIG.reward)
    d.staking.add_rewards_for_stakers("funder", CONFIG.reward)

    section_header("Before the first rebase")
    show_controller(d)

    ledger.advance_to(d.staking.epoch().end_block)
    d.staking.rebase("keeper")

    section_header("After the first rebase (nothing paid yet)")
    show_controller(d)
    return d


# ============================================================================
# PHASE 2: REDEMPTION (Steps 4-6)
# ============================================================================

def step_04_rebase(d: Deployment) -> Deployment:
    """Claim warmup and collect the reward."""
    step_header(4, "Claim and Rebase",
        "Claim expired warmup, then watch balances grow at the next rebase.")

    d.staking.claim("alice")
    d.staking.claim("bob")
    section_header("Claimed")
    show_positions(d, ["alice", "bob"])

    ledger = d.staking.ledger
    ledger.advance_to(d.staking.epoch().end_block)
    d.staking.rebase("keeper")

    section_header("After the rebase")
    show_positions(d, ["alice", "bob"])
    show_controller(d)
    return d


def step_05_unstake(d: Deployment) -> Deployment:
    """Unstake into cooldown; the controller batches a venue request."""
    step_header(5, "Cooldown and Batched Requests",
        "Unstaking parks value in cooldown and asks the venue for the FOX.")

    print("""
    The venue only releases FOX one cycle after a request. The controller
    collects every cooldown into one request, sent when the request window
    near the end of the cycle is open.
    """)

    d.staking.unstake("alice", d.receipt_token.balance_of("alice"))
    show_positions(d, ["alice"])
    request = d.staking.requested_withdrawal()
    print(f"\nVenue request: {fox(request.amount).strip()} FOX, withdrawable from cycle {request.min_cycle}")
    print(f"Venue cycle:   {d.venue.current_cycle_index()}")
    return d


def step_06_claim_withdraw(d: Deployment) -> Deployment:
    """Rollover, cooldown expiry and payout."""
    step_header(6, "Rollover and Claim Withdraw",
        "Payout needs both an expired cooldown and a matured venue request.")

    d.venue.complete_rollover(d.config.venue_manager)
    print(f"Venue cycle:   {d.venue.current_cycle_index()}")

    section_header("Cooldown not expired yet")
    d.staking.claim_withdraw("alice")
    show_positions(d, ["alice"])

    ledger = d.staking.ledger
    ledger.advance_to(d.staking.epoch().end_block)
    d.staking.rebase("keeper")

    section_header("Epoch advanced")
    d.staking.claim_withdraw("alice")
    show_positions(d, ["alice"])
    return d


# ============================================================================
# PHASE 3: LIQUIDITY (Steps 7-8)
# ============================================================================

def step_07_instant_unstake(d: Deployment) -> Deployment:
    """Skip the cooldown by selling receipt value to the reserve."""
    step_header(7, "Instant Unstake",
        "Swap FOXy for FOX immediately and pay a fee to liquidity providers.")

    d.staking_token.mint("admin", MINIMUM_LIQUIDITY)
    d.staking_token.approve("admin", d.reserve.wallet, MINIMUM_LIQUIDITY)
    d.reserve.enable("admin", d.staking)

    d.staking_token.mint("lp", CONFIG.lp_liquidity)
    d.staking_token.approve("lp", d.reserve.wallet, CONFIG.lp_liquidity)
    d.reserve.add_liquidity("lp", CONFIG.lp_liquidity)

    quote = d.reserve.quote_instant_unstake(d.receipt_token.balance_of("bob"))
    print(f"Quote: {fox(quote.amount).strip()} in, fee {fox(quote.fee).strip()}, out {fox(quote.payout).strip()}")
    d.staking.instant_unstake("bob")

    section_header("After the swap")
    show_positions(d, ["bob"])
    print(f"Reserve total locked value: {fox(d.reserve.total_locked_value())}")
    return d


def step_08_recycle(d: Deployment) -> Deployment:
    """The keeper recycles the reserve's receipt tokens."""
    step_header(8, "Recycling Through the Engine",
        "Let the LifecycleEngine drive rebases, rollovers and batching.")

    d.reserve.unstake_all_reward_tokens("keeper")

    engine = LifecycleEngine(d.staking.ledger)
    engine.register(UNIT_TYPE_STAKING_CONTROLLER, staking_contract)
    engine.schedule(rollover_event(d.config.venue, 400, d.config.venue_manager))
    executed = engine.run(range(d.staking.ledger.current_block + 10, 401, 10))
    print(f"\nEngine executed {len(executed)} transactions")

    d.reserve.unstake_all_reward_tokens("keeper")
    print(f"Reserve FOX:                {fox(d.staking_token.balance_of(d.reserve.wallet))}")

    shares = d.reserve.balance_of("lp")
    d.reserve.remove_liquidity("lp", shares)
    section_header("Provider exits")
    print(f"lp deposited {fox(CONFIG.lp_liquidity).strip()}, withdrew {fox(d.staking_token.balance_of('lp')).strip()}")
    return d


# ============================================================================
# PHASE 4: GUARANTEES (Steps 9-10)
# ============================================================================

def step_09_idempotency_and_replay(d: Deployment) -> Deployment:
    """Keeper transactions are safe to rebuild; the log reproduces state."""
    step_header(9, "Idempotency and Replay",
        "A synchronized keeper has nothing to do; replay rebuilds every balance.")

    ledger = d.staking.ledger
    pending = staking_contract(ledger, d.staking.symbol, ledger.current_block)
    print(f"Keeper rerun empty: {pending.is_empty()}")

    ledger.verbose = False
    replayed = ledger.replay()
    same = all(
        replayed.get_balance(wallet, unit) == ledger.get_balance(wallet, unit)
        for wallet in ledger.registered_wallets
        for unit in ledger.list_units()
    )
    print(f"Replayed {len(ledger.transaction_log)} transactions; balances identical: {same}")
    return d


def step_10_conservation(d: Deployment):
    """Every unit nets to zero and the receipt stays backed."""
    step_header(10, "Conservation Proof",
        "Verify double entry and that circulating FOXy is fully backed.")

    result = d.staking.ledger.verify_double_entry({d.config.receipt_token: TOTAL_GONS})
    print(f"Double entry valid: {result['valid']}")
    for unit, supply in sorted(result['supplies'].items()):
        print(f"  {unit:<8} issued outside {SYSTEM_WALLET}: {supply}")
    show_controller(d)


def main():
    print("""
    ======================================================================
           ELASTIC-SUPPLY STAKING TUTORIAL
    ======================================================================
    """)
    wait_for_enter()

    d = step_01_deploy()
    wait_for_enter()

    d = step_02_stake(d)
    wait_for_enter()

    d = step_03_reward_lag(d)
    wait_for_enter()

    d = step_04_rebase(d)
    wait_for_enter()

    d = step_05_unstake(d)
    wait_for_enter()

    d = step_06_claim_withdraw(d)
    wait_for_enter()

    d = step_07_instant_unstake(d)
    wait_for_enter()

    d = step_08_recycle(d)
    wait_for_enter()

    d = step_09_idempotency_and_replay(d)
    wait_for_enter()

    step_10_conservation(d)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

      - Receipt balances are gons divided by a moving gons-per-fragment
      - Rewards reach holders one epoch after they arrive
      - Cooldowns are paid from batched, cycle-gated venue withdrawals
      - The reserve trades waiting time for a fee

    Next steps:
      - See yieldy/staking.py for the controller operations
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
