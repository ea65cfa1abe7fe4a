"""
event_handlers.py - Event Handler Functions

Functions that process Event -> PendingTransaction. Each handler is a thin
adapter onto the pure draft operations of a component module.
"""

from __future__ import annotations

from .core import LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType
from .scheduled_events import Event, EventScheduler
from .venue import compute_complete_rollover
from .staking import apply_add_rewards


def handle_rollover(event: Event, view: LedgerView) -> PendingTransaction:
    """Venue operator completes the current cycle."""
    params = event.params_dict
    return compute_complete_rollover(
        view,
        event.symbol,
        params["manager"],
        params.get("rewards_hash", ""),
        nonce=event.trigger_block,
    )


def handle_add_rewards(event: Event, view: LedgerView) -> PendingTransaction:
    """Scheduled reward top-up for stakers."""
    params = event.params_dict
    funder = params["funder"]
    origin = TransactionOrigin(OriginType.LIFECYCLE, funder, event.symbol, "ADD_REWARDS", event.trigger_block)
    draft = TransactionDraft(view, origin)
    apply_add_rewards(draft, event.symbol, funder, params["amount"], params.get("trigger_rebase", False))
    return draft.build()


def create_default_scheduler() -> EventScheduler:
    """Create an EventScheduler with the standard handlers registered."""
    scheduler = EventScheduler()
    scheduler.register("rollover", handle_rollover)
    scheduler.register("add_rewards", handle_add_rewards)
    return scheduler
