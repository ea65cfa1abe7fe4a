"""
scheduled_events.py - Block-Keyed Event Scheduler

Core concepts:
1. Event: Immutable specification of what should happen and at which block
2. EventScheduler: Priority queue for due event retrieval
3. Handlers: Plain functions that process events -> PendingTransaction

Events are data and handlers are functions. The transaction log is the
audit trail; the scheduler only remembers which event ids it has run.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Callable, Any
import heapq

from .core import LedgerView, PendingTransaction


# ============================================================================
# EVENT DATA STRUCTURE
# ============================================================================

@dataclass(frozen=True, slots=True)
class Event:
    """
    Immutable scheduled lifecycle event.

    Sorting: by trigger_block, then priority (lower=first), then symbol.

    Attributes:
        trigger_block: Block at or after which this event executes
        priority: Execution order within the same block (0=first)
        symbol: Unit symbol this event affects
        action: Event type string ("rollover", "add_rewards", ...)
        params: Event-specific parameters as frozen tuple of (key, value) pairs
    """
    trigger_block: int
    priority: int = 0
    symbol: str = ""
    action: str = ""
    params: tuple = ()

    def __lt__(self, other: 'Event') -> bool:
        if self.trigger_block != other.trigger_block:
            return self.trigger_block < other.trigger_block
        if self.priority != other.priority:
            return self.priority < other.priority
        return self.symbol < other.symbol

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    @property
    def event_id(self) -> str:
        """Deterministic ID for deduplication (includes params for uniqueness)."""
        params_str = "|".join(f"{k}={v}" for k, v in sorted(self.params))
        return f"{self.action}:{self.symbol}:{self.trigger_block}:{params_str}"


# ============================================================================
# EVENT SCHEDULER
# ============================================================================

# Handler type: (event, view) -> PendingTransaction
EventHandler = Callable[[Event, LedgerView], PendingTransaction]


class EventScheduler:
    """
    Event scheduler using a priority queue.

    - Events are scheduled in advance
    - get_due() returns events ready to execute
    - Executed event ids are remembered so a re-scheduled duplicate is skipped
    """

    def __init__(self):
        self._heap: List[Event] = []
        self._handlers: Dict[str, EventHandler] = {}
        self._executed: set = set()

    def register(self, action: str, handler: EventHandler) -> None:
        self._handlers[action] = handler

    def schedule(self, event: Event) -> str:
        heapq.heappush(self._heap, event)
        return event.event_id

    def schedule_many(self, events: List[Event]) -> List[str]:
        return [self.schedule(event) for event in events]

    def get_due(self, block: int) -> List[Event]:
        """Remove and return events with trigger_block <= block, in execution order."""
        due = []
        while self._heap and self._heap[0].trigger_block <= block:
            event = heapq.heappop(self._heap)
            if event.event_id not in self._executed:
                due.append(event)
        return due

    def execute(self, event: Event, view: LedgerView) -> Optional[PendingTransaction]:
        """
        Execute a single event via its registered handler.

        Returns None if no handler is registered. Exceptions raised by the
        handler propagate unchanged.
        """
        handler = self._handlers.get(event.action)
        if not handler:
            return None
        result = handler(event, view)
        self._executed.add(event.event_id)
        return result

    def step(self, block: int, view: LedgerView) -> List[PendingTransaction]:
        transactions = []
        for event in self.get_due(block):
            tx = self.execute(event, view)
            if tx is not None and not tx.is_empty():
                transactions.append(tx)
        return transactions

    def pending_count(self) -> int:
        return len(self._heap)

    def peek_next(self) -> Optional[Event]:
        return self._heap[0] if self._heap else None

    def clear_executed(self) -> None:
        self._executed.clear()


# ============================================================================
# EVENT FACTORY FUNCTIONS
# ============================================================================

def rollover_event(venue: str, block: int, manager: str, rewards_hash: str = "") -> Event:
    """The venue operator completes a rollover at `block`."""
    return Event(
        trigger_block=block,
        priority=0,
        symbol=venue,
        action="rollover",
        params=(("manager", manager), ("rewards_hash", rewards_hash)),
    )


def add_rewards_event(staking_unit: str, block: int, funder: str, amount: int, trigger_rebase: bool = False) -> Event:
    """A funder adds rewards for stakers at `block` (needs base-asset allowance)."""
    return Event(
        trigger_block=block,
        priority=10,
        symbol=staking_unit,
        action="add_rewards",
        params=(("funder", funder), ("amount", amount), ("trigger_rebase", trigger_rebase)),
    )
