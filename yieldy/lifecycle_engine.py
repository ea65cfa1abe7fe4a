"""
lifecycle_engine.py - Lifecycle Engine

Combines scheduled events and keeper polling into a block-driven engine.

Execution order each step():
1. Advance the ledger's block clock
2. Process scheduled events (in priority order)
3. Run keeper polling (staking_contract and friends)
4. Repeat until no more events fire (cascading effects)

The transaction log is the audit trail - no separate event status tracking.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from .core import (
    PendingTransaction, Transaction, ExecuteResult, LedgerError, SmartContract,
)
from .ledger import Ledger
from .scheduled_events import Event, EventScheduler
from .event_handlers import create_default_scheduler


class LifecycleEngine:
    """
    Lifecycle engine combining scheduled events and keeper polling.

    Example:
        engine = LifecycleEngine(ledger)
        engine.register(UNIT_TYPE_STAKING_CONTROLLER, staking_contract)
        engine.schedule(rollover_event("tFOX", 45_500, "venue_manager"))
        engine.run(range(0, 100_000, 500))
    """

    def __init__(
        self,
        ledger: Ledger,
        scheduler: Optional[EventScheduler] = None,
        contracts: Optional[Dict[str, SmartContract]] = None,
    ):
        """
        Args:
            ledger: The ledger to operate on
            scheduler: Event scheduler (created with default handlers if not provided)
            contracts: Keeper contracts for polling (unit_type -> contract)
        """
        self.ledger = ledger
        self.scheduler = scheduler or create_default_scheduler()
        self.contracts: Dict[str, SmartContract] = contracts or {}

        # Safety limit for cascading events
        self.max_passes = 10
        self.verbose = ledger.verbose

    def register(self, unit_type: str, contract: SmartContract) -> None:
        """Register a keeper contract (callable or object with check_lifecycle) for a unit type."""
        self.contracts[unit_type] = contract

    def schedule(self, event: Event) -> str:
        return self.scheduler.schedule(event)

    def schedule_many(self, events: List[Event]) -> List[str]:
        return self.scheduler.schedule_many(events)

    def step(self, block: int) -> List[Transaction]:
        """
        Advance to `block` and execute everything that became due.

        Returns:
            List of executed transactions
        """
        self.ledger.advance_to(block)
        executed: List[Transaction] = []

        for _ in range(self.max_passes):
            pass_executed: List[Transaction] = []
            pass_executed.extend(self._process_scheduled_events(block))
            pass_executed.extend(self._process_smart_contracts(block))
            executed.extend(pass_executed)
            if not pass_executed:
                break

        return executed

    def _apply(self, pending: PendingTransaction, label: str) -> Optional[Transaction]:
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise LedgerError(f"Lifecycle event failed for {label}: execution rejected")
        if result == ExecuteResult.APPLIED:
            return self.ledger.transaction_log[-1]
        return None

    def _process_scheduled_events(self, block: int) -> List[Transaction]:
        executed: List[Transaction] = []
        for pending in self.scheduler.step(block, self.ledger):
            if self.verbose:
                print(f"[SCHEDULED] block {block}: {pending.origin}")
            tx = self._apply(pending, str(pending.origin))
            if tx is not None:
                executed.append(tx)
        return executed

    def _process_smart_contracts(self, block: int) -> List[Transaction]:
        executed: List[Transaction] = []

        # Sorted for deterministic iteration order
        for symbol in sorted(self.ledger.units.keys()):
            unit = self.ledger.units[symbol]
            contract = self.contracts.get(unit.unit_type)
            if not contract:
                continue

            if hasattr(contract, 'check_lifecycle'):
                pending = contract.check_lifecycle(self.ledger, symbol, block)
            else:
                pending = contract(self.ledger, symbol, block)

            if not isinstance(pending, PendingTransaction):
                raise LedgerError(
                    f"Contract for {symbol} must return PendingTransaction, got {type(pending)}"
                )
            if pending.is_empty():
                continue

            tx = self._apply(pending, symbol)
            if tx is not None:
                executed.append(tx)

        return executed

    def run(self, blocks: Iterable[int]) -> List[Transaction]:
        """Step through a sequence of block heights."""
        all_transactions: List[Transaction] = []
        for block in blocks:
            all_transactions.extend(self.step(block))
        return all_transactions

    # ========================================================================
    # QUERY METHODS
    # ========================================================================

    def pending_event_count(self) -> int:
        return self.scheduler.pending_count()

    def peek_next_event(self) -> Optional[Event]:
        return self.scheduler.peek_next()
