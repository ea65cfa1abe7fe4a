"""
fake_view.py - Test Helper for LedgerView

Provides a minimal read-only LedgerView for testing pure functions without
a full Ledger instance.
"""

from __future__ import annotations
import copy
from typing import Dict, Set, Optional, Any

from yieldy import LedgerView


Positions = Dict[str, int]
UnitState = Dict[str, Any]


class FakeUnit:
    """Minimal Unit for testing - provides min_balance and max_balance."""
    def __init__(self, symbol: str, min_balance: int = 0, max_balance: Optional[int] = None):
        self.symbol = symbol
        self.min_balance = min_balance
        self.max_balance = max_balance


class FakeView:
    """
    Minimal LedgerView implementation for testing contract functions.

    Example:
        view = FakeView(
            balances={'alice': {'FOX': 1000}},
            states={'tFOX': {'cycle_index': 3, ...}},
            block=1_000,
        )

        positions = view.get_positions('FOX')
        # Returns: {'alice': 1000}
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, int]],
        states: Optional[Dict[str, UnitState]] = None,
        block: int = 0,
        units: Optional[Dict[str, Any]] = None
    ):
        self._balances = balances
        self._states = states or {}
        self._block = block
        self._units = units or {}

    @property
    def current_block(self) -> int:
        return self._block

    def get_balance(self, wallet: str, unit: str) -> int:
        return self._balances.get(wallet, {}).get(unit, 0)

    def get_unit_state(self, unit: str) -> UnitState:
        return copy.deepcopy(self._states.get(unit, {}))

    def get_positions(self, unit: str) -> Positions:
        return {
            w: b[unit]
            for w, b in self._balances.items()
            if unit in b and b[unit] != 0
        }

    def list_wallets(self) -> Set[str]:
        return set(self._balances.keys())

    def get_unit(self, symbol: str) -> Any:
        if symbol in self._units:
            return self._units[symbol]
        return FakeUnit(symbol)

