"""
escrow.py - Warmup/Cooldown Holding Wallets

An escrow is a wallet that holds receipt-token balance on behalf of a
controller. It records nothing about who the balance belongs to; the
controller keeps that bookkeeping in its warmup and cooldown records.
Escrows have no notion of time or eligibility.

Two independent instances exist per controller so that value entering and
value leaving a staked position are never commingled.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

from .core import (
    LedgerView, PendingTransaction, TransactionDraft, TransactionOrigin, OriginType,
    Unauthorized, InsufficientFunds, InvalidAmount,
)
from .rebasing import GonAmount, apply_transfer_gons, to_gons, gons_of, balance_of


@dataclass(frozen=True, slots=True)
class Escrow:
    """
    Escrow wiring: the holding wallet, the token it holds and its controller.

    Amounts are either public token amounts (int) or exact GonAmounts. The
    controller passes GonAmounts so that what goes in comes out to the gon.
    """
    wallet: str
    token: str
    controller: str

    def _check_caller(self, caller: str) -> None:
        if caller != self.controller:
            raise Unauthorized(f"{caller} is not the controller of escrow {self.wallet}")

    def deposit(self, draft: TransactionDraft, caller: str, amount: Union[int, GonAmount]) -> GonAmount:
        """Pull amount from the controller into the escrow wallet."""
        self._check_caller(caller)
        gons = to_gons(draft, self.token, amount)
        if not gons:
            raise InvalidAmount("Escrow deposit must be positive")
        apply_transfer_gons(draft, self.token, caller, self.wallet, gons, f"escrow_deposit:{self.wallet}")
        return gons

    def release(
        self,
        draft: TransactionDraft,
        caller: str,
        beneficiary: str,
        amount: Union[int, GonAmount],
    ) -> GonAmount:
        """Send amount from the escrow wallet to beneficiary."""
        self._check_caller(caller)
        gons = to_gons(draft, self.token, amount)
        if gons.gons > draft.balance(self.wallet, self.token):
            raise InsufficientFunds(f"Escrow {self.wallet} holds less than {gons.gons} gons")
        apply_transfer_gons(draft, self.token, self.wallet, beneficiary, gons, f"escrow_release:{self.wallet}")
        return gons

    def held_gons(self, view: LedgerView) -> int:
        return gons_of(view, self.token, self.wallet)

    def held(self, view: LedgerView) -> int:
        return balance_of(view, self.token, self.wallet)


def compute_escrow_deposit(view: LedgerView, escrow: Escrow, caller: str, amount: Union[int, GonAmount], nonce: int = 0) -> PendingTransaction:
    draft = TransactionDraft(view, TransactionOrigin(OriginType.CONTRACT, caller, escrow.token, "ESCROW_DEPOSIT", nonce))
    escrow.deposit(draft, caller, amount)
    return draft.build()


def compute_escrow_release(
    view: LedgerView,
    escrow: Escrow,
    caller: str,
    beneficiary: str,
    amount: Union[int, GonAmount],
    nonce: int = 0,
) -> PendingTransaction:
    draft = TransactionDraft(view, TransactionOrigin(OriginType.CONTRACT, caller, escrow.token, "ESCROW_RELEASE", nonce))
    escrow.release(draft, caller, beneficiary, amount)
    return draft.build()
