"""
access.py - Admin Capability

Role checks are a collaborator injected into the controller, the liquidity
reserve and the receipt token instead of state inherited from a base
contract. Ownership moves in two steps: the owner nominates, the nominee
accepts.
"""

from __future__ import annotations
from typing import Optional, Set

from .core import Unauthorized, require_address


class AccessControl:
    """
    Owner plus a set of admins.

    The owner is always an admin and is the only one who can grant or
    revoke the role.

    Example:
        access = AccessControl("deployer")
        access.grant_admin("deployer", "ops")
        access.transfer_ownership("deployer", "multisig")
        access.accept_ownership("multisig")
    """

    def __init__(self, owner: str):
        self.owner = require_address(owner, "owner")
        self.pending_owner: Optional[str] = None
        self._admins: Set[str] = set()

    def is_admin(self, caller: str) -> bool:
        return caller == self.owner or caller in self._admins

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise Unauthorized(f"{caller} is missing the admin role")

    def require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise Unauthorized(f"{caller} is not the owner")

    def grant_admin(self, caller: str, account: str) -> None:
        self.require_owner(caller)
        self._admins.add(require_address(account, "admin"))

    def revoke_admin(self, caller: str, account: str) -> None:
        self.require_owner(caller)
        self._admins.discard(account)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_owner(caller)
        self.pending_owner = require_address(new_owner, "new owner")

    def accept_ownership(self, caller: str) -> None:
        if self.pending_owner is None or caller != self.pending_owner:
            raise Unauthorized("Must be nominated owner")
        self.owner = caller
        self.pending_owner = None
