"""Owner/operator authorization decisions."""
from __future__ import annotations

from enum import Enum

from .addresses import AddressLike, normalise_address
from .errors import Unauthorized
from .operators import OperatorTable


class Access(Enum):
    OWNER_ONLY = "owner-only"
    OWNER_OR_OPERATOR = "owner-or-operator"


class AuthorizationGate:
    """Combine the fixed owner with the operator table to approve actions.

    Operator management and upgrades require :attr:`Access.OWNER_ONLY`;
    deployments accept :attr:`Access.OWNER_OR_OPERATOR`. A denial never says
    which check failed.
    """

    def __init__(self, owner: AddressLike, operators: OperatorTable) -> None:
        self.owner = normalise_address(owner)
        self.operators = operators

    def authorize(self, caller: AddressLike, level: Access, now: int) -> bool:
        identity = normalise_address(caller)
        if identity == self.owner:
            return True
        if level is Access.OWNER_ONLY:
            return False
        return self.operators.is_active(identity, now)

    def require(self, caller: AddressLike, level: Access, now: int) -> None:
        if not self.authorize(caller, level, now):
            raise Unauthorized(normalise_address(caller))


__all__ = ["Access", "AuthorizationGate"]
