"""Deterministic deployment: predict, check, create, verify, record."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from eth_utils import keccak

from .addresses import (
    FORWARDER_INIT_CODE,
    AddressLike,
    SaltLike,
    forwarder_address,
    init_code_hash,
    normalise_address,
    normalise_salt,
    salted_address,
    two_hop_address,
)
from .auth import Access, AuthorizationGate
from .environment import CallContext, ExecutionEnvironment
from .errors import AddressCollision, InternalConsistencyFailure, UnsupportedOperation, ValueMismatch
from .events import Deployed

_LOGGER = logging.getLogger(__name__)


class Forwarder:
    """Runtime of the per-salt forwarding object.

    Its only job is to create whatever payload it is handed, using its own
    first creation slot, so the resulting address ignores the payload.
    """

    def execute(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        method: str,
        args: Sequence[Any],
    ) -> Any:
        if method != "create":
            raise UnsupportedOperation(method, "forwarders only create")
        (init_code,) = args
        return environment.create(context.this, init_code, value=context.value)


def forwarder_constructor(environment: ExecutionEnvironment, address: str, args: bytes) -> Forwarder:
    return Forwarder()


@dataclass(frozen=True)
class DeploymentRequest:
    """A caller asking for ``payload`` to be deployed under ``salt``.

    ``attached`` is the value actually sent with the request; ``declared`` is the
    amount the caller says it intends to transfer, when it says so.
    """

    caller: str
    payload: bytes
    salt: SaltLike
    attached: int = 0
    declared: Optional[int] = None


@dataclass(frozen=True)
class DeploymentRecord:
    address: str
    salt: bytes
    value: int

    def as_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "salt": "0x" + self.salt.hex(), "value": self.value}


class DeterministicDeployer:
    """Deploy payloads to addresses fixed in advance by a salt.

    With ``two_hop=True`` (the default) every payload is routed through a
    per-salt forwarder so only the salt decides the address. With
    ``two_hop=False`` the payload is created directly with a salted creation and
    its hash becomes part of the address.
    """

    def __init__(self, environment: ExecutionEnvironment, address: AddressLike, *, two_hop: bool = True) -> None:
        self.environment = environment
        self.address = normalise_address(address)
        self.two_hop = two_hop

    def predict(self, salt: SaltLike, payload: Optional[bytes] = None) -> str:
        if self.two_hop:
            return two_hop_address(self.address, salt)
        if payload is None:
            raise ValueError("Single-hop predictions need the payload")
        return salted_address(self.address, salt, init_code_hash(payload))

    def deploy(self, request: DeploymentRequest, gate: Optional[AuthorizationGate] = None) -> DeploymentRecord:
        environment = self.environment
        if gate is not None:
            gate.require(request.caller, Access.OWNER_OR_OPERATOR, environment.timestamp)
        salt = normalise_salt(request.salt)
        payload = bytes(request.payload)

        if request.declared is not None and request.declared != request.attached:
            raise ValueMismatch(request.declared, request.attached)
        value = request.attached

        predicted = self.predict(salt, payload)
        if environment.is_occupied(predicted):
            raise AddressCollision(predicted, salt)
        if self.two_hop and environment.is_occupied(forwarder_address(self.address, salt)):
            raise AddressCollision(predicted, salt)

        try:
            created = self._create(salt, payload, value)
        except Exception:
            _LOGGER.warning("Creation under salt 0x%s failed", salt.hex())
            raise

        if normalise_address(created) != predicted:
            raise InternalConsistencyFailure(predicted, created)

        environment.emit(self.address, Deployed(address=predicted, salt=salt, value=value))
        _LOGGER.info("Deployed %s under salt 0x%s (value=%d)", predicted, salt.hex(), value)
        return DeploymentRecord(address=predicted, salt=salt, value=value)

    def _create(self, salt: bytes, payload: bytes, value: int) -> str:
        hashed_salt = keccak(salt)
        if not self.two_hop:
            return self.environment.create2(self.address, hashed_salt, payload, value=value)
        forwarder = self.environment.create2(self.address, hashed_salt, FORWARDER_INIT_CODE)
        return self.environment.call(self.address, forwarder, "create", payload, value=value)


__all__ = [
    "DeploymentRecord",
    "DeploymentRequest",
    "DeterministicDeployer",
    "Forwarder",
    "forwarder_constructor",
]
