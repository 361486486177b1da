"""Bring a registry to a known state: bootstrap, upgrade, authorize, deploy.

Every step checks before acting, so running the same plan twice is harmless
and a half-finished run can simply be repeated. The registry is only upgraded
while it still runs bootstrap logic; a functional registry keeps whatever logic
its owner last chose.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from eth_abi import encode

from .addresses import (
    DETERMINISTIC_DEPLOYER,
    AddressLike,
    create2_address,
    init_code_hash,
    normalise_address,
    normalise_salt,
    two_hop_address,
)
from .environment import InMemoryLedger
from .errors import InternalConsistencyFailure, Unauthorized
from .registry import (
    REGISTRY_PROXY_CODE,
    REGISTRY_VERSION,
    Registry,
    RegistryPhase,
    bootstrap_logic_init_code,
    registry_logic_init_code,
)

_LOGGER = logging.getLogger(__name__)


class RegistryBackend(Protocol):
    """What the orchestrator needs from wherever the registry lives."""

    @property
    def sender(self) -> str:
        ...

    def is_deployed(self, address: str) -> bool:
        ...

    def bootstrap_create(self, deployer: str, salt: bytes, init_code: bytes) -> None:
        ...

    def implementation_of(self, registry: str) -> Optional[str]:
        ...

    def is_functional(self, registry: str) -> bool:
        ...

    def upgrade(self, registry: str, logic: str) -> None:
        ...

    def is_current_operator(self, registry: str, identity: str) -> bool:
        ...

    def set_operator(self, registry: str, identity: str, delay: int) -> None:
        ...

    def predict_address(self, registry: str, salt: bytes) -> str:
        ...

    def deploy(self, registry: str, payload: bytes, salt: bytes, value: int) -> str:
        ...


@dataclass(frozen=True)
class PayloadSpec:
    salt: bytes
    init_code: bytes
    value: int = 0
    label: Optional[str] = None

    @property
    def key(self) -> str:
        return self.label or "0x" + normalise_salt(self.salt).hex()


@dataclass(frozen=True)
class DeploymentPlan:
    owner: str
    registry_salt: bytes
    bootstrap_logic_init_code: bytes
    proxy_creation_code: bytes
    logic_init_code: bytes
    logic_salt: bytes
    operators: Mapping[str, int] = field(default_factory=dict)
    payloads: Sequence[PayloadSpec] = ()
    bootstrap_deployer: str = DETERMINISTIC_DEPLOYER

    @classmethod
    def in_memory(
        cls,
        owner: AddressLike,
        *,
        registry_salt: bytes,
        logic_salt: bytes,
        version: int = REGISTRY_VERSION,
        operators: Optional[Mapping[str, int]] = None,
        payloads: Sequence[PayloadSpec] = (),
    ) -> "DeploymentPlan":
        """Plan built from the stand-in creation codes the in-memory ledger links."""

        return cls(
            owner=normalise_address(owner),
            registry_salt=normalise_salt(registry_salt),
            bootstrap_logic_init_code=bootstrap_logic_init_code(owner),
            proxy_creation_code=REGISTRY_PROXY_CODE,
            logic_init_code=registry_logic_init_code(owner, version),
            logic_salt=normalise_salt(logic_salt),
            operators=dict(operators or {}),
            payloads=tuple(payloads),
        )

    def proxy_init_code(self, bootstrap_logic: str) -> bytes:
        return self.proxy_creation_code + encode(["address"], [bootstrap_logic])


@dataclass(frozen=True)
class PlannedAddresses:
    bootstrap_logic: str
    registry: str
    logic: str
    payloads: Mapping[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "bootstrap_logic": self.bootstrap_logic,
            "registry": self.registry,
            "logic": self.logic,
            "payloads": dict(self.payloads),
        }


@dataclass
class OrchestrationReport:
    addresses: PlannedAddresses
    created: List[str] = field(default_factory=list)
    upgraded: bool = False
    operators_set: List[str] = field(default_factory=list)
    deployed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "addresses": self.addresses.as_dict(),
            "created": list(self.created),
            "upgraded": self.upgraded,
            "operators_set": list(self.operators_set),
            "deployed": dict(self.deployed),
            "skipped": list(self.skipped),
        }


def predict_plan(plan: DeploymentPlan) -> PlannedAddresses:
    """Every address ``plan`` will produce, computed offline."""

    deployer = normalise_address(plan.bootstrap_deployer)
    bootstrap_logic = create2_address(deployer, plan.registry_salt, init_code_hash(plan.bootstrap_logic_init_code))
    registry = create2_address(deployer, plan.registry_salt, init_code_hash(plan.proxy_init_code(bootstrap_logic)))
    logic = create2_address(deployer, plan.logic_salt, init_code_hash(plan.logic_init_code))
    payloads = {spec.key: two_hop_address(registry, spec.salt) for spec in plan.payloads}
    _LOGGER.debug("Predicted registry %s (bootstrap logic %s, logic %s)", registry, bootstrap_logic, logic)
    return PlannedAddresses(bootstrap_logic=bootstrap_logic, registry=registry, logic=logic, payloads=payloads)


class DeploymentOrchestrator:
    def __init__(self, backend: RegistryBackend) -> None:
        self.backend = backend

    def predict(self, plan: DeploymentPlan) -> PlannedAddresses:
        return predict_plan(plan)

    def _ensure_created(self, report: OrchestrationReport, address: str, salt: bytes, init_code: bytes, deployer: str) -> None:
        if self.backend.is_deployed(address):
            _LOGGER.info("%s already deployed, skipping creation", address)
            report.skipped.append(address)
            return
        _LOGGER.info("Creating %s through %s", address, deployer)
        self.backend.bootstrap_create(deployer, salt, init_code)
        if not self.backend.is_deployed(address):
            raise InternalConsistencyFailure(address, None)
        report.created.append(address)

    def _require_owner(self, plan: DeploymentPlan) -> None:
        if normalise_address(self.backend.sender) != normalise_address(plan.owner):
            raise Unauthorized(normalise_address(self.backend.sender))

    def run(self, plan: DeploymentPlan) -> OrchestrationReport:
        addresses = self.predict(plan)
        report = OrchestrationReport(addresses=addresses)
        deployer = normalise_address(plan.bootstrap_deployer)
        registry = addresses.registry

        self._ensure_created(
            report, addresses.bootstrap_logic, plan.registry_salt, plan.bootstrap_logic_init_code, deployer
        )
        self._ensure_created(
            report, registry, plan.registry_salt, plan.proxy_init_code(addresses.bootstrap_logic), deployer
        )
        self._ensure_created(report, addresses.logic, plan.logic_salt, plan.logic_init_code, deployer)

        current = self.backend.implementation_of(registry)
        if current is None or not self.backend.is_functional(registry):
            self._require_owner(plan)
            _LOGGER.info("Upgrading %s from %s to %s", registry, current, addresses.logic)
            self.backend.upgrade(registry, addresses.logic)
            report.upgraded = True
            if not self.backend.is_functional(registry):
                raise InternalConsistencyFailure(addresses.logic, self.backend.implementation_of(registry))
        elif normalise_address(current) != addresses.logic:
            _LOGGER.warning("%s already runs logic %s, keeping it instead of %s", registry, current, addresses.logic)

        for identity, delay in plan.operators.items():
            operator = normalise_address(identity)
            if self.backend.is_current_operator(registry, operator):
                _LOGGER.info("%s is already an active operator", operator)
                continue
            self._require_owner(plan)
            self.backend.set_operator(registry, operator, delay)
            report.operators_set.append(operator)

        for spec in plan.payloads:
            expected = addresses.payloads[spec.key]
            predicted = self.backend.predict_address(registry, normalise_salt(spec.salt))
            if normalise_address(predicted) != expected:
                raise InternalConsistencyFailure(expected, predicted)
            if self.backend.is_deployed(expected):
                _LOGGER.info("Payload %s already at %s", spec.key, expected)
                report.skipped.append(expected)
                continue
            created = self.backend.deploy(registry, spec.init_code, normalise_salt(spec.salt), spec.value)
            if normalise_address(created) != expected:
                raise InternalConsistencyFailure(expected, created)
            report.deployed[spec.key] = expected

        return report


class LedgerBackend:
    """:class:`RegistryBackend` over an :class:`InMemoryLedger`."""

    def __init__(self, ledger: InMemoryLedger, sender: AddressLike) -> None:
        self.ledger = ledger
        self._sender = normalise_address(sender)

    @property
    def sender(self) -> str:
        return self._sender

    def is_deployed(self, address: str) -> bool:
        return self.ledger.is_occupied(address)

    def bootstrap_create(self, deployer: str, salt: bytes, init_code: bytes) -> None:
        self.ledger.call(self._sender, deployer, "deploy", salt, init_code)

    def implementation_of(self, registry: str) -> Optional[str]:
        return Registry(self.ledger, registry).logic()

    def is_functional(self, registry: str) -> bool:
        return Registry(self.ledger, registry).phase() is RegistryPhase.FUNCTIONAL

    def upgrade(self, registry: str, logic: str) -> None:
        Registry(self.ledger, registry).upgrade(self._sender, logic)

    def is_current_operator(self, registry: str, identity: str) -> bool:
        return Registry(self.ledger, registry).is_current_operator(identity)

    def set_operator(self, registry: str, identity: str, delay: int) -> None:
        Registry(self.ledger, registry).set_operator(self._sender, identity, delay)

    def predict_address(self, registry: str, salt: bytes) -> str:
        return Registry(self.ledger, registry).predict_address(salt)

    def deploy(self, registry: str, payload: bytes, salt: bytes, value: int) -> str:
        return Registry(self.ledger, registry).deploy(self._sender, payload, salt, value)


__all__ = [
    "DeploymentOrchestrator",
    "DeploymentPlan",
    "LedgerBackend",
    "OrchestrationReport",
    "PayloadSpec",
    "PlannedAddresses",
    "RegistryBackend",
    "predict_plan",
]
