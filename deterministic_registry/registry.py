"""The registry: a stable address whose behaviour can be swapped by its owner.

The registry is split the way upgradeable contracts are:

* :class:`RegistryProxy` lives at the stable address. It owns all persistent
  state and forwards every call to the logic its implementation slot points
  at, executing that logic against the proxy's own storage.
* :class:`BootstrapLogic` is the minimal first logic. It only knows its owner
  and how to upgrade, which keeps the proxy's creation payload (and therefore
  its address) independent of the functional code.
* :class:`RegistryLogic` is the functional logic: operators, deployments and
  address predictions.

:class:`Registry` is the client-side facade used by tooling and tests.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Optional, Sequence

from eth_abi import decode, encode

from .addresses import DETERMINISTIC_DEPLOYER, FORWARDER_INIT_CODE, ZERO_ADDRESS, AddressLike, SaltLike, normalise_address
from .auth import Access, AuthorizationGate
from .deployer import DeploymentRequest, DeterministicDeployer, forwarder_constructor
from .environment import CallContext, ExecutionEnvironment, InMemoryLedger
from .errors import InvalidAddress, RegistryError, UnsupportedOperation, UpgradeRejected
from .events import Upgraded
from .operators import Operator, OperatorTable
from .storage import IMPLEMENTATION_SLOT, load_state, peek_state

_LOGGER = logging.getLogger(__name__)

# Stand-in creation codes for the in-memory ledger; real chains use compiled artifacts.
BOOTSTRAP_LOGIC_CODE = b"\xfe" + b"deterministic-registry/bootstrap-logic"
REGISTRY_LOGIC_CODE = b"\xfe" + b"deterministic-registry/registry-logic"
REGISTRY_PROXY_CODE = b"\xfe" + b"deterministic-registry/proxy"

REGISTRY_VERSION = 1


class RegistryPhase(Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAP = "bootstrap"
    FUNCTIONAL = "functional"


def _probe_upgradeable(environment: ExecutionEnvironment, caller: str, target: str) -> None:
    try:
        uuid = environment.call(caller, target, "proxiableUUID")
    except RegistryError as exc:
        raise UpgradeRejected(target, "target does not identify as registry logic") from exc
    if uuid != IMPLEMENTATION_SLOT:
        raise UpgradeRejected(target, "unsupported proxiableUUID")


class BootstrapLogic:
    """Owner-only upgrade entry point and nothing else."""

    ABI: ClassVar[Dict[str, str]] = {
        "owner": "_owner",
        "proxiableUUID": "_proxiable_uuid",
        "upgrade": "_upgrade",
    }
    PAYABLE: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, owner: AddressLike) -> None:
        self.owner = normalise_address(owner)

    def execute(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        method: str,
        args: Sequence[Any],
    ) -> Any:
        handler_name = self.ABI.get(method)
        if handler_name is None:
            raise UnsupportedOperation(method)
        if context.value and method not in self.PAYABLE:
            raise UnsupportedOperation(method, "does not accept value")
        handler: Callable[..., Any] = getattr(self, handler_name)
        return handler(environment, context, *args)

    def _require_proxy(self, context: CallContext, method: str) -> None:
        if not context.delegated:
            raise UnsupportedOperation(method, "must be called through the registry")

    def _gate(self, environment: ExecutionEnvironment, context: CallContext) -> AuthorizationGate:
        return AuthorizationGate(self.owner, load_state(environment, context.this).operators)

    def _owner(self, environment: ExecutionEnvironment, context: CallContext) -> str:
        return self.owner

    def _proxiable_uuid(self, environment: ExecutionEnvironment, context: CallContext) -> bytes:
        if context.delegated:
            raise UnsupportedOperation("proxiableUUID", "must not be called through a proxy")
        return IMPLEMENTATION_SLOT

    def _upgrade(self, environment: ExecutionEnvironment, context: CallContext, new_logic: AddressLike) -> None:
        self._require_proxy(context, "upgrade")
        self._gate(environment, context).require(context.caller, Access.OWNER_ONLY, context.timestamp)
        target = normalise_address(new_logic)
        if target == ZERO_ADDRESS:
            raise InvalidAddress(target)
        _probe_upgradeable(environment, context.this, target)
        environment.storage_set(context.this, IMPLEMENTATION_SLOT, target)
        environment.emit(context.this, Upgraded(implementation=target))
        _LOGGER.info("Registry %s now runs logic %s", context.this, target)


class RegistryLogic(BootstrapLogic):
    """Functional registry logic."""

    ABI: ClassVar[Dict[str, str]] = {
        **BootstrapLogic.ABI,
        "version": "_version",
        "setOperator": "_set_operator",
        "operatorAt": "_operator_at",
        "operatorCount": "_operator_count",
        "isCurrentOperator": "_is_current_operator",
        "deploy": "_deploy",
        "predictAddress": "_predict_address",
    }
    PAYABLE: ClassVar[FrozenSet[str]] = frozenset({"deploy"})

    def __init__(self, owner: AddressLike, version: int = REGISTRY_VERSION) -> None:
        super().__init__(owner)
        self.version = version

    @staticmethod
    def _operators(environment: ExecutionEnvironment, context: CallContext) -> OperatorTable:
        state = peek_state(environment, context.this)
        return state.operators if state is not None else OperatorTable()

    def _version(self, environment: ExecutionEnvironment, context: CallContext) -> int:
        return self.version

    def _set_operator(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        operator: AddressLike,
        delay: int,
    ) -> None:
        self._require_proxy(context, "setOperator")
        self._gate(environment, context).require(context.caller, Access.OWNER_ONLY, context.timestamp)
        event = load_state(environment, context.this).operators.set(operator, delay, context.timestamp)
        if event is not None:
            environment.emit(context.this, event)

    def _operator_at(self, environment: ExecutionEnvironment, context: CallContext, index: int) -> Operator:
        return self._operators(environment, context).at(index)

    def _operator_count(self, environment: ExecutionEnvironment, context: CallContext) -> int:
        return self._operators(environment, context).count()

    def _is_current_operator(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        identity: AddressLike,
    ) -> bool:
        return self._operators(environment, context).is_active(identity, context.timestamp)

    def _deploy(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        payload: bytes,
        salt: SaltLike,
        declared: Optional[int] = None,
    ) -> str:
        self._require_proxy(context, "deploy")
        request = DeploymentRequest(
            caller=context.caller,
            payload=payload,
            salt=salt,
            attached=context.value,
            declared=declared,
        )
        deployer = DeterministicDeployer(environment, context.this)
        return deployer.deploy(request, self._gate(environment, context)).address

    def _predict_address(self, environment: ExecutionEnvironment, context: CallContext, salt: SaltLike) -> str:
        return DeterministicDeployer(environment, context.this).predict(salt)


class RegistryProxy:
    """Stable identity that forwards every call to the current logic."""

    def execute(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        method: str,
        args: Sequence[Any],
    ) -> Any:
        logic_address = environment.storage_get(context.this, IMPLEMENTATION_SLOT)
        logic = environment.program_at(logic_address) if logic_address else None
        if logic is None:
            raise UnsupportedOperation(method, "registry has no logic")
        return logic.execute(environment, replace(context, delegated=True), method, args)


class BootstrapDeployer:
    """Runtime of the well-known deterministic deployment proxy.

    Called with a raw 32-byte salt and init code, it performs a salted creation.
    """

    def execute(
        self,
        environment: ExecutionEnvironment,
        context: CallContext,
        method: str,
        args: Sequence[Any],
    ) -> Any:
        if method != "deploy":
            raise UnsupportedOperation(method)
        salt, init_code = args
        return environment.create2(context.this, salt, init_code, value=context.value)


def bootstrap_logic_init_code(owner: AddressLike) -> bytes:
    return BOOTSTRAP_LOGIC_CODE + encode(["address"], [normalise_address(owner)])


def registry_logic_init_code(owner: AddressLike, version: int = REGISTRY_VERSION) -> bytes:
    return REGISTRY_LOGIC_CODE + encode(["address", "uint256"], [normalise_address(owner), version])


def proxy_init_code(logic: AddressLike) -> bytes:
    return REGISTRY_PROXY_CODE + encode(["address"], [normalise_address(logic)])


def _bootstrap_constructor(environment: ExecutionEnvironment, address: str, args: bytes) -> BootstrapLogic:
    (owner,) = decode(["address"], args)
    return BootstrapLogic(owner)


def _logic_constructor(environment: ExecutionEnvironment, address: str, args: bytes) -> RegistryLogic:
    owner, version = decode(["address", "uint256"], args)
    return RegistryLogic(owner, version)


def _proxy_constructor(environment: ExecutionEnvironment, address: str, args: bytes) -> RegistryProxy:
    (logic,) = decode(["address"], args)
    target = normalise_address(logic)
    if target == ZERO_ADDRESS:
        raise InvalidAddress(target)
    _probe_upgradeable(environment, address, target)
    environment.storage_set(address, IMPLEMENTATION_SLOT, target)
    environment.emit(address, Upgraded(implementation=target))
    return RegistryProxy()


def link_registry(ledger: InMemoryLedger) -> InMemoryLedger:
    """Teach ``ledger`` how to construct the registry's objects."""

    ledger.link(FORWARDER_INIT_CODE, forwarder_constructor)
    ledger.link(BOOTSTRAP_LOGIC_CODE, _bootstrap_constructor)
    ledger.link(REGISTRY_LOGIC_CODE, _logic_constructor)
    ledger.link(REGISTRY_PROXY_CODE, _proxy_constructor)
    return ledger


def install_bootstrap_deployer(ledger: InMemoryLedger, address: AddressLike = DETERMINISTIC_DEPLOYER) -> str:
    return ledger.install(address, BootstrapDeployer())


class Registry:
    """Client view of a registry deployed in an execution environment."""

    def __init__(self, environment: ExecutionEnvironment, address: AddressLike) -> None:
        self.environment = environment
        self.address = normalise_address(address)

    def __repr__(self) -> str:
        return f"Registry({self.address})"

    def _call(self, sender: AddressLike, method: str, *args: Any, value: int = 0) -> Any:
        return self.environment.call(sender, self.address, method, *args, value=value)

    def _view(self, method: str, *args: Any) -> Any:
        return self._call(ZERO_ADDRESS, method, *args)

    def logic(self) -> Optional[str]:
        return self.environment.storage_get(self.address, IMPLEMENTATION_SLOT)

    def phase(self) -> RegistryPhase:
        if not isinstance(self.environment.program_at(self.address), RegistryProxy):
            return RegistryPhase.UNINITIALIZED
        logic = self.logic()
        if logic and isinstance(self.environment.program_at(logic), RegistryLogic):
            return RegistryPhase.FUNCTIONAL
        return RegistryPhase.BOOTSTRAP

    def owner(self) -> str:
        return self._view("owner")

    def version(self) -> int:
        return self._view("version")

    def set_operator(self, sender: AddressLike, operator: AddressLike, delay: int) -> None:
        self._call(sender, "setOperator", operator, delay)

    def operator_at(self, index: int) -> Operator:
        return self._view("operatorAt", index)

    def operator_count(self) -> int:
        return self._view("operatorCount")

    def operators(self) -> List[Operator]:
        """Every stored operator, expired ones included, read in one pass."""

        return [self.operator_at(index) for index in range(self.operator_count())]

    def is_current_operator(self, identity: AddressLike) -> bool:
        return self._view("isCurrentOperator", identity)

    def deploy(
        self,
        sender: AddressLike,
        payload: bytes,
        salt: SaltLike,
        value: Optional[int] = None,
        *,
        attached: Optional[int] = None,
    ) -> str:
        """Deploy ``payload`` under ``salt``.

        ``value`` is the declared transfer; ``attached`` is what actually goes
        with the call and defaults to ``value``.
        """

        if attached is None:
            attached = value or 0
        if value is None:
            return self._call(sender, "deploy", payload, salt, value=attached)
        return self._call(sender, "deploy", payload, salt, value, value=attached)

    def predict_address(self, salt: SaltLike) -> str:
        return self._view("predictAddress", salt)

    def upgrade(self, sender: AddressLike, new_logic: AddressLike) -> None:
        self._call(sender, "upgrade", new_logic)


__all__ = [
    "BOOTSTRAP_LOGIC_CODE",
    "BootstrapDeployer",
    "BootstrapLogic",
    "REGISTRY_LOGIC_CODE",
    "REGISTRY_PROXY_CODE",
    "REGISTRY_VERSION",
    "Registry",
    "RegistryLogic",
    "RegistryPhase",
    "RegistryProxy",
    "bootstrap_logic_init_code",
    "install_bootstrap_deployer",
    "link_registry",
    "proxy_init_code",
    "registry_logic_init_code",
]
