"""Fixed storage locations for state that must survive logic upgrades."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from eth_abi import encode
from eth_utils import keccak

from .operators import OperatorTable

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .environment import ExecutionEnvironment

REGISTRY_NAMESPACE = "deterministic-registry.storage.v1"


def erc1967_slot(label: str) -> bytes:
    """``keccak256(label) - 1`` as used by ERC-1967 proxies."""

    value = int.from_bytes(keccak(text=label), "big") - 1
    return value.to_bytes(32, "big")


def erc7201_slot(namespace: str) -> bytes:
    """ERC-7201 namespaced location: ``keccak256(abi.encode(keccak256(id) - 1)) & ~0xff``."""

    inner = int.from_bytes(keccak(text=namespace), "big") - 1
    outer = int.from_bytes(keccak(encode(["uint256"], [inner])), "big")
    return (outer & ~0xFF).to_bytes(32, "big")


# 0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc
IMPLEMENTATION_SLOT = erc1967_slot("eip1967.proxy.implementation")

REGISTRY_STORAGE_SLOT = erc7201_slot(REGISTRY_NAMESPACE)


@dataclass
class RegistryState:
    """Everything the registry persists behind its stable address."""

    operators: OperatorTable = field(default_factory=OperatorTable)


def load_state(environment: "ExecutionEnvironment", address: str) -> RegistryState:
    """Return the registry state stored at ``address``, creating it on first use."""

    state: Optional[RegistryState] = environment.storage_get(address, REGISTRY_STORAGE_SLOT)
    if state is None:
        state = RegistryState()
        environment.storage_set(address, REGISTRY_STORAGE_SLOT, state)
    return state


def peek_state(environment: "ExecutionEnvironment", address: str) -> Optional[RegistryState]:
    return environment.storage_get(address, REGISTRY_STORAGE_SLOT)


__all__ = [
    "IMPLEMENTATION_SLOT",
    "REGISTRY_NAMESPACE",
    "REGISTRY_STORAGE_SLOT",
    "RegistryState",
    "erc1967_slot",
    "erc7201_slot",
    "load_state",
    "peek_state",
]
