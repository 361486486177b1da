"""Deterministic address derivation.

Two creation schemes are modelled:

* Salted creation (EIP-1014 / ``CREATE2``): the address depends on the deployer,
  a 32-byte salt and the hash of the creation payload::

      keccak256(0xff ++ deployer ++ salt ++ keccak256(init_code))[12:]

* Sequenced creation (``CREATE``): the address depends only on the creator and
  its creation sequence number (account nonce)::

      keccak256(rlp([creator, nonce]))[12:]

Chaining the two gives payload-independent addresses: a deployer first creates a
tiny forwarding object with a salted creation over a *fixed* payload, and the
forwarder then creates the real payload as its first sequenced creation. Only the
deployer and the salt influence the final address.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import rlp
from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

AddressLike = Union[str, bytes]
SaltLike = Union[bytes, bytearray, int, str]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Nick's deterministic deployment proxy, present at the same address on most EVM chains.
DETERMINISTIC_DEPLOYER = "0x4e59b44847b379578588920cA78FbF26c0B4956C"

# Creation code of the per-salt forwarder: it copies its calldata to memory and
# creates it with the attached value, so its runtime never depends on the payload.
FORWARDER_INIT_CODE = bytes.fromhex("67363d3d37363d34f03d5260086018f3")

# Contract accounts start counting creations at one (EIP-161).
FIRST_CREATION_NONCE = 1

_CREATE2_PREFIX = b"\xff"


def normalise_address(value: AddressLike) -> str:
    """Return ``value`` as an EIP-55 checksummed address."""

    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(value)}")
        return to_checksum_address(bytes(value))
    if not isinstance(value, str):
        raise ValueError(f"Unsupported address value: {value!r}")
    text = value.strip()
    if not text.startswith("0x"):
        text = f"0x{text}"
    if not is_address(text):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(text)


def is_zero_address(value: AddressLike) -> bool:
    return normalise_address(value) == ZERO_ADDRESS


def normalise_salt(value: SaltLike) -> bytes:
    """Coerce ``value`` into a 32-byte salt.

    Accepts 32 raw bytes, a non-negative integer below ``2**256`` or a hex string
    encoding exactly 32 bytes.
    """

    if isinstance(value, bool):
        raise ValueError("Boolean values are not valid salts")
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError(f"Salt must be 32 bytes, got {len(value)}")
        return bytes(value)
    if isinstance(value, int):
        if value < 0 or value >= 2**256:
            raise ValueError(f"Integer salt out of range: {value}")
        return value.to_bytes(32, "big")
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        if len(text) != 64:
            raise ValueError(f"Hex salt must encode 32 bytes: {value!r}")
        try:
            return bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"Hex salt is not valid hex: {value!r}") from exc
    raise ValueError(f"Unsupported salt value: {value!r}")


def salt_from_label(label: str) -> bytes:
    """Derive a reproducible salt from a human readable label."""

    return keccak(text=label)


def _as_digest(value: Union[bytes, str]) -> bytes:
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        value = bytes.fromhex(text)
    if len(value) != 32:
        raise ValueError(f"Hash must be 32 bytes, got {len(value)}")
    return bytes(value)


def init_code_hash(init_code: bytes) -> bytes:
    return keccak(bytes(init_code))


def create2_address(deployer: AddressLike, salt: SaltLike, code_hash: Union[bytes, str]) -> str:
    """EIP-1014 address for ``deployer`` creating a payload hashing to ``code_hash``."""

    preimage = (
        _CREATE2_PREFIX
        + to_canonical_address(normalise_address(deployer))
        + normalise_salt(salt)
        + _as_digest(code_hash)
    )
    return to_checksum_address(keccak(preimage)[12:])


def salted_address(deployer: AddressLike, salt: SaltLike, payload_hash: Union[bytes, str]) -> str:
    """Address of a salted creation where the caller's salt is hashed before use."""

    return create2_address(deployer, keccak(normalise_salt(salt)), payload_hash)


def create_address(creator: AddressLike, nonce: int) -> str:
    """Address of the object ``creator`` creates with sequence number ``nonce``."""

    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
        raise ValueError(f"Nonce must be a non-negative integer, got {nonce!r}")
    encoded = rlp.encode([to_canonical_address(normalise_address(creator)), nonce])
    return to_checksum_address(keccak(encoded)[12:])


def forwarder_address(deployer: AddressLike, salt: SaltLike) -> str:
    return salted_address(deployer, salt, init_code_hash(FORWARDER_INIT_CODE))


def two_hop_address(deployer: AddressLike, salt: SaltLike) -> str:
    """Final address of a payload routed through the per-salt forwarder.

    The payload is not an input: any payload deployed under ``salt`` lands here.
    """

    return create_address(forwarder_address(deployer, salt), FIRST_CREATION_NONCE)


@dataclass(frozen=True)
class DeploymentPair:
    """A deterministically created deployer and the first object it will create."""

    deployer: str
    first_creation: str

    def as_dict(self) -> dict[str, str]:
        return {"deployer": self.deployer, "first_creation": self.first_creation}


def predict_deployment_pair(
    salt: SaltLike,
    init_code: bytes,
    bootstrap_deployer: AddressLike = DETERMINISTIC_DEPLOYER,
) -> DeploymentPair:
    """Predict a deployer created through ``bootstrap_deployer`` and its first child.

    The well-known bootstrap deployer uses the raw salt, exactly as it is sent
    on-chain (``salt ++ init_code`` as calldata).
    """

    deployer = create2_address(bootstrap_deployer, salt, init_code_hash(init_code))
    return DeploymentPair(deployer=deployer, first_creation=create_address(deployer, FIRST_CREATION_NONCE))


__all__ = [
    "DETERMINISTIC_DEPLOYER",
    "DeploymentPair",
    "FIRST_CREATION_NONCE",
    "FORWARDER_INIT_CODE",
    "ZERO_ADDRESS",
    "create2_address",
    "create_address",
    "forwarder_address",
    "init_code_hash",
    "is_zero_address",
    "normalise_address",
    "normalise_salt",
    "predict_deployment_pair",
    "salt_from_label",
    "salted_address",
    "two_hop_address",
]
