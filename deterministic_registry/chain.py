"""Drive a registry on a live EVM chain through web3.

The on-chain logic is UUPS (ERC-1822): the registry's ``upgrade`` operation is
exposed as ``upgradeToAndCall(address,bytes)`` and called with empty data.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, TYPE_CHECKING

from eth_abi import decode, encode
from eth_utils import keccak
from web3.exceptions import ContractLogicError

from .addresses import DETERMINISTIC_DEPLOYER, AddressLike, normalise_address, normalise_salt
from .errors import CreationFailed, TransactionFailed
from .storage import IMPLEMENTATION_SLOT

if TYPE_CHECKING:  # pragma: no cover - typing only
    from eth_account.signers.local import LocalAccount
    from web3 import Web3
else:
    LocalAccount = Any
    Web3 = Any

_LOGGER = logging.getLogger(__name__)

GAS_MULTIPLIER = 1.3
UPGRADE_SIGNATURE = "upgradeToAndCall(address,bytes)"


def function_selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_call(signature: str, types: Sequence[str], values: Sequence[Any]) -> bytes:
    """Calldata for ``signature``: four-byte selector plus ABI-encoded arguments."""

    return function_selector(signature) + encode(list(types), list(values))


class ChainBackend:
    """Registry backend that signs and sends real transactions.

    Reads go through ``eth_call``; writes are signed locally by ``account`` and
    waited on until mined. A receipt whose status is not ``1`` raises
    :class:`TransactionFailed`.
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        *,
        bootstrap_deployer: AddressLike = DETERMINISTIC_DEPLOYER,
        timeout: int = 120,
        gas_multiplier: float = GAS_MULTIPLIER,
    ) -> None:
        self.w3 = w3
        self.account = account
        self.bootstrap_deployer = normalise_address(bootstrap_deployer)
        self.timeout = timeout
        self.gas_multiplier = gas_multiplier

    @property
    def sender(self) -> str:
        return normalise_address(self.account.address)

    # -- plumbing -----------------------------------------------------------

    def _call(self, to: str, data: bytes) -> bytes:
        result = self.w3.eth.call({"from": self.sender, "to": normalise_address(to), "data": "0x" + data.hex()})
        return bytes(result)

    def _transact(self, to: str, data: bytes, value: int = 0) -> Any:
        sender = self.sender
        tx = {
            "from": sender,
            "to": normalise_address(to),
            "data": "0x" + data.hex(),
            "value": value,
            "nonce": self.w3.eth.get_transaction_count(sender),
            "gasPrice": self.w3.eth.gas_price,
            "chainId": self.w3.eth.chain_id,
        }
        gas = self.w3.eth.estimate_gas(tx)
        tx["gas"] = int(gas * self.gas_multiplier)
        _LOGGER.debug("Gas estimate %d (using %d) for call to %s", gas, tx["gas"], tx["to"])

        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        tx_hex = "0x" + bytes(tx_hash).hex()
        _LOGGER.info("Sent %s to %s", tx_hex, tx["to"])
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        if receipt["status"] != 1:
            raise TransactionFailed(tx_hex, receipt["status"])
        return receipt

    # -- backend operations -------------------------------------------------

    def is_deployed(self, address: str) -> bool:
        return len(self.w3.eth.get_code(normalise_address(address))) > 0

    def bootstrap_create(self, deployer: str, salt: bytes, init_code: bytes) -> None:
        # The deterministic deployment proxy takes raw calldata: salt ++ init code.
        self._transact(deployer, normalise_salt(salt) + bytes(init_code))

    def implementation_of(self, registry: str) -> Optional[str]:
        raw = bytes(
            self.w3.eth.get_storage_at(normalise_address(registry), int.from_bytes(IMPLEMENTATION_SLOT, "big"))
        )
        word = raw[-20:]
        if not any(word):
            return None
        return normalise_address(word)

    def is_functional(self, registry: str) -> bool:
        try:
            raw = self._call(registry, encode_call("version()", [], []))
        except ContractLogicError:
            return False
        return len(raw) >= 32

    def version(self, registry: str) -> int:
        (value,) = decode(["uint256"], self._call(registry, encode_call("version()", [], [])))
        return value

    def upgrade(self, registry: str, logic: str) -> None:
        data = encode_call(UPGRADE_SIGNATURE, ["address", "bytes"], [normalise_address(logic), b""])
        self._transact(registry, data)

    def is_current_operator(self, registry: str, identity: str) -> bool:
        data = encode_call("isCurrentOperator(address)", ["address"], [normalise_address(identity)])
        (active,) = decode(["bool"], self._call(registry, data))
        return active

    def set_operator(self, registry: str, identity: str, delay: int) -> None:
        data = encode_call("setOperator(address,uint256)", ["address", "uint256"], [normalise_address(identity), delay])
        self._transact(registry, data)

    def predict_address(self, registry: str, salt: bytes) -> str:
        data = encode_call("predictAddress(bytes32)", ["bytes32"], [normalise_salt(salt)])
        (address,) = decode(["address"], self._call(registry, data))
        return normalise_address(address)

    def deploy(self, registry: str, payload: bytes, salt: bytes, value: int) -> str:
        data = encode_call(
            "deploy(uint256,bytes,bytes32)",
            ["uint256", "bytes", "bytes32"],
            [value, bytes(payload), normalise_salt(salt)],
        )
        expected = self.predict_address(registry, salt)
        self._transact(registry, data, value=value)
        if not self.is_deployed(expected):
            raise CreationFailed(expected, "no code at the predicted address after the transaction was mined")
        return expected


__all__ = ["ChainBackend", "GAS_MULTIPLIER", "UPGRADE_SIGNATURE", "encode_call", "function_selector"]
