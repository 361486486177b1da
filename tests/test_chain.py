from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from eth_abi import decode, encode
from eth_utils import keccak
from web3.exceptions import ContractLogicError

from deterministic_registry.addresses import DETERMINISTIC_DEPLOYER, normalise_address, salt_from_label
from deterministic_registry.chain import UPGRADE_SIGNATURE, ChainBackend, encode_call, function_selector
from deterministic_registry.errors import CreationFailed, TransactionFailed
from deterministic_registry.storage import IMPLEMENTATION_SLOT

SENDER = normalise_address("0x" + "5e" * 20)
REGISTRY = normalise_address("0x" + "4e" * 20)
LOGIC = normalise_address("0x" + "10" * 20)


class FakeEth:
    def __init__(self) -> None:
        self.chain_id = 31337
        self.gas_price = 7
        self.code: Dict[str, bytes] = {}
        self.storage: Dict[tuple, bytes] = {}
        self.call_results: Dict[bytes, Any] = {}
        self.estimates: List[Dict[str, Any]] = []
        self.sent: List[bytes] = []
        self.status = 1
        self.on_mined = None

    def get_code(self, address: str) -> bytes:
        return self.code.get(address, b"")

    def get_storage_at(self, address: str, position: int) -> bytes:
        return self.storage.get((address, position), b"\x00" * 32)

    def get_transaction_count(self, address: str) -> int:
        return 4

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        self.estimates.append(dict(tx))
        return 100_000

    def call(self, tx: Dict[str, Any]) -> bytes:
        selector = bytes.fromhex(tx["data"][2:10])
        result = self.call_results[selector]
        if isinstance(result, Exception):
            raise result
        return result

    def send_raw_transaction(self, raw: bytes) -> bytes:
        self.sent.append(raw)
        return b"\xaa" * 32

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: int) -> Dict[str, Any]:
        if self.on_mined is not None:
            self.on_mined()
        return {"status": self.status, "transactionHash": tx_hash}


class FakeAccount:
    address = SENDER

    def __init__(self) -> None:
        self.signed: List[Dict[str, Any]] = []

    def sign_transaction(self, tx: Dict[str, Any]) -> SimpleNamespace:
        self.signed.append(dict(tx))
        return SimpleNamespace(raw_transaction=b"signed-%d" % len(self.signed))


@pytest.fixture
def eth() -> FakeEth:
    return FakeEth()


@pytest.fixture
def account() -> FakeAccount:
    return FakeAccount()


@pytest.fixture
def backend(eth: FakeEth, account: FakeAccount) -> ChainBackend:
    return ChainBackend(SimpleNamespace(eth=eth), account, timeout=5)


def test_selectors_and_calldata() -> None:
    assert function_selector("transfer(address,uint256)").hex() == "a9059cbb"
    data = encode_call("setOperator(address,uint256)", ["address", "uint256"], [LOGIC, 10])
    assert data[:4] == keccak(text="setOperator(address,uint256)")[:4]
    address, delay = decode(["address", "uint256"], data[4:])
    assert (normalise_address(address), delay) == (LOGIC, 10)


def test_bootstrap_create_sends_salt_and_init_code(backend: ChainBackend, eth: FakeEth, account: FakeAccount) -> None:
    salt = salt_from_label("chain")
    backend.bootstrap_create(DETERMINISTIC_DEPLOYER, salt, b"\x60\x00")

    (tx,) = account.signed
    assert tx["to"] == DETERMINISTIC_DEPLOYER
    assert tx["data"] == "0x" + (salt + b"\x60\x00").hex()
    assert tx["nonce"] == 4
    assert tx["chainId"] == 31337
    assert tx["gasPrice"] == 7
    assert tx["gas"] == 130_000
    assert eth.sent == [b"signed-1"]


def test_failed_receipt_raises(backend: ChainBackend, eth: FakeEth) -> None:
    eth.status = 0
    with pytest.raises(TransactionFailed) as excinfo:
        backend.set_operator(REGISTRY, LOGIC, 60)
    assert excinfo.value.tx_hash == "0x" + "aa" * 32


def test_implementation_of_reads_the_erc1967_slot(backend: ChainBackend, eth: FakeEth) -> None:
    position = int.from_bytes(IMPLEMENTATION_SLOT, "big")
    assert backend.implementation_of(REGISTRY) is None
    eth.storage[(REGISTRY, position)] = b"\x00" * 12 + bytes.fromhex(LOGIC[2:])
    assert backend.implementation_of(REGISTRY) == LOGIC


def test_is_functional_calls_version(backend: ChainBackend, eth: FakeEth) -> None:
    selector = function_selector("version()")
    eth.call_results[selector] = ContractLogicError("execution reverted")
    assert not backend.is_functional(REGISTRY)
    eth.call_results[selector] = encode(["uint256"], [1])
    assert backend.is_functional(REGISTRY)
    assert backend.version(REGISTRY) == 1


def test_reads_decode_results(backend: ChainBackend, eth: FakeEth) -> None:
    eth.call_results[function_selector("isCurrentOperator(address)")] = encode(["bool"], [True])
    eth.call_results[function_selector("predictAddress(bytes32)")] = encode(["address"], [LOGIC])
    assert backend.is_current_operator(REGISTRY, SENDER) is True
    assert backend.predict_address(REGISTRY, salt_from_label("x")) == LOGIC


def test_upgrade_uses_upgrade_to_and_call(backend: ChainBackend, account: FakeAccount) -> None:
    assert UPGRADE_SIGNATURE == "upgradeToAndCall(address,bytes)"
    backend.upgrade(REGISTRY, LOGIC)
    (tx,) = account.signed
    data = bytes.fromhex(tx["data"][2:])
    assert data[:4] == function_selector("upgradeToAndCall(address,bytes)")
    address, extra = decode(["address", "bytes"], data[4:])
    assert (normalise_address(address), extra) == (LOGIC, b"")


def test_deploy_attaches_value_and_verifies_code(backend: ChainBackend, eth: FakeEth, account: FakeAccount) -> None:
    target = normalise_address("0x" + "77" * 20)
    salt = salt_from_label("deploy")
    eth.call_results[function_selector("predictAddress(bytes32)")] = encode(["address"], [target])
    eth.on_mined = lambda: eth.code.__setitem__(target, b"\x60\x00")

    assert backend.deploy(REGISTRY, b"\x60\x00", salt, 3) == target

    (tx,) = account.signed
    assert tx["value"] == 3
    data = bytes.fromhex(tx["data"][2:])
    assert data[:4] == function_selector("deploy(uint256,bytes,bytes32)")
    assert decode(["uint256", "bytes", "bytes32"], data[4:]) == (3, b"\x60\x00", salt)


def test_deploy_without_code_is_a_creation_failure(backend: ChainBackend, eth: FakeEth) -> None:
    eth.call_results[function_selector("predictAddress(bytes32)")] = encode(["address"], [LOGIC])
    with pytest.raises(CreationFailed):
        backend.deploy(REGISTRY, b"\x60\x00", salt_from_label("missing"), 0)
