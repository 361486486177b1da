from __future__ import annotations

import pytest
from eth_utils import keccak

from deterministic_registry.addresses import (
    DETERMINISTIC_DEPLOYER,
    FORWARDER_INIT_CODE,
    create2_address,
    create_address,
    forwarder_address,
    init_code_hash,
    normalise_address,
    normalise_salt,
    predict_deployment_pair,
    salt_from_label,
    salted_address,
    two_hop_address,
)

ZERO_SALT = b"\x00" * 32


@pytest.mark.parametrize(
    ("deployer", "salt", "init_code", "expected"),
    [
        (
            "0x0000000000000000000000000000000000000000",
            ZERO_SALT,
            b"\x00",
            "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38",
        ),
        (
            "0xdeadbeef00000000000000000000000000000000",
            ZERO_SALT,
            b"\x00",
            "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3",
        ),
        (
            "0xdeadbeef00000000000000000000000000000000",
            "0x000000000000000000000000feed000000000000000000000000000000000000",
            b"\x00",
            "0xD04116cDd17beBE565EB2422F2497E06cC1C9833",
        ),
        (
            "0x0000000000000000000000000000000000000000",
            ZERO_SALT,
            bytes.fromhex("deadbeef"),
            "0x70f2b2914A2a4b783FaEFb75f459A580616Fcb5e",
        ),
    ],
)
def test_create2_address_matches_eip1014_examples(deployer, salt, init_code, expected) -> None:
    assert create2_address(deployer, salt, init_code_hash(init_code)).lower() == expected.lower()


@pytest.mark.parametrize(
    ("nonce", "expected"),
    [
        (0, "0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d"),
        (1, "0x343c43a37d37dff08ae8c4a11544c718abb4fcf8"),
        (2, "0xf778b86fa74e846c4f0a1fbd1335fe81c00a0c91"),
    ],
)
def test_create_address_matches_known_nonces(nonce: int, expected: str) -> None:
    creator = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"
    assert create_address(creator, nonce).lower() == expected


def test_create_address_for_first_contract_creation_uses_fixed_preimage() -> None:
    creator = normalise_address("0x" + "ab" * 20)
    preimage = b"\xd6\x94" + bytes.fromhex("ab" * 20) + b"\x01"
    assert create_address(creator, 1) == normalise_address(keccak(preimage)[12:])


def test_create_address_rejects_negative_nonce() -> None:
    with pytest.raises(ValueError):
        create_address("0x" + "ab" * 20, -1)


def test_salted_address_hashes_the_salt_first() -> None:
    deployer = "0x" + "42" * 20
    salt = salt_from_label("payload")
    code_hash = init_code_hash(b"\x60\x00")
    assert salted_address(deployer, salt, code_hash) == create2_address(deployer, keccak(salt), code_hash)
    assert salted_address(deployer, salt, code_hash) != create2_address(deployer, salt, code_hash)


def test_salted_address_is_deterministic() -> None:
    deployer = "0x" + "ab" * 20
    first = salted_address(deployer, 7, init_code_hash(b"\x01"))
    second = salted_address("0x" + "AB" * 20, 7, init_code_hash(b"\x01"))
    assert first == second


def test_two_hop_address_goes_through_the_forwarder() -> None:
    deployer = "0x" + "42" * 20
    salt = salt_from_label("two-hop")
    forwarder = salted_address(deployer, salt, keccak(FORWARDER_INIT_CODE))
    assert forwarder_address(deployer, salt) == forwarder
    assert two_hop_address(deployer, salt) == create_address(forwarder, 1)


def test_two_hop_address_ignores_payload_but_salted_does_not() -> None:
    deployer = "0x" + "42" * 20
    salt = salt_from_label("independent")
    first, second = b"\x60\x01", b"\x60\x02"
    assert salted_address(deployer, salt, init_code_hash(first)) != salted_address(
        deployer, salt, init_code_hash(second)
    )
    assert two_hop_address(deployer, salt) != two_hop_address(deployer, salt_from_label("other"))


def test_predict_deployment_pair_uses_the_raw_salt() -> None:
    salt = salt_from_label("pair")
    init_code = b"\xfe\x01\x02"
    pair = predict_deployment_pair(salt, init_code)
    assert pair.deployer == create2_address(DETERMINISTIC_DEPLOYER, salt, keccak(init_code))
    assert pair.first_creation == create_address(pair.deployer, 1)
    assert pair.as_dict() == {"deployer": pair.deployer, "first_creation": pair.first_creation}


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, ZERO_SALT),
        (1, b"\x00" * 31 + b"\x01"),
        ("0x" + "ff" * 32, b"\xff" * 32),
        ("ab" * 32, b"\xab" * 32),
        (b"\x07" * 32, b"\x07" * 32),
    ],
)
def test_normalise_salt_accepts_supported_forms(value, expected) -> None:
    assert normalise_salt(value) == expected


@pytest.mark.parametrize("value", [-1, 2**256, b"\x00" * 31, "0x1234", "zz" * 32, True, 1.5])
def test_normalise_salt_rejects_malformed_input(value) -> None:
    with pytest.raises(ValueError):
        normalise_salt(value)


def test_normalise_address_checksums_and_rejects_garbage() -> None:
    assert normalise_address("4e59b44847b379578588920ca78fbf26c0b4956c") == DETERMINISTIC_DEPLOYER
    with pytest.raises(ValueError):
        normalise_address("0x1234")
    with pytest.raises(ValueError):
        normalise_address(b"\x00" * 19)
