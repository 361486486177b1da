from __future__ import annotations

import json
from pathlib import Path

import pytest
from eth_abi import encode
from eth_utils import keccak

from deterministic_registry.payloads import load_artifact, parse_artifact, read_payload

CONSTRUCTOR_ABI = [
    {"type": "constructor", "inputs": [{"name": "owner", "type": "address"}]},
    {"type": "function", "name": "owner", "inputs": [], "outputs": [{"type": "address"}]},
]
OWNER = "0x" + "11" * 20


def test_hardhat_artifact_encodes_constructor_arguments(tmp_path: Path) -> None:
    path = tmp_path / "BootstrapLogic.json"
    path.write_text(json.dumps({"contractName": "BootstrapLogic", "abi": CONSTRUCTOR_ABI, "bytecode": "0x6001"}))

    artifact = load_artifact(path)

    assert artifact.name == "BootstrapLogic"
    assert artifact.constructor_types == ["address"]
    expected = bytes.fromhex("6001") + encode(["address"], [OWNER])
    assert artifact.init_code(OWNER) == expected
    assert artifact.init_code_hash(OWNER) == keccak(expected)


def test_foundry_layout_reads_nested_bytecode_object() -> None:
    artifact = parse_artifact({"abi": [], "bytecode": {"object": "0x6002"}}, "Payload")
    assert artifact.bytecode == b"\x60\x02"
    assert artifact.init_code() == b"\x60\x02"


def test_name_keyed_layout_selects_requested_contract() -> None:
    payload = {
        "VaultFactory": {"abi": [], "bytecode": "0x6003"},
        "Other": {"abi": [], "bytecode": "0x6004"},
    }
    assert parse_artifact(payload, "VaultFactory").bytecode == b"\x60\x03"
    with pytest.raises(ValueError):
        parse_artifact(payload)


def test_constructor_arity_is_checked() -> None:
    artifact = parse_artifact({"abi": CONSTRUCTOR_ABI, "bytecode": "0x6001"}, "Logic")
    with pytest.raises(ValueError):
        artifact.init_code()


def test_unlinked_bytecode_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_artifact({"abi": [], "bytecode": "0x6001__$lib$__"}, "Linked")


def test_read_payload_accepts_literals_hex_files_and_artifacts(tmp_path: Path) -> None:
    hex_file = tmp_path / "payload.hex"
    hex_file.write_text("0x60ff\n")
    artifact = tmp_path / "Payload.json"
    artifact.write_text(json.dumps({"abi": [], "bytecode": "0x60aa"}))

    assert read_payload("0x6001") == b"\x60\x01"
    assert read_payload(hex_file) == b"\x60\xff"
    assert read_payload(str(artifact)) == b"\x60\xaa"
