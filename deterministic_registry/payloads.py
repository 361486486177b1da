"""Capture the exact creation bytes that address predictions are made from."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from eth_abi import encode

from .addresses import init_code_hash


def _strip_hex(value: str) -> bytes:
    text = value.strip()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("Artifact bytecode is empty")
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError("Artifact bytecode is not valid hex (unlinked libraries?)") from exc


def _extract_bytecode(entry: Mapping[str, Any]) -> bytes:
    bytecode = entry.get("bytecode")
    if isinstance(bytecode, Mapping):
        bytecode = bytecode.get("object")
    if bytecode is None:
        bytecode = entry.get("bin")
    if not isinstance(bytecode, str):
        raise ValueError("Artifact does not contain creation bytecode")
    return _strip_hex(bytecode)


@dataclass(frozen=True)
class Artifact:
    """Compiled contract: its ABI and creation bytecode."""

    name: str
    bytecode: bytes
    abi: List[Mapping[str, Any]] = field(default_factory=list)

    @property
    def constructor_types(self) -> List[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [param["type"] for param in entry.get("inputs", [])]
        return []

    def init_code(self, *args: Any) -> bytes:
        """Creation bytecode followed by the ABI-encoded constructor arguments."""

        types = self.constructor_types
        if len(args) != len(types):
            raise ValueError(f"{self.name} constructor takes {len(types)} arguments, got {len(args)}")
        if not types:
            return self.bytecode
        return self.bytecode + encode(types, list(args))

    def init_code_hash(self, *args: Any) -> bytes:
        return init_code_hash(self.init_code(*args))


def parse_artifact(payload: Mapping[str, Any], name: Optional[str] = None) -> Artifact:
    """Accept Hardhat, Foundry and name-keyed artifact layouts."""

    if "bytecode" in payload or "bin" in payload:
        entry = payload
    else:
        candidates = {key: value for key, value in payload.items() if isinstance(value, Mapping)}
        if name is not None and name in candidates:
            entry = candidates[name]
        elif len(candidates) == 1:
            name, entry = next(iter(candidates.items()))
        else:
            raise ValueError(f"Cannot choose a contract from artifact keys: {sorted(candidates)}")

    abi = entry.get("abi") or []
    if isinstance(abi, str):
        abi = json.loads(abi)
    resolved_name = name or entry.get("contractName") or entry.get("name") or "contract"
    return Artifact(name=str(resolved_name), bytecode=_extract_bytecode(entry), abi=list(abi))


def load_artifact(path: Union[str, Path], name: Optional[str] = None) -> Artifact:
    artifact_path = Path(path)
    with artifact_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Artifact {artifact_path} is not a JSON object")
    return parse_artifact(payload, name or artifact_path.stem)


def read_payload(source: Union[str, Path], args: Sequence[Any] = ()) -> bytes:
    """Return init code from an artifact path, a raw hex file, or a hex literal."""

    text = str(source)
    if text.startswith("0x"):
        return _strip_hex(text)
    path = Path(text)
    if path.suffix == ".json":
        return load_artifact(path).init_code(*args)
    return _strip_hex(path.read_text(encoding="utf-8"))


__all__ = ["Artifact", "load_artifact", "parse_artifact", "read_payload"]
