#!/usr/bin/env python3
"""Predict the address a registry will assign to a salt, without touching a chain."""
from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, Optional, Sequence

from deterministic_registry.addresses import (
    forwarder_address,
    init_code_hash,
    normalise_address,
    normalise_salt,
    salt_from_label,
    salted_address,
    two_hop_address,
)
from deterministic_registry.errors import RegistryError
from deterministic_registry.payloads import read_payload

MODES = ("two-hop", "salted")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--registry", required=True, help="Registry (deployer) address")
    salt_group = parser.add_mutually_exclusive_group(required=True)
    salt_group.add_argument("--salt", help="32-byte salt as hex")
    salt_group.add_argument("--label", help="Human readable label hashed into a salt")
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="two-hop",
        help="two-hop ignores the payload; salted folds its hash into the address",
    )
    code_group = parser.add_mutually_exclusive_group()
    code_group.add_argument("--init-code-hash", help="keccak256 of the payload (salted mode)")
    code_group.add_argument("--artifact", help="Compiled artifact, hex file or 0x literal (salted mode)")
    parser.add_argument("--json", action="store_true", help="Print the full prediction as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Logging verbosity (DEBUG, INFO, WARNING)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def resolve_salt(args: argparse.Namespace) -> bytes:
    if args.label is not None:
        return salt_from_label(args.label)
    return normalise_salt(args.salt)


def predict_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    registry = normalise_address(args.registry)
    salt = resolve_salt(args)
    result: Dict[str, Any] = {"mode": args.mode, "registry": registry, "salt": "0x" + salt.hex()}

    if args.mode == "two-hop":
        result["forwarder"] = forwarder_address(registry, salt)
        result["address"] = two_hop_address(registry, salt)
        return result

    if args.init_code_hash:
        code_hash = args.init_code_hash
    elif args.artifact:
        code_hash = "0x" + init_code_hash(read_payload(args.artifact)).hex()
    else:
        raise ValueError("Salted predictions need --init-code-hash or --artifact")
    result["init_code_hash"] = code_hash
    result["address"] = salted_address(registry, salt, code_hash)
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        result = predict_from_args(args)
    except (RegistryError, ValueError) as exc:
        print(f"[❌] {exc}")
        return 1

    logging.debug("Prediction: %s", result)
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(result["address"])
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
