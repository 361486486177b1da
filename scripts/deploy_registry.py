#!/usr/bin/env python3
"""Bootstrap, upgrade and populate a deterministic registry on an EVM chain.

Every step is skipped when the chain already reflects it, so the script can be
re-run after an interruption. ``--dry-run`` only prints the predicted addresses.

Artifacts are read from ``REGISTRY_ARTIFACTS_DIR``:

* ``BootstrapLogic.json`` and ``RegistryLogic.json``: constructors take the owner,
  optionally followed by a ``uint256`` version.
* ``RegistryProxy.json``: constructor takes the initial logic address.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from web3 import Web3

from deterministic_registry.addresses import normalise_address, normalise_salt, salt_from_label
from deterministic_registry.chain import ChainBackend
from deterministic_registry.orchestrator import DeploymentOrchestrator, DeploymentPlan, PayloadSpec, predict_plan
from deterministic_registry.payloads import Artifact, load_artifact, read_payload
from deterministic_registry.registry import REGISTRY_VERSION
from deterministic_registry.settings import RegistrySettings, load_settings, load_signer

BOOTSTRAP_ARTIFACT = "BootstrapLogic.json"
PROXY_ARTIFACT = "RegistryProxy.json"
LOGIC_ARTIFACT = "RegistryLogic.json"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--owner", help="Registry owner. Defaults to the configured signer.")
    parser.add_argument(
        "--operator",
        action="append",
        default=[],
        metavar="ADDRESS:DELAY",
        help="Grant ADDRESS operator rights for DELAY seconds (repeatable)",
    )
    parser.add_argument(
        "--payload",
        action="append",
        default=[],
        metavar="SALT:ARTIFACT",
        help="Deploy ARTIFACT under SALT (32-byte hex or a label) through the registry (repeatable)",
    )
    parser.add_argument("--logic-version", type=int, default=REGISTRY_VERSION, help="Version passed to the logic constructor")
    parser.add_argument("--artifacts-dir", type=Path, default=None, help="Overrides REGISTRY_ARTIFACTS_DIR")
    parser.add_argument("--env-file", type=Path, default=Path(".env"), help="Optional dotenv file")
    parser.add_argument("--dry-run", action="store_true", help="Print predicted addresses without connecting")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--log-level", default=None, help="Logging verbosity (defaults to REGISTRY_LOG_LEVEL)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def parse_operator(text: str) -> Tuple[str, int]:
    address, sep, delay = text.rpartition(":")
    if not sep:
        raise ValueError(f"Operator must look like ADDRESS:DELAY, got {text!r}")
    try:
        seconds = int(delay)
    except ValueError as exc:
        raise ValueError(f"Operator delay must be an integer: {text!r}") from exc
    return normalise_address(address), seconds


def parse_salt(text: str) -> bytes:
    try:
        return normalise_salt(text)
    except ValueError:
        return salt_from_label(text)


def parse_payload(text: str) -> PayloadSpec:
    salt_text, sep, source = text.partition(":")
    if not sep or not source:
        raise ValueError(f"Payload must look like SALT:ARTIFACT, got {text!r}")
    return PayloadSpec(salt=parse_salt(salt_text), init_code=read_payload(source), label=salt_text)


def owner_constructor_args(artifact: Artifact, owner: str, version: int) -> Tuple[Any, ...]:
    types = artifact.constructor_types
    if types == ["address"]:
        return (owner,)
    if types == ["address", "uint256"]:
        return (owner, version)
    raise ValueError(f"{artifact.name} constructor must take (address owner[, uint256 version]), got {types}")


def _resolve_owner(args: argparse.Namespace, settings: RegistrySettings) -> str:
    if args.owner:
        return normalise_address(args.owner)
    return normalise_address(load_signer(settings).address)


def build_plan(args: argparse.Namespace, settings: RegistrySettings, owner: str) -> DeploymentPlan:
    artifacts_dir = args.artifacts_dir or settings.artifacts_dir
    bootstrap = load_artifact(artifacts_dir / BOOTSTRAP_ARTIFACT)
    proxy = load_artifact(artifacts_dir / PROXY_ARTIFACT)
    logic = load_artifact(artifacts_dir / LOGIC_ARTIFACT)

    operators: Dict[str, int] = dict(parse_operator(item) for item in args.operator)
    payloads: List[PayloadSpec] = [parse_payload(item) for item in args.payload]

    return DeploymentPlan(
        owner=owner,
        registry_salt=settings.registry_salt,
        bootstrap_logic_init_code=bootstrap.init_code(*owner_constructor_args(bootstrap, owner, args.logic_version)),
        proxy_creation_code=proxy.bytecode,
        logic_init_code=logic.init_code(*owner_constructor_args(logic, owner, args.logic_version)),
        logic_salt=settings.logic_salt,
        operators=operators,
        payloads=payloads,
        bootstrap_deployer=settings.bootstrap_deployer,
    )


def connect(settings: RegistrySettings) -> Web3:
    if not settings.rpc_url:
        raise RuntimeError("Set REGISTRY_RPC_URL before deploying.")
    w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.tx_timeout}))
    if not w3.is_connected():
        raise RuntimeError(f"Cannot connect to {settings.rpc_url}")
    return w3


def run(args: argparse.Namespace, settings: RegistrySettings) -> Dict[str, Any]:
    owner = _resolve_owner(args, settings)
    plan = build_plan(args, settings, owner)

    if args.dry_run:
        predicted = predict_plan(plan)
        logging.info("Dry run: registry would live at %s", predicted.registry)
        return {"dry_run": True, "owner": owner, "addresses": predicted.as_dict()}

    w3 = connect(settings)
    backend = ChainBackend(
        w3,
        load_signer(settings),
        bootstrap_deployer=settings.bootstrap_deployer,
        timeout=settings.tx_timeout,
    )
    if not backend.is_deployed(settings.bootstrap_deployer):
        raise RuntimeError(f"No deterministic deployment proxy at {settings.bootstrap_deployer} on this chain")

    report = DeploymentOrchestrator(backend).run(plan)
    logging.info(
        "Registry %s ready: %d created, %d operators set, %d payloads deployed",
        report.addresses.registry,
        len(report.created),
        len(report.operators_set),
        len(report.deployed),
    )
    return {"dry_run": False, "owner": owner, **report.as_dict()}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(env_file=args.env_file)
    except (RuntimeError, ValueError) as exc:
        print(f"[❌] {exc}")
        return 1
    configure_logging(args.log_level or settings.log_level)

    try:
        result = run(args, settings)
    except (OSError, RuntimeError, ValueError) as exc:
        # RegistryError is a RuntimeError; missing artifacts surface as OSError.
        logging.error("Deployment failed: %s", exc)
        print(f"[❌] {exc}")
        return 1

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(f"[✅] registry {result['addresses']['registry']}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
