"""Environment-driven configuration for the deployment tooling."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, TYPE_CHECKING

from dotenv import dotenv_values
from eth_account import Account

from .addresses import DETERMINISTIC_DEPLOYER, normalise_address, salt_from_label

if TYPE_CHECKING:  # pragma: no cover - typing only
    from eth_account.signers.local import LocalAccount
else:
    LocalAccount = Any

DEFAULT_SALT_LABEL = "deterministic-registry.proxy.v1"
DEFAULT_LOGIC_SALT_LABEL = "deterministic-registry.logic.v1"


@dataclass(frozen=True)
class RegistrySettings:
    rpc_url: Optional[str]
    private_key: Optional[str]
    salt_label: str = DEFAULT_SALT_LABEL
    logic_salt_label: str = DEFAULT_LOGIC_SALT_LABEL
    artifacts_dir: Path = Path("artifacts")
    bootstrap_deployer: str = DETERMINISTIC_DEPLOYER
    log_level: str = "INFO"
    tx_timeout: int = 120

    @property
    def registry_salt(self) -> bytes:
        return salt_from_label(self.salt_label)

    @property
    def logic_salt(self) -> bytes:
        return salt_from_label(self.logic_salt_label)

    def __repr__(self) -> str:
        # The private key never appears in logs.
        return (
            f"RegistrySettings(rpc_url={self.rpc_url!r}, salt_label={self.salt_label!r}, "
            f"logic_salt_label={self.logic_salt_label!r}, artifacts_dir={str(self.artifacts_dir)!r}, "
            f"bootstrap_deployer={self.bootstrap_deployer!r})"
        )


def _get_env(env_file: Path) -> MutableMapping[str, str]:
    """``os.environ`` layered over the optional ``.env`` file."""

    merged: MutableMapping[str, str] = {}
    if env_file.is_file():
        merged.update({key: value for key, value in dotenv_values(env_file).items() if value is not None})
    merged.update(os.environ)
    return merged


def load_settings(env: Mapping[str, str] | None = None, *, env_file: Path = Path(".env")) -> RegistrySettings:
    if env is None:
        env = _get_env(env_file)

    try:
        tx_timeout = int(env.get("REGISTRY_TX_TIMEOUT", "120"))
    except ValueError as exc:
        raise RuntimeError("REGISTRY_TX_TIMEOUT must be an integer number of seconds") from exc

    return RegistrySettings(
        rpc_url=env.get("REGISTRY_RPC_URL") or env.get("RPC_URL"),
        private_key=env.get("REGISTRY_PRIVATE_KEY") or env.get("PRIVATE_KEY"),
        salt_label=env.get("REGISTRY_SALT_LABEL") or DEFAULT_SALT_LABEL,
        logic_salt_label=env.get("REGISTRY_LOGIC_SALT_LABEL") or DEFAULT_LOGIC_SALT_LABEL,
        artifacts_dir=Path(env.get("REGISTRY_ARTIFACTS_DIR") or "artifacts"),
        bootstrap_deployer=normalise_address(env.get("REGISTRY_BOOTSTRAP_DEPLOYER") or DETERMINISTIC_DEPLOYER),
        log_level=env.get("REGISTRY_LOG_LEVEL") or "INFO",
        tx_timeout=tx_timeout,
    )


def load_signer(settings: RegistrySettings) -> LocalAccount:
    """Return the account that signs owner transactions."""

    if not settings.private_key:
        raise RuntimeError("Set REGISTRY_PRIVATE_KEY (or PRIVATE_KEY) before sending transactions.")
    return Account.from_key(settings.private_key)


__all__ = [
    "DEFAULT_LOGIC_SALT_LABEL",
    "DEFAULT_SALT_LABEL",
    "RegistrySettings",
    "load_settings",
    "load_signer",
]
