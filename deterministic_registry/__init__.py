"""Deterministic deployment registry: stable addresses, swappable logic."""
from __future__ import annotations

from .addresses import (
    DETERMINISTIC_DEPLOYER,
    FORWARDER_INIT_CODE,
    ZERO_ADDRESS,
    DeploymentPair,
    create2_address,
    create_address,
    forwarder_address,
    normalise_address,
    normalise_salt,
    predict_deployment_pair,
    salt_from_label,
    salted_address,
    two_hop_address,
)
from .auth import Access, AuthorizationGate
from .chain import ChainBackend
from .deployer import DeploymentRecord, DeploymentRequest, DeterministicDeployer
from .environment import CallContext, InMemoryLedger
from .errors import (
    AddressCollision,
    CreationFailed,
    InsufficientFunds,
    InternalConsistencyFailure,
    InvalidAddress,
    InvalidDelay,
    OutOfRange,
    RegistryError,
    TransactionFailed,
    Unauthorized,
    UnsupportedOperation,
    UpgradeRejected,
    ValueMismatch,
)
from .events import Deployed, OperatorRemoved, OperatorSet, Upgraded
from .operators import MAX_OPERATOR_DELAY, Operator, OperatorTable
from .orchestrator import DeploymentOrchestrator, DeploymentPlan, LedgerBackend, OrchestrationReport, PayloadSpec
from .payloads import Artifact, load_artifact, read_payload
from .registry import Registry, RegistryPhase, install_bootstrap_deployer, link_registry
from .settings import RegistrySettings, load_settings, load_signer

__all__ = [
    "Access",
    "AddressCollision",
    "Artifact",
    "AuthorizationGate",
    "CallContext",
    "ChainBackend",
    "CreationFailed",
    "DETERMINISTIC_DEPLOYER",
    "Deployed",
    "DeploymentOrchestrator",
    "DeploymentPair",
    "DeploymentPlan",
    "DeploymentRecord",
    "DeploymentRequest",
    "DeterministicDeployer",
    "FORWARDER_INIT_CODE",
    "InMemoryLedger",
    "InsufficientFunds",
    "InternalConsistencyFailure",
    "InvalidAddress",
    "InvalidDelay",
    "LedgerBackend",
    "MAX_OPERATOR_DELAY",
    "Operator",
    "OperatorRemoved",
    "OperatorSet",
    "OperatorTable",
    "OrchestrationReport",
    "OutOfRange",
    "PayloadSpec",
    "Registry",
    "RegistryError",
    "RegistryPhase",
    "RegistrySettings",
    "TransactionFailed",
    "Unauthorized",
    "UnsupportedOperation",
    "UpgradeRejected",
    "Upgraded",
    "ValueMismatch",
    "ZERO_ADDRESS",
    "create2_address",
    "create_address",
    "forwarder_address",
    "install_bootstrap_deployer",
    "link_registry",
    "load_artifact",
    "load_settings",
    "load_signer",
    "normalise_address",
    "normalise_salt",
    "predict_deployment_pair",
    "read_payload",
    "salt_from_label",
    "salted_address",
    "two_hop_address",
]
