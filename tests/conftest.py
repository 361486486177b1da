"""Shared fixtures: an in-memory ledger with the registry code linked in."""
from __future__ import annotations

import pytest

from deterministic_registry.addresses import normalise_address, salt_from_label
from deterministic_registry.environment import InMemoryLedger
from deterministic_registry.orchestrator import DeploymentOrchestrator, DeploymentPlan, LedgerBackend
from deterministic_registry.registry import Registry, install_bootstrap_deployer, link_registry

GENESIS = 1_700_000_000

REGISTRY_SALT = salt_from_label("tests.registry")
LOGIC_SALT = salt_from_label("tests.logic")


@pytest.fixture
def ledger() -> InMemoryLedger:
    ledger = link_registry(InMemoryLedger(timestamp=GENESIS))
    install_bootstrap_deployer(ledger)
    return ledger


@pytest.fixture
def owner() -> str:
    return normalise_address("0x" + "11" * 20)


@pytest.fixture
def operator() -> str:
    return normalise_address("0x" + "22" * 20)


@pytest.fixture
def outsider() -> str:
    return normalise_address("0x" + "33" * 20)


@pytest.fixture
def plan(owner: str) -> DeploymentPlan:
    return DeploymentPlan.in_memory(owner, registry_salt=REGISTRY_SALT, logic_salt=LOGIC_SALT)


@pytest.fixture
def bootstrap_registry(ledger: InMemoryLedger, owner: str, plan: DeploymentPlan) -> Registry:
    """A registry still running its bootstrap logic."""

    backend = LedgerBackend(ledger, owner)
    addresses = DeploymentOrchestrator(backend).predict(plan)
    backend.bootstrap_create(plan.bootstrap_deployer, plan.registry_salt, plan.bootstrap_logic_init_code)
    backend.bootstrap_create(
        plan.bootstrap_deployer, plan.registry_salt, plan.proxy_init_code(addresses.bootstrap_logic)
    )
    return Registry(ledger, addresses.registry)


@pytest.fixture
def registry(ledger: InMemoryLedger, owner: str, plan: DeploymentPlan) -> Registry:
    """A registry upgraded to its functional logic."""

    report = DeploymentOrchestrator(LedgerBackend(ledger, owner)).run(plan)
    return Registry(ledger, report.addresses.registry)
