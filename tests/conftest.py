"""
Pytest configuration and shared fixtures for the airdrop tests.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from merkle_airdrop.main import app
from merkle_airdrop.services.claim_registry import ClaimRegistry
from merkle_airdrop.services.distribution import Distribution, build_tree
from merkle_airdrop.services.ledger import InMemoryLedger

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"
OWNER = "0x9999999999999999999999999999999999999999"
CUSTODY = "0x8888888888888888888888888888888888888888"

CUSTODY_FUNDS = 1000


@pytest.fixture
def entitlements() -> list[tuple[str, int]]:
    """The three-recipient allow-list."""
    return [(ALICE, 100), (BOB, 200), (CAROL, 300)]


@pytest.fixture
def distribution(entitlements: list[tuple[str, int]]) -> Distribution:
    return build_tree(entitlements)


@pytest.fixture
def ledger() -> InMemoryLedger:
    """Ledger with custody funded."""
    ledger = InMemoryLedger(CUSTODY)
    ledger.deposit(CUSTODY, CUSTODY_FUNDS)
    return ledger


@pytest.fixture
def registry(ledger: InMemoryLedger, distribution: Distribution) -> ClaimRegistry:
    return ClaimRegistry(
        ledger=ledger,
        initial_root=distribution.root,
        owner=OWNER,
        max_proof_length=distribution.depth,
    )


@pytest.fixture
def client(
    registry: ClaimRegistry,
    ledger: InMemoryLedger,
) -> Generator[TestClient, None, None]:
    """HTTP client with the test registry installed after startup."""
    with TestClient(app) as test_client:
        app.state.registry = registry
        app.state.ledger = ledger
        yield test_client
