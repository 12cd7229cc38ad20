"""
Tests for service bootstrap: building the registry from settings and the
degraded startup path.
"""

from pathlib import Path

import pytest
from eth_utils import encode_hex, keccak
from fastapi.testclient import TestClient

from merkle_airdrop.core.config import Settings, settings
from merkle_airdrop.main import app, init_registry
from merkle_airdrop.services.distribution import build_tree

OWNER = "0x9999999999999999999999999999999999999999"
CUSTODY = "0x8888888888888888888888888888888888888888"


def _address(n: int) -> str:
    return "0x" + f"{n:040x}"


@pytest.fixture
def dump_path(tmp_path: Path) -> Path:
    """Tree dump of an eight-recipient campaign."""
    path = tmp_path / "tree.json"
    build_tree([(_address(n), n * 10) for n in range(1, 9)]).write_dump(path)
    return path


class TestInitRegistry:
    """Tests for init_registry."""

    def test_from_distribution_file(self, dump_path: Path) -> None:
        """Test root and proof bound come from the loaded tree."""
        config = Settings(
            OWNER_ADDRESS=OWNER,
            CUSTODY_ADDRESS=CUSTODY,
            DISTRIBUTION_FILE=str(dump_path),
            INITIAL_CUSTODY_BALANCE=500,
            MAX_PROOF_LENGTH=32,
        )

        ledger, registry = init_registry(config)

        expected = build_tree([(_address(n), n * 10) for n in range(1, 9)])
        assert registry.current_root == expected.root
        assert registry.max_proof_length == expected.depth == 3
        assert registry.proof_length_ceiling == 32
        assert registry.owner == OWNER
        assert ledger.holder == CUSTODY
        assert ledger.balance_of(CUSTODY) == 500
        assert registry.custody_balance() == 500

    def test_loaded_tree_claims(self, dump_path: Path) -> None:
        config = Settings(
            OWNER_ADDRESS=OWNER,
            DISTRIBUTION_FILE=str(dump_path),
            INITIAL_CUSTODY_BALANCE=1000,
        )
        ledger, registry = init_registry(config)
        claimant = _address(5)
        proof = build_tree([(_address(n), n * 10) for n in range(1, 9)]).proof_for(claimant)

        registry.claim(50, proof.proof, caller=claimant)

        assert ledger.balance_of(claimant) == 50

    def test_setting_lower_than_depth_wins(self, dump_path: Path) -> None:
        config = Settings(OWNER_ADDRESS=OWNER, DISTRIBUTION_FILE=str(dump_path), MAX_PROOF_LENGTH=2)

        _, registry = init_registry(config)

        assert registry.max_proof_length == 2
        assert registry.proof_length_ceiling == 2

    def test_from_initial_root(self) -> None:
        root = encode_hex(keccak(b"campaign"))
        config = Settings(OWNER_ADDRESS=OWNER, INITIAL_ROOT=root, MAX_PROOF_LENGTH=20)

        ledger, registry = init_registry(config)

        assert registry.current_root == root
        assert registry.max_proof_length == 20
        assert ledger.balance_of(ledger.holder) == 0

    def test_distribution_file_preferred_over_root(self, dump_path: Path) -> None:
        config = Settings(
            OWNER_ADDRESS=OWNER,
            DISTRIBUTION_FILE=str(dump_path),
            INITIAL_ROOT=encode_hex(keccak(b"ignored")),
        )

        _, registry = init_registry(config)

        assert registry.current_root != encode_hex(keccak(b"ignored"))

    def test_no_owner(self, dump_path: Path) -> None:
        assert init_registry(Settings(OWNER_ADDRESS=None, DISTRIBUTION_FILE=str(dump_path))) is None

    def test_no_root(self) -> None:
        config = Settings(OWNER_ADDRESS=OWNER, INITIAL_ROOT=None, DISTRIBUTION_FILE=None)
        assert init_registry(config) is None

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        config = Settings(OWNER_ADDRESS=OWNER, DISTRIBUTION_FILE=str(tmp_path / "missing.json"))

        with pytest.raises(OSError):
            init_registry(config)


class TestDegradedStartup:
    """Tests that a bad configuration leaves the service up without a registry."""

    @pytest.fixture(autouse=True)
    def owner_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "OWNER_ADDRESS", OWNER)
        monkeypatch.setattr(settings, "INITIAL_ROOT", None)

    def test_missing_distribution_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setattr(settings, "DISTRIBUTION_FILE", str(tmp_path / "missing.json"))

        with TestClient(app) as client:
            assert app.state.registry is None
            assert client.get("/live").status_code == 200
            assert client.get("/ready").status_code == 503

    def test_corrupt_distribution_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        path = tmp_path / "tree.json"
        path.write_text("{not json")
        monkeypatch.setattr(settings, "DISTRIBUTION_FILE", str(path))

        with TestClient(app) as client:
            assert app.state.registry is None
            assert client.get("/health").json()["registry"] == "not_configured"

    def test_valid_distribution_file(
        self, monkeypatch: pytest.MonkeyPatch, dump_path: Path
    ) -> None:
        monkeypatch.setattr(settings, "DISTRIBUTION_FILE", str(dump_path))

        with TestClient(app) as client:
            assert client.get("/ready").status_code == 200
            assert client.get("/api/v1/root").json()["max_proof_length"] == 3
