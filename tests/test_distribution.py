"""
Tests for distribution building, claims files and CSV input.
"""

import json
from pathlib import Path

import pytest

from merkle_airdrop.crypto.merkle import DistributionError, verify_proof
from merkle_airdrop.services.distribution import (
    Distribution,
    build_tree,
    load_entitlements_csv,
    read_dump,
)

ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"
CAROL = "0x3333333333333333333333333333333333333333"


class TestDistribution:
    """Tests for the built distribution."""

    def test_totals(self, distribution: Distribution) -> None:
        assert distribution.total_amount == 600
        assert distribution.amounts == {ALICE: 100, BOB: 200, CAROL: 300}
        assert distribution.depth == 2
        assert set(distribution.proofs) == {ALICE, BOB, CAROL}

    def test_claims_dict(self, distribution: Distribution) -> None:
        """Test the claims file shape and that each entry verifies."""
        data = distribution.to_claims_dict()

        assert data["merkleRoot"] == distribution.root
        assert data["tokenTotal"] == "600"
        assert set(data["claims"]) == {ALICE, BOB, CAROL}
        for identity, claim in data["claims"].items():
            assert verify_proof(
                data["merkleRoot"], identity, int(claim["amount"]), claim["proof"]
            )

    def test_proof_for_unknown(self, distribution: Distribution) -> None:
        with pytest.raises(KeyError):
            distribution.proof_for("0x4444444444444444444444444444444444444444")

    def test_build_rejects_empty(self) -> None:
        with pytest.raises(DistributionError):
            build_tree([])

    def test_large_amounts_survive_json(self, tmp_path: Path) -> None:
        """Test uint256 amounts are written as strings."""
        amount = 2**256 - 1
        distribution = build_tree([(ALICE, amount), (BOB, 1)])
        path = tmp_path / "claims.json"

        distribution.write_claims(path)
        data = json.loads(path.read_text())

        assert data["claims"][ALICE]["amount"] == str(amount)
        assert int(data["tokenTotal"]) == amount + 1


class TestTreeDumpFiles:
    """Tests for writing and reading tree dumps."""

    def test_write_and_read(self, distribution: Distribution, tmp_path: Path) -> None:
        path = tmp_path / "tree.json"
        distribution.write_dump(path)

        loaded = read_dump(path)

        assert loaded.root == distribution.root
        assert loaded.proofs == distribution.proofs

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "tree.json"
        path.write_text("{not json")

        with pytest.raises(DistributionError, match="not valid JSON"):
            read_dump(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "tree.json"
        path.write_text("[]")

        with pytest.raises(DistributionError, match="JSON object"):
            read_dump(path)

    def test_tampered_dump(self, distribution: Distribution, tmp_path: Path) -> None:
        data = distribution.tree.dump()
        data["values"][1]["value"][1] = "1"
        path = tmp_path / "tree.json"
        path.write_text(json.dumps(data))

        with pytest.raises(DistributionError):
            read_dump(path)


class TestEntitlementCsv:
    """Tests for CSV loading."""

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text(f"address,amount\n{ALICE},100\n\n{BOB}, 200 \n")

        entitlements = load_entitlements_csv(path)

        assert [(e.identity, e.amount) for e in entitlements] == [(ALICE, 100), (BOB, 200)]

    def test_extra_columns_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text(f"name,address,amount\nalice,{ALICE},100\n")

        assert load_entitlements_csv(path)[0].amount == 100

    def test_bad_row_reports_line(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text(f"address,amount\n{ALICE},100\n{BOB},-5\n")

        with pytest.raises(DistributionError, match=":3:"):
            load_entitlements_csv(path)

    def test_bad_address(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text("address,amount\n0xnope,100\n")

        with pytest.raises(DistributionError):
            load_entitlements_csv(path)

    def test_missing_header(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text(f"{ALICE},100\n")

        with pytest.raises(DistributionError, match="header"):
            load_entitlements_csv(path)

    def test_no_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "list.csv"
        path.write_text("address,amount\n\n")

        with pytest.raises(DistributionError, match="No entitlements"):
            load_entitlements_csv(path)
