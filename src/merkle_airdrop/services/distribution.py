"""
Merkle Airdrop Claim Service - Distribution Builder

Off-line side of a campaign: turn an entitlement list into the root to
publish and the per-recipient proofs to hand out.

Artifacts:
- tree dump (standard-v1) holding every node, reloadable and verifiable
- claims file: {"merkleRoot", "tokenTotal", "claims": {address: {amount, proof}}}
"""

import csv
import json
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from merkle_airdrop.crypto.leaf import Entitlement, parse_amount
from merkle_airdrop.crypto.merkle import DistributionError, MerkleProof, MerkleTree
from merkle_airdrop.metrics import get_claim_metrics

logger = structlog.get_logger(__name__)

CSV_FIELDS = ("address", "amount")


@dataclass
class Distribution:
    """Built tree plus the proof for each recipient."""

    tree: MerkleTree
    proofs: dict[str, MerkleProof]

    @property
    def root(self) -> str:
        return self.tree.root_hash

    @property
    def depth(self) -> int:
        return self.tree.depth

    @property
    def total_amount(self) -> int:
        return sum(entry.amount for entry in self.tree.entries())

    @property
    def amounts(self) -> dict[str, int]:
        return {entry.identity: entry.amount for entry in self.tree.entries()}

    def proof_for(self, identity: str) -> MerkleProof:
        """
        Raises:
            KeyError: If identity has no entitlement
        """
        return self.tree.get_proof(identity)

    def to_claims_dict(self) -> dict[str, Any]:
        return {
            "merkleRoot": self.root,
            "tokenTotal": str(self.total_amount),
            "claims": {
                identity: {"amount": str(proof.amount), "proof": proof.proof}
                for identity, proof in self.proofs.items()
            },
        }

    def write_dump(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.tree.dump(), indent=2))
        logger.info("Tree dump written", path=str(path), root=self.root)

    def write_claims(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_claims_dict(), indent=2))
        logger.info("Claims file written", path=str(path), recipients=len(self.proofs))

    @classmethod
    def from_tree(cls, tree: MerkleTree) -> "Distribution":
        return cls(
            tree=tree,
            proofs={proof.identity: proof for proof in tree.get_all_proofs()},
        )


def build_tree(entitlements: Iterable[Entitlement | Sequence[Any]]) -> Distribution:
    """
    Build the Merkle tree and every proof for a campaign.

    Args:
        entitlements: Entitlement records or (identity, amount) pairs

    Returns:
        Distribution with root and per-identity proofs

    Raises:
        DistributionError: On empty input, malformed items or duplicate
            identities
    """
    started = time.perf_counter()
    tree = MerkleTree.of(entitlements)
    distribution = Distribution.from_tree(tree)
    duration = time.perf_counter() - started

    get_claim_metrics().record_merkle_build(duration, tree.leaf_count)
    logger.info(
        "Distribution built",
        root=distribution.root,
        recipients=tree.leaf_count,
        depth=tree.depth,
        total_amount=distribution.total_amount,
        duration=round(duration, 4),
    )
    return distribution


def read_dump(path: str | Path) -> Distribution:
    """
    Load and validate a tree dump.

    Raises:
        DistributionError: If the file is not a valid dump
    """
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise DistributionError(f"Tree dump {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DistributionError(f"Tree dump {path} must be a JSON object")
    return Distribution.from_tree(MerkleTree.load(data))


def load_entitlements_csv(path: str | Path) -> list[Entitlement]:
    """
    Read entitlements from a CSV file with an ``address,amount`` header.

    Blank rows are skipped.

    Raises:
        DistributionError: If the header is missing, a row is invalid, or
            the file has no entitlements
    """
    entitlements = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or not set(CSV_FIELDS) <= set(reader.fieldnames):
            raise DistributionError("CSV needs header: address,amount")

        for row in reader:
            address = (row.get("address") or "").strip()
            amount = (row.get("amount") or "").strip()
            if not address and not amount:
                continue
            try:
                entitlements.append(
                    Entitlement(identity=address, amount=parse_amount(amount))
                )
            except ValueError as e:
                raise DistributionError(f"{path}:{reader.line_num}: {e}") from e

    if not entitlements:
        raise DistributionError(f"No entitlements in {path}")
    return entitlements
