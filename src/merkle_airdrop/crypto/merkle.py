"""
Merkle Airdrop Claim Service - Merkle Tree Implementation

Provides deterministic Merkle tree construction over entitlements with
keccak256 hashing, proof generation, and verification.

Tree conventions (compatible with @openzeppelin/merkle-tree StandardMerkleTree
for the ["address", "uint256"] leaf encoding):
- Leaves are double-hashed entitlement encodings (see crypto.leaf)
- Internal nodes hash the byte-wise sorted pair of their children, so a
  proof is a plain list of sibling hashes with no left/right markers
- Leaves are sorted by hash and stored at the end of a flat array of
  2N-1 nodes; node k has children 2k+1 and 2k+2

With that layout the tree is complete and left-filled: no node is ever
duplicated and proofs are at most ceil(log2(N)) hashes long.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from eth_utils import decode_hex, encode_hex, keccak

from merkle_airdrop.crypto.leaf import (
    LEAF_ENCODING,
    Entitlement,
    leaf_hash,
    normalize_identity,
    parse_amount,
)

DIGEST_SIZE = 32
DUMP_FORMAT = "standard-v1"


class DistributionError(ValueError):
    """Raised for entitlement lists or tree dumps that cannot form a tree."""

    pass


def parse_digest(value: str | bytes) -> bytes:
    """
    Decode a 32-byte digest.

    Args:
        value: 0x-prefixed hex string or raw bytes

    Raises:
        ValueError: If the value is not exactly 32 bytes
    """
    if isinstance(value, str):
        try:
            value = decode_hex(value)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Digest is not valid hex: {value!r}") from e
    if not isinstance(value, (bytes, bytearray)) or len(value) != DIGEST_SIZE:
        raise ValueError(f"Digest must be {DIGEST_SIZE} bytes")
    return bytes(value)


def hash_pair(a: bytes, b: bytes) -> bytes:
    """
    Compute the hash of an internal node.

    The pair is sorted before hashing, making the result independent of
    which child is on the left.
    """
    if b < a:
        a, b = b, a
    return keccak(a + b)


def _left_child(index: int) -> int:
    return 2 * index + 1


def _right_child(index: int) -> int:
    return 2 * index + 2


def _parent(index: int) -> int:
    return (index - 1) // 2


def _sibling(index: int) -> int:
    return index + 1 if index % 2 == 1 else index - 1


@dataclass(frozen=True)
class TreeValue:
    """An entitlement and the position of its leaf in the node array."""

    entitlement: Entitlement
    tree_index: int


@dataclass
class MerkleProof:
    """
    Inclusion proof for one entitlement.

    Attributes:
        identity: Checksummed recipient address
        amount: Entitled amount
        leaf_hash: Hex leaf hash of the entitlement
        proof: Sibling hashes from leaf to root
        root_hash: Root the proof was generated against
    """

    identity: str
    amount: int
    leaf_hash: str
    proof: list[str]
    root_hash: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize proof to dictionary for distribution."""
        return {
            "identity": self.identity,
            "amount": str(self.amount),
            "leaf_hash": self.leaf_hash,
            "proof": list(self.proof),
            "root_hash": self.root_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MerkleProof":
        """Deserialize proof from dictionary."""
        return cls(
            identity=data["identity"],
            amount=parse_amount(data["amount"]),
            leaf_hash=data["leaf_hash"],
            proof=list(data["proof"]),
            root_hash=data["root_hash"],
        )


def _coerce_entitlement(item: Entitlement | Sequence[Any]) -> Entitlement:
    if isinstance(item, Entitlement):
        return item
    try:
        identity, amount = item
    except (TypeError, ValueError) as e:
        raise DistributionError(f"Expected (identity, amount) pair, got {item!r}") from e
    try:
        return Entitlement(identity=identity, amount=parse_amount(amount))
    except ValueError as e:
        raise DistributionError(str(e)) from e


class MerkleTree:
    """
    Merkle tree over a set of entitlements.

    Features:
    - Root independent of input order (leaves are sorted by hash)
    - Rejects empty input and duplicate identities
    - Proof lookup by identity or by input position
    - JSON dump/load in the standard-v1 format

    Example:
        >>> tree = MerkleTree.of([(alice, 100), (bob, 200)])
        >>> proof = tree.get_proof(alice)
        >>> verify_proof(tree.root_hash, alice, 100, proof.proof)
        True
    """

    def __init__(self, tree: list[bytes], values: list[TreeValue]) -> None:
        """
        Initialize Merkle tree (internal use).

        Use of() or load() to construct trees.
        """
        self._tree = tree
        self._values = values
        self._index_by_identity = {
            value.entitlement.identity: i for i, value in enumerate(values)
        }

    @classmethod
    def of(cls, entitlements: Iterable[Entitlement | Sequence[Any]]) -> "MerkleTree":
        """
        Construct a Merkle tree from entitlements.

        Args:
            entitlements: Entitlement records or (identity, amount) pairs

        Returns:
            Constructed MerkleTree

        Raises:
            DistributionError: If the list is empty, an item is malformed,
                or an identity appears more than once
        """
        items = [_coerce_entitlement(item) for item in entitlements]
        if not items:
            raise DistributionError("Cannot create Merkle tree from empty entitlements")

        seen: set[str] = set()
        for item in items:
            if item.identity in seen:
                raise DistributionError(f"Duplicate entitlement for {item.identity}")
            seen.add(item.identity)

        hashed = sorted(
            ((item.leaf, position) for position, item in enumerate(items)),
            key=lambda pair: pair[0],
        )

        size = 2 * len(items) - 1
        tree: list[bytes] = [b""] * size
        tree_indices = [0] * len(items)
        for i, (leaf, position) in enumerate(hashed):
            tree[size - 1 - i] = leaf
            tree_indices[position] = size - 1 - i

        for k in range(size - 1 - len(items), -1, -1):
            tree[k] = hash_pair(tree[_left_child(k)], tree[_right_child(k)])

        values = [
            TreeValue(entitlement=item, tree_index=tree_indices[position])
            for position, item in enumerate(items)
        ]
        return cls(tree, values)

    @classmethod
    def load(cls, data: dict[str, Any]) -> "MerkleTree":
        """
        Restore a tree from its dump and check its integrity.

        Raises:
            DistributionError: If the dump is malformed or inconsistent
        """
        if data.get("format") != DUMP_FORMAT:
            raise DistributionError(f"Unknown tree dump format: {data.get('format')!r}")
        if tuple(data.get("leafEncoding", ())) != LEAF_ENCODING:
            raise DistributionError(f"Unsupported leaf encoding: {data.get('leafEncoding')!r}")

        try:
            tree = [parse_digest(node) for node in data["tree"]]
            values = [
                TreeValue(
                    entitlement=_coerce_entitlement(entry["value"]),
                    tree_index=int(entry["treeIndex"]),
                )
                for entry in data["values"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise DistributionError(f"Malformed tree dump: {e}") from e

        loaded = cls(tree, values)
        loaded.validate()
        return loaded

    def dump(self) -> dict[str, Any]:
        """Serialize the full tree for storage."""
        return {
            "format": DUMP_FORMAT,
            "leafEncoding": list(LEAF_ENCODING),
            "tree": [encode_hex(node) for node in self._tree],
            "values": [
                {
                    "value": [value.entitlement.identity, str(value.entitlement.amount)],
                    "treeIndex": value.tree_index,
                }
                for value in self._values
            ],
        }

    def validate(self) -> None:
        """
        Recompute every node and leaf.

        Raises:
            DistributionError: On the first inconsistency found
        """
        size = len(self._tree)
        if size == 0 or size != 2 * len(self._values) - 1:
            raise DistributionError("Tree size does not match number of values")
        if len(self._index_by_identity) != len(self._values):
            raise DistributionError("Duplicate identity in tree values")

        leaf_start = size - len(self._values)
        for k in range(leaf_start):
            expected = hash_pair(self._tree[_left_child(k)], self._tree[_right_child(k)])
            if self._tree[k] != expected:
                raise DistributionError(f"Inconsistent internal node at index {k}")

        for value in self._values:
            if not leaf_start <= value.tree_index < size:
                raise DistributionError(f"Tree index {value.tree_index} is not a leaf")
            if self._tree[value.tree_index] != value.entitlement.leaf:
                raise DistributionError(
                    f"Leaf mismatch for {value.entitlement.identity}"
                )

    @property
    def root(self) -> bytes:
        """Get the root digest."""
        return self._tree[0]

    @property
    def root_hash(self) -> str:
        """Get the root digest as 0x hex."""
        return encode_hex(self._tree[0])

    @property
    def leaf_count(self) -> int:
        return len(self._values)

    @property
    def depth(self) -> int:
        """Longest proof length, ceil(log2(leaf_count))."""
        return len(self._tree).bit_length() - 1

    def entries(self) -> list[Entitlement]:
        """Entitlements in their original input order."""
        return [value.entitlement for value in self._values]

    def _value_index(self, key: str | int) -> int:
        if isinstance(key, int) and not isinstance(key, bool):
            if key < 0 or key >= len(self._values):
                raise IndexError(f"Entitlement index {key} out of bounds")
            return key
        try:
            identity = normalize_identity(key)
        except ValueError as e:
            raise KeyError(key) from e
        if identity not in self._index_by_identity:
            raise KeyError(f"No entitlement for {identity}")
        return self._index_by_identity[identity]

    def get_leaf_hash(self, key: str | int) -> str:
        """
        Get the leaf hash of an entitlement.

        Args:
            key: Identity address or input position

        Raises:
            KeyError: If the identity is not in the tree
            IndexError: If the position is out of bounds
        """
        value = self._values[self._value_index(key)]
        return encode_hex(self._tree[value.tree_index])

    def get_proof(self, key: str | int) -> MerkleProof:
        """
        Generate the inclusion proof for an entitlement.

        Args:
            key: Identity address or input position

        Returns:
            MerkleProof for the entitlement

        Raises:
            KeyError: If the identity is not in the tree
            IndexError: If the position is out of bounds
        """
        value = self._values[self._value_index(key)]

        path = []
        index = value.tree_index
        while index > 0:
            path.append(encode_hex(self._tree[_sibling(index)]))
            index = _parent(index)

        return MerkleProof(
            identity=value.entitlement.identity,
            amount=value.entitlement.amount,
            leaf_hash=encode_hex(self._tree[value.tree_index]),
            proof=path,
            root_hash=self.root_hash,
        )

    def get_all_proofs(self) -> list[MerkleProof]:
        """Generate proofs for all entitlements, in input order."""
        return [self.get_proof(i) for i in range(len(self._values))]


def compute_root_from_proof(leaf: bytes, proof: Sequence[str | bytes]) -> bytes:
    """
    Fold a proof into the root it implies for a leaf.

    Raises:
        ValueError: If a proof element is not a 32-byte digest
    """
    current = leaf
    for sibling in proof:
        current = hash_pair(current, parse_digest(sibling))
    return current


def verify_proof_against_root(
    leaf: str | bytes,
    proof: Sequence[str | bytes],
    expected_root: str | bytes,
) -> bool:
    """
    Verify a proof for an already-hashed leaf.

    Returns:
        True if the proof reconstructs expected_root; False for any
        malformed digest
    """
    try:
        computed = compute_root_from_proof(parse_digest(leaf), proof)
        return computed == parse_digest(expected_root)
    except ValueError:
        return False


def verify_proof(
    root: str | bytes,
    identity: str | bytes,
    amount: int,
    proof: Sequence[str | bytes],
    max_length: int | None = None,
) -> bool:
    """
    Verify that (identity, amount) is committed under root.

    Pure function: recomputes the leaf, folds the proof over it and
    compares with root. Proofs longer than max_length are rejected before
    any hashing.

    Returns:
        True if the entitlement is proven; False otherwise, including for
        malformed identities, amounts, digests and over-long proofs
    """
    if max_length is not None and len(proof) > max_length:
        return False
    try:
        leaf = leaf_hash(identity, amount)
    except ValueError:
        return False
    return verify_proof_against_root(leaf, proof, root)
