"""
Merkle Airdrop Claim Service - Leaf Codec

Canonical encoding of an entitlement ``(identity, amount)`` and the leaf hash
derived from it. The builder, the verifier and the claim registry all go
through this module, so a proof generated off-line always recomputes to the
same leaf on-line.

Encoding (64 bytes, Solidity ``abi.encode(address, uint256)`` layout):
- 12 zero bytes followed by the 20-byte address
- the amount as a 32-byte big-endian unsigned integer

Leaf hash is ``keccak256(keccak256(encoding))``. The second round keeps a
64-byte internal node preimage from ever being accepted as a leaf.
"""

from dataclasses import dataclass
from typing import Any

from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

ADDRESS_SIZE = 20
WORD_SIZE = 32
ENCODED_SIZE = 2 * WORD_SIZE
MAX_AMOUNT = 2**256 - 1

LEAF_ENCODING = ("address", "uint256")


def normalize_identity(identity: str | bytes) -> str:
    """
    Validate an identity and return its EIP-55 checksum form.

    Args:
        identity: 0x-prefixed hex address or 20 raw bytes; mixed-case
            input must carry a valid EIP-55 checksum

    Returns:
        Checksummed address string

    Raises:
        ValueError: If the value is not a 20-byte address
    """
    if isinstance(identity, (bytes, bytearray)):
        if len(identity) != ADDRESS_SIZE:
            raise ValueError(f"Identity must be {ADDRESS_SIZE} bytes, got {len(identity)}")
        return to_checksum_address(bytes(identity))

    if not isinstance(identity, str) or not is_address(identity.strip()):
        raise ValueError(f"Invalid identity address: {identity!r}")
    return to_checksum_address(identity.strip())


def validate_amount(amount: Any) -> int:
    """Check that amount fits an unsigned 256-bit integer."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or amount > MAX_AMOUNT:
        raise ValueError(f"Amount {amount} outside uint256 range")
    return amount


def encode_entitlement(identity: str | bytes, amount: int) -> bytes:
    """
    Serialize an entitlement into its fixed 64-byte form.

    Raises:
        ValueError: If identity or amount is invalid
    """
    address = to_canonical_address(normalize_identity(identity))
    value = validate_amount(amount)
    return b"\x00" * (WORD_SIZE - ADDRESS_SIZE) + address + value.to_bytes(WORD_SIZE, "big")


def leaf_hash(identity: str | bytes, amount: int) -> bytes:
    """Double keccak256 of the entitlement encoding."""
    return keccak(keccak(encode_entitlement(identity, amount)))


@dataclass(frozen=True)
class Entitlement:
    """
    A recipient's right to redeem a fixed amount once.

    The identity is stored in checksum form so that two spellings of the
    same address compare equal.
    """

    identity: str
    amount: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "identity", normalize_identity(self.identity))
        validate_amount(self.amount)

    @property
    def encoded(self) -> bytes:
        return encode_entitlement(self.identity, self.amount)

    @property
    def leaf(self) -> bytes:
        return leaf_hash(self.identity, self.amount)

    def to_dict(self) -> dict[str, str]:
        # uint256 does not survive JSON numbers, amounts travel as strings
        return {"identity": self.identity, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entitlement":
        return cls(identity=data["identity"], amount=parse_amount(data["amount"]))


def parse_amount(value: Any) -> int:
    """Accept an int or a decimal string and return a validated amount."""
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise ValueError(f"Amount must be a non-negative integer, got {value!r}")
        return validate_amount(int(text))
    return validate_amount(value)
