"""
Unit tests for the entitlement leaf codec.
"""

import pytest
from eth_utils import keccak, to_checksum_address

from merkle_airdrop.crypto.leaf import (
    ENCODED_SIZE,
    MAX_AMOUNT,
    Entitlement,
    encode_entitlement,
    leaf_hash,
    normalize_identity,
    parse_amount,
)

ADDRESS = "0x1111111111111111111111111111111111111111"
LETTERED = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"


def _swap_letter_case(address: str) -> str:
    return "0x" + address[2:].swapcase()


class TestNormalizeIdentity:
    """Tests for identity validation."""

    def test_lowercase_and_checksum_agree(self) -> None:
        """Test that two spellings of one address normalize the same."""
        checksummed = to_checksum_address(LETTERED)
        assert normalize_identity(LETTERED) == checksummed
        assert normalize_identity(checksummed) == checksummed

    def test_raw_bytes(self) -> None:
        """Test 20 raw bytes are accepted."""
        assert normalize_identity(b"\x11" * 20) == ADDRESS

    def test_bad_checksum_rejected(self) -> None:
        """Test mixed case with a wrong checksum is rejected."""
        broken = _swap_letter_case(to_checksum_address(LETTERED))
        with pytest.raises(ValueError):
            normalize_identity(broken)

    @pytest.mark.parametrize(
        "value",
        ["", "0x1234", "1111111111111111111111111111111111111111zz", None, 42, b"\x11" * 19],
    )
    def test_invalid_rejected(self, value) -> None:
        """Test non-addresses are rejected."""
        with pytest.raises(ValueError):
            normalize_identity(value)


class TestEncoding:
    """Tests for the fixed-width encoding."""

    def test_layout(self) -> None:
        """Test 12 zero bytes, address, then 32-byte big-endian amount."""
        encoded = encode_entitlement(ADDRESS, 100)

        assert len(encoded) == ENCODED_SIZE
        assert encoded[:12] == b"\x00" * 12
        assert encoded[12:32] == bytes.fromhex("11" * 20)
        assert encoded[32:] == (100).to_bytes(32, "big")

    def test_max_amount(self) -> None:
        """Test the largest uint256 encodes as all ones."""
        encoded = encode_entitlement(ADDRESS, MAX_AMOUNT)
        assert encoded[32:] == b"\xff" * 32

    def test_distinct_entitlements_distinct_bytes(self) -> None:
        """Test that identity and amount both affect the encoding."""
        base = encode_entitlement(ADDRESS, 1)
        assert base != encode_entitlement(ADDRESS, 2)
        assert base != encode_entitlement(LETTERED, 1)

    @pytest.mark.parametrize("amount", [-1, MAX_AMOUNT + 1, True, 1.5, "100"])
    def test_invalid_amount(self, amount) -> None:
        """Test amounts outside uint256 or of the wrong type."""
        with pytest.raises(ValueError):
            encode_entitlement(ADDRESS, amount)


class TestLeafHash:
    """Tests for the double-hashed leaf."""

    def test_double_keccak(self) -> None:
        """Test leaf is keccak of keccak of the encoding."""
        encoded = encode_entitlement(ADDRESS, 100)
        assert leaf_hash(ADDRESS, 100) == keccak(keccak(encoded))

    def test_not_single_hash(self) -> None:
        """Test the leaf differs from a single-round hash."""
        encoded = encode_entitlement(ADDRESS, 100)
        assert leaf_hash(ADDRESS, 100) != keccak(encoded)

    def test_deterministic(self) -> None:
        assert leaf_hash(ADDRESS, 100) == leaf_hash(ADDRESS, 100)

    def test_case_insensitive_identity(self) -> None:
        """Test that spelling of the identity does not change the leaf."""
        assert leaf_hash(LETTERED, 5) == leaf_hash(to_checksum_address(LETTERED), 5)


class TestEntitlement:
    """Tests for the Entitlement record."""

    def test_identity_normalized(self) -> None:
        entitlement = Entitlement(identity=LETTERED, amount=7)
        assert entitlement.identity == to_checksum_address(LETTERED)
        assert entitlement == Entitlement(identity=to_checksum_address(LETTERED), amount=7)

    def test_leaf_matches_function(self) -> None:
        entitlement = Entitlement(identity=ADDRESS, amount=100)
        assert entitlement.leaf == leaf_hash(ADDRESS, 100)
        assert entitlement.encoded == encode_entitlement(ADDRESS, 100)

    def test_dict_roundtrip(self) -> None:
        """Test amounts serialize as strings and come back as ints."""
        entitlement = Entitlement(identity=ADDRESS, amount=MAX_AMOUNT)
        data = entitlement.to_dict()

        assert data["amount"] == str(MAX_AMOUNT)
        assert Entitlement.from_dict(data) == entitlement

    def test_invalid_rejected(self) -> None:
        with pytest.raises(ValueError):
            Entitlement(identity=ADDRESS, amount=-5)
        with pytest.raises(ValueError):
            Entitlement(identity="0xnope", amount=5)


class TestParseAmount:
    """Tests for amount parsing."""

    def test_string_and_int(self) -> None:
        assert parse_amount("1000000000000000000000") == 10**21
        assert parse_amount(" 42 ") == 42
        assert parse_amount(42) == 42

    @pytest.mark.parametrize("value", ["-1", "1e18", "0x10", "", "abc"])
    def test_rejects_non_decimal(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_amount(value)
