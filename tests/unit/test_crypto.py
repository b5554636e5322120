"""
Unit tests for address helpers and input validation.
"""

import pytest

from tipstake.crypto import (
    ZERO_ADDRESS,
    address_from_label,
    bytes_to_hex,
    hex_to_address,
    is_zero_address,
    keccak256,
    to_checksum_address,
)
from tipstake.utils.validation import (
    MAX_AMOUNT,
    require,
    validate_address,
    validate_amount,
    validate_timestamp,
)

# EIP-55 reference vectors
CHECKSUMMED = [
    "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
    "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359",
    "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB",
    "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb",
]


class TestHashing:
    def test_keccak256_empty(self):
        assert keccak256(b"").hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


class TestAddresses:
    """Tests for address parsing and encoding."""

    @pytest.mark.parametrize("checksummed", CHECKSUMMED)
    def test_checksum_vectors(self, checksummed):
        address = hex_to_address(checksummed.lower())
        assert to_checksum_address(address) == checksummed

    def test_mixed_case_with_bad_checksum_rejected(self):
        bad = CHECKSUMMED[0][:2] + CHECKSUMMED[0][2:].swapcase()
        with pytest.raises(ValueError, match="checksum"):
            hex_to_address(bad)

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            hex_to_address("0x1234")

    def test_non_hex_rejected(self):
        with pytest.raises(ValueError):
            hex_to_address("0x" + "zz" * 20)

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address(hex_to_address("0x" + "00" * 20))
        assert not is_zero_address(address_from_label("alice"))

    def test_label_addresses_deterministic(self):
        assert address_from_label("alice") == address_from_label("alice")
        assert address_from_label("alice") != address_from_label("bob")
        assert len(address_from_label("alice")) == 20

    def test_bytes_to_hex(self):
        assert bytes_to_hex(b"\x01\xff") == "0x01ff"


class TestValidation:
    """Tests for input validation helpers."""

    def test_address_must_be_20_bytes(self):
        assert validate_address(bytes(20))[0]
        assert not validate_address(bytes(19))[0]
        assert not validate_address("0x" + "00" * 20)[0]

    def test_amount_bounds(self):
        assert validate_amount(0)[0]
        assert validate_amount(MAX_AMOUNT)[0]
        assert not validate_amount(-1)[0]
        assert not validate_amount(MAX_AMOUNT + 1)[0]
        assert not validate_amount(1.5)[0]
        assert not validate_amount(True)[0]

    def test_timestamp(self):
        assert validate_timestamp(1_700_000_000)[0]
        assert not validate_timestamp(-5)[0]

    def test_require_raises_with_message(self):
        with pytest.raises(ValueError, match="amount must be >= 0"):
            require(validate_amount(-1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
