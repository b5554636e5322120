"""
Address and hashing primitives for tipstake.

This module provides:
- Keccak-256 hashing (EVM compatible)
- 20-byte account addresses and the zero address
- EIP-55 checksummed hex encoding
- Deterministic addresses derived from labels (tests, demo)

Design Notes:
-------------
Accounts are identified by raw 20-byte addresses, the same shape the external
token ledger uses. Hex strings only appear at the edges (CLI, logs, storage).
"""

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

ADDRESS_SIZE = 20

ZERO_ADDRESS = bytes(ADDRESS_SIZE)


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation, checksum encoding.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Addresses
# =============================================================================


def is_zero_address(address: bytes) -> bool:
    """Check whether an address is the null identity."""
    return address == ZERO_ADDRESS


def address_from_label(label: str) -> bytes:
    """
    Derive a deterministic address from a human label.

    Address = last 20 bytes of keccak256(label). Handy for fixtures and the
    demo, where real keys are irrelevant.
    """
    return keccak256(label.encode("utf-8"))[-ADDRESS_SIZE:]


def bytes_to_hex(data: bytes) -> str:
    """Encode bytes as 0x-prefixed lowercase hex."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Decode hex with or without 0x prefix."""
    if hex_str.startswith(("0x", "0X")):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def hex_to_address(hex_str: str) -> bytes:
    """
    Parse a hex address.

    Accepts lowercase, uppercase or checksummed input. Mixed-case input must
    carry a valid EIP-55 checksum.

    Raises:
        ValueError: If the string is not a 20-byte hex address or the
            checksum does not match.
    """
    body = hex_str[2:] if hex_str.startswith(("0x", "0X")) else hex_str
    if len(body) != ADDRESS_SIZE * 2:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {hex_str!r}")
    try:
        address = bytes.fromhex(body)
    except ValueError:
        raise ValueError(f"Address is not valid hex: {hex_str!r}") from None

    if body != body.lower() and body != body.upper():
        if to_checksum_address(address) != "0x" + body:
            raise ValueError(f"Invalid address checksum: {hex_str!r}")
    return address


def to_checksum_address(address: bytes) -> str:
    """
    Encode an address with the EIP-55 mixed-case checksum.

    Each hex letter is uppercased when the matching nibble of
    keccak256(lowercase hex) is >= 8.
    """
    if len(address) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(address)}")

    lower = address.hex()
    digest = keccak256(lower.encode("ascii")).hex()

    chars = []
    for ch, nibble in zip(lower, digest):
        if ch.isalpha() and int(nibble, 16) >= 8:
            chars.append(ch.upper())
        else:
            chars.append(ch)
    return "0x" + "".join(chars)
