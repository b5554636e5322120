"""
Input Validation - Security-focused input sanitization.

Provides validation for all external inputs to prevent:
- Malformed account identifiers
- Integer overflows (amounts outside uint256)
- Clock values that cannot be real timestamps
"""

from typing import Any, Tuple

from tipstake.crypto import ADDRESS_SIZE

# =============================================================================
# Constants
# =============================================================================

# Field bounds
MIN_AMOUNT = 0
MAX_AMOUNT = 2**256 - 1
MIN_TIMESTAMP = 0
MAX_TIMESTAMP = 2**64 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: int,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    return True, ""


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate an account address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; True is not an amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a token amount (uint256)."""
    return validate_integer(amount, name)


def validate_timestamp(timestamp: Any, name: str = "timestamp") -> Tuple[bool, str]:
    """Validate a unix timestamp in seconds."""
    return validate_integer(timestamp, name, MIN_TIMESTAMP, MAX_TIMESTAMP)


def require(result: Tuple[bool, str]) -> None:
    """
    Raise ValueError for a failed validation result.

    Usage:
        require(validate_address(account, "account"))
    """
    is_valid, error = result
    if not is_valid:
        raise ValueError(error)
