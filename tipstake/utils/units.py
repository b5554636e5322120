"""
Token unit conversion and display helpers.

Amounts live on the ledger as integers in base units (18 decimals by
default). These helpers convert to and from the human decimal form used on the
command line and in logs.
"""

import re

DEFAULT_DECIMALS = 18
DISPLAY_FRACTION_DIGITS = 6

# Plain positional notation only: no exponent, separators or signs besides "-"
AMOUNT_PATTERN = re.compile(r"^(?P<sign>-?)(?P<whole>\d*)(?:\.(?P<fraction>\d*))?$")


def parse_amount(amount: str, decimals: int = DEFAULT_DECIMALS) -> int:
    """
    Parse a decimal token string into base units.

    Accepts "1000", "1.5", ".25" and "2."; fraction digits beyond
    `decimals` are truncated.

    Raises:
        ValueError: If the string is not a non-negative decimal number.
    """
    match = AMOUNT_PATTERN.match(amount.strip())
    if not match or not (match["whole"] or match["fraction"]):
        raise ValueError(f"Not a decimal amount: {amount!r}")
    if match["sign"]:
        raise ValueError(f"Amount must be a non-negative number, got {amount!r}")

    fraction = (match["fraction"] or "").ljust(decimals, "0")[:decimals]
    return int(match["whole"] or "0") * 10**decimals + int(fraction or "0")


def format_amount(amount: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Format base units for display.

    Keeps at most six fractional digits and trims trailing zeros:
    1_500_000_000_000_000_000 -> "1.5".
    """
    before, after = divmod(amount, 10**decimals)
    fraction = str(after).rjust(decimals, "0")[:DISPLAY_FRACTION_DIGITS].rstrip("0")
    if not fraction:
        return str(before)
    return f"{before}.{fraction}"


def format_address(address: str) -> str:
    """Shorten a hex address: 0x1234...abcd"""
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"


def format_time_remaining(seconds: int) -> str:
    """Human readable lock countdown."""
    if seconds <= 0:
        return "Unlocked"

    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
