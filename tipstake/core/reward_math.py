"""
Reward Math - Fixed-point accrual and penalty arithmetic.

Conceptual Background:
---------------------
Rewards accrue linearly on staked principal:

    reward = amount * rate * elapsed / (100 * SECONDS_PER_YEAR)

where `rate` is a whole percentage per 365-day year. Everything is integer
arithmetic on base units, truncated toward zero, so a reward can never be
paid that was not fully earned.

Overflow:
--------
Balances are uint256 on the external token ledger. Python integers do not
wrap, so each intermediate result is checked against MAX_UINT256 instead;
an overflow aborts the operation rather than producing a value the token
ledger could not represent.
"""

from tipstake.core.errors import ArithmeticOverflowError

# =============================================================================
# Constants
# =============================================================================

MAX_UINT256 = 2**256 - 1

SECONDS_PER_DAY = 86400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY  # no leap-year adjustment

PERCENT = 100


# =============================================================================
# Checked arithmetic
# =============================================================================


def _check(value: int) -> int:
    if value > MAX_UINT256:
        raise ArithmeticOverflowError()
    return value


def checked_add(a: int, b: int) -> int:
    """a + b, raising ArithmeticOverflowError above uint256."""
    return _check(a + b)


def checked_sub(a: int, b: int) -> int:
    """a - b, raising ArithmeticOverflowError on underflow."""
    if b > a:
        raise ArithmeticOverflowError("Arithmetic underflow")
    return a - b


def checked_mul(a: int, b: int) -> int:
    """a * b, raising ArithmeticOverflowError above uint256."""
    return _check(a * b)


# =============================================================================
# Reward / penalty
# =============================================================================


def accrue(
    amount: int,
    elapsed_seconds: int,
    reward_rate: int,
    seconds_per_year: int = SECONDS_PER_YEAR,
) -> int:
    """
    Reward earned by `amount` over `elapsed_seconds`.

    Args:
        amount: Staked principal in base units
        elapsed_seconds: Time since the last settlement
        reward_rate: Annual rate in whole percent
        seconds_per_year: Year length used for the rate

    Returns:
        Reward in base units, truncated toward zero

    Raises:
        ValueError: If elapsed_seconds is negative
        ArithmeticOverflowError: If an intermediate exceeds uint256
    """
    if elapsed_seconds < 0:
        raise ValueError(f"elapsed_seconds must be >= 0, got {elapsed_seconds}")
    if amount == 0 or elapsed_seconds == 0 or reward_rate == 0:
        return 0

    numerator = checked_mul(checked_mul(amount, reward_rate), elapsed_seconds)
    return numerator // (PERCENT * seconds_per_year)


def penalty(amount: int, penalty_rate: int) -> int:
    """
    Early-withdrawal penalty on the principal being withdrawn.

    Returns:
        amount * penalty_rate / 100, truncated toward zero
    """
    return checked_mul(amount, penalty_rate) // PERCENT
