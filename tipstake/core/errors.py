"""
Error types for the staking engine and the token ledger it sits on.

Every rejection is synchronous and carries a `reason` string naming the
failed precondition. A raised error means nothing was committed.
"""

from tipstake.crypto import bytes_to_hex


class TipStakeError(Exception):
    """Base class for all tipstake rejections."""

    reason: str = "Rejected"

    def __init__(self, reason: str = ""):
        self.reason = reason or self.reason
        super().__init__(self.reason)


# =============================================================================
# Staking engine
# =============================================================================


class StakingError(TipStakeError):
    """Base class for staking engine rejections."""


class InvalidAmountError(StakingError):
    """Zero amount passed to stake/unstake."""


class InsufficientStakeError(StakingError):
    reason = "Insufficient staked amount"


class NoStakeError(StakingError):
    reason = "No stake found"


class EnforcedPauseError(StakingError):
    """Operation requires the pool to be running."""

    reason = "EnforcedPause"


class ExpectedPauseError(StakingError):
    """Operation requires the pool to be paused."""

    reason = "ExpectedPause"


class UnauthorizedAccountError(StakingError):
    """Non-owner called an owner-only operation."""

    def __init__(self, account: bytes):
        self.account = account
        super().__init__(f"OwnableUnauthorizedAccount({bytes_to_hex(account)})")


class InvalidOwnerError(StakingError):
    reason = "Invalid owner address"


class InvalidAddressError(StakingError):
    reason = "Invalid address"


class NoBalanceError(StakingError):
    reason = "No balance to withdraw"


class ArithmeticOverflowError(StakingError):
    reason = "Arithmetic overflow"


# =============================================================================
# Token ledger
# =============================================================================


class TokenError(TipStakeError):
    """Base class for external token ledger failures."""


class InsufficientBalanceError(TokenError):
    def __init__(self, account: bytes, balance: int, needed: int):
        self.account = account
        self.balance = balance
        self.needed = needed
        super().__init__(
            f"ERC20InsufficientBalance({bytes_to_hex(account)}, {balance}, {needed})"
        )


class InsufficientAllowanceError(TokenError):
    def __init__(self, spender: bytes, allowance: int, needed: int):
        self.spender = spender
        self.allowance = allowance
        self.needed = needed
        super().__init__(
            f"ERC20InsufficientAllowance({bytes_to_hex(spender)}, {allowance}, {needed})"
        )


class InvalidReceiverError(TokenError):
    def __init__(self, receiver: bytes):
        self.receiver = receiver
        super().__init__(f"ERC20InvalidReceiver({bytes_to_hex(receiver)})")
