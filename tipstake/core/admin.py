"""
Admin - Owner gate and pause switch for the staking pool.

A single owner is fixed at construction. Owner-only calls from anyone else
are rejected with the same UnauthorizedAccountError whatever was attempted,
and the owner check runs before any other precondition.

While paused, stake / unstake / claim are rejected; queries keep working.
"""

from tipstake.core.errors import (
    EnforcedPauseError,
    ExpectedPauseError,
    InvalidOwnerError,
    UnauthorizedAccountError,
)
from tipstake.core.state import ProtocolState
from tipstake.crypto import bytes_to_hex, is_zero_address
from tipstake.utils.logger import get_logger
from tipstake.utils.validation import require, validate_address

logger = get_logger("admin")


class AdminControl:
    """
    Ownership and pausability over a ProtocolState.

    Read-only gate: the pool flips `paused` once a pause has been persisted.
    The owner never changes after construction.
    """

    def __init__(self, state: ProtocolState):
        require(validate_address(state.owner, "owner"))
        if is_zero_address(state.owner):
            raise InvalidOwnerError()
        self.state = state

    @property
    def owner(self) -> bytes:
        return self.state.owner

    @property
    def paused(self) -> bool:
        return self.state.paused

    def only_owner(self, caller: bytes) -> None:
        """Raise UnauthorizedAccountError unless caller is the owner."""
        if caller != self.state.owner:
            logger.warning(f"Rejected owner-only call from {bytes_to_hex(caller)}")
            raise UnauthorizedAccountError(caller)

    def when_not_paused(self) -> None:
        if self.state.paused:
            raise EnforcedPauseError()

    def when_paused(self) -> None:
        if not self.state.paused:
            raise ExpectedPauseError()

    def check_pause(self, caller: bytes) -> None:
        """Preconditions of pause(): owner first, then a running pool."""
        self.only_owner(caller)
        self.when_not_paused()

    def check_unpause(self, caller: bytes) -> None:
        self.only_owner(caller)
        self.when_paused()
