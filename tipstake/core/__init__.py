"""Staking engine: reward math, account ledger, admin, views, token boundary"""
from tipstake.core.config import StakingConfig, load_config
from tipstake.core.clock import ManualClock, SystemClock
from tipstake.core.errors import (
    ArithmeticOverflowError,
    EnforcedPauseError,
    ExpectedPauseError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InsufficientStakeError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidOwnerError,
    InvalidReceiverError,
    NoBalanceError,
    NoStakeError,
    StakingError,
    TipStakeError,
    TokenError,
    UnauthorizedAccountError,
)
from tipstake.core.events import (
    EmergencyWithdraw,
    Event,
    EventLog,
    Paused,
    RewardsClaimed,
    Staked,
    Unpaused,
    Unstaked,
)
from tipstake.core.staking import StakingPool, UnstakeReceipt
from tipstake.core.token import FungibleToken, InMemoryToken
from tipstake.core.views import PoolStats, UserInfo

__all__ = [
    "StakingConfig",
    "load_config",
    "ManualClock",
    "SystemClock",
    "ArithmeticOverflowError",
    "EnforcedPauseError",
    "ExpectedPauseError",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "InsufficientStakeError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidOwnerError",
    "InvalidReceiverError",
    "NoBalanceError",
    "NoStakeError",
    "StakingError",
    "TipStakeError",
    "TokenError",
    "UnauthorizedAccountError",
    "EmergencyWithdraw",
    "Event",
    "EventLog",
    "Paused",
    "RewardsClaimed",
    "Staked",
    "Unpaused",
    "Unstaked",
    "StakingPool",
    "UnstakeReceipt",
    "FungibleToken",
    "InMemoryToken",
    "PoolStats",
    "UserInfo",
]
