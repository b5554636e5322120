"""
Views - Read-only queries over the staking pool state.

Every function here is a pure snapshot of (book, state, config, now). None of
them settle rewards or write anything, and none of them raise for an unknown
or zero address: such accounts simply answer zero / False.
"""

from typing import NamedTuple

from tipstake.core.config import StakingConfig
from tipstake.core.reward_math import checked_add, penalty
from tipstake.core.state import AccountBook, ProtocolState


class UserInfo(NamedTuple):
    """Per-account snapshot: principal, pending reward, deposit and unlock times."""
    amount: int
    rewards: int
    deposit_time: int
    unlock_time: int


class PoolStats(NamedTuple):
    """Pool-wide snapshot: total value locked, APR percent, lock seconds."""
    tvl: int
    apr: int
    min_lock: int


def pending(book: AccountBook, config: StakingConfig, account: bytes, now: int) -> int:
    """Stored reward plus what would be settled right now."""
    record = book.get(account)
    unsettled = record.unsettled_reward(now, config.reward_rate, config.seconds_per_year)
    return checked_add(record.accrued_reward, unsettled)


def can_unstake_without_penalty(
    book: AccountBook, config: StakingConfig, account: bytes, now: int
) -> bool:
    record = book.get(account)
    return record.is_staked and now >= record.unlock_time(config.min_lock_period)


def can_claim_rewards(book: AccountBook, account: bytes) -> bool:
    """A stake must exist; a zero pending amount does not block claiming."""
    return book.get(account).is_staked


def calculate_penalty(
    book: AccountBook, config: StakingConfig, account: bytes, amount: int, now: int
) -> int:
    """
    Penalty that unstaking `amount` right now would incur.

    Zero when the account is unlocked or holds no stake.
    """
    record = book.get(account)
    if not record.is_staked or now >= record.unlock_time(config.min_lock_period):
        return 0
    return penalty(amount, config.penalty_rate)


def get_user_info(
    book: AccountBook, config: StakingConfig, account: bytes, now: int
) -> UserInfo:
    record = book.get(account)
    return UserInfo(
        amount=record.amount,
        rewards=pending(book, config, account, now),
        deposit_time=record.deposit_time,
        unlock_time=record.unlock_time(config.min_lock_period),
    )


def get_stats(state: ProtocolState, config: StakingConfig) -> PoolStats:
    return PoolStats(
        tvl=state.total_staked,
        apr=config.reward_rate,
        min_lock=config.min_lock_period,
    )
