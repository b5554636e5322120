"""
Account state for the staking pool.

Conceptual Background:
---------------------
Each staker has one AccountRecord:

1. **amount**: principal currently staked (0 = not staked)
2. **accrued_reward**: reward settled but not yet paid
3. **deposit_time**: time of the latest deposit, anchors the lock window
4. **last_reward_time**: accrual anchor, moved by every settlement

Records are created lazily on first write and never removed. A record whose
amount drops to zero reverts to the zero value, so an absent record and a
zeroed one answer every query the same way.

Staging:
-------
Mutations never edit a live record. The pool works on a copy, performs the
external token movement, and only then swaps the copy in. A failed transfer
therefore leaves nothing half-applied.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional, Tuple

from tipstake.core.reward_math import accrue, checked_add


@dataclass(frozen=True)
class AccountRecord:
    """Per-account staking record. Immutable; use replace() to stage changes."""

    amount: int = 0
    accrued_reward: int = 0
    deposit_time: int = 0
    last_reward_time: int = 0

    @property
    def is_staked(self) -> bool:
        return self.amount > 0

    def unlock_time(self, min_lock_period: int) -> int:
        """End of the lock window, 0 when nothing is staked."""
        if not self.is_staked:
            return 0
        return self.deposit_time + min_lock_period

    def unsettled_reward(self, now: int, reward_rate: int, seconds_per_year: int) -> int:
        """Reward earned since last_reward_time that is not yet in accrued_reward."""
        if not self.is_staked:
            return 0
        return accrue(
            self.amount,
            max(0, now - self.last_reward_time),
            reward_rate,
            seconds_per_year,
        )

    def settled(self, now: int, reward_rate: int, seconds_per_year: int) -> "AccountRecord":
        """
        Fold pending accrual into accrued_reward and move the accrual anchor.

        Idempotent at a fixed timestamp: a second call adds nothing.
        """
        reward = self.unsettled_reward(now, reward_rate, seconds_per_year)
        return replace(
            self,
            accrued_reward=checked_add(self.accrued_reward, reward),
            last_reward_time=now if self.is_staked else self.last_reward_time,
        )

    def to_dict(self) -> dict:
        return {
            "amount": str(self.amount),
            "accrued_reward": str(self.accrued_reward),
            "deposit_time": self.deposit_time,
            "last_reward_time": self.last_reward_time,
        }


EMPTY_RECORD = AccountRecord()


@dataclass
class ProtocolState:
    """
    Pool-wide mutable state.

    Attributes:
        owner: Privileged identity, fixed at construction
        token: External token identifier
        total_staked: Sum of all AccountRecord.amount values
        paused: Administrative pause flag
    """

    owner: bytes
    token: bytes
    total_staked: int = 0
    paused: bool = False


class AccountBook:
    """
    Sparse mapping of address to AccountRecord.

    Reads of unknown addresses return the zero record without inserting it.
    """

    def __init__(self):
        self._records: Dict[bytes, AccountRecord] = {}

    def get(self, address: bytes) -> AccountRecord:
        return self._records.get(address, EMPTY_RECORD)

    def put(self, address: bytes, record: AccountRecord) -> None:
        self._records[address] = record

    def find(self, address: bytes) -> Optional[AccountRecord]:
        """Stored record or None (distinguishes never-seen addresses)."""
        return self._records.get(address)

    def total_amount(self) -> int:
        return sum(record.amount for record in self._records.values())

    def staker_count(self) -> int:
        return sum(1 for record in self._records.values() if record.is_staked)

    def items(self) -> Iterator[Tuple[bytes, AccountRecord]]:
        return iter(list(self._records.items()))

    def __contains__(self, address: bytes) -> bool:
        return address in self._records

    def __len__(self) -> int:
        return len(self._records)
