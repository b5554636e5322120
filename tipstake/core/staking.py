"""
Staking Pool - Time-weighted reward ledger for a fungible token.

Conceptual Background:
---------------------
The pool keeps, per account, the staked principal, the reward accrued on it
and the lock window opened by the latest deposit. Value itself lives on an
external token ledger; the pool only moves it through that ledger.

Operation Processing:
--------------------
1. Check preconditions (pause flag, amounts, stake existence)
2. Settle pending reward on a staged copy of the account record
3. Apply the operation to the staged copy and to the staged totals
4. Move tokens and persist the staged rows in one atomic unit
5. Swap staged record and totals into memory, emit events

Step 4's token calls and storage writes share one SQLite transaction, and a
local token rolls its balances back if that unit raises. Any exception
before step 5 therefore leaves the pool, the token and the database exactly
as they were. Mutations are serialized by a re-entrant lock; queries read
without it.

Rates:
-----
- Reward: REWARD_RATE percent of principal per 365-day year, linear
- Penalty: PENALTY_RATE percent of the principal withdrawn before unlock
- Lock: MIN_LOCK_PERIOD seconds after every deposit
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional

from tipstake.core import views
from tipstake.core.admin import AdminControl
from tipstake.core.clock import SystemClock
from tipstake.core.config import StakingConfig
from tipstake.core.errors import (
    InsufficientStakeError,
    InvalidAddressError,
    InvalidAmountError,
    NoBalanceError,
    NoStakeError,
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
from tipstake.core.reward_math import checked_add, checked_sub, penalty
from tipstake.core.state import (
    EMPTY_RECORD,
    AccountBook,
    AccountRecord,
    ProtocolState,
)
from tipstake.core.storage import StorageManager
from tipstake.core.token import FungibleToken
from tipstake.crypto import address_from_label, bytes_to_hex, is_zero_address
from tipstake.utils.logger import get_logger
from tipstake.utils.validation import (
    require,
    validate_address,
    validate_amount,
    validate_timestamp,
)

logger = get_logger("staking")


@dataclass(frozen=True)
class UnstakeReceipt:
    """Breakdown of an unstake payout."""
    amount: int   # principal withdrawn
    rewards: int  # accrued reward paid alongside
    penalty: int  # kept by the pool
    payout: int   # amount - penalty + rewards


class StakingPool:
    """
    Staking engine over an external fungible token.

    Attributes:
        token: External token ledger
        address: The pool's own identity on the token ledger
        config: Immutable rate constants
        state: Pool-wide state (owner, totals, pause flag)
        accounts: Per-account records
        events: Append-only event log
    """

    def __init__(
        self,
        token: FungibleToken,
        owner: bytes,
        config: Optional[StakingConfig] = None,
        clock=None,
        address: Optional[bytes] = None,
        storage_manager: Optional[StorageManager] = None,
        event_log: Optional[EventLog] = None,
    ):
        """
        Initialize the pool.

        Args:
            token: External token ledger; its address must not be zero
            owner: Administrative identity
            config: Rate constants. None = defaults, or the stored constants
                when storage already holds this pool.
            clock: Object with now() -> int. None = wall clock.
            address: Pool identity on the token ledger. None = derived.
            storage_manager: Persistence manager. None = in-memory only.
            event_log: Log to write events to. None = fresh log.

        Raises:
            InvalidAddressError: token address is zero ("Invalid token address")
            InvalidOwnerError: owner is the zero address
            ValueError: storage holds a different pool (owner, token or
                constants do not match)
        """
        require(validate_address(token.address, "token"))
        if is_zero_address(token.address):
            raise InvalidAddressError("Invalid token address")

        self.token = token
        self.config = config or StakingConfig()
        self.clock = clock or SystemClock()
        self.address = address or address_from_label(f"pool:{token.address.hex()}")

        self.state = ProtocolState(owner=owner, token=token.address)
        self.admin = AdminControl(self.state)
        self.accounts = AccountBook()
        self.events = event_log or EventLog()

        self._lock = threading.RLock()

        # Persistence
        self.storage_manager = storage_manager
        if storage_manager:
            if storage_manager.has_pool():
                self._load_from_storage(explicit_config=config is not None)
            else:
                storage_manager.save_pool_meta(owner, token.address, self.address, self.config.to_dict())

        logger.info(
            f"Pool {bytes_to_hex(self.address)[:10]}... ready: token={bytes_to_hex(token.address)[:10]}..., "
            f"rate={self.config.reward_rate}%, lock={self.config.min_lock_period}s"
        )

    @classmethod
    def from_storage(
        cls,
        storage_manager: StorageManager,
        token: FungibleToken,
        clock=None,
    ) -> "StakingPool":
        """
        Reopen a pool saved in storage with the owner and constants it was created with.

        Raises:
            LookupError: If the storage holds no pool
        """
        meta = storage_manager.load_pool_meta()
        if meta is None:
            raise LookupError(f"No staking pool in {storage_manager.db_path}")
        return cls(
            token=token,
            owner=meta["owner"],
            clock=clock,
            address=meta["pool_address"],
            storage_manager=storage_manager,
        )

    # =========================================================================
    # Constants
    # =========================================================================

    @property
    def REWARD_RATE(self) -> int:
        return self.config.reward_rate

    @property
    def PENALTY_RATE(self) -> int:
        return self.config.penalty_rate

    @property
    def MIN_LOCK_PERIOD(self) -> int:
        return self.config.min_lock_period

    @property
    def MIN_REWARD_THRESHOLD(self) -> int:
        # Reserved: exposed only, no operation is gated on it
        return self.config.min_reward_threshold

    # =========================================================================
    # State Access
    # =========================================================================

    @property
    def owner(self) -> bytes:
        return self.state.owner

    @property
    def paused(self) -> bool:
        return self.state.paused

    @property
    def total_staked(self) -> int:
        return self.state.total_staked

    @property
    def token_address(self) -> bytes:
        return self.state.token

    def pending(self, account: bytes) -> int:
        return views.pending(self.accounts, self.config, account, self._now())

    def can_unstake_without_penalty(self, account: bytes) -> bool:
        return views.can_unstake_without_penalty(self.accounts, self.config, account, self._now())

    def can_claim_rewards(self, account: bytes) -> bool:
        return views.can_claim_rewards(self.accounts, account)

    def calculate_penalty(self, account: bytes, amount: int) -> int:
        return views.calculate_penalty(self.accounts, self.config, account, amount, self._now())

    def get_user_info(self, account: bytes) -> views.UserInfo:
        return views.get_user_info(self.accounts, self.config, account, self._now())

    def get_stats(self) -> views.PoolStats:
        return views.get_stats(self.state, self.config)

    # =========================================================================
    # Staking Operations
    # =========================================================================

    def stake(self, account: bytes, amount: int) -> AccountRecord:
        """
        Deposit `amount` for `account`.

        Settles pending reward first, then restarts both the lock window and
        the accrual anchor for the combined balance. Pulls tokens with
        transfer_from, so `account` must have approved the pool.

        Returns:
            The committed AccountRecord

        Raises:
            EnforcedPauseError: pool is paused
            InvalidAmountError: amount is zero ("Cannot stake 0")
            TokenError: allowance or balance insufficient on the token ledger
        """
        require(validate_address(account, "account"))
        require(validate_amount(amount))

        with self._lock:
            self.admin.when_not_paused()
            if amount == 0:
                raise InvalidAmountError("Cannot stake 0")

            now = self._now()
            record = self._settled(account, now)
            staged = replace(
                record,
                amount=checked_add(record.amount, amount),
                deposit_time=now,
                last_reward_time=now,
            )
            total = checked_add(self.state.total_staked, amount)

            events = [Staked(account, amount, now)]
            with self._atomic():
                self.token.transfer_from(self.address, account, self.address, amount)
                self._persist({account: staged}, total, self.state.paused, events)
            self._apply({account: staged}, total, self.state.paused, events)

        logger.info(f"Staked {amount} for {bytes_to_hex(account)[:10]}... (total={staged.amount})")
        return staged

    def unstake(self, account: bytes, amount: int) -> UnstakeReceipt:
        """
        Withdraw `amount` of principal for `account`.

        Settled reward is paid out in the same transfer. Before the unlock
        time a penalty of PENALTY_RATE percent of `amount` is kept by the
        pool. A partial withdrawal leaves deposit_time unchanged.

        Returns:
            UnstakeReceipt with the payout breakdown

        Raises:
            EnforcedPauseError: pool is paused
            InvalidAmountError: amount is zero ("Cannot unstake 0")
            InsufficientStakeError: amount exceeds the staked principal
            TokenError: the pool cannot cover the payout
        """
        require(validate_address(account, "account"))
        require(validate_amount(amount))

        with self._lock:
            self.admin.when_not_paused()
            if amount == 0:
                raise InvalidAmountError("Cannot unstake 0")
            if amount > self.accounts.get(account).amount:
                raise InsufficientStakeError()

            now = self._now()
            record = self._settled(account, now)
            fee = self._penalty_at(record, amount, now)
            rewards = record.accrued_reward
            remaining = record.amount - amount

            if remaining > 0:
                staged = replace(record, amount=remaining, accrued_reward=0)
            else:
                staged = EMPTY_RECORD
            payout = checked_add(amount - fee, rewards)
            total = checked_sub(self.state.total_staked, amount)

            events = [Unstaked(account, amount, rewards, fee, now)]
            with self._atomic():
                if payout > 0:
                    self.token.transfer(self.address, account, payout)
                self._persist({account: staged}, total, self.state.paused, events)
            self._apply({account: staged}, total, self.state.paused, events)

        logger.info(
            f"Unstaked {amount} for {bytes_to_hex(account)[:10]}... "
            f"(rewards={rewards}, penalty={fee}, remaining={remaining})"
        )
        return UnstakeReceipt(amount=amount, rewards=rewards, penalty=fee, payout=payout)

    def claim_rewards(self, account: bytes) -> int:
        """
        Pay out all settled reward for `account`.

        Accrual restarts from now; principal and lock window are untouched.

        Returns:
            Amount paid

        Raises:
            EnforcedPauseError: pool is paused
            NoStakeError: account has no stake ("No stake found")
            TokenError: the pool cannot cover the reward
        """
        require(validate_address(account, "account"))

        with self._lock:
            self.admin.when_not_paused()
            if not self.accounts.get(account).is_staked:
                raise NoStakeError()

            now = self._now()
            record = self._settled(account, now)
            rewards = record.accrued_reward
            staged = replace(record, accrued_reward=0)

            total = self.state.total_staked
            events = [RewardsClaimed(account, rewards, now)]
            with self._atomic():
                if rewards > 0:
                    self.token.transfer(self.address, account, rewards)
                self._persist({account: staged}, total, self.state.paused, events)
            self._apply({account: staged}, total, self.state.paused, events)

        logger.info(f"Claimed {rewards} for {bytes_to_hex(account)[:10]}...")
        return rewards

    # =========================================================================
    # Administrative Operations
    # =========================================================================

    def pause(self, caller: bytes) -> None:
        """Owner-only. Rejects stake/unstake/claim until unpause()."""
        with self._lock:
            self.admin.check_pause(caller)
            self._set_paused(True, [Paused(caller)])
        logger.warning("Pool paused")

    def unpause(self, caller: bytes) -> None:
        with self._lock:
            self.admin.check_unpause(caller)
            self._set_paused(False, [Unpaused(caller)])
        logger.info("Pool unpaused")

    def emergency_withdraw(self, caller: bytes, destination: bytes) -> int:
        """
        Owner-only. Move the pool's entire token balance to `destination`.

        Account records are not touched: staked principal may be left
        without backing. Last-resort recovery only.

        Returns:
            Amount withdrawn

        Raises:
            UnauthorizedAccountError: caller is not the owner
            InvalidAddressError: destination is the zero address
            NoBalanceError: the pool holds no tokens
        """
        with self._lock:
            self.admin.only_owner(caller)
            require(validate_address(destination, "destination"))
            if is_zero_address(destination):
                raise InvalidAddressError()

            balance = self.token.balance_of(self.address)
            if balance == 0:
                raise NoBalanceError()

            now = self._now()
            total = self.state.total_staked
            events = [EmergencyWithdraw(destination, balance, now)]
            with self._atomic():
                self.token.transfer(self.address, destination, balance)
                self._persist({}, total, self.state.paused, events)
            self._apply({}, total, self.state.paused, events)

        logger.warning(
            f"Emergency withdraw of {balance} to {bytes_to_hex(destination)} "
            f"(total_staked still {self.state.total_staked})"
        )
        return balance

    # =========================================================================
    # Internals
    # =========================================================================

    def _now(self) -> int:
        now = self.clock.now()
        require(validate_timestamp(now, "clock"))
        return now

    def _settled(self, account: bytes, now: int) -> AccountRecord:
        return self.accounts.get(account).settled(
            now, self.config.reward_rate, self.config.seconds_per_year
        )

    def _penalty_at(self, record: AccountRecord, amount: int, now: int) -> int:
        if now < record.unlock_time(self.config.min_lock_period):
            return penalty(amount, self.config.penalty_rate)
        return 0

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """Token calls and storage writes inside the block stand or fall together."""
        with self.token.transaction():
            if self.storage_manager:
                with self.storage_manager.transaction():
                    yield
            else:
                yield

    def _persist(
        self,
        staged: Dict[bytes, AccountRecord],
        total_staked: int,
        paused: bool,
        events: List[Event],
    ) -> None:
        if self.storage_manager:
            self.storage_manager.persist_commit(staged.items(), total_staked, paused, events)

    def _apply(
        self,
        staged: Dict[bytes, AccountRecord],
        total_staked: int,
        paused: bool,
        events: List[Event],
    ) -> None:
        """Swap staged state into memory, then notify. Runs only after a durable commit."""
        for address, record in staged.items():
            self.accounts.put(address, record)
        self.state.total_staked = total_staked
        self.state.paused = paused

        for event in events:
            self.events.append(event)

    def _set_paused(self, paused: bool, events: List[Event]) -> None:
        total = self.state.total_staked
        with self._atomic():
            self._persist({}, total, paused, events)
        self._apply({}, total, paused, events)

    def check_invariants(self) -> None:
        """
        Verify total_staked equals the sum of account principals.

        Raises:
            AssertionError: On mismatch
        """
        summed = self.accounts.total_amount()
        if summed != self.state.total_staked:
            raise AssertionError(
                f"total_staked {self.state.total_staked} != sum of stakes {summed}"
            )

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self, explicit_config: bool) -> None:
        """
        Load state from storage manager.

        The stored constants win. A config passed explicitly must agree with
        them; one left at the default is replaced by them.
        """
        meta = self.storage_manager.load_pool_meta()
        if meta["owner"] != self.state.owner or meta["token"] != self.state.token:
            raise ValueError(f"{self.storage_manager.db_path} belongs to a different pool")

        stored = StakingConfig.from_dict(meta["config"]).pool_constants()
        if explicit_config and self.config.pool_constants() != stored:
            mismatched = sorted(
                name for name, value in stored.items()
                if getattr(self.config, name) != value
            )
            raise ValueError(
                f"{self.storage_manager.db_path} belongs to a different pool "
                f"(constants differ: {', '.join(mismatched)})"
            )
        self.config = replace(self.config, **stored)

        self.address = meta["pool_address"]
        for address, record in self.storage_manager.load_accounts():
            self.accounts.put(address, record)
        self.state.total_staked = meta["total_staked"]
        self.state.paused = meta["paused"]
        self.events.extend_silently(self.storage_manager.load_events())

        logger.info(
            f"Loaded pool: {len(self.accounts)} accounts, total_staked={self.state.total_staked}, "
            f"paused={self.state.paused}"
        )

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return (
            f"StakingPool(total_staked={self.state.total_staked}, "
            f"stakers={self.accounts.staker_count()}, paused={self.state.paused})"
        )

    def stats(self) -> dict:
        """Get pool statistics."""
        return {
            "total_staked": self.state.total_staked,
            "stakers": self.accounts.staker_count(),
            "accounts": len(self.accounts),
            "pool_balance": self.token.balance_of(self.address),
            "reward_rate": self.config.reward_rate,
            "penalty_rate": self.config.penalty_rate,
            "min_lock_period": self.config.min_lock_period,
            "paused": self.state.paused,
            "events": len(self.events),
        }
