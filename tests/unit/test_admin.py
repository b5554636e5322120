"""
Unit tests for owner-only operations.

Tests cover:
1. Pause / unpause and their events
2. Uniform rejection of non-owner callers
3. Emergency withdraw of the pool balance
"""

import pytest

from tipstake.core import (
    EmergencyWithdraw,
    EnforcedPauseError,
    ExpectedPauseError,
    InMemoryToken,
    InvalidAddressError,
    ManualClock,
    NoBalanceError,
    Paused,
    StakingPool,
    UnauthorizedAccountError,
    Unpaused,
)
from tipstake.core.reward_math import MAX_UINT256
from tipstake.crypto import ZERO_ADDRESS, address_from_label, bytes_to_hex

UNIT = 10**18
REWARDS_POOL = 100_000 * UNIT


@pytest.fixture
def owner():
    return address_from_label("owner")


@pytest.fixture
def user():
    return address_from_label("user1")


@pytest.fixture
def token():
    return InMemoryToken()


@pytest.fixture
def pool(token, owner, user):
    pool = StakingPool(token=token, owner=owner, clock=ManualClock(start=1_700_000_000))
    token.mint(owner, REWARDS_POOL)
    token.transfer(owner, pool.address, REWARDS_POOL)
    token.mint(user, 1000 * UNIT)
    token.approve(user, pool.address, MAX_UINT256)
    return pool


class TestPause:
    """Tests for pause() and unpause()."""

    def test_owner_can_pause(self, pool, owner):
        pool.pause(owner)
        assert pool.paused
        assert pool.events.last() == Paused(owner)

    def test_owner_can_unpause(self, pool, owner, user):
        pool.pause(owner)
        pool.unpause(owner)
        assert not pool.paused
        assert pool.events.last() == Unpaused(owner)

        pool.stake(user, 100)
        assert pool.total_staked == 100

    def test_pause_twice_rejected(self, pool, owner):
        pool.pause(owner)
        with pytest.raises(EnforcedPauseError):
            pool.pause(owner)

    def test_unpause_when_running_rejected(self, pool, owner):
        with pytest.raises(ExpectedPauseError):
            pool.unpause(owner)

    def test_non_owner_cannot_pause(self, pool, user):
        with pytest.raises(UnauthorizedAccountError, match="OwnableUnauthorizedAccount"):
            pool.pause(user)
        assert not pool.paused

    def test_non_owner_checked_before_pause_state(self, pool, owner, user):
        pool.pause(owner)
        with pytest.raises(UnauthorizedAccountError):
            pool.pause(user)
        with pytest.raises(UnauthorizedAccountError):
            pool.unpause(user)

    def test_queries_work_while_paused(self, pool, owner, user):
        pool.stake(user, 100)
        pool.pause(owner)
        assert pool.get_user_info(user).amount == 100
        assert pool.get_stats().tvl == 100
        assert pool.can_claim_rewards(user)

    def test_pause_keeps_records(self, pool, owner, user):
        pool.stake(user, 1000 * UNIT)
        before = pool.accounts.get(user)
        pool.pause(owner)
        pool.unpause(owner)
        assert pool.accounts.get(user) == before


class TestUnauthorized:
    """Every owner-only call fails the same way for a non-owner."""

    @pytest.mark.parametrize("operation", ["pause", "unpause", "emergency_withdraw"])
    def test_same_error_for_each_operation(self, pool, user, operation):
        method = getattr(pool, operation)
        args = (user, user) if operation == "emergency_withdraw" else (user,)
        with pytest.raises(UnauthorizedAccountError) as exc:
            method(*args)
        assert exc.value.account == user
        assert exc.value.reason == f"OwnableUnauthorizedAccount({bytes_to_hex(user)})"

    def test_owner_check_precedes_destination_check(self, pool, user):
        with pytest.raises(UnauthorizedAccountError):
            pool.emergency_withdraw(user, ZERO_ADDRESS)


class TestEmergencyWithdraw:
    """Tests for emergency_withdraw()."""

    def test_moves_entire_balance(self, pool, token, owner, user):
        pool.stake(user, 1000 * UNIT)
        expected = token.balance_of(pool.address)
        before = token.balance_of(owner)

        withdrawn = pool.emergency_withdraw(owner, owner)

        assert withdrawn == expected == REWARDS_POOL + 1000 * UNIT
        assert token.balance_of(pool.address) == 0
        assert token.balance_of(owner) == before + expected

    def test_event(self, pool, token, owner):
        destination = address_from_label("treasury")
        pool.emergency_withdraw(owner, destination)
        event = pool.events.last(EmergencyWithdraw)
        assert event.to == destination
        assert event.amount == REWARDS_POOL
        assert event.timestamp == 1_700_000_000

    def test_leaves_stake_records(self, pool, owner, user):
        pool.stake(user, 1000 * UNIT)
        pool.emergency_withdraw(owner, owner)
        assert pool.total_staked == 1000 * UNIT
        assert pool.get_user_info(user).amount == 1000 * UNIT

    def test_allowed_while_paused(self, pool, owner):
        pool.pause(owner)
        assert pool.emergency_withdraw(owner, owner) == REWARDS_POOL

    def test_second_call_has_nothing_to_withdraw(self, pool, owner):
        pool.emergency_withdraw(owner, owner)
        with pytest.raises(NoBalanceError, match="No balance to withdraw"):
            pool.emergency_withdraw(owner, owner)

    def test_zero_destination_rejected(self, pool, token, owner):
        with pytest.raises(InvalidAddressError, match="Invalid address"):
            pool.emergency_withdraw(owner, ZERO_ADDRESS)
        assert token.balance_of(pool.address) == REWARDS_POOL


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
