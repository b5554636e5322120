"""
Unit tests for the SQLite-backed storage manager.
"""

import pytest

from tipstake.core.events import Paused, Staked
from tipstake.core.state import AccountRecord
from tipstake.core.storage import StorageManager
from tipstake.crypto import address_from_label


@pytest.fixture
def storage(tmp_path):
    manager = StorageManager(tmp_path / "data")
    yield manager
    manager.close()


class TestPoolMeta:
    def test_empty_database(self, storage):
        assert not storage.has_pool()
        assert storage.load_pool_meta() is None

    def test_roundtrip(self, storage):
        owner, token, pool = (address_from_label(n) for n in ("owner", "token", "pool"))
        storage.save_pool_meta(owner, token, pool, {"reward_rate": 10})

        meta = storage.load_pool_meta()
        assert storage.has_pool()
        assert meta["owner"] == owner
        assert meta["token"] == token
        assert meta["pool_address"] == pool
        assert meta["total_staked"] == 0
        assert meta["paused"] is False
        assert meta["config"] == {"reward_rate": 10}

    def test_creates_data_dir(self, tmp_path):
        manager = StorageManager(tmp_path / "a" / "b")
        assert (tmp_path / "a" / "b" / "staking.db").exists()
        manager.close()


class TestCommit:
    def test_large_amounts_survive(self, storage):
        account = address_from_label("whale")
        record = AccountRecord(amount=2**255, accrued_reward=2**200, deposit_time=5, last_reward_time=9)
        storage.save_pool_meta(account, account, account, {})

        storage.persist_commit([(account, record)], 2**255, True, [Staked(account, 2**255, 5)])

        assert storage.load_accounts() == [(account, record)]
        meta = storage.load_pool_meta()
        assert meta["total_staked"] == 2**255
        assert meta["paused"] is True
        assert storage.load_events() == [Staked(account, 2**255, 5)]

    def test_record_replaced(self, storage):
        account = address_from_label("alice")
        storage.persist_commit([(account, AccountRecord(1, 0, 1, 1))], 1, False, [])
        storage.persist_commit([(account, AccountRecord(3, 2, 1, 4))], 3, False, [])
        assert storage.load_accounts() == [(account, AccountRecord(3, 2, 1, 4))]

    def test_events_filtered_by_name(self, storage):
        a = address_from_label("a")
        storage.persist_commit([], 0, True, [Paused(a)])
        storage.persist_commit([], 0, False, [Staked(a, 1, 2)])
        assert storage.load_events("Paused") == [Paused(a)]
        assert len(storage.load_events()) == 2


class TestTokenState:
    def test_balances_scoped_by_token(self, storage):
        tip, other = address_from_label("tip"), address_from_label("other")
        alice, pool = address_from_label("alice"), address_from_label("pool")

        storage.save_balance(tip, alice, 10**30)
        storage.save_balance(other, alice, 7)
        storage.save_allowance(tip, alice, pool, 2**256 - 1)

        balances, allowances = storage.load_token_state(tip)
        assert balances == [(alice, 10**30)]
        assert allowances == [(alice, pool, 2**256 - 1)]


class TestTransaction:
    def test_exception_rolls_back_nested_writes(self, storage):
        tip, alice = address_from_label("tip"), address_from_label("alice")

        with pytest.raises(RuntimeError):
            with storage.transaction():
                storage.save_balance(tip, alice, 5)
                storage.persist_commit([(alice, AccountRecord(5, 0, 1, 1))], 5, False, [])
                raise RuntimeError("abort")

        assert storage.load_token_state(tip) == ([], [])
        assert storage.load_accounts() == []
        assert storage.load_pool_meta() is None

    def test_writes_commit_with_outermost_block(self, storage):
        tip, alice = address_from_label("tip"), address_from_label("alice")

        with storage.transaction():
            with storage.transaction():
                storage.save_balance(tip, alice, 5)
            storage.save_allowance(tip, alice, alice, 1)

        reopened = StorageManager(storage.data_dir)
        assert reopened.load_token_state(tip) == ([(alice, 5)], [(alice, alice, 1)])
        reopened.close()

    def test_usable_after_rollback(self, storage):
        tip, alice = address_from_label("tip"), address_from_label("alice")
        with pytest.raises(RuntimeError):
            with storage.transaction():
                raise RuntimeError("abort")

        storage.save_balance(tip, alice, 3)
        assert storage.load_token_state(tip)[0] == [(alice, 3)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
