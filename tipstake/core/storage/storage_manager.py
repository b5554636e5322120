import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from tipstake.core.events import Event, event_from_dict
from tipstake.core.state import AccountRecord
from tipstake.core.storage.sqlite_adapter import SQLiteAdapter
from tipstake.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a staking pool.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Pool metadata (owner, token, pool address, totals, pause flag, config)
    - Account records
    - Token ledger balances and allowances
    - Event history
    """

    def __init__(self, data_dir: Path, db_name: str = "staking.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def transaction(self):
        """Group writes from the pool and the token into one atomic unit."""
        return self.adapter.transaction()

    # =========================================================================
    # Pool Metadata
    # =========================================================================

    def save_pool_meta(
        self,
        owner: bytes,
        token: bytes,
        pool_address: bytes,
        config: dict,
    ):
        """Save the identities and constants fixed at pool construction."""
        self.adapter.set_meta("owner", owner.hex())
        self.adapter.set_meta("token", token.hex())
        self.adapter.set_meta("pool_address", pool_address.hex())
        self.adapter.set_meta("config", json.dumps(config, sort_keys=True))

    def load_pool_meta(self) -> Optional[Dict]:
        """
        Load pool metadata.

        Returns:
            None if no pool was ever saved, else a dict with owner, token,
            pool_address (bytes), total_staked (int), paused (bool), config (dict)
        """
        owner = self.adapter.get_meta("owner")
        if owner is None:
            return None
        return {
            "owner": bytes.fromhex(owner),
            "token": bytes.fromhex(self.adapter.get_meta("token")),
            "pool_address": bytes.fromhex(self.adapter.get_meta("pool_address")),
            "total_staked": int(self.adapter.get_meta("total_staked") or "0"),
            "paused": self.adapter.get_meta("paused") == "1",
            "config": json.loads(self.adapter.get_meta("config") or "{}"),
        }

    def has_pool(self) -> bool:
        return self.adapter.get_meta("owner") is not None

    # =========================================================================
    # Staking State
    # =========================================================================

    def persist_commit(
        self,
        records: Iterable[Tuple[bytes, AccountRecord]],
        total_staked: int,
        paused: bool,
        events: Iterable[Event],
    ):
        """Atomically persist the result of one committed pool operation."""
        rows = [
            (
                address,
                str(record.amount),
                str(record.accrued_reward),
                record.deposit_time,
                record.last_reward_time,
            )
            for address, record in records
        ]
        meta = [
            ("total_staked", str(total_staked)),
            ("paused", "1" if paused else "0"),
        ]
        event_rows = [(e.name, json.dumps(e.to_dict(), sort_keys=True)) for e in events]
        self.adapter.persist_commit(rows, meta, event_rows)

    def load_accounts(self) -> List[Tuple[bytes, AccountRecord]]:
        return [
            (
                address,
                AccountRecord(
                    amount=int(amount),
                    accrued_reward=int(accrued),
                    deposit_time=deposit_time,
                    last_reward_time=last_reward_time,
                ),
            )
            for address, amount, accrued, deposit_time, last_reward_time in self.adapter.get_all_accounts()
        ]

    def load_events(self, name: Optional[str] = None) -> List[Event]:
        return [event_from_dict(json.loads(data)) for _, data in self.adapter.get_events(name)]

    # =========================================================================
    # Token Ledger
    # =========================================================================

    def save_balance(self, token: bytes, account: bytes, balance: int):
        self.adapter.save_balance(token, account, str(balance))

    def save_allowance(self, token: bytes, owner: bytes, spender: bytes, amount: int):
        self.adapter.save_allowance(token, owner, spender, str(amount))

    def load_token_state(
        self, token: bytes
    ) -> Tuple[List[Tuple[bytes, int]], List[Tuple[bytes, bytes, int]]]:
        """
        Load token balances and allowances.

        Returns:
            (balances, allowances)
            balances: List[(account, balance)]
            allowances: List[(owner, spender, amount)]
        """
        balances = [(account, int(balance)) for account, balance in self.adapter.get_balances(token)]
        allowances = [
            (owner, spender, int(amount))
            for owner, spender, amount in self.adapter.get_allowances(token)
        ]
        return balances, allowances

    def close(self):
        self.adapter.close()
