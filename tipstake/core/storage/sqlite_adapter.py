import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from tipstake.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Pool metadata (owner, token, totals, pause flag, config).
    2. Staking state: one row per account record.
    3. Token ledger state: balances and allowances per token.
    4. Append-only event log.

    Amounts are uint256 and do not fit SQLite integers; they are stored as
    decimal TEXT and converted at the StorageManager boundary.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        One SQLite transaction for this thread.

        Nested calls join the outermost one: nothing is committed until it
        exits, and an exception anywhere inside rolls back every write.
        """
        conn = self._get_conn()
        depth = getattr(self._conn_local, "depth", 0)
        self._conn_local.depth = depth + 1
        try:
            if depth == 0:
                with conn:
                    yield conn
            else:
                yield conn
        finally:
            self._conn_local.depth = depth

    def _init_schema(self):
        """Initialize database schema."""
        with self.transaction() as conn:
            # 1. Pool metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pool_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 2. Account records
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address BLOB PRIMARY KEY,
                    amount TEXT NOT NULL,
                    accrued_reward TEXT NOT NULL,
                    deposit_time INTEGER NOT NULL,
                    last_reward_time INTEGER NOT NULL
                )
            """)

            # 3. Token ledger
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_balances (
                    token BLOB NOT NULL,
                    account BLOB NOT NULL,
                    balance TEXT NOT NULL,
                    PRIMARY KEY (token, account)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS token_allowances (
                    token BLOB NOT NULL,
                    owner BLOB NOT NULL,
                    spender BLOB NOT NULL,
                    amount TEXT NOT NULL,
                    PRIMARY KEY (token, owner, spender)
                )
            """)

            # 4. Events (ordered by insertion)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    data TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_event_name ON events(name);")

    # =========================================================================
    # Pool Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        with self.transaction() as conn:
            conn.execute("INSERT OR REPLACE INTO pool_meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM pool_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Account Operations
    # =========================================================================

    def get_all_accounts(self) -> List[Tuple[bytes, str, str, int, int]]:
        """Get all (address, amount, accrued_reward, deposit_time, last_reward_time)."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT address, amount, accrued_reward, deposit_time, last_reward_time FROM accounts"
        )
        return [tuple(row) for row in cursor]

    def persist_commit(
        self,
        accounts: Iterable[Tuple[bytes, str, str, int, int]],
        meta: Iterable[Tuple[str, str]],
        events: Iterable[Tuple[str, str]],
    ):
        """
        Atomically persist one committed pool operation.

        Args:
            accounts: (address, amount, accrued_reward, deposit_time, last_reward_time) rows
            meta: (key, value) pairs
            events: (name, json_data) rows, in emission order
        """
        with self.transaction() as conn:
            for row in accounts:
                conn.execute(
                    "INSERT OR REPLACE INTO accounts "
                    "(address, amount, accrued_reward, deposit_time, last_reward_time) "
                    "VALUES (?, ?, ?, ?, ?)",
                    row
                )
            for key, value in meta:
                conn.execute("INSERT OR REPLACE INTO pool_meta (key, value) VALUES (?, ?)", (key, value))
            for name, data in events:
                conn.execute("INSERT INTO events (name, data) VALUES (?, ?)", (name, data))

    # =========================================================================
    # Token Operations
    # =========================================================================

    def save_balance(self, token: bytes, account: bytes, balance: str):
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO token_balances (token, account, balance) VALUES (?, ?, ?)",
                (token, account, balance)
            )

    def save_allowance(self, token: bytes, owner: bytes, spender: bytes, amount: str):
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO token_allowances (token, owner, spender, amount) VALUES (?, ?, ?, ?)",
                (token, owner, spender, amount)
            )

    def get_balances(self, token: bytes) -> List[Tuple[bytes, str]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT account, balance FROM token_balances WHERE token = ?", (token,))
        return [(row['account'], row['balance']) for row in cursor]

    def get_allowances(self, token: bytes) -> List[Tuple[bytes, bytes, str]]:
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT owner, spender, amount FROM token_allowances WHERE token = ?", (token,)
        )
        return [(row['owner'], row['spender'], row['amount']) for row in cursor]

    # =========================================================================
    # Event Operations
    # =========================================================================

    def get_events(self, name: Optional[str] = None) -> List[Tuple[str, str]]:
        """Get (name, data) rows in insertion order, optionally filtered."""
        conn = self._get_conn()
        if name:
            cursor = conn.execute("SELECT name, data FROM events WHERE name = ? ORDER BY seq ASC", (name,))
        else:
            cursor = conn.execute("SELECT name, data FROM events ORDER BY seq ASC")
        return [(row['name'], row['data']) for row in cursor]

    def close(self):
        """Close this thread's connection."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn
