"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Pool metadata and account records
- Token ledger balances and allowances
- Event history
"""

from tipstake.core.storage.sqlite_adapter import SQLiteAdapter
from tipstake.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
