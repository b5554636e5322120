"""Account records and pool-wide state"""
from tipstake.core.state.account import (
    AccountBook,
    AccountRecord,
    EMPTY_RECORD,
    ProtocolState,
)

__all__ = [
    "AccountBook",
    "AccountRecord",
    "EMPTY_RECORD",
    "ProtocolState",
]
