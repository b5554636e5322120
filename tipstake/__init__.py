"""
TIP Staking Ledger (tipstake)

Accounting engine for a fungible-token staking pool:
- Linear time-weighted rewards (fixed annual rate)
- Lock window after each deposit with an early-withdrawal penalty
- Owner-controlled pause switch and emergency withdrawal
- Read-only views for account and pool state
"""

__version__ = "0.1.0"
