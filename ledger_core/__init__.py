"""
Concurrent Account Ledger

An in-memory ledger of checking, savings and business accounts with
per-account locking, atomic transfers, CPF validation and a daily
outbound-transfer limit. All money arithmetic uses Decimal.
"""

__version__ = "1.0.0"
