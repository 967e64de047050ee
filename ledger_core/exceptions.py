"""
Ledger Error Kinds

Every error the ledger core raises derives from LedgerError so the API layer
can translate them in one place. Business outcomes (missing account,
insufficient funds, daily limit) are distinct from programming errors
(InvalidArgument) and from InvariantViolation, which signals a concurrency
bug and must never be caught and ignored.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class AccountNotFound(LedgerError):
    """Raised when an account number is not in the registry."""

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account {account_number} not found")


class InsufficientFunds(LedgerError):
    """Raised when a withdrawal or transfer exceeds the available balance."""

    def __init__(self, account_number: str, balance: Decimal, amount: Decimal):
        self.account_number = account_number
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds in account {account_number}: "
            f"balance {balance}, requested {amount}"
        )


class InvalidArgument(LedgerError):
    """Raised when an amount is non-positive, mis-scaled or not a decimal."""


class DailyLimitExceeded(LedgerError):
    """Raised when a transfer would push the day's outbound total past the limit."""

    def __init__(self, account_number: str, current_total: Decimal,
                 amount: Decimal, limit: Decimal):
        self.account_number = account_number
        self.current_total = current_total
        self.amount = amount
        self.limit = limit
        super().__init__(
            f"Transfer of {amount} from account {account_number} exceeds daily limit "
            f"{limit} (already transferred today: {current_total})"
        )


class InvariantViolation(LedgerError):
    """Raised when a balance would go negative despite the funds check."""

    def __init__(self, account_number: str, balance: Decimal,
                 operation: Optional[str] = None):
        self.account_number = account_number
        self.balance = balance
        self.operation = operation
        super().__init__(
            f"Balance invariant violated for account {account_number} "
            f"after {operation or 'mutation'}: {balance}"
        )
