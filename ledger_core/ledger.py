"""
Balance Ledger Module

Applies deposits, withdrawals and transfers to account balances.

- Every read-check-write of a balance runs under that account's lock, so two
  concurrent withdrawals can never both pass the funds check on a stale
  balance.
- Transfers hold both account locks, taken in canonical order (lowest
  account number first), so opposite-direction transfers cannot deadlock
  and no reader ever sees money in flight.
"""

from decimal import Decimal
from typing import Tuple

from .accounts import Account, AccountRecord, AccountRegistry
from .exceptions import InsufficientFunds, InvalidArgument, InvariantViolation
from .logging_config import get_logger, log_action
from .money import fits_money, require_positive_amount


def _lock_order(record: AccountRecord) -> Tuple[int, str]:
    # Numeric order for digit strings: "999" < "1000"
    return (len(record.account_number), record.account_number)


class BalanceLedger:
    """
    Mutates balances held by an AccountRegistry
    """

    def __init__(self, registry: AccountRegistry):
        self.registry = registry
        self.logger = get_logger("ledger.balances")

    def _check_invariant(self, record: AccountRecord, operation: str) -> None:
        if record.balance < 0:
            log_action(
                self.logger, "critical", "Negative balance detected",
                action=operation, resource=f"account:{record.account_number}",
                extra={"balance": str(record.balance)}
            )
            raise InvariantViolation(record.account_number, record.balance, operation)

    def get_balance(self, account_number: str) -> Decimal:
        """
        Get the current balance

        Raises:
            AccountNotFound: If no such account exists
        """
        record = self.registry.get_record(account_number)
        with record.lock:
            return record.balance

    def deposit(self, account_number: str, amount) -> Account:
        """
        Credit an account

        Args:
            account_number: Account to credit
            amount: Positive Decimal with at most two decimal places

        Returns:
            Snapshot of the account after the deposit

        Raises:
            InvalidArgument: If the amount is not a positive 2-place decimal,
                or the new balance would exceed the supported size
            AccountNotFound: If no such account exists
        """
        amt = require_positive_amount(amount)
        record = self.registry.get_record(account_number)

        with record.lock:
            new_balance = record.balance + amt
            if not fits_money(new_balance):
                raise InvalidArgument(f"Deposit would push account {account_number} past the supported balance")
            record.balance = new_balance
            self._check_invariant(record, "deposit")
            return record.snapshot()

    def withdraw(self, account_number: str, amount) -> Account:
        """
        Debit an account

        Returns:
            Snapshot of the account after the withdrawal

        Raises:
            InvalidArgument: If the amount is not a positive 2-place decimal
            AccountNotFound: If no such account exists
            InsufficientFunds: If the balance is lower than the amount
        """
        amt = require_positive_amount(amount)
        record = self.registry.get_record(account_number)

        with record.lock:
            if record.balance < amt:
                raise InsufficientFunds(account_number, record.balance, amt)
            record.balance = record.balance - amt
            self._check_invariant(record, "withdraw")
            return record.snapshot()

    def transfer(self, source: str, destination: str, amount) -> None:
        """
        Move money between two accounts atomically

        Raises:
            InvalidArgument: For a bad amount, when source == destination,
                or when the destination balance would exceed the supported size
            AccountNotFound: If either account does not exist
            InsufficientFunds: If the source balance is lower than the amount
        """
        amt = require_positive_amount(amount)
        if source == destination:
            raise InvalidArgument("Cannot transfer to the same account")

        src = self.registry.get_record(source)
        dst = self.registry.get_record(destination)

        first, second = sorted((src, dst), key=_lock_order)
        with first.lock:
            with second.lock:
                if src.balance < amt:
                    raise InsufficientFunds(source, src.balance, amt)
                new_destination_balance = dst.balance + amt
                if not fits_money(new_destination_balance):
                    raise InvalidArgument(f"Transfer would push account {destination} past the supported balance")
                src.balance = src.balance - amt
                dst.balance = new_destination_balance
                self._check_invariant(src, "transfer")
                self._check_invariant(dst, "transfer")
