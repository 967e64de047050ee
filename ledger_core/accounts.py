"""
Account Registry Module

Owns account identity: number assignment, creation, lookup and CPF
uniqueness checks. The registry keeps the canonical mutable record of each
account; everything outside the ledger only ever sees immutable Account
snapshots.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import threading

from .cpf import normalize
from .exceptions import AccountNotFound
from .logging_config import get_logger, log_action
from .money import ZERO


class AccountKind(Enum):
    """Account products"""
    CHECKING = 1
    SAVINGS = 2
    BUSINESS = 3


@dataclass(frozen=True)
class Account:
    """
    Point-in-time view of an account
    """
    account_number: str
    holder_name: str
    cpf: str
    balance: Decimal
    kind: AccountKind
    opened_at: datetime
    active: bool = True

    @property
    def is_savings(self) -> bool:
        """Check if this is a savings account"""
        return self.kind == AccountKind.SAVINGS

    @property
    def is_business(self) -> bool:
        """Check if this is a business account"""
        return self.kind == AccountKind.BUSINESS


class AccountRecord:
    """
    Canonical, mutable state of one account.

    `lock` guards `balance`; only BalanceLedger writes it.
    """

    __slots__ = (
        "account_number", "holder_name", "cpf", "balance",
        "kind", "opened_at", "active", "lock",
    )

    def __init__(self, account_number: str, holder_name: str, cpf: str,
                 kind: AccountKind, opened_at: datetime):
        self.account_number = account_number
        self.holder_name = holder_name
        self.cpf = cpf
        self.balance = ZERO
        self.kind = kind
        self.opened_at = opened_at
        self.active = True
        self.lock = threading.RLock()

    def snapshot(self) -> Account:
        """Copy the current state under the account lock"""
        with self.lock:
            return Account(
                account_number=self.account_number,
                holder_name=self.holder_name,
                cpf=self.cpf,
                balance=self.balance,
                kind=self.kind,
                opened_at=self.opened_at,
                active=self.active,
            )


class AccountRegistry:
    """
    Registry of all accounts in the process.

    Lookups never lock; the only shared lock guards the account number
    counter. Each account has its own lock for balance mutation.
    """

    def __init__(self, account_number_floor: int = 1000):
        self._accounts: Dict[str, AccountRecord] = {}
        self._last_number = account_number_floor
        self._counter_lock = threading.Lock()
        self.logger = get_logger("ledger.accounts")

    def _next_account_number(self) -> str:
        with self._counter_lock:
            self._last_number += 1
            return str(self._last_number)

    def create(self, holder_name: str, cpf: str, kind: AccountKind) -> Account:
        """
        Create a new account with a zero balance

        CPF uniqueness is not checked here; callers are expected to consult
        identity_already_registered() first.

        Args:
            holder_name: Name of the account holder
            cpf: Holder's CPF as supplied
            kind: Account product

        Returns:
            Snapshot of the created account
        """
        account_number = self._next_account_number()
        record = AccountRecord(
            account_number=account_number,
            holder_name=holder_name,
            cpf=cpf,
            kind=kind,
            opened_at=datetime.now().astimezone(),
        )
        self._accounts[account_number] = record

        log_action(
            self.logger, "info", f"Account created: {account_number}",
            action="create_account", resource=f"account:{account_number}",
            extra={"kind": kind.name, "holder_name": holder_name}
        )
        return record.snapshot()

    def get_record(self, account_number: str) -> AccountRecord:
        """
        Get the canonical record (for the balance ledger only)

        Raises:
            AccountNotFound: If no such account exists
        """
        record = self._accounts.get(account_number)
        if record is None:
            raise AccountNotFound(account_number)
        return record

    def get(self, account_number: str) -> Account:
        """
        Get a snapshot of an account

        Raises:
            AccountNotFound: If no such account exists
        """
        return self.get_record(account_number).snapshot()

    def find(self, account_number: str) -> Optional[Account]:
        """Get a snapshot of an account, or None"""
        record = self._accounts.get(account_number)
        return record.snapshot() if record else None

    def exists(self, account_number: str) -> bool:
        """Check if an account exists"""
        return account_number in self._accounts

    def identity_already_registered(self, cpf: str) -> bool:
        """Check whether any account belongs to this CPF (linear scan)"""
        wanted = normalize(cpf)
        return any(
            normalize(record.cpf) == wanted
            for record in list(self._accounts.values())
        )

    def accounts(self) -> List[Account]:
        """Snapshots of all accounts, in creation order"""
        return [record.snapshot() for record in list(self._accounts.values())]

    def __len__(self) -> int:
        return len(self._accounts)
