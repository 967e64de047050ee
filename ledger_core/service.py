"""
Ledger Service Module

The single entry point for state-changing operations. Each call sequences
registry lookup, balance mutation and daily aggregation as one logical unit
and either fully succeeds or raises a LedgerError with no state change.

Transfers record the outbound amount only after the balance mutation has
committed. A failure between the two steps under-counts the daily total; it
never over-counts it.

Expected business outcomes (AccountNotFound, InsufficientFunds,
DailyLimitExceeded) are raised as typed LedgerError subclasses for the
caller to handle; InvariantViolation is the only one that signals a bug.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional

from .accounts import Account, AccountKind, AccountRegistry
from .config import LedgerConfig, get_config
from .daily_limits import DailyTransferAggregator
from .exceptions import AccountNotFound, DailyLimitExceeded, InvalidArgument, LedgerError
from .ledger import BalanceLedger
from .logging_config import get_logger, log_action
from .money import ZERO, as_money, require_positive_amount


class LedgerService:
    """
    Composes the account registry, balance ledger and daily transfer
    aggregator. Instances share nothing; build one per process (or per test).
    """

    def __init__(
        self,
        registry: AccountRegistry,
        ledger: BalanceLedger,
        aggregator: DailyTransferAggregator,
        config: Optional[LedgerConfig] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.registry = registry
        self.ledger = ledger
        self.aggregator = aggregator
        self.config = config or get_config()
        self._today = today or date.today
        self.daily_transfer_limit = as_money(self.config.daily_transfer_limit)
        self.logger = get_logger("ledger.service")

    @classmethod
    def create(
        cls,
        config: Optional[LedgerConfig] = None,
        today: Optional[Callable[[], date]] = None
    ) -> "LedgerService":
        """Build a service with a fresh registry, ledger and aggregator"""
        config = config or get_config()
        registry = AccountRegistry(account_number_floor=config.account_number_floor)
        return cls(
            registry=registry,
            ledger=BalanceLedger(registry),
            aggregator=DailyTransferAggregator(stripes=config.lock_stripes),
            config=config,
            today=today
        )

    def today(self) -> date:
        """Current ledger date (local calendar)"""
        return self._today()

    # -- Commands ---------------------------------------------------------

    def create_account(self, holder_name: str, cpf: str, kind: AccountKind) -> Account:
        """Open a new account with a zero balance"""
        return self.registry.create(holder_name, cpf, kind)

    def deposit(self, account_number: str, amount) -> Account:
        """
        Deposit into an account

        Raises:
            AccountNotFound, InvalidArgument
        """
        if not self.registry.exists(account_number):
            raise AccountNotFound(account_number)

        account = self.ledger.deposit(account_number, amount)

        log_action(
            self.logger, "info", "Deposit completed",
            action="deposit", resource=f"account:{account_number}",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )
        return account

    def withdraw(self, account_number: str, amount) -> Account:
        """
        Withdraw from an account

        Raises:
            AccountNotFound, InvalidArgument, InsufficientFunds
        """
        if not self.registry.exists(account_number):
            raise AccountNotFound(account_number)

        try:
            account = self.ledger.withdraw(account_number, amount)
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"Withdrawal rejected: {e}",
                action="withdraw", resource=f"account:{account_number}",
                extra={"amount": str(amount), "error": type(e).__name__}
            )
            raise

        log_action(
            self.logger, "info", "Withdrawal completed",
            action="withdraw", resource=f"account:{account_number}",
            extra={"amount": str(amount), "balance": str(account.balance)}
        )
        return account

    def transfer(self, source: str, destination: str, amount) -> None:
        """
        Transfer between two accounts and count it towards the source's
        daily outbound total

        With strict_daily_limit enabled the limit check, the balance
        mutation and the recording happen under the (source, today) lock,
        so concurrent transfers cannot jointly exceed the limit.

        Raises:
            AccountNotFound, InvalidArgument, InsufficientFunds,
            DailyLimitExceeded
        """
        amt = require_positive_amount(amount)
        if source == destination:
            raise InvalidArgument("Cannot transfer to the same account")
        for account_number in (source, destination):
            if not self.registry.exists(account_number):
                raise AccountNotFound(account_number)

        on_date = self.today()
        try:
            if self.config.strict_daily_limit:
                with self.aggregator.hold(source, on_date):
                    current = self.aggregator.get_total(source, on_date)
                    if current + amt > self.daily_transfer_limit:
                        raise DailyLimitExceeded(source, current, amt, self.daily_transfer_limit)
                    self.ledger.transfer(source, destination, amt)
                    self.aggregator.record_outbound(source, amt, on_date)
            else:
                self.ledger.transfer(source, destination, amt)
                self.aggregator.record_outbound(source, amt, on_date)
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"Transfer rejected: {e}",
                action="transfer", resource=f"account:{source}",
                extra={"destination": destination, "amount": str(amt),
                       "error": type(e).__name__}
            )
            raise

        log_action(
            self.logger, "info", "Transfer completed",
            action="transfer", resource=f"account:{source}",
            extra={"destination": destination, "amount": str(amt),
                   "date": on_date.isoformat()}
        )

    # -- Queries ----------------------------------------------------------

    def get_account(self, account_number: str) -> Account:
        """Snapshot of an account; raises AccountNotFound"""
        return self.registry.get(account_number)

    def find_account(self, account_number: str) -> Optional[Account]:
        """Snapshot of an account, or None"""
        return self.registry.find(account_number)

    def account_exists(self, account_number: str) -> bool:
        return self.registry.exists(account_number)

    def identity_already_registered(self, cpf: str) -> bool:
        return self.registry.identity_already_registered(cpf)

    def get_balance(self, account_number: str) -> Decimal:
        """Current balance; raises AccountNotFound"""
        return self.ledger.get_balance(account_number)

    def get_daily_total(self, account_number: str, on_date: Optional[date] = None) -> Decimal:
        """Outbound transfers committed on a date (today by default)"""
        return self.aggregator.get_total(account_number, on_date or self.today())

    def list_accounts(self) -> List[Account]:
        return self.registry.accounts()

    def total_balance(self) -> Decimal:
        """Sum of every account balance"""
        return sum((account.balance for account in self.registry.accounts()), ZERO)
