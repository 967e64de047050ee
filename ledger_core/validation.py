"""
Request Validation Module

Each request type has an ordered list of independent checks. A check reads
the request (and, for lookups, the ledger's read-only queries) and reports a
message against one field. Checks for a field stop at that field's first
failure, so each field reports one message: later checks of a field assume
the earlier ones passed (a bound comparison needs a Decimal). Every field is
checked, and all failing fields are returned together.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
import re

from . import cpf as cpf_validator
from .accounts import AccountKind
from .config import LedgerConfig, get_config
from .money import as_money, fits_money, format_money, has_two_decimal_places
from .service import LedgerService

HOLDER_NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿ\s]+$")


@dataclass
class CreateAccountRequest:
    holder_name: str
    cpf: str
    kind: Any


@dataclass
class DepositRequest:
    account_number: str
    amount: Any


@dataclass
class WithdrawalRequest:
    account_number: str
    amount: Any


@dataclass
class TransferRequest:
    source_account: str
    destination_account: str
    amount: Any
    description: Optional[str] = None


@dataclass(frozen=True)
class Check:
    """
    One validation rule

    `predicate` returns True when the request passes. `when`, if given,
    makes the check conditional.
    """
    field: str
    message: str
    predicate: Callable[[Any], bool]
    when: Optional[Callable[[Any], bool]] = None


@dataclass
class ValidationResult:
    """Accumulated failures, keyed by field name"""
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: list(messages) for name, messages in self.errors.items()}


class Validator:
    """Runs an ordered list of checks against a request"""

    def __init__(self, checks: List[Check]):
        self.checks = list(checks)

    def validate(self, request: Any) -> ValidationResult:
        result = ValidationResult()
        for check in self.checks:
            if check.field in result.errors:
                continue
            if check.when is not None and not check.when(request):
                continue
            if not check.predicate(request):
                result.add(check.field, check.message)
        return result


# -- Shared predicates ------------------------------------------------------

def coerce_kind(value: Any) -> Optional[AccountKind]:
    """Accept an AccountKind, its number (1-3) or its name"""
    if isinstance(value, AccountKind):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return AccountKind(value)
        except ValueError:
            return None
    if isinstance(value, str):
        return AccountKind.__members__.get(value.strip().upper())
    return None


def _is_decimal(value: Any) -> bool:
    return isinstance(value, Decimal) and value.is_finite()


def _positive(value: Any) -> bool:
    return _is_decimal(value) and value > 0


def _fits(value: Any) -> bool:
    return not _is_decimal(value) or fits_money(value)


def _two_places(value: Any) -> bool:
    return not _is_decimal(value) or has_two_decimal_places(value)


def _not_blank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _within_business_hours(config: LedgerConfig, now: Callable[[], datetime]) -> bool:
    if not config.enforce_business_hours:
        return True
    hour = now().hour
    return config.business_hours_start <= hour <= config.business_hours_end


def _has_funds(service: LedgerService, account_number: str, amount: Any) -> bool:
    account = service.find_account(account_number)
    if account is None or not _is_decimal(amount):
        # Reported by the existence and amount checks
        return True
    return account.balance >= amount


# -- Validators -------------------------------------------------------------

def create_account_validator(
    service: LedgerService,
    config: Optional[LedgerConfig] = None
) -> Validator:
    """Rules for opening an account"""
    return Validator([
        Check("holder_name", "Holder name is required",
              lambda r: _not_blank(r.holder_name)),
        Check("holder_name", "Holder name must be between 2 and 100 characters",
              lambda r: 2 <= len(r.holder_name) <= 100),
        Check("holder_name", "Holder name must contain only letters and spaces",
              lambda r: bool(HOLDER_NAME_PATTERN.match(r.holder_name))),
        Check("cpf", "CPF is required",
              lambda r: _not_blank(r.cpf)),
        Check("cpf", "Invalid CPF",
              lambda r: cpf_validator.is_valid(r.cpf)),
        Check("cpf", "CPF already has an account",
              lambda r: not service.identity_already_registered(r.cpf)),
        Check("kind", "Invalid account kind",
              lambda r: coerce_kind(r.kind) is not None),
        Check("kind", "Business accounts require additional verification",
              lambda r: coerce_kind(r.kind) != AccountKind.BUSINESS),
    ])


def deposit_validator(
    service: LedgerService,
    config: Optional[LedgerConfig] = None
) -> Validator:
    """Rules for deposits"""
    config = config or get_config()
    max_deposit = as_money(config.max_deposit_amount)
    return Validator([
        Check("account_number", "Account number is required",
              lambda r: _not_blank(r.account_number)),
        Check("account_number", "Account not found",
              lambda r: service.account_exists(r.account_number)),
        Check("amount", "Amount must be greater than zero",
              lambda r: _positive(r.amount)),
        Check("amount", f"Maximum deposit amount is {format_money(max_deposit)}",
              lambda r: r.amount <= max_deposit),
        Check("amount", "Amount is too large",
              lambda r: _fits(r.amount)),
        Check("amount", "Amount must have at most 2 decimal places",
              lambda r: _two_places(r.amount)),
    ])


def withdrawal_validator(
    service: LedgerService,
    config: Optional[LedgerConfig] = None,
    now: Optional[Callable[[], datetime]] = None
) -> Validator:
    """Rules for withdrawals"""
    config = config or get_config()
    now = now or datetime.now
    savings_max = as_money(config.savings_max_withdrawal)

    def is_savings(r: WithdrawalRequest) -> bool:
        account = service.find_account(r.account_number)
        return account is not None and account.is_savings

    return Validator([
        Check("account_number", "Account number is required",
              lambda r: _not_blank(r.account_number)),
        Check("account_number", "Account not found",
              lambda r: service.account_exists(r.account_number)),
        Check("amount", "Amount must be greater than zero",
              lambda r: _positive(r.amount)),
        Check("amount", "Amount is too large",
              lambda r: _fits(r.amount)),
        Check("amount", "Amount must have at most 2 decimal places",
              lambda r: _two_places(r.amount)),
        Check("amount",
              f"Savings accounts allow a maximum withdrawal of {format_money(savings_max)} per operation",
              lambda r: r.amount <= savings_max,
              when=is_savings),
        Check("balance", "Insufficient balance for this withdrawal",
              lambda r: _has_funds(service, r.account_number, r.amount)),
        Check("schedule",
              f"Withdrawals are only allowed between {config.business_hours_start}h "
              f"and {config.business_hours_end}h",
              lambda r: _within_business_hours(config, now)),
    ])


def transfer_validator(
    service: LedgerService,
    config: Optional[LedgerConfig] = None,
    now: Optional[Callable[[], datetime]] = None
) -> Validator:
    """Rules for transfers"""
    config = config or get_config()
    now = now or datetime.now
    daily_limit = as_money(config.daily_transfer_limit)

    def within_daily_limit(r: TransferRequest) -> bool:
        if not _is_decimal(r.amount):
            return True
        return service.get_daily_total(r.source_account) + r.amount <= daily_limit

    return Validator([
        Check("source_account", "Source account is required",
              lambda r: _not_blank(r.source_account)),
        Check("source_account", "Source account not found",
              lambda r: service.account_exists(r.source_account)),
        Check("destination_account", "Destination account is required",
              lambda r: _not_blank(r.destination_account)),
        Check("destination_account", "Destination account not found",
              lambda r: service.account_exists(r.destination_account)),
        Check("source_account", "Cannot transfer to the same account",
              lambda r: r.source_account != r.destination_account),
        Check("amount", "Amount must be greater than zero",
              lambda r: _positive(r.amount)),
        Check("amount", "Amount is too large",
              lambda r: _fits(r.amount)),
        Check("amount", "Amount must have at most 2 decimal places",
              lambda r: _two_places(r.amount)),
        Check("daily_limit",
              f"Amount exceeds the daily transfer limit ({format_money(daily_limit)})",
              within_daily_limit),
        Check("balance", "Insufficient balance in the source account",
              lambda r: _has_funds(service, r.source_account, r.amount)),
        Check("schedule",
              f"Transfers are only allowed between {config.business_hours_start}h "
              f"and {config.business_hours_end}h",
              lambda r: _within_business_hours(config, now)),
        Check("description",
              f"Description must be at most {config.max_description_length} characters",
              lambda r: len(r.description) <= config.max_description_length,
              when=lambda r: bool(r.description)),
    ])
