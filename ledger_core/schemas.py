"""
Pydantic schemas for API requests and responses

Amounts travel as strings so they reach the ledger as exact Decimals.
"""

from decimal import Decimal
from typing import Optional, Union
from pydantic import BaseModel, Field

from .accounts import Account
from .money import decimal_from_string


def parse_amount(value: Union[str, int, None]) -> Optional[Decimal]:
    """Decimal for a request amount, or None if it cannot be parsed"""
    if value is None:
        return None
    if isinstance(value, int):
        return Decimal(value)
    try:
        return decimal_from_string(value)
    except ValueError:
        return None


class CreateAccountRequestModel(BaseModel):
    holder_name: str = ""
    cpf: str = ""
    kind: Union[int, str] = Field(..., description="Account kind (1/CHECKING, 2/SAVINGS, 3/BUSINESS)")


class AmountRequestModel(BaseModel):
    amount: Union[str, int] = Field(..., description="Decimal amount as string")

    def to_decimal(self) -> Optional[Decimal]:
        return parse_amount(self.amount)


class TransferRequestModel(BaseModel):
    source_account: str = ""
    destination_account: str = ""
    amount: Union[str, int] = Field(..., description="Decimal amount as string")
    description: Optional[str] = None

    def to_decimal(self) -> Optional[Decimal]:
        return parse_amount(self.amount)


class AccountResponse(BaseModel):
    account_number: str
    holder_name: str
    cpf: str
    balance: str = Field(..., description="Decimal balance as string")
    kind: str
    opened_at: str
    active: bool

    @classmethod
    def from_account(cls, account: Account) -> 'AccountResponse':
        return cls(
            account_number=account.account_number,
            holder_name=account.holder_name,
            cpf=account.cpf,
            balance=str(account.balance),
            kind=account.kind.name,
            opened_at=account.opened_at.isoformat(),
            active=account.active
        )


class DailyTransfersResponse(BaseModel):
    account_number: str
    date: str
    total: str
