"""
Money Handling Module

Balances and amounts are Decimal values with exactly two fractional digits.
NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
import re

from .exceptions import InvalidArgument

# Set global decimal context for financial precision
getcontext().prec = 28

MONEY_QUANTUM = Decimal('0.01')
ZERO = Decimal('0.00')


def to_decimal(value) -> Decimal:
    """
    Convert an int, str or Decimal to Decimal without any rounding.

    Raises:
        InvalidArgument: For floats, booleans, non-numeric or non-finite values
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidArgument(f"Amount must be an exact decimal, got {type(value).__name__}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise InvalidArgument(f"Cannot convert {value!r} to Decimal")
    else:
        raise InvalidArgument(f"Unsupported amount type: {type(value).__name__}")

    if not result.is_finite():
        raise InvalidArgument(f"Amount must be finite, got {value!r}")
    return result


def fits_money(value: Decimal) -> bool:
    """Check the value can be held at scale 2 within the context precision"""
    try:
        value.quantize(MONEY_QUANTUM)
    except InvalidOperation:
        return False
    return True


def has_two_decimal_places(value: Decimal) -> bool:
    """Check that rounding to cents would not change the value"""
    if not fits_money(value):
        return False
    return value == value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def as_money(value) -> Decimal:
    """Normalize to a Decimal with exactly two fractional digits (rounds half up)"""
    amount = to_decimal(value)
    if not fits_money(amount):
        raise InvalidArgument(f"Amount is too large, got {amount}")
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def require_positive_amount(value) -> Decimal:
    """
    Validate a mutation amount and return it at scale 2.

    Raises:
        InvalidArgument: If the amount is not > 0, too large to hold
            in cents, or has more than two decimals
    """
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidArgument(f"Amount must be positive, got {amount}")
    if not fits_money(amount):
        raise InvalidArgument(f"Amount is too large, got {amount}")
    if not has_two_decimal_places(amount):
        raise InvalidArgument(f"Amount must have at most 2 decimal places, got {amount}")
    return amount.quantize(MONEY_QUANTUM)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Accepts "1234.56", "1,234.56", "1.234,56" and "R$ 1.234,56".

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result


def format_money(amount: Decimal) -> str:
    """Format for display, e.g. R$ 5,000.00"""
    return f"R$ {as_money(amount):,.2f}"
