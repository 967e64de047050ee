"""
CPF Checksum Validation

A CPF (Brazilian taxpayer id) has nine base digits followed by two check
digits, each computed from a weighted sum modulo 11.
"""

from typing import Any

CPF_LENGTH = 11
_SEPARATORS = str.maketrans("", "", ".- ")


def normalize(value: str) -> str:
    """Strip dots, hyphens and spaces"""
    return value.translate(_SEPARATORS)


def _check_digit(digits: str) -> int:
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def check_digits(base: str) -> str:
    """
    Compute the two check digits for a nine-digit CPF base.

    Raises:
        ValueError: If base is not exactly nine ASCII digits
    """
    if len(base) != 9 or not (base.isascii() and base.isdigit()):
        raise ValueError("CPF base must be exactly 9 digits")

    first = _check_digit(base)
    second = _check_digit(base + str(first))
    return f"{first}{second}"


def is_valid(value: Any) -> bool:
    """
    Validate a CPF against its check digits.

    Never raises: anything that is not a string of 11 digits (after removing
    separators) is simply invalid, as are sequences of one repeated digit.
    """
    if not isinstance(value, str) or not value.strip():
        return False

    digits = normalize(value)
    if len(digits) != CPF_LENGTH or not (digits.isascii() and digits.isdigit()):
        return False

    if digits == digits[0] * CPF_LENGTH:
        return False

    return check_digits(digits[:9]) == digits[9:]


def format_cpf(value: str) -> str:
    """
    Render a valid CPF as XXX.XXX.XXX-XX

    Raises:
        ValueError: If the value is not a valid CPF
    """
    if not is_valid(value):
        raise ValueError(f"Invalid CPF: {value!r}")
    digits = normalize(value)
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
