"""
Formatting utilities
Pure functions for receipt numbers, money, words and messaging links
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import quote

DEFAULT_PREFIX = "PFX"
DEFAULT_MESSAGING_HOST = "wa.me"
WORDS_SUFFIX = "Rupees Only."

_ONES = [
    "", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine",
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen",
    "seventeen", "eighteen", "nineteen",
]
_TENS = [
    "", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety",
]

_CRORE = 10 ** 7
_LAKH = 10 ** 5
_RECEIPT_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]+-(\d{4})-(\d{4,})$")
_NON_DIGITS = re.compile(r"\D")
_CENTS = Decimal("0.01")


def _to_amount(value: Any) -> Optional[Decimal]:
    """Coerce to a finite non-negative Decimal, or None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    # normalizes -0
    return amount.copy_abs()


def next_receipt_number(existing_count: int, year: int, prefix: str = DEFAULT_PREFIX) -> str:
    """
    Build the next receipt number from the number of receipts already known

    >>> next_receipt_number(9, 2024)
    'PFX-2024-0010'
    """
    sequence = max(int(existing_count), 0) + 1
    return f"{prefix}-{int(year)}-{sequence:04d}"


def receipt_year(receipt_number: str) -> Optional[int]:
    """Year segment of a receipt number, None when malformed"""
    match = _RECEIPT_NUMBER_PATTERN.match(receipt_number or "")
    return int(match.group(1)) if match else None


def receipt_sequence(receipt_number: str) -> Optional[int]:
    """Sequence segment of a receipt number, None when malformed"""
    match = _RECEIPT_NUMBER_PATTERN.match(receipt_number or "")
    return int(match.group(2)) if match else None


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount: Any, symbol: str = "₹") -> str:
    """
    Format a non-negative amount with lakh/crore digit grouping

    Anything that is not a finite non-negative number formats as zero.
    """
    value = _to_amount(amount)
    if value is None:
        return f"{symbol}0.00"
    try:
        value = value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return f"{symbol}0.00"
    whole, _, fraction = f"{value:f}".partition(".")
    return f"{symbol}{_group_indian(whole)}.{fraction or '00'}"


def _two_digit_words(n: int) -> str:
    if n < 20:
        return _ONES[n]
    tens, ones = divmod(n, 10)
    return f"{_TENS[tens]} {_ONES[ones]}" if ones else _TENS[tens]


def _integer_words(n: int) -> str:
    parts = []

    crore, n = divmod(n, _CRORE)
    if crore:
        parts.append(f"{_integer_words(crore)} crore")

    lakh, n = divmod(n, _LAKH)
    if lakh:
        parts.append(f"{_two_digit_words(lakh)} lakh")

    thousand, n = divmod(n, 1000)
    if thousand:
        parts.append(f"{_two_digit_words(thousand)} thousand")

    hundred, n = divmod(n, 100)
    if hundred:
        parts.append(f"{_ONES[hundred]} hundred")

    if n:
        parts.append(_two_digit_words(n))

    return " ".join(parts)


def amount_to_words(amount: Any) -> str:
    """
    Spell the rupee part of an amount using crore/lakh grouping

    Paise are dropped; zero, negative and invalid input give "Zero".

    >>> amount_to_words(1500)
    'one thousand five hundred Rupees Only.'
    """
    value = _to_amount(amount)
    rupees = int(value) if value is not None else 0
    if rupees == 0:
        return f"Zero {WORDS_SUFFIX}"
    return f"{_integer_words(rupees)} {WORDS_SUFFIX}"


def sanitize_phone_for_messaging(phone: str) -> str:
    """Strip everything but digits; no length or country code checks"""
    return _NON_DIGITS.sub("", phone or "")


def compose_message_link(
    phone: str,
    customer_name: str,
    receipt_number: str,
    host: str = DEFAULT_MESSAGING_HOST,
) -> str:
    """Messaging deep link carrying a greeting for the customer"""
    greeting = (
        f"Hello {customer_name}, your repair receipt {receipt_number} is ready. "
        "Thank you for choosing us!"
    )
    digits = sanitize_phone_for_messaging(phone)
    return f"https://{host}/{digits}?text={quote(greeting, safe='')}"


def document_filename(receipt_number: str, customer_name: str, ext: str = "pdf") -> str:
    """Download name of a rendered receipt"""
    name = (customer_name or "").strip().replace(" ", "_")
    return f"{receipt_number}_{name}_REPAIR.{ext}"
