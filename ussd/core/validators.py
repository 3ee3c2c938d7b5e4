"""
Input format checks for menu answers.

All checks are total: malformed input yields a result with ok=False and a short
error code, never an exception.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from ussd.utils.money import MAX_AMOUNT, QUANTUM

PHONE_RE = re.compile(r"\+[0-9]{10,15}")
PIN_RE = re.compile(r"[0-9]{4,6}")
_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass(frozen=True)
class Check:
    ok: bool
    value: Optional[object] = None
    error: Optional[str] = None


def normalize_phone(raw: Optional[str]) -> str:
    """Drop every non-digit and prefix '+'. Idempotent."""
    return "+" + _NON_DIGITS.sub("", raw or "")


def validate_phone(raw: Optional[str]) -> Check:
    phone = normalize_phone(raw)
    if not PHONE_RE.fullmatch(phone):
        return Check(ok=False, value=phone, error="invalid_phone")
    return Check(ok=True, value=phone)


def validate_amount(raw: Optional[str]) -> Check:
    text = (raw or "").strip()
    if not text:
        return Check(ok=False, error="invalid_amount")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return Check(ok=False, error="invalid_amount")
    if not amount.is_finite() or amount <= 0 or amount > MAX_AMOUNT:
        return Check(ok=False, error="invalid_amount")
    # the network carries 7 decimal places
    if amount.quantize(QUANTUM) != amount:
        return Check(ok=False, error="invalid_amount")
    return Check(ok=True, value=amount)


def validate_pin(raw: Optional[str]) -> Check:
    pin = raw or ""
    if not PIN_RE.fullmatch(pin):
        return Check(ok=False, error="invalid_pin")
    return Check(ok=True, value=pin)


def validate_currency(choice: Optional[str], currencies: Sequence[str]) -> Check:
    """Menu digit ('1'..'n') -> currency code from the ordered list."""
    c = choice or ""
    if c.isascii() and c.isdigit():
        idx = int(c)
        if 1 <= idx <= len(currencies):
            return Check(ok=True, value=currencies[idx - 1])
    return Check(ok=False, error="invalid_currency")
