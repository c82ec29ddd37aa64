"""Phone number canonicalization (Peru mobile numbers)."""

from __future__ import annotations

import re

from candidate_dedup.core.constants import (
    PHONE_COUNTRY_CODE,
    PHONE_MIN_MATCH_DIGITS,
    PHONE_NATIONAL_LENGTH,
)

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str | None) -> str:
    """Reduce *raw* to the national digit sequence.

    Keeps digits only, drops a ``51`` country prefix from 11-digit values and
    a trunk ``0`` from 10-digit values.  Numbers that do not fit either shape
    come back as their bare digits, so the function is idempotent.
    """
    if not raw:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))

    if (
        digits.startswith(PHONE_COUNTRY_CODE)
        and len(digits) == PHONE_NATIONAL_LENGTH + len(PHONE_COUNTRY_CODE)
    ):
        digits = digits[len(PHONE_COUNTRY_CODE):]

    if digits.startswith("0") and len(digits) == PHONE_NATIONAL_LENGTH + 1:
        digits = digits[1:]

    return digits


def phones_match(
    phone_a: str | None,
    phone_b: str | None,
    min_digits: int = PHONE_MIN_MATCH_DIGITS,
) -> bool:
    """True when both normalized phones are long enough and identical."""
    a = normalize_phone(phone_a)
    b = normalize_phone(phone_b)
    return len(a) >= min_digits and a == b


def format_phone_for_display(phone: str | None) -> str:
    """Render a national number as ``+51 9XX XXX XXX``; other values unchanged."""
    normalized = normalize_phone(phone)
    if len(normalized) != PHONE_NATIONAL_LENGTH:
        return phone or ""
    return (
        f"+{PHONE_COUNTRY_CODE} {normalized[:3]} "
        f"{normalized[3:6]} {normalized[6:]}"
    )
