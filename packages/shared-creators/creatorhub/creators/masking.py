"""Masked-value detection and identity field normalisation.

Order feeds redact personal data with ``*`` placeholders, e.g. a phone of
``"(+1)808*****50"`` or a name of ``"J*** D**"``. Masked values are never
authoritative: ``is_masked`` is the single predicate used wherever trust is
decided.

Examples:
    >>> is_masked("(+1)808*****50")
    True
    >>> normalize_phone("(+1)8085551234")
    '+18085551234'
    >>> parse_masked_phone("(+1)808*****50")
    ('808', '50')
"""

from __future__ import annotations

import re

import phonenumbers

MASK_CHAR = "*"

# Visible fragments of a masked US phone: area code and trailing digits
MASKED_PHONE_PATTERN = re.compile(r"\+1\)?(\d{3})\*+(\d+)$")

DEFAULT_REGION = "US"

# Country prefix the visible area code of a masked phone follows
MASKED_PHONE_PREFIX = "+1"


def is_masked(value: str | None) -> bool:
    """Return True if the value cannot be trusted as ground truth.

    ``None`` and empty strings count as masked so callers can use a single
    check for "no trustworthy value".
    """
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    return value.strip() == "" or MASK_CHAR in value


def has_value(value: object) -> bool:
    """Return True if value is set and not an empty string."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _strip_phone(raw: str) -> str:
    return re.sub(r"[()\s\-.]", "", raw)


def normalize_phone(raw: str | None, region: str = DEFAULT_REGION) -> str | None:
    """Normalise a phone number to E.164.

    Masked input is returned cleaned but otherwise untouched. Malformed input
    returns None so it is treated as "no signal".

    Args:
        raw: Raw phone string, e.g. ``"(+1)8085551234"``.
        region: Default region for numbers without a country code.

    Returns:
        E.164 string, the cleaned masked string, or None.
    """
    if not raw or not isinstance(raw, str):
        return None

    cleaned = _strip_phone(raw.strip())
    if not cleaned:
        return None
    if MASK_CHAR in cleaned:
        return cleaned

    try:
        parsed = phonenumbers.parse(cleaned, region)
    except phonenumbers.NumberParseException:
        return None

    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def parse_masked_phone(raw: str | None) -> tuple[str, str] | None:
    """Extract the visible area code and trailing digits of a masked phone.

    Returns:
        ``(area_code, trailing_digits)`` or None when the fragment is not a
        recognisable masked US number with at least two trailing digits.
    """
    if not raw or MASK_CHAR not in raw:
        return None
    match = MASKED_PHONE_PATTERN.search(raw.strip())
    if not match:
        return None
    area_code, trailing = match.groups()
    if len(trailing) < 2:
        return None
    return area_code, trailing


def parse_name(full_name: str | None) -> tuple[str | None, str | None]:
    """Split a display name into first and last name."""
    if not full_name or not full_name.strip():
        return None, None
    parts = full_name.strip().split(None, 1)
    first = parts[0]
    last = parts[1] if len(parts) > 1 else None
    return first, last


def normalize_name(value: str | None) -> str:
    """Comparison key for names: casefolded with collapsed whitespace."""
    if not value:
        return ""
    return " ".join(value.split()).casefold()


def normalize_handle(value: str | None) -> str:
    """Comparison key for handles: stripped, no leading ``@``, lowercased."""
    if not value:
        return ""
    return value.strip().lstrip("@").strip().lower()
