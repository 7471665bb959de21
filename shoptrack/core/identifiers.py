"""IMEI / serial number normalisation.

Serial numbers arrive typed by hand, scanned, or pasted from a phone's
``*#06#`` screen, so the same device can show up as ``35-209900-176148-1``,
``352099 001761481`` or ``352099001761481``. Everything is reduced to one
canonical form before it is stored or compared.
"""

from __future__ import annotations

import re

__all__ = ["luhn_valid", "normalize_imei"]


_ALPHA_RE = re.compile(r"[A-Za-z]")
_SEPARATORS_RE = re.compile(r"[\s\-./]+")


def normalize_imei(raw: str | None) -> str | None:
    """Return the canonical form of an IMEI/serial, or ``None`` when blank.

    * Numeric values lose every separator (spaces, dashes, dots, slashes).
    * Alphanumeric serials keep their characters, upper-cased, with internal
      whitespace collapsed to nothing as well.
    """

    if raw is None:
        return None
    cleaned = raw.strip()
    if not cleaned:
        return None
    collapsed = _SEPARATORS_RE.sub("", cleaned)
    if not collapsed:
        return None
    if _ALPHA_RE.search(collapsed):
        return collapsed.upper()
    return collapsed


def luhn_valid(digits: str) -> bool:
    """Check the Luhn checksum used by 15-digit IMEIs."""

    if not digits.isdigit():
        return False
    total = 0
    for index, char in enumerate(reversed(digits)):
        value = int(char)
        if index % 2 == 1:
            value *= 2
            if value > 9:
                value -= 9
        total += value
    return total % 10 == 0
