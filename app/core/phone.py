"""Phone number normalization used as the contact fallback key."""

from __future__ import annotations

import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], country_code: str = "55") -> Optional[str]:
    """
    Normalize to +<digits>.

    Local numbers (10 or 11 digits: area code plus 8 or 9 digit subscriber)
    get the country code prefixed. Anything else is kept as dialed.
    """
    if raw is None:
        return None
    digits = _NON_DIGITS.sub("", str(raw))
    if not digits:
        return None
    if len(digits) in (10, 11):
        digits = f"{country_code}{digits}"
    return f"+{digits}"
