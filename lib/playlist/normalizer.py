"""
View-count normalization: "1.2M views" -> 1200000.
"""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

# ASCII digits only; str.isdigit-style Unicode digits are not view counts
_VIEWS_RE = re.compile(r"^\s*([0-9,.]+)([KMB])?\s*views?\s*$", re.IGNORECASE | re.ASCII)

_MULTIPLIERS = {
    "": 1,
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}


def normalize_views(text: Any) -> int:
    """
    Parse YouTube-style view text into an integer count.

    - "950 views" -> 950, "2,300 view" -> 2300
    - K / M / B suffix (case-insensitive) scales by thousand / million / billion
    - fractional results are truncated toward zero ("1.5555K views" -> 1555)
    - anything else ("Live", "", "No views", "١٢٣ views", None) -> 0

    Never raises: a malformed item must not fail the whole playlist.
    """
    if not isinstance(text, str):
        return 0
    m = _VIEWS_RE.match(text)
    if not m:
        return 0

    number = m.group(1).replace(",", "")
    suffix = (m.group(2) or "").upper()
    try:
        with localcontext() as ctx:
            # enough precision that scaling never rounds
            ctx.prec = max(28, len(number) + 10)
            value = Decimal(number) * _MULTIPLIERS[suffix]
    except ArithmeticError:
        return 0
    if not value.is_finite():
        return 0
    return int(value)
