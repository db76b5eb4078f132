"""Numeric coercion for PxWeb cell values.

PxWeb encodes missing or confidential cells with dot tokens (``".."``) and
may format numbers with thousands separators.  Both coercers return
``None`` instead of NaN so that the JSON output stays valid.
"""

from __future__ import annotations

import math
from typing import Any, Optional, Union

Number = Union[int, float]

MISSING_TOKENS = frozenset({"", ".", "..", "...", "-"})


def coerce_number(value: Any) -> Optional[Number]:
    """Lenient coercion: ints stay ints, everything else becomes a float."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = value
    elif isinstance(value, str):
        text = value.strip()
        if text in MISSING_TOKENS:
            return None
        cleaned = text.replace("\u00a0", "").replace("\u202f", "").replace(",", "")
        if "_" in cleaned:
            return None
        try:
            num = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if isinstance(num, float) and not math.isfinite(num):
        return None
    return num


def tidy_number(value: Any) -> Optional[Number]:
    """Strict coercion that also snaps integral values (``5.0``) to ``int``."""
    num = coerce_number(value)
    if num is None:
        return None
    if isinstance(num, float) and num.is_integer():
        return int(num)
    return num
