"""
Priority normalization for ranking.

Stored priorities arrive as a number, a string, or nothing at all. They are
resolved here into a float sort key; the key is recomputed per query and
never written back.
"""

from __future__ import annotations

import math
import re
from typing import Any


_NUMBER_RE = re.compile(r"^[-+]?\d+(?:\.\d+)?$")


def normalize_priority(value: Any) -> float:
    """Return the numeric priority of a stored value, defaulting to 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if isinstance(value, str):
        text = value.strip()
        if _NUMBER_RE.match(text):
            return float(text)
    return 0.0
