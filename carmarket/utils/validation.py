"""Input checks shared by the ledger and car services."""

import math
from typing import Any


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite (bool is not a number here)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
