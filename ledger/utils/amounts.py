"""Amount parsing shared by every input boundary."""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def parse_amount(raw: Any) -> int:
    """
    Parse user input into a whole, non-negative amount.

    Anything that is not a finite number, and any negative number,
    becomes 0. Fractions are rounded half up to the nearest unit.
    Empty input is 0.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, raw)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return 0
        value = Decimal(str(raw))
    else:
        text = str(raw).strip()
        if not text:
            return 0
        try:
            value = Decimal(text)
        except InvalidOperation:
            return 0
        if not value.is_finite():
            return 0

    if value < 0:
        return 0
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
