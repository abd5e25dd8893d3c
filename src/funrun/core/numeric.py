"""Numeric coercion helpers for untrusted input."""

import math
import time
import uuid
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """Generate an opaque unique id."""
    return uuid.uuid4().hex


def safe_num(value: Any, default: float = 0.0) -> float:
    """Coerce a value to a finite float.

    Args:
        value: Anything a client or an old snapshot may contain.
        default: Returned when the value is not a finite number.

    Returns:
        The value as float, or default.

    Example:
        >>> safe_num("1.5")
        1.5
        >>> safe_num("abc", 3)
        3
        >>> safe_num(float("nan"))
        0.0
    """
    if isinstance(value, bool) or value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def safe_int(value: Any, default: int = 0) -> int:
    """Coerce a value to an int, truncating toward zero."""
    return int(safe_num(value, default))


def clamp_pct(value: Any) -> float:
    """Coerce to a percentage in [0, 100]."""
    return max(0.0, min(100.0, safe_num(value, 0.0)))


def pct_to_frac(value: Any) -> float:
    """Convert a percentage to a fraction in [0, 1]."""
    return clamp_pct(value) / 100
