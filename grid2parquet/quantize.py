# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Decimal quantization
──────────────────────────────────────────────────────────────────────────────
Field values are rounded to a fixed number of decimals before they are
written, which lowers their entropy and lets the columnar compressor do a
better job without materially changing the physics.

Rounding mode is **round half away from zero** (the behaviour of C's
``roundf``), not Python's default banker's rounding:

    quantize(0.0000005, 6)  ->  0.000001
    quantize(-0.0000005, 6) -> -0.000001

Rules:
 - NaN and ±inf pass through unchanged; quantization never raises on a value.
 - Values whose scaled magnitude reaches 2**52 already sit on the requested
   decimal grid (float64 has no fractional bits left there) and pass through
   unchanged, so scaling can never overflow into an infinity.
 - Arithmetic is done in float64; the writer casts the result to float32.

"""

from __future__ import annotations

import math

import numpy as np

# Beyond this magnitude every float64 is an integer.
_EXACT_LIMIT = float(2 ** 52)

# 10.0 ** 309 overflows; any finer grid is below float64 resolution anyway.
_MAX_DECIMALS = 308


def _check_decimals(decimals: int) -> int:
    decimals = int(decimals)
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    return decimals


def quantize(x: float, decimals: int) -> float:
    """
    Round ``x`` to ``decimals`` decimal places, half away from zero.

    Args:
        x: value to round.
        decimals: number of decimal places (>= 0).

    Returns:
        The rounded value as a Python float. Non-finite inputs are returned as is.

    Raises:
        ValueError: if ``decimals`` is negative.
    """
    decimals = _check_decimals(decimals)
    x = float(x)

    if not math.isfinite(x) or decimals > _MAX_DECIMALS:
        return x

    scale = 10.0 ** decimals
    scaled = x * scale

    if not math.isfinite(scaled) or abs(scaled) >= _EXACT_LIMIT:
        return x

    # a - floor(a) is exact below 2**52; floor(a + 0.5) is not
    a = abs(scaled)
    whole = math.floor(a)
    if a - whole >= 0.5:
        whole += 1.0
    return math.copysign(whole, x) / scale


def quantize_array(values, decimals: int) -> np.ndarray:
    """
    Vectorised :func:`quantize`. Returns a new float64 array.
    """
    decimals = _check_decimals(decimals)
    arr = np.asarray(values, dtype=np.float64)

    if decimals > _MAX_DECIMALS:
        return arr.copy()

    scale = 10.0 ** decimals

    with np.errstate(over="ignore", invalid="ignore"):
        scaled = arr * scale
        a = np.abs(scaled)
        whole = np.floor(a)
        whole = np.where(a - whole >= 0.5, whole + 1.0, whole)
        rounded = np.copysign(whole, scaled) / scale
        keep = ~np.isfinite(scaled) | (np.abs(scaled) >= _EXACT_LIMIT)

    return np.where(keep, arr, rounded)


__all__ = ["quantize", "quantize_array"]
