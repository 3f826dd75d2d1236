"""
Unit tests for decimal quantization.

These tests verify that:
1. Values are rounded half away from zero to the requested decimals
2. Non-finite and very large values pass through unchanged
3. Quantization is idempotent
4. The vectorised variant agrees with the scalar one

"""

import math

import numpy as np
import pytest

from grid2parquet.quantize import quantize, quantize_array


# ──────────────────────────────────────────────────────────────
# Rounding
# ──────────────────────────────────────────────────────────────

def test_quantize_six_decimals():
    assert quantize(1.23456789, 6) == 1.234568
    assert quantize(-1.23456789, 6) == -1.234568


def test_quantize_zero_decimals():
    assert quantize(3.4, 0) == 3.0
    assert quantize(3.6, 0) == 4.0


def test_quantize_half_away_from_zero():
    assert quantize(0.5, 0) == 1.0
    assert quantize(-0.5, 0) == -1.0
    assert quantize(2.5, 0) == 3.0
    assert quantize(0.125, 2) == 0.13
    assert quantize(-0.125, 2) == -0.13


def test_quantize_just_below_half():
    below = 0.49999999999999994
    assert quantize(below, 0) == 0.0
    assert quantize(-below, 0) == 0.0
    np.testing.assert_array_equal(quantize_array([below, -below, 0.5], 0), [0.0, -0.0, 1.0])


def test_quantize_negative_decimals_rejected():
    with pytest.raises(ValueError):
        quantize(1.0, -1)
    with pytest.raises(ValueError):
        quantize_array([1.0], -1)


# ──────────────────────────────────────────────────────────────
# Non-finite and large values
# ──────────────────────────────────────────────────────────────

def test_quantize_non_finite_passthrough():
    assert math.isnan(quantize(float("nan"), 6))
    assert quantize(float("inf"), 6) == float("inf")
    assert quantize(float("-inf"), 6) == float("-inf")


def test_quantize_large_values_unchanged():
    assert quantize(1e300, 6) == 1e300
    assert quantize(-1.7e308, 6) == -1.7e308
    assert quantize(123456789012.5, 6) == 123456789012.5


def test_quantize_huge_decimals():
    assert quantize(0.1, 400) == 0.1


# ──────────────────────────────────────────────────────────────
# Idempotence
# ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize("decimals", [0, 1, 3, 6, 9])
def test_quantize_idempotent(decimals):
    rng = np.random.default_rng(1234)
    values = np.concatenate([rng.uniform(-1e6, 1e6, 500), rng.normal(0.0, 1e-3, 500)])
    for x in values:
        q = quantize(float(x), decimals)
        assert quantize(q, decimals) == q


# ──────────────────────────────────────────────────────────────
# Array variant
# ──────────────────────────────────────────────────────────────

def test_quantize_array_matches_scalar():
    values = np.array([0.1234567, -0.0000005, 2.5e-7, 1e300, np.nan, np.inf, -np.inf, 42.0])
    expected = np.array([quantize(float(v), 6) for v in values])
    np.testing.assert_array_equal(quantize_array(values, 6), expected)


def test_quantize_array_float32_input():
    values = np.array([0.1234567, 1.0000004], dtype=np.float32)
    out = quantize_array(values, 6)
    assert out.dtype == np.float64
    np.testing.assert_allclose(out, [0.123457, 1.0], rtol=0, atol=1e-12)


def test_quantize_array_idempotent():
    rng = np.random.default_rng(7)
    values = rng.uniform(-100.0, 100.0, 1000)
    once = quantize_array(values, 4)
    np.testing.assert_array_equal(quantize_array(once, 4), once)
