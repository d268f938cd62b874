"""Positional tolerances used when comparing warped x-coordinates."""

from __future__ import annotations

from .errors import InvalidArgument

__all__ = ["PRECISION_LENGTH_FACTOR", "precision_delta", "same_x"]


PRECISION_LENGTH_FACTOR = 1e-4


def precision_delta(curve_length: float) -> float:
    """Return the absolute tolerance for a curve spanning ``curve_length``."""

    if curve_length <= 0:
        raise InvalidArgument(
            "curve length has to be positive",
            context={"curve_length": curve_length},
        )
    return PRECISION_LENGTH_FACTOR * curve_length


def same_x(x1: float, x2: float, curve_length: float) -> bool:
    return abs(x1 - x2) <= precision_delta(curve_length)
