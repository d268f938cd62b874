"""Sampled one-dimensional curves with monotonic spline interpolation."""

from __future__ import annotations

import math
from typing import Any, Sequence

import numpy as np
from scipy.interpolate import PchipInterpolator

from .errors import InvalidArgument, NullInput, OutOfRange

__all__ = ["Curve"]


def _as_float_array(values: Sequence[float] | np.ndarray, label: str) -> np.ndarray:
    if values is None:
        raise NullInput(f"no {label} values given")
    array = np.array(values, dtype=float)
    if array.ndim != 1:
        raise InvalidArgument(
            f"{label} values have to be one-dimensional",
            context={"shape": array.shape},
        )
    if not np.all(np.isfinite(array)):
        raise InvalidArgument(f"{label} values have to be finite")
    return array


class Curve:
    """Named sequence of ``(x, y)`` samples with strictly increasing ``x``.

    ``x`` and ``y`` are exposed as mutable numpy arrays so that alignment
    routines can warp a curve in place.  Every such edit has to be followed by
    :meth:`update_interpolation`, which drops the cached spline, its
    derivative and the per-sample slopes.
    """

    __slots__ = (
        "_name",
        "_x",
        "_y",
        "_interpolant",
        "_derivative",
        "_slopes",
        "__weakref__",
    )

    def __init__(
        self,
        name: str,
        y: Sequence[float] | np.ndarray,
        x: Sequence[float] | np.ndarray | None = None,
    ) -> None:
        y_values = _as_float_array(y, "y")
        if y_values.size < 2:
            raise InvalidArgument(
                "a curve needs at least two samples",
                context={"size": int(y_values.size)},
            )
        if x is None:
            x_values = np.arange(y_values.size, dtype=float)
        else:
            x_values = _as_float_array(x, "x")
            if x_values.size != y_values.size:
                raise InvalidArgument(
                    "x and y differ in length",
                    context={"x_size": int(x_values.size), "y_size": int(y_values.size)},
                )
            if np.any(np.diff(x_values) <= 0.0):
                raise InvalidArgument("x values have to be strictly increasing")
        self._name = ""
        self.name = name
        self._x = x_values
        self._y = y_values
        self._interpolant: PchipInterpolator | None = None
        self._derivative: Any | None = None
        self._slopes: np.ndarray | None = None

    # ------------------------------------------------------------------
    # identity and raw data
    # ------------------------------------------------------------------
    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if value is None:
            raise NullInput("curve name is missing")
        if not isinstance(value, str):
            raise InvalidArgument(
                "curve name has to be a string", context={"type": type(value).__name__}
            )
        if not value:
            raise InvalidArgument("curve name is empty")
        self._name = value

    @property
    def x(self) -> np.ndarray:
        return self._x

    @property
    def y(self) -> np.ndarray:
        return self._y

    def size(self) -> int:
        return int(self._y.size)

    def __len__(self) -> int:
        return self.size()

    @property
    def xmin(self) -> float:
        return float(self._x[0])

    @property
    def xmax(self) -> float:
        return float(self._x[-1])

    @property
    def ymin(self) -> float:
        return float(np.min(self._y))

    @property
    def ymax(self) -> float:
        return float(np.max(self._y))

    @property
    def length(self) -> float:
        return self.xmax - self.xmin

    # ------------------------------------------------------------------
    # interpolation
    # ------------------------------------------------------------------
    def update_interpolation(self) -> None:
        """Invalidate cached interpolation data after editing ``x`` or ``y``."""

        if np.any(np.diff(self._x) <= 0.0):
            raise InvalidArgument(
                "x values have to be strictly increasing",
                context={"curve": self._name},
            )
        self._interpolant = None
        self._derivative = None
        self._slopes = None

    def _spline(self) -> PchipInterpolator:
        if self._interpolant is None:
            self._interpolant = PchipInterpolator(self._x, self._y, extrapolate=False)
        return self._interpolant

    def _clamp(self, x: float | np.ndarray) -> float | np.ndarray:
        return np.clip(x, self._x[0], self._x[-1])

    def value(self, x: float | np.ndarray) -> float | np.ndarray:
        """Return the interpolated curve value at ``x`` (clamped to the domain)."""

        result = self._spline()(self._clamp(x))
        if np.ndim(result) == 0:
            return float(result)
        return result

    def slope(self, x: float | np.ndarray) -> float | np.ndarray:
        """Return the slope of the interpolant at ``x`` (clamped to the domain)."""

        if self._derivative is None:
            self._derivative = self._spline().derivative()
        result = self._derivative(self._clamp(x))
        if np.ndim(result) == 0:
            return float(result)
        return result

    def _compute_slopes(self) -> np.ndarray:
        return np.asarray(self.slope(self._x), dtype=float)

    @property
    def slopes(self) -> np.ndarray:
        """Slope of the interpolant at every sample."""

        if self._slopes is None:
            self._slopes = self._compute_slopes()
        return self._slopes

    @property
    def slope_min(self) -> float:
        return float(np.min(self.slopes))

    @property
    def slope_max(self) -> float:
        return float(np.max(self.slopes))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def y_equidistant(self, samples: int) -> np.ndarray:
        """Resample the curve at ``samples`` evenly spaced x positions."""

        if samples < 2:
            raise OutOfRange("samples", samples, 2, math.inf)
        positions = np.linspace(self.xmin, self.xmax, samples)
        resampled = np.asarray(self.value(positions), dtype=float)
        resampled[0] = self._y[0]
        resampled[-1] = self._y[-1]
        return resampled

    def closest_point(self, x: float) -> int:
        """Return the index of the sample closest to ``x``; ties pick the lower index."""

        index = int(np.searchsorted(self._x, x, side="left"))
        if index >= self.size():
            return self.size() - 1
        if index > 0 and self._x[index] != x:
            if abs(x - self._x[index - 1]) <= abs(self._x[index] - x):
                index -= 1
        return index

    def copy(self, name: str | None = None) -> "Curve":
        return Curve(name or self._name, self._y.copy(), self._x.copy())

    def __repr__(self) -> str:
        return f"Curve(name={self._name!r}, size={self.size()})"
