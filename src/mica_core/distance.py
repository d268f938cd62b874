"""Sampled distances between curves comparing values or slopes."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from .curve import Curve
from .errors import InvalidArgument, NullInput, OutOfRange

__all__ = [
    "Signal",
    "Reduction",
    "SampledCurveDistance",
    "value_rms",
    "value_mean_absolute",
    "slope_rms",
    "slope_mean_absolute",
    "distance_from_name",
    "DISTANCE_NAMES",
    "WarpCorrection",
    "NoWarpCorrection",
    "no_warp_correction",
    "LinearWarpCorrection",
    "MIN_WARP_SCALING",
]


class Signal(str, Enum):
    """Curve property compared at each sample position."""

    VALUE = "value"
    SLOPE = "slope"


class Reduction(str, Enum):
    """How pointwise differences are reduced to one distance."""

    RMS = "rms"
    MEAN_ABSOLUTE = "mean-abs"


class SampledCurveDistance:
    """Distance of two curves evaluated at matched, evenly spaced positions.

    ``signal`` selects whether curve values or slopes are compared and
    ``reduction`` whether the differences are combined as root mean square or
    as mean absolute difference.
    """

    def __init__(
        self,
        sample_number: int,
        *,
        signal: Signal = Signal.VALUE,
        reduction: Reduction = Reduction.RMS,
    ) -> None:
        self._sample_number = 2
        self.sample_number = sample_number
        self.signal = Signal(signal)
        self.reduction = Reduction(reduction)

    @property
    def sample_number(self) -> int:
        return self._sample_number

    @sample_number.setter
    def sample_number(self, value: int) -> None:
        if value is None:
            raise NullInput("sample number is missing")
        if int(value) != value or value < 2:
            raise OutOfRange("sample_number", value, 2, math.inf)
        self._sample_number = int(value)

    @property
    def name(self) -> str:
        return f"{self.signal.value}-{self.reduction.value}"

    @property
    def description(self) -> str:
        signal = "curve value" if self.signal is Signal.VALUE else "slope"
        reduction = "RMSD" if self.reduction is Reduction.RMS else "mean absolute difference"
        return (
            f"Computes the {signal} {reduction} on {self._sample_number} "
            "equidistant x-coordinate samples"
        )

    # ------------------------------------------------------------------
    # sampling
    # ------------------------------------------------------------------
    def step_size(self, curve: Curve) -> float:
        if curve is None:
            raise NullInput("no curve given")
        return curve.length / (self._sample_number - 1)

    @staticmethod
    def sample_positions(
        curve: Curve,
        start: int,
        end: int,
        count: int,
        *,
        index_bias: float = 0.0,
        inclusive_end: bool = True,
    ) -> np.ndarray:
        """Return ``count`` evenly spaced x positions over ``[x[start], x[end]]``.

        ``index_bias`` shifts all positions by that many index units, converted
        to x through the mean sample spacing of the range.  With
        ``inclusive_end`` false the exact end position is left out and the
        positions divide the range into ``count`` equal steps instead.
        """

        if curve is None:
            raise NullInput("no curve given")
        size = curve.size()
        if not 0 <= start < size:
            raise OutOfRange("start", start, 0, size - 1)
        if not 0 <= end < size:
            raise OutOfRange("end", end, 0, size - 1)
        if start >= end:
            raise InvalidArgument(
                "start has to be smaller than end", context={"start": start, "end": end}
            )
        if count < 2:
            raise OutOfRange("count", count, 2, math.inf)
        x_start = float(curve.x[start])
        x_end = float(curve.x[end])
        positions = np.linspace(x_start, x_end, count, endpoint=inclusive_end)
        if index_bias:
            positions = positions + index_bias * (x_end - x_start) / (end - start)
        return positions

    # ------------------------------------------------------------------
    # pointwise differences
    # ------------------------------------------------------------------
    def _signal(self, curve: Curve, positions: np.ndarray) -> np.ndarray:
        if self.signal is Signal.VALUE:
            return np.asarray(curve.value(positions), dtype=float)
        return np.asarray(curve.slope(positions), dtype=float)

    def pointwise(
        self,
        curve1: Curve,
        curve2: Curve,
        positions1: Sequence[float] | np.ndarray,
        positions2: Sequence[float] | np.ndarray,
    ) -> np.ndarray:
        """Per-position contributions summed up by :meth:`finalize`."""

        first = np.asarray(positions1, dtype=float)
        second = np.asarray(positions2, dtype=float)
        if first.shape != second.shape:
            raise InvalidArgument(
                "sample positions differ in length",
                context={"first": first.size, "second": second.size},
            )
        difference = self._signal(curve1, first) - self._signal(curve2, second)
        if self.reduction is Reduction.RMS:
            return difference * difference
        return np.abs(difference)

    def finalize(self, total: float, samples: int) -> float:
        """Turn an accumulated sum of ``samples`` contributions into a distance."""

        if samples < 0:
            raise OutOfRange("samples", samples, 0, math.inf)
        if samples == 0:
            return float(total)
        if self.reduction is Reduction.RMS:
            return math.sqrt(total / samples)
        return total / samples

    def unfinalize(self, distance: float, samples: int) -> float:
        """Inverse of :meth:`finalize`, recovering the accumulated sum."""

        if self.reduction is Reduction.RMS:
            return distance * distance * samples
        return distance * samples

    # ------------------------------------------------------------------
    # distances
    # ------------------------------------------------------------------
    def distance(self, curve1: Curve, curve2: Curve) -> float:
        """Distance over ``sample_number`` evenly spaced positions of each curve."""

        if curve1 is None or curve2 is None:
            raise NullInput("no curve given")
        positions1 = np.linspace(curve1.xmin, curve1.xmax, self._sample_number)
        positions2 = np.linspace(curve2.xmin, curve2.xmax, self._sample_number)
        contributions = self.pointwise(curve1, curve2, positions1, positions2)
        return self.finalize(float(np.sum(contributions)), self._sample_number)

    def distance_at(
        self,
        curve1: Curve,
        curve2: Curve,
        positions1: Sequence[float] | np.ndarray,
        positions2: Sequence[float] | np.ndarray,
    ) -> float:
        """Distance over explicitly matched sample positions."""

        if curve1 is None or curve2 is None:
            raise NullInput("no curve given")
        if positions1 is None or positions2 is None:
            raise NullInput("no sample positions given")
        contributions = self.pointwise(curve1, curve2, positions1, positions2)
        return self.finalize(float(np.sum(contributions)), int(contributions.size))

    def __call__(self, curve1: Curve, curve2: Curve) -> float:
        return self.distance(curve1, curve2)

    def __repr__(self) -> str:
        return f"SampledCurveDistance({self._sample_number}, signal={self.signal.value}, reduction={self.reduction.value})"


def value_rms(sample_number: int) -> SampledCurveDistance:
    return SampledCurveDistance(sample_number, signal=Signal.VALUE, reduction=Reduction.RMS)


def value_mean_absolute(sample_number: int) -> SampledCurveDistance:
    return SampledCurveDistance(
        sample_number, signal=Signal.VALUE, reduction=Reduction.MEAN_ABSOLUTE
    )


def slope_rms(sample_number: int) -> SampledCurveDistance:
    return SampledCurveDistance(sample_number, signal=Signal.SLOPE, reduction=Reduction.RMS)


def slope_mean_absolute(sample_number: int) -> SampledCurveDistance:
    return SampledCurveDistance(
        sample_number, signal=Signal.SLOPE, reduction=Reduction.MEAN_ABSOLUTE
    )


_FACTORIES: dict[str, Callable[[int], SampledCurveDistance]] = {
    "value-rms": value_rms,
    "value-mean-abs": value_mean_absolute,
    "slope-rms": slope_rms,
    "slope-mean-abs": slope_mean_absolute,
}

DISTANCE_NAMES: tuple[str, ...] = tuple(_FACTORIES)


def distance_from_name(name: str, sample_number: int) -> SampledCurveDistance:
    """Build one of the named metrics (``value-rms``, ``slope-mean-abs``, ...)."""

    key = str(name).strip().lower().replace("_", "-")
    try:
        factory = _FACTORIES[key]
    except KeyError:
        raise InvalidArgument(
            f"Unknown distance '{name}'",
            context={"distance": name, "known": ",".join(DISTANCE_NAMES)},
        ) from None
    return factory(sample_number)


MIN_WARP_SCALING = 1e-10


class WarpCorrection(ABC):
    """Penalty applied to a distance computed for a warped interval."""

    @abstractmethod
    def corrected(self, warp_factor: float, distance: float) -> float:
        ...


class NoWarpCorrection(WarpCorrection):
    def corrected(self, warp_factor: float, distance: float) -> float:
        return distance


@dataclass(frozen=True, slots=True)
class LinearWarpCorrection(WarpCorrection):
    """Scale distances by ``max(1, scaling * warp_factor)``."""

    scaling: float = 1.0

    def __post_init__(self) -> None:
        if self.scaling is None or not self.scaling >= MIN_WARP_SCALING:
            raise OutOfRange("warp_scaling", self.scaling, MIN_WARP_SCALING, math.inf)

    def corrected(self, warp_factor: float, distance: float) -> float:
        return max(1.0, self.scaling * warp_factor) * distance


no_warp_correction = NoWarpCorrection()
