"""Partition of an annotated curve into independently warpable intervals."""

from __future__ import annotations

import logging
from typing import List

import numpy as np

from .annotated_curve import AnnotatedCurve
from .annotation import Annotation, AnnotationType, is_alignable
from .curve import Curve
from .errors import IllegalState, InvalidArgument, NullInput, OutOfRange
from .precision import precision_delta

__all__ = ["IntervalDecomposition"]

logger = logging.getLogger(__name__)


class IntervalDecomposition:
    """Working copy of an :class:`AnnotatedCurve` split into intervals.

    The original curve is never modified.  Warping rewrites the x-coordinates
    of the working copy (named ``<name>'``) only.  Intervals are stored as an
    ordered list of boundary annotations: interval ``i`` spans from boundary
    ``i`` to boundary ``i + 1``, so the intervals always cover the whole index
    range without gaps.
    """

    __slots__ = ("_original", "_curve", "_boundaries")

    def __init__(self, curve: AnnotatedCurve, *, length: float | None = None) -> None:
        if curve is None:
            raise NullInput("no curve given")
        annotations = curve.filtered_annotations()
        if (
            len(annotations) < 2
            or annotations[0].type is not AnnotationType.START
            or annotations[-1].type is not AnnotationType.END
        ):
            raise InvalidArgument(
                "curve boundaries are not annotated as START and END",
                context={"curve": curve.name},
            )
        self._original = curve
        self._curve = Curve(f"{curve.name}'", curve.y.copy(), curve.x.copy())
        self._boundaries: List[Annotation] = [annotations[0], annotations[-1]]
        if length is not None:
            self._rescale(length)
            self._curve.update_interpolation()
        for annotation in annotations[1:-1]:
            if annotation.type is AnnotationType.SPLIT:
                position = self.interval_of(float(self._curve.x[annotation.index]))
                self._boundaries.insert(position + 1, annotation)

    # ------------------------------------------------------------------
    # copies
    # ------------------------------------------------------------------
    def copy(self, length: float | None = None) -> "IntervalDecomposition":
        """Return an independent copy, optionally rescaled to ``length``."""

        duplicate = IntervalDecomposition.__new__(IntervalDecomposition)
        duplicate._original = self._original
        duplicate._curve = Curve(
            f"{self._original.name}'", self._curve.y.copy(), self._curve.x.copy()
        )
        duplicate._boundaries = list(self._boundaries)
        if length is not None:
            duplicate._rescale(length)
            duplicate._curve.update_interpolation()
        return duplicate

    def copy_from(self, other: "IntervalDecomposition", length: float | None = None) -> None:
        """Overwrite this decomposition with the state of ``other``."""

        if other is None:
            raise NullInput("no decomposition given")
        if other._original is not self._original:
            raise InvalidArgument(
                "decompositions reference different original curves",
                context={"curve": self._original.name, "other": other._original.name},
            )
        self._curve.x[:] = other._curve.x
        self._curve.y[:] = other._curve.y
        self._boundaries = list(other._boundaries)
        if length is not None:
            self._rescale(length)
        self._curve.update_interpolation()

    def _rescale(self, length: float) -> None:
        if length is None or not length > 0.0:
            raise InvalidArgument("curve length has to be positive", context={"length": length})
        current = self._curve.length
        if abs(length - current) <= precision_delta(current):
            return
        x = self._curve.x
        x[1:] = x[0] + (x[1:] - x[0]) * (length / current)

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------
    @property
    def original(self) -> AnnotatedCurve:
        return self._original

    @property
    def curve(self) -> Curve:
        return self._curve

    @property
    def boundaries(self) -> tuple[Annotation, ...]:
        return tuple(self._boundaries)

    def size(self) -> int:
        return len(self._boundaries) - 1

    def __len__(self) -> int:
        return self.size()

    def _check_interval(self, index: int) -> None:
        if not 0 <= index < self.size():
            raise OutOfRange("interval", index, 0, self.size() - 1)

    def interval_start(self, index: int) -> Annotation:
        self._check_interval(index)
        return self._boundaries[index]

    def interval_end(self, index: int) -> Annotation:
        self._check_interval(index)
        return self._boundaries[index + 1]

    def interval_length(self, index: int) -> float:
        """Warped length of interval ``index``."""

        x = self._curve.x
        return float(x[self.interval_end(index).index] - x[self.interval_start(index).index])

    def interval_size(self, index: int) -> int:
        """Number of samples covered by interval ``index`` including both boundaries."""

        return self.interval_end(index).index - self.interval_start(index).index + 1

    def interval_annotations(self, index: int) -> List[Annotation]:
        """Filtered annotations of the original curve strictly inside interval ``index``."""

        left = self.interval_start(index).index
        right = self.interval_end(index).index
        return [
            annotation
            for annotation in self._original.filtered_annotations()
            if left < annotation.index < right
        ]

    def interval_of(self, x: float) -> int:
        """Return the interval containing the warped x-coordinate ``x``."""

        curve = self._curve
        if x < curve.xmin or x > curve.xmax:
            raise OutOfRange("x", x, curve.xmin, curve.xmax)
        for index in range(self.size()):
            if x <= curve.x[self._boundaries[index + 1].index]:
                return index
        return self.size() - 1

    def is_compatible(self, other: "IntervalDecomposition") -> bool:
        """Same number of intervals with pairwise alignable boundary types."""

        if other is None:
            raise NullInput("no decomposition given")
        if self.size() != other.size():
            return False
        return all(
            is_alignable(mine.type, theirs.type)
            for mine, theirs in zip(self._boundaries, other._boundaries)
        )

    # ------------------------------------------------------------------
    # warping
    # ------------------------------------------------------------------
    def warp_interval_left(self, index: int, factor: float) -> None:
        """Scale interval ``index`` by ``factor`` keeping its left boundary fixed.

        The right boundary moves; samples right of the interval are untouched.
        """

        self._check_interval(index)
        if not factor > 0.0:
            raise InvalidArgument("warping factor has to be positive", context={"factor": factor})
        if self.interval_size(index) < 2:
            return
        start = self.interval_start(index).index
        end = self.interval_end(index).index
        x = self._curve.x
        anchor = x[start]
        x[start + 1 : end + 1] = anchor + (x[start + 1 : end + 1] - anchor) * factor

    def warp_interval_right(self, index: int, factor: float) -> None:
        """Scale the interior of interval ``index`` towards its fixed right boundary."""

        self._check_interval(index)
        if not factor > 0.0:
            raise InvalidArgument("warping factor has to be positive", context={"factor": factor})
        if self.interval_size(index) < 2:
            return
        start = self.interval_start(index).index
        end = self.interval_end(index).index
        x = self._curve.x
        anchor = x[end]
        x[start + 1 : end] = anchor - (anchor - x[start + 1 : end]) * factor

    def decompose(self, index: int, boundary: Annotation, rel_pos: float) -> None:
        """Split interval ``index`` at ``boundary``.

        Afterwards the left part spans ``rel_pos`` and the right part
        ``1 - rel_pos`` of the former warped interval length.
        """

        self._check_interval(index)
        if boundary is None:
            raise NullInput("no split annotation given")
        if not 0.0 < rel_pos < 1.0:
            raise OutOfRange("rel_pos", rel_pos, 0.0, 1.0)
        start = self.interval_start(index).index
        end = self.interval_end(index).index
        if not start < boundary.index < end:
            raise IllegalState(
                "split annotation is not strictly inside the interval",
                context={"split": boundary.index, "start": start, "end": end},
            )
        full_length = self.interval_length(index)
        self._boundaries.insert(index + 1, boundary)
        left_length = self.interval_length(index)
        right_length = full_length - left_length
        self.warp_interval_left(index, rel_pos / (left_length / full_length))
        self.warp_interval_right(index + 1, (1.0 - rel_pos) / (right_length / full_length))
        self._curve.update_interpolation()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Interval decomposed",
                extra={
                    "curve": self._original.name,
                    "interval": index,
                    "split_index": boundary.index,
                    "rel_pos": rel_pos,
                    "intervals": self.size(),
                },
            )

    def describe(self) -> str:
        return " ".join(f"{item.index}({item.type.label})" for item in self._boundaries)

    def __repr__(self) -> str:
        return f"IntervalDecomposition(curve={self._original.name!r}, intervals=[{self.describe()}])"
