"""Pairwise interval-based curve alignment (PICA)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .annotation import Annotation, is_alignable, precedence_rank
from .decomposition import IntervalDecomposition
from .distance import LinearWarpCorrection, SampledCurveDistance, WarpCorrection, no_warp_correction
from .errors import IllegalState, InvalidArgument, NullInput, OutOfRange
from .precision import same_x

__all__ = [
    "PICA",
    "PicaData",
    "MAX_WARP_FACTOR",
    "validate_alignment_parameters",
    "weighted_mean",
]

logger = logging.getLogger(__name__)

MAX_WARP_FACTOR = 999.0
LENGTH_TOLERANCE = 1.01


def weighted_mean(first: float, weight1: float, second: float, weight2: float) -> float:
    return (first * weight1 + second * weight2) / (weight1 + weight2)


@dataclass(frozen=True, slots=True)
class PicaData:
    """Outcome of a pairwise alignment.

    ``first`` and ``second`` are warped copies of the inputs; ``splits`` lists
    the pairs of annotations that were matched by decomposition, in the order
    they were introduced.
    """

    first: IntervalDecomposition
    second: IntervalDecomposition
    distance: float
    splits: Tuple[Tuple[Annotation, Annotation], ...] = ()


def validate_alignment_parameters(
    max_warp_factor: float,
    max_rel_x_shift: float,
    min_rel_interval_length: float,
    warp_scaling: float | None,
) -> WarpCorrection:
    for name, value in (
        ("max_warp_factor", max_warp_factor),
        ("max_rel_x_shift", max_rel_x_shift),
        ("min_rel_interval_length", min_rel_interval_length),
    ):
        if value is None:
            raise NullInput(f"{name} is missing")
    if not 1.0 <= max_warp_factor <= MAX_WARP_FACTOR:
        raise OutOfRange("max_warp_factor", max_warp_factor, 1.0, MAX_WARP_FACTOR)
    if not 0.0 <= max_rel_x_shift <= 1.0:
        raise OutOfRange("max_rel_x_shift", max_rel_x_shift, 0.0, 1.0)
    if not 0.0 <= min_rel_interval_length <= 1.0:
        raise OutOfRange("min_rel_interval_length", min_rel_interval_length, 0.0, 1.0)
    if warp_scaling is None:
        return no_warp_correction
    return LinearWarpCorrection(warp_scaling)


class PICA:
    """Align two interval decompositions by recursive interval splitting.

    Both curves are first brought to a common (weighted mean) length with
    equally long intervals.  The intervals are then refined left to right:
    inside each interval every pair of alignable annotations is a split
    candidate, and the candidate that lowers the local distance the most
    splits both decompositions.  An interval is revisited until no candidate
    improves it any further.
    """

    def __init__(
        self,
        distance: SampledCurveDistance,
        max_warp_factor: float,
        max_rel_x_shift: float,
        min_rel_interval_length: float,
        warp_scaling: float | None = None,
    ) -> None:
        if distance is None:
            raise NullInput("no distance function given")
        self.correction = validate_alignment_parameters(
            max_warp_factor, max_rel_x_shift, min_rel_interval_length, warp_scaling
        )
        self.distance = distance
        self.max_warp_factor = float(max_warp_factor)
        self.max_rel_x_shift = float(max_rel_x_shift)
        self.min_rel_interval_length = float(min_rel_interval_length)
        self.warp_scaling = warp_scaling

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def align_to_reference(
        self, reference: IntervalDecomposition, decomposition: IntervalDecomposition
    ) -> PicaData:
        """Align ``decomposition`` onto ``reference`` keeping the reference interval lengths."""

        return self.align(reference, 1.0, decomposition, 0.0)

    def align(
        self,
        first: IntervalDecomposition,
        weight1: float,
        second: IntervalDecomposition,
        weight2: float,
    ) -> PicaData:
        if first is None or second is None:
            raise NullInput("no decomposition given")
        if not first.is_compatible(second):
            raise InvalidArgument(
                "decompositions are incompatible",
                context={"first": first.original.name, "second": second.original.name},
            )
        if weight1 is None or weight2 is None:
            raise NullInput("alignment weight is missing")
        if weight1 < 0.0 or weight2 < 0.0:
            raise InvalidArgument(
                "alignment weights have to be non-negative",
                context={"weight1": weight1, "weight2": weight2},
            )
        if not weight1 + weight2 > 0.0:
            raise InvalidArgument("at least one alignment weight has to be positive")

        best1, best2 = self._initial_alignment(first, weight1, second, weight2)
        best_distance = self.correction.corrected(
            1.0, self.distance.distance(best1.curve, best2.curve)
        )
        splits: List[Tuple[Annotation, Annotation]] = []
        min_interval_length = best1.curve.length * self.min_rel_interval_length

        interval = 0
        while interval < best1.size():
            if best1.interval_length(interval) < min_interval_length:
                interval += 1
                continue
            candidate = self._best_split(
                best1, weight1, best2, weight2, interval, min_interval_length
            )
            if candidate is None:
                interval += 1
                continue
            annotation1, annotation2, rel_pos = candidate
            best1.decompose(interval, annotation1, rel_pos)
            best2.decompose(interval, annotation2, rel_pos)
            splits.append((annotation1, annotation2))
            best_distance = self.correction.corrected(
                1.0, self.distance.distance(best1.curve, best2.curve)
            )
            # the left part keeps the index and is examined again

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Pairwise alignment finished",
                extra={
                    "first": first.original.name,
                    "second": second.original.name,
                    "distance": best_distance,
                    "splits": len(splits),
                    "intervals": best1.size(),
                },
            )
        return PicaData(best1, best2, best_distance, tuple(splits))

    # ------------------------------------------------------------------
    # initialisation
    # ------------------------------------------------------------------
    def _initial_alignment(
        self,
        first: IntervalDecomposition,
        weight1: float,
        second: IntervalDecomposition,
        weight2: float,
    ) -> Tuple[IntervalDecomposition, IntervalDecomposition]:
        total = weighted_mean(first.curve.length, weight1, second.curve.length, weight2)
        work1 = first.copy(total)
        work2 = second.copy(total)
        for interval in range(work1.size()):
            target = weighted_mean(
                first.interval_length(interval), weight1, second.interval_length(interval), weight2
            )
            self._warp_to_length(work1, interval, target)
            self._warp_to_length(work2, interval, target)
        work1.curve.update_interpolation()
        work2.curve.update_interpolation()
        for work, label in ((work1, first.original.name), (work2, second.original.name)):
            ratio = work.curve.length / total
            if max(ratio, 1.0 / ratio) >= LENGTH_TOLERANCE:
                raise IllegalState(
                    "overall length changed while equalising interval lengths",
                    context={"curve": label, "length": work.curve.length, "expected": total},
                )
        length = work1.curve.length
        if not same_x(work1.curve.xmin, work2.curve.xmin, length):
            xmin = weighted_mean(work1.curve.xmin, weight1, work2.curve.xmin, weight2)
            for work in (work1, work2):
                if not same_x(work.curve.xmin, xmin, length):
                    work.curve.x[:] += xmin - work.curve.xmin
                    work.curve.update_interpolation()
        return work1, work2

    @staticmethod
    def _warp_to_length(work: IntervalDecomposition, interval: int, target: float) -> None:
        x = work.curve.x
        end = work.interval_end(interval).index
        old_end = x[end]
        work.warp_interval_left(interval, target / work.interval_length(interval))
        if end + 1 < x.size:
            x[end + 1 :] += x[end] - old_end

    # ------------------------------------------------------------------
    # refinement
    # ------------------------------------------------------------------
    @staticmethod
    def _relative_x(work: IntervalDecomposition, x: float) -> float:
        curve = work.curve
        return (x - curve.xmin) / curve.length

    @staticmethod
    def _original_relative_x(work: IntervalDecomposition, index: int) -> float:
        original = work.original
        return (float(original.x[index]) - original.xmin) / original.length

    def _candidates(
        self, work1: IntervalDecomposition, work2: IntervalDecomposition, interval: int
    ) -> List[Tuple[Annotation, Annotation]]:
        pairs = [
            (annotation1, annotation2)
            for annotation1 in work1.interval_annotations(interval)
            for annotation2 in work2.interval_annotations(interval)
            if is_alignable(annotation1.type, annotation2.type)
        ]
        pairs.sort(
            key=lambda pair: (
                -max(precedence_rank(pair[0].type), precedence_rank(pair[1].type)),
                pair[0].index,
                pair[1].index,
            )
        )
        return pairs

    def _best_split(
        self,
        work1: IntervalDecomposition,
        weight1: float,
        work2: IntervalDecomposition,
        weight2: float,
        interval: int,
        min_interval_length: float,
    ) -> Tuple[Annotation, Annotation, float] | None:
        """Return the split with the lowest local distance, if it improves the interval.

        Both parts of a split interval have to be at least
        ``min_interval_length`` long.
        """

        candidates = self._candidates(work1, work2, interval)
        if not candidates:
            return None
        x1 = work1.curve.x
        x2 = work2.curve.x
        start1 = float(x1[work1.interval_start(interval).index])
        start2 = float(x2[work2.interval_start(interval).index])
        end1 = float(x1[work1.interval_end(interval).index])
        end2 = float(x2[work2.interval_end(interval).index])
        interval_length = work1.interval_length(interval)

        count = max(2, int(round(interval_length / self.distance.step_size(work1.curve))) + 1)
        samples1 = self.distance.sample_positions(
            work1.curve, work1.interval_start(interval).index, work1.interval_end(interval).index, count
        )
        samples2 = self.distance.sample_positions(
            work2.curve, work2.interval_start(interval).index, work2.interval_end(interval).index, count
        )

        best_distance = math.nan
        best: Tuple[Annotation, Annotation, float] | None = None
        for annotation1, annotation2 in candidates:
            anchor1 = float(x1[annotation1.index])
            anchor2 = float(x2[annotation2.index])
            left_length = weighted_mean(anchor1 - start1, weight1, anchor2 - start2, weight2)

            shift1 = abs(
                self._relative_x(work1, start1 + left_length)
                - self._original_relative_x(work1, annotation1.index)
            )
            shift2 = abs(
                self._relative_x(work2, start2 + left_length)
                - self._original_relative_x(work2, annotation2.index)
            )
            if shift1 > self.max_rel_x_shift or shift2 > self.max_rel_x_shift:
                continue

            rel_pos = left_length / interval_length
            if not 0.0 < rel_pos < 1.0:
                continue
            if (
                rel_pos * interval_length < min_interval_length
                or (1.0 - rel_pos) * interval_length < min_interval_length
            ):
                continue
            warp_factor = max(rel_pos, 1.0 / rel_pos)
            if warp_factor > self.max_warp_factor:
                continue

            if math.isnan(best_distance):
                best_distance = self.distance.distance_at(work1.curve, work2.curve, samples1, samples2)

            warped1 = start1 + interval_length * rel_pos
            warped2 = start2 + interval_length * rel_pos
            local = self.correction.corrected(
                warp_factor,
                self.distance.distance_at(
                    work1.curve,
                    work2.curve,
                    _unwarp(samples1, start1, end1, anchor1, warped1),
                    _unwarp(samples2, start2, end2, anchor2, warped2),
                ),
            )
            if local < best_distance:
                best_distance = local
                best = (annotation1, annotation2, rel_pos)
        return best


def _unwarp(
    samples: np.ndarray, start: float, end: float, anchor: float, warped: float
) -> np.ndarray:
    """Map positions of the split interval back onto the unsplit coordinates.

    Positions left of ``warped`` are stretched from ``start`` so that
    ``warped`` maps onto ``anchor``; the others are stretched from ``end``.
    """

    left = start + (samples - start) * (anchor - start) / (warped - start)
    right = end - (end - samples) * (end - anchor) / (end - warped)
    return np.where(samples < warped, left, right)
