"""Progressive multiple interval-based curve alignment (MICA)."""

from __future__ import annotations

import bisect
import itertools
import logging
import math
import time
from typing import Dict, List, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .annotated_curve import AnnotatedCurve
from .annotation import AnnotationType
from .decomposition import IntervalDecomposition
from .distance import SampledCurveDistance
from .errors import DuplicateName, IllegalState, InvalidArgument, NullInput, OutOfRange
from .guide_tree import GuideTreeGenerator
from .pica import PICA, PicaData, validate_alignment_parameters
from .precision import precision_delta, same_x

__all__ = [
    "AlignmentContext",
    "MicaData",
    "MICA",
    "consensus_name",
    "consensus_decomposition",
    "CONSENSUS_LENGTH_TOLERANCE",
]

logger = logging.getLogger(__name__)

CONSENSUS_LENGTH_TOLERANCE = 0.01


@runtime_checkable
class AlignmentContext(Protocol):
    """Progress sink and cancellation flag consulted between fusion steps."""

    def report_progress(self, fraction: float) -> None:
        ...

    def is_cancelled(self) -> bool:
        ...


def consensus_name(decompositions: Sequence[IntervalDecomposition]) -> str:
    """``name`` for a single curve, ``[name1,name2,...]`` for several."""

    if not decompositions:
        return ""
    if len(decompositions) == 1:
        return decompositions[0].original.name
    return "[" + ",".join(item.original.name for item in decompositions) + "]"


def _check_consensus_inputs(decompositions: Sequence[IntervalDecomposition]) -> None:
    first = decompositions[0]
    if not all(first.is_compatible(item) for item in decompositions[1:]):
        raise InvalidArgument("curves are incompatible")
    length = first.curve.length
    if any(abs(item.curve.length - length) > CONSENSUS_LENGTH_TOLERANCE for item in decompositions):
        raise InvalidArgument(
            "curves are not of equal length",
            context={"lengths": [item.curve.length for item in decompositions]},
        )
    for interval in range(first.size()):
        expected = first.interval_length(interval)
        if any(
            abs(item.interval_length(interval) - expected) > CONSENSUS_LENGTH_TOLERANCE
            for item in decompositions
        ):
            raise InvalidArgument(
                "curve intervals are not of equal length", context={"interval": interval}
            )


def consensus_decomposition(decompositions: Sequence[IntervalDecomposition]) -> IntervalDecomposition:
    """Build the mean curve of already aligned decompositions.

    The x grid is the union of all relative x-coordinates (positions closer
    than the precision delta are merged), y is the mean of the member values
    on that grid.  The consensus is annotated automatically, inherits the
    SPLIT boundaries of the first member and every filter shared by all
    members.
    """

    if decompositions is None:
        raise NullInput("no decompositions given")
    if not decompositions:
        raise InvalidArgument("a consensus needs at least one curve")
    if any(item is None for item in decompositions):
        raise NullInput("decomposition list contains a missing entry")
    if len(decompositions) == 1:
        return decompositions[0].copy()
    _check_consensus_inputs(decompositions)

    first = decompositions[0]
    delta = precision_delta(first.curve.length)
    grid: List[float] = list(first.curve.x - first.curve.xmin)
    for member in decompositions[1:]:
        x = member.curve.x
        for value in x[1:-1] - x[0]:
            position = bisect.bisect_left(grid, value)
            if position < len(grid) and abs(grid[position] - value) <= delta:
                continue
            if position > 0 and abs(grid[position - 1] - value) <= delta:
                continue
            grid.insert(position, float(value))

    relative = np.asarray(grid, dtype=float)
    y = np.zeros_like(relative)
    for member in decompositions:
        curve = member.curve
        y += np.asarray(curve.value(np.minimum(relative + curve.xmin, curve.xmax)), dtype=float)
    y /= len(decompositions)
    mean_xmin = float(np.mean([member.curve.xmin for member in decompositions]))

    consensus = AnnotatedCurve(consensus_name(decompositions), y, relative + mean_xmin)
    original = first.original
    last = consensus.size() - 1
    for index, annotation_type in enumerate(original.annotation):
        if annotation_type is not AnnotationType.SPLIT:
            continue
        target = consensus.closest_point(float(first.curve.x[index]) - first.curve.xmin + mean_xmin)
        if 0 < target < last:
            consensus.set_annotation(target, AnnotationType.SPLIT)
    for annotation_filter in original.filters:
        if all(
            any(existing is annotation_filter for existing in member.original.filters)
            for member in decompositions[1:]
        ):
            consensus.add_filter(annotation_filter)
    return IntervalDecomposition(consensus)


class MicaData:
    """A (partial) multiple alignment.

    ``curves`` are the aligned member decompositions, ``consensus`` their
    mean curve.  ``fused`` holds the two sub-alignments this alignment was
    fused from and ``pica`` the pairwise alignment of their consensus curves.
    ``distance`` and ``elapsed`` are filled in for final results only.
    """

    def __init__(
        self,
        curves: Sequence[IntervalDecomposition],
        *,
        fused: Sequence["MicaData"] = (),
        pica: PicaData | None = None,
    ) -> None:
        self.curves: List[IntervalDecomposition] = list(curves)
        self.consensus: IntervalDecomposition | None = consensus_decomposition(self.curves)
        self.fused: Tuple[MicaData, ...] = tuple(fused)
        self.pica = pica
        self.distance = math.nan
        self.elapsed = 0.0
        self.complete = True

    @classmethod
    def incomplete(cls, curves: Sequence[IntervalDecomposition]) -> "MicaData":
        """Result of a cancelled alignment: the unaligned inputs without consensus."""

        data = cls.__new__(cls)
        data.curves = [item.copy() for item in curves]
        data.consensus = None
        data.fused = ()
        data.pica = None
        data.distance = math.nan
        data.elapsed = 0.0
        data.complete = False
        return data

    def size(self) -> int:
        return len(self.curves)

    def __len__(self) -> int:
        return self.size()

    @property
    def names(self) -> List[str]:
        return [item.original.name for item in self.curves]

    @property
    def guide_tree(self) -> str:
        """Fusion order as nested parentheses, e.g. ``((a,b),c)``."""

        if not self.fused:
            return ",".join(self.names)
        return "(" + ",".join(item.guide_tree for item in self.fused) + ")"

    def __repr__(self) -> str:
        return f"MicaData(curves={self.names!r}, distance={self.distance!r}, complete={self.complete})"


def _length_ratios(warped: np.ndarray, reference: np.ndarray) -> np.ndarray:
    if warped.size != reference.size:
        raise InvalidArgument(
            "x-coordinate arrays differ in length",
            context={"warped": warped.size, "reference": reference.size},
        )
    ratios = np.ones_like(warped)
    ratios[1:] = (warped[1:] - warped[0]) / (reference[1:] - reference[0])
    return ratios


def _locate(sorted_values: np.ndarray, value: float, curve_length: float) -> int:
    position = int(np.searchsorted(sorted_values, value, side="left"))
    if position < sorted_values.size and sorted_values[position] == value:
        return position
    if position < sorted_values.size and same_x(sorted_values[position], value, curve_length):
        return position
    if position > 0 and same_x(sorted_values[position - 1], value, curve_length):
        return position - 1
    raise IllegalState(
        "x-coordinate not found in consensus grid", context={"x": value, "position": position}
    )


def _propagate(
    member: IntervalDecomposition,
    consensus: IntervalDecomposition,
    warped: IntervalDecomposition,
) -> IntervalDecomposition:
    """Copy ``member`` and move its x-coordinates the way ``consensus`` was warped."""

    relative_grid = consensus.curve.x - consensus.curve.xmin
    ratios = _length_ratios(warped.curve.x, consensus.curve.x)
    length = consensus.curve.length
    result = member.copy()
    x = result.curve.x
    xmin = float(x[0])
    shift = warped.curve.xmin - xmin
    relative = x[1:] - xmin
    positions = [_locate(relative_grid, float(value), length) for value in relative]
    x[1:] = xmin + shift + relative * ratios[positions]
    x[0] = xmin + shift
    result.curve.update_interpolation()
    return result


def fuse(first: MicaData, second: MicaData, alignment: PicaData) -> MicaData:
    """Merge two sub-alignments along the pairwise alignment of their consensus curves."""

    if first is None or second is None or alignment is None:
        raise NullInput("fusion needs two sub-alignments and their pairwise alignment")
    if alignment.first.original is not first.consensus.original:
        raise InvalidArgument("pairwise alignment does not describe the first consensus")
    if alignment.second.original is not second.consensus.original:
        raise InvalidArgument("pairwise alignment does not describe the second consensus")
    curves = [_propagate(member, first.consensus, alignment.first) for member in first.curves]
    curves.extend(_propagate(member, second.consensus, alignment.second) for member in second.curves)
    return MicaData(curves, fused=(first, second), pica=alignment)


def _swapped(alignment: PicaData) -> PicaData:
    return PicaData(
        alignment.second,
        alignment.first,
        alignment.distance,
        tuple((right, left) for left, right in alignment.splits),
    )


class MICA:
    """Progressive multiple alignment built on :class:`~mica_core.pica.PICA`.

    Without a reference the inputs are fused along an average-linkage guide
    tree computed from all pairwise PICA distances.  With a ``reference``
    index the reference absorbs the other curves one at a time, closest
    first, without changing its own interval lengths.
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
        validate_alignment_parameters(max_warp_factor, max_rel_x_shift, min_rel_interval_length, warp_scaling)
        self.distance = distance
        self.max_warp_factor = float(max_warp_factor)
        self.max_rel_x_shift = float(max_rel_x_shift)
        self.min_rel_interval_length = float(min_rel_interval_length)
        self.warp_scaling = warp_scaling

    def pairwise(self) -> PICA:
        return PICA(
            self.distance,
            self.max_warp_factor,
            self.max_rel_x_shift,
            self.min_rel_interval_length,
            self.warp_scaling,
        )

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------
    @staticmethod
    def _validate(decompositions: Sequence[IntervalDecomposition]) -> List[IntervalDecomposition]:
        if decompositions is None:
            raise NullInput("no decompositions given")
        items = list(decompositions)
        if not items:
            raise InvalidArgument("no curve given to be aligned")
        if any(item is None for item in items):
            raise NullInput("decomposition list contains a missing entry")
        if not all(items[0].is_compatible(item) for item in items[1:]):
            raise InvalidArgument("given curves are incompatible")
        seen: set[str] = set()
        for item in items:
            name = item.original.name
            if name in seen:
                raise DuplicateName(f"curve name '{name}' is not unique", context={"name": name})
            seen.add(name)
        return items

    # ------------------------------------------------------------------
    # alignment
    # ------------------------------------------------------------------
    def align(
        self,
        decompositions: Sequence[IntervalDecomposition],
        *,
        reference: int | None = None,
        context: AlignmentContext | None = None,
    ) -> MicaData:
        inputs = self._validate(decompositions)
        if reference is not None and not 0 <= reference < len(inputs):
            raise OutOfRange("reference", reference, 0, len(inputs) - 1)
        started = time.monotonic()
        leaves = [MicaData([item.copy()]) for item in inputs]
        pica = self.pairwise()
        if reference is None:
            result = self._align_guided(leaves, pica, context)
        else:
            result = self._align_to_reference(leaves, reference, pica, context)
        if result is None:
            cancelled = MicaData.incomplete(inputs)
            cancelled.elapsed = time.monotonic() - started
            logger.info(
                "Alignment cancelled",
                extra={"event": "mica.cancelled", "curves": len(inputs)},
            )
            return cancelled

        order = {id(item.original): position for position, item in enumerate(inputs)}
        result.curves.sort(key=lambda item: order[id(item.original)])
        result.distance = self.total_distance(result.curves)
        result.elapsed = time.monotonic() - started
        if context is not None:
            context.report_progress(1.0)
        logger.info(
            "Alignment finished",
            extra={
                "event": "mica.aligned",
                "curves": len(inputs),
                "distance": result.distance,
                "guide_tree": result.guide_tree,
                "elapsed": result.elapsed,
            },
        )
        return result

    def total_distance(self, curves: Sequence[IntervalDecomposition]) -> float:
        """Mean pairwise distance between the aligned curves (0 for a single curve)."""

        pairs = list(itertools.combinations(curves, 2))
        if not pairs:
            return 0.0
        return float(
            np.mean([self.distance.distance(left.curve, right.curve) for left, right in pairs])
        )

    @staticmethod
    def _step(context: AlignmentContext | None, done: int, total: int) -> bool:
        """Report progress and return ``False`` once cancellation was requested."""

        if context is None:
            return True
        context.report_progress(done / total if total else 1.0)
        return not context.is_cancelled()

    def _align_guided(
        self, leaves: List[MicaData], pica: PICA, context: AlignmentContext | None
    ) -> MicaData | None:
        size = len(leaves)
        if size == 1:
            return leaves[0]
        pairs: Dict[Tuple[int, int], PicaData] = {}
        matrix = np.zeros((size, size), dtype=float)
        for left, right in itertools.combinations(range(size), 2):
            alignment = pica.align(leaves[left].consensus, 1.0, leaves[right].consensus, 1.0)
            pairs[(left, right)] = alignment
            matrix[left, right] = matrix[right, left] = alignment.distance
        tree = GuideTreeGenerator().compute(matrix)
        if logger.isEnabledFor(logging.DEBUG):
            names = [leaf.names[0] for leaf in leaves]
            logger.debug("Guide tree computed", extra={"guide_tree": tree.to_newick(names)})

        built: Dict[int, MicaData] = {}
        leaf_of: Dict[int, int] = {}
        fusions = 0
        for node in tree.post_order():
            if node.is_leaf:
                (leaf,) = node.cluster_ids
                built[node.node_id] = leaves[leaf]
                leaf_of[id(leaves[leaf])] = leaf
                continue
            children = [built.pop(child) for child in node.children]
            merged = children[0]
            for other in children[1:]:
                if not self._step(context, fusions, size - 1):
                    return None
                alignment = self._cached(pairs, leaf_of, merged, other)
                if alignment is None:
                    alignment = pica.align(
                        merged.consensus, float(merged.size()), other.consensus, float(other.size())
                    )
                merged = fuse(merged, other, alignment)
                fusions += 1
            built[node.node_id] = merged
        return built[tree.root.node_id]

    @staticmethod
    def _cached(
        pairs: Dict[Tuple[int, int], PicaData],
        leaf_of: Dict[int, int],
        first: MicaData,
        second: MicaData,
    ) -> PicaData | None:
        left = leaf_of.get(id(first))
        right = leaf_of.get(id(second))
        if left is None or right is None:
            return None
        if left < right:
            return pairs[(left, right)]
        return _swapped(pairs[(right, left)])

    def _align_to_reference(
        self,
        leaves: List[MicaData],
        reference: int,
        pica: PICA,
        context: AlignmentContext | None,
    ) -> MicaData | None:
        merged = leaves[reference]
        pending = [index for index in range(len(leaves)) if index != reference]
        total = len(pending)
        while pending:
            if not self._step(context, total - len(pending), total):
                return None
            candidates = {
                index: pica.align(merged.consensus, float(merged.size()), leaves[index].consensus, 0.0)
                for index in pending
            }
            closest = min(pending, key=lambda index: (candidates[index].distance, index))
            merged = fuse(merged, leaves[closest], candidates[closest])
            pending.remove(closest)
        return merged
