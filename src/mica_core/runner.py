"""Timed alignment jobs over a set of annotated curves."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from .annotated_curve import AnnotatedCurve
from .config import AlignmentOptions
from .decomposition import IntervalDecomposition
from .errors import InvalidArgument, NullInput, OutOfRange
from .mica import AlignmentContext, MicaData

__all__ = ["MicaRunner", "MicaResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MicaResult:
    """Outcome of one :class:`MicaRunner` job."""

    data: MicaData
    options: AlignmentOptions
    names: Tuple[str, ...]
    distance: float
    elapsed: float
    complete: bool = True
    guide_tree: str = ""
    metadata: dict = field(default_factory=dict)

    def aligned_x(self) -> List[np.ndarray]:
        """Warped x-coordinates per input curve, in input order."""

        return [item.curve.x.copy() for item in self.data.curves]

    def original_x(self) -> List[np.ndarray]:
        return [item.original.x.copy() for item in self.data.curves]


class MicaRunner:
    """Run MICA over annotated curves with one set of :class:`AlignmentOptions`.

    Each job works on private copies of the curves, so the caller's curves
    and their filter chains are left untouched.  The configured extrema and
    inflection filters are attached to every copy (a single shared instance
    each) before the initial interval decompositions are built and the
    alignment is timed.
    """

    def __init__(
        self,
        curves: Sequence[AnnotatedCurve],
        options: AlignmentOptions | None = None,
        *,
        context: AlignmentContext | None = None,
        apply_filters: bool = True,
    ) -> None:
        if curves is None:
            raise NullInput("no curves given")
        self.curves = list(curves)
        if not self.curves:
            raise InvalidArgument("no curve given to be aligned")
        if any(curve is None for curve in self.curves):
            raise NullInput("curve list contains a missing entry")
        self.options = options or AlignmentOptions()
        if self.options.reference is not None and self.options.reference >= len(self.curves):
            raise OutOfRange("reference", self.options.reference, 0, len(self.curves) - 1)
        self.context = context
        self.apply_filters = apply_filters

    def run(self) -> MicaResult:
        options = self.options
        working = [curve.copy() for curve in self.curves]
        if self.apply_filters:
            for annotation_filter in options.build_filters():
                for curve in working:
                    curve.add_filter(annotation_filter)
        decompositions = [IntervalDecomposition(curve) for curve in working]
        aligner = options.build_aligner()

        logger.info(
            "Alignment started",
            extra={
                "event": "runner.start",
                "curves": len(decompositions),
                "distance": options.distance,
                "reference": options.reference,
            },
        )
        started = time.monotonic()
        data = aligner.align(decompositions, reference=options.reference, context=self.context)
        elapsed = time.monotonic() - started

        names = tuple(curve.name for curve in self.curves)
        result = MicaResult(
            data=data,
            options=options,
            names=names,
            distance=data.distance,
            elapsed=elapsed,
            complete=data.complete,
            guide_tree=data.guide_tree if data.complete else "",
            metadata={"description": aligner.distance.description},
        )
        logger.info(
            "Alignment completed" if result.complete else "Alignment interrupted",
            extra={
                "event": "runner.finish",
                "curves": len(names),
                "distance": result.distance,
                "elapsed": round(elapsed, 6),
                "complete": result.complete,
            },
        )
        return result
