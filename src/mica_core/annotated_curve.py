"""Curves carrying per-sample structural annotations and a filter chain."""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Iterable, List, Sequence

import numpy as np

from .annotation import Annotation, AnnotationType
from .curve import Curve
from .errors import IllegalState, InvalidArgument, NullInput
from .filters import AnnotationFilter

__all__ = ["AnnotatedCurve", "classify_samples"]

logger = logging.getLogger(__name__)

_SUBSCRIBER_IDS = itertools.count(1)


def _mark_local_extrema(
    types: List[AnnotationType],
    values: np.ndarray,
    minimum: AnnotationType,
    maximum: AnnotationType,
) -> None:
    """Annotate strict local extrema of ``values`` on samples still typed ``POINT``.

    Plateaus are annotated on their middle sample.  The scan runs from the
    right end towards the left so that plateaus are skipped as a whole.
    """

    index = len(values) - 2
    while index > 0:
        current = values[index]
        if current == values[index + 1]:
            index -= 1
            continue
        rising_right = current < values[index + 1]
        if (values[index - 1] < current and not rising_right) or (
            values[index - 1] > current and rising_right
        ):
            if types[index] is AnnotationType.POINT:
                types[index] = minimum if rising_right else maximum
            index -= 1
            continue
        if values[index - 1] == current and index > 1:
            left = index - 2
            while left > 0 and values[left] == current:
                left -= 1
            middle = index - (index - left) // 2
            is_peak = not rising_right and values[left] < current
            is_valley = rising_right and values[left] > current
            if (is_peak or is_valley) and types[middle] is AnnotationType.POINT:
                types[middle] = minimum if is_valley else maximum
            index = left
            continue
        index -= 1


def _relabel_inflections(types: List[AnnotationType], slopes: np.ndarray) -> None:
    for index in range(1, len(types) - 1):
        current = types[index]
        if current.is_manual or not current.is_extremum_slope:
            continue
        if slopes[index] > 0 and current is AnnotationType.DERIVATIVE_MAXIMUM_AUTO:
            types[index] = AnnotationType.INFLECTION_ASCENDING_AUTO
        elif slopes[index] < 0 and current is AnnotationType.DERIVATIVE_MINIMUM_AUTO:
            types[index] = AnnotationType.INFLECTION_DESCENDING_AUTO
        else:
            types[index] = AnnotationType.POINT


def classify_samples(
    y: np.ndarray, slope_of: Callable[[Sequence[AnnotationType]], np.ndarray]
) -> List[AnnotationType]:
    """Derive automatic annotation types from the shape of ``y``.

    ``slope_of`` receives the partially annotated type list (boundaries and
    y-extrema) and returns the per-sample slopes to search for inflections.
    """

    types = [AnnotationType.POINT] * len(y)
    types[0] = AnnotationType.START
    types[-1] = AnnotationType.END
    _mark_local_extrema(types, y, AnnotationType.MINIMUM_AUTO, AnnotationType.MAXIMUM_AUTO)
    slopes = slope_of(types)
    _mark_local_extrema(
        types,
        slopes,
        AnnotationType.DERIVATIVE_MINIMUM_AUTO,
        AnnotationType.DERIVATIVE_MAXIMUM_AUTO,
    )
    _relabel_inflections(types, slopes)
    return types


class AnnotatedCurve(Curve):
    """Curve with a per-sample annotation array and an ordered filter chain.

    Without explicit ``annotations`` the samples are classified automatically:
    ``START``/``END`` at the boundaries, local extrema of ``y`` and
    inflection points (local extrema of the slope).  The filtered annotation
    list is cached and recomputed whenever the chain changes, a filter of the
    chain changes its parameters or the interpolation is updated.
    """

    __slots__ = ("_annotation", "_filters", "_filtered", "_subscriber_id")

    def __init__(
        self,
        name: str,
        y: Sequence[float] | np.ndarray,
        x: Sequence[float] | np.ndarray | None = None,
        *,
        annotations: Sequence[AnnotationType | int] | None = None,
    ) -> None:
        super().__init__(name, y, x)
        self._filters: List[AnnotationFilter] = []
        self._filtered: List[Annotation] | None = None
        self._subscriber_id = next(_SUBSCRIBER_IDS)
        if annotations is None:
            self._annotation = classify_samples(self.y, self._slopes_for)
        else:
            self._annotation = self._validated_annotations(annotations)

    @classmethod
    def from_curve(cls, curve: Curve) -> "AnnotatedCurve":
        """Auto-annotate a plain :class:`Curve`."""

        if curve is None:
            raise NullInput("no curve given")
        return cls(curve.name, curve.y.copy(), curve.x.copy())

    @classmethod
    def with_annotations(
        cls,
        name: str,
        y: Sequence[float] | np.ndarray,
        x: Sequence[float] | np.ndarray | None,
        annotations: Iterable[Annotation],
    ) -> "AnnotatedCurve":
        """Create a curve whose only annotations are ``annotations`` plus the boundaries."""

        size = len(y)
        types = [AnnotationType.POINT] * size
        for item in annotations:
            if not 0 <= item.index < size:
                raise InvalidArgument(
                    "annotation index exceeds the number of samples",
                    context={"index": item.index, "size": size},
                )
            types[item.index] = item.type
        if size:
            types[0] = AnnotationType.START
            types[-1] = AnnotationType.END
        return cls(name, y, x, annotations=types)

    def _validated_annotations(
        self, annotations: Sequence[AnnotationType | int]
    ) -> List[AnnotationType]:
        if len(annotations) != self.size():
            raise InvalidArgument(
                "annotations and samples differ in length",
                context={"annotations": len(annotations), "size": self.size()},
            )
        try:
            types = [AnnotationType(value) for value in annotations]
        except ValueError as exc:
            raise InvalidArgument(f"unknown annotation type: {exc}") from exc
        if types[0] is not AnnotationType.START:
            raise InvalidArgument("the first annotation has to be START")
        if types[-1] is not AnnotationType.END:
            raise InvalidArgument("the last annotation has to be END")
        return types

    # ------------------------------------------------------------------
    # slopes
    # ------------------------------------------------------------------
    def _slopes_for(self, types: Sequence[AnnotationType]) -> np.ndarray:
        slopes = np.asarray(self.slope(self.x), dtype=float).copy()
        for index, annotation_type in enumerate(types):
            if annotation_type.is_extremum_y:
                slopes[index] = 0.0
        return slopes

    def _compute_slopes(self) -> np.ndarray:
        return self._slopes_for(self._annotation)

    # ------------------------------------------------------------------
    # annotations
    # ------------------------------------------------------------------
    @property
    def annotation(self) -> tuple[AnnotationType, ...]:
        return tuple(self._annotation)

    def annotation_at(self, index: int) -> Annotation:
        return Annotation(self.name, index, self._annotation[index])

    def set_annotation(self, index: int, annotation_type: AnnotationType) -> None:
        """Override the type of an interior sample."""

        if not 0 < index < self.size() - 1:
            raise IllegalState(
                "boundary annotations cannot be changed",
                context={"index": index, "size": self.size()},
            )
        if annotation_type in (AnnotationType.START, AnnotationType.END):
            raise InvalidArgument("START and END are reserved for the boundaries")
        self._annotation[index] = AnnotationType(annotation_type)
        self._slopes = None
        self.reset_filtered_annotations()

    # ------------------------------------------------------------------
    # filter chain
    # ------------------------------------------------------------------
    @property
    def filters(self) -> tuple[AnnotationFilter, ...]:
        return tuple(self._filters)

    def add_filter(self, annotation_filter: AnnotationFilter) -> None:
        if annotation_filter is None:
            raise NullInput("no annotation filter given")
        if any(existing is annotation_filter for existing in self._filters):
            return
        self._filters.append(annotation_filter)
        annotation_filter.subscribe(self._subscriber_id, self.reset_filtered_annotations)
        self.reset_filtered_annotations()

    def remove_filter(self, annotation_filter: AnnotationFilter) -> bool:
        if annotation_filter is None:
            raise NullInput("no annotation filter given")
        for position, existing in enumerate(self._filters):
            if existing is annotation_filter:
                del self._filters[position]
                annotation_filter.unsubscribe(self._subscriber_id)
                self.reset_filtered_annotations()
                return True
        return False

    def reset_filtered_annotations(self) -> None:
        self._filtered = self._compute_filtered()

    def _compute_filtered(self) -> List[Annotation]:
        annotations = [
            Annotation(self.name, index, annotation_type)
            for index, annotation_type in enumerate(self._annotation)
            if annotation_type is not AnnotationType.POINT
        ]
        for annotation_filter in self._filters:
            annotations = annotation_filter.apply(annotations, self)
        annotations.sort(key=lambda item: item.index)
        return annotations

    def filtered_annotations(self) -> List[Annotation]:
        """Return the index-sorted annotations surviving the filter chain."""

        if self._filtered is None:
            self._filtered = self._compute_filtered()
        return list(self._filtered)

    def update_interpolation(self) -> None:
        super().update_interpolation()
        self.reset_filtered_annotations()

    def copy(self, name: str | None = None) -> "AnnotatedCurve":
        """Return a copy sharing the filter instances of this curve."""

        duplicate = AnnotatedCurve(
            name or self.name,
            self.y.copy(),
            self.x.copy(),
            annotations=list(self._annotation),
        )
        for annotation_filter in self._filters:
            duplicate.add_filter(annotation_filter)
        return duplicate

    def __repr__(self) -> str:
        labels = ",".join(str(item.value) for item in self._annotation)
        return f"AnnotatedCurve(name={self.name!r}, size={self.size()}, annotation=[{labels}])"
