"""Threshold driven filters reducing the annotations considered for alignment."""

from __future__ import annotations

import logging
import weakref
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, List, Sequence

from .annotation import Annotation, is_opposite
from .errors import NullInput, OutOfRange

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only.
    from .annotated_curve import AnnotatedCurve

__all__ = ["AnnotationFilter", "ExtremaFilter", "InflectionFilter"]

logger = logging.getLogger(__name__)


def _validated_threshold(name: str, value: float) -> float:
    if value is None:
        raise NullInput(f"{name} is missing")
    numeric = float(value)
    if not 0.0 <= numeric <= 1.0:
        raise OutOfRange(name, value, 0.0, 1.0)
    return numeric


class AnnotationFilter(ABC):
    """Base class for annotation filters shared between several curves.

    Every curve using the filter registers itself as a subscriber together
    with the callable that recomputes its filtered annotation list.  A
    parameter change invokes all registered callables synchronously, in
    registration order, on the calling thread.  Subscribers are held weakly
    so a filter never keeps a curve alive.
    """

    description = ""

    def __init__(self) -> None:
        self._subscribers: Dict[int, weakref.WeakMethod] = {}

    @property
    def subscriber_ids(self) -> frozenset[int]:
        return frozenset(self._subscribers)

    def subscribe(self, subscriber_id: int, recompute: Callable[[], None]) -> None:
        self._subscribers[subscriber_id] = weakref.WeakMethod(recompute)

    def unsubscribe(self, subscriber_id: int) -> bool:
        return self._subscribers.pop(subscriber_id, None) is not None

    def _notify(self) -> None:
        dead: List[int] = []
        for subscriber_id, reference in list(self._subscribers.items()):
            recompute = reference()
            if recompute is None:
                dead.append(subscriber_id)
                continue
            recompute()
        for subscriber_id in dead:
            self._subscribers.pop(subscriber_id, None)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Filter parameters changed",
                extra={
                    "filter": type(self).__name__,
                    "subscribers": len(self._subscribers),
                },
            )

    @abstractmethod
    def apply(
        self, annotations: List[Annotation], curve: "AnnotatedCurve"
    ) -> List[Annotation]:
        """Return the subset of ``annotations`` kept for ``curve``."""


class ExtremaFilter(AnnotationFilter):
    """Drop pairs of neighbouring opposite extrema with a small height difference.

    ``threshold`` is relative to the overall y-range of the curve.  The pair
    with the smallest absolute height difference is removed as long as that
    difference does not exceed ``threshold * (ymax - ymin)``; inflections
    enclosed by a removed pair are dropped with it.
    """

    description = (
        "Removes iteratively the pairs of neighboured extrema of opposite type "
        "that show the smallest difference and which is smaller than the "
        "filtering threshold. For each filtered pair, enclosed inflection "
        "points are filtered too."
    )

    def __init__(self, threshold: float) -> None:
        super().__init__()
        self._threshold = _validated_threshold("threshold", threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        numeric = _validated_threshold("threshold", value)
        if numeric == self._threshold:
            return
        self._threshold = numeric
        self._notify()

    @staticmethod
    def _next_opposite(annotations: Sequence[Annotation], position: int) -> int:
        current = annotations[position].type
        for candidate in range(position + 1, len(annotations)):
            if is_opposite(current, annotations[candidate].type):
                return candidate
        return len(annotations)

    def apply(self, annotations: List[Annotation], curve: "AnnotatedCurve") -> List[Annotation]:
        if annotations is None:
            raise NullInput("no annotations given")
        kept = list(annotations)
        if len(kept) < 2:
            return kept
        y = curve.y
        min_delta = self._threshold * (curve.ymax - curve.ymin)
        while True:
            size = len(kept)
            first = next(
                (pos for pos, item in enumerate(kept) if item.type.is_extremum_y),
                size,
            )
            if first >= size:
                break
            second = self._next_opposite(kept, first)
            if second >= size:
                break
            best = (first, second)
            best_delta = abs(y[kept[first].index] - y[kept[second].index])
            while second < size:
                delta = abs(y[kept[first].index] - y[kept[second].index])
                if delta < best_delta:
                    best, best_delta = (first, second), delta
                first = second
                second = self._next_opposite(kept, first)
            if best_delta > min_delta:
                break
            left, right = best
            kept = kept[:left] + [
                item for item in kept[left + 1 : right] if not item.type.is_inflection
            ] + kept[right + 1 :]
        return kept


class InflectionFilter(AnnotationFilter):
    """Drop inflections whose absolute slope is small relative to the steepest slope."""

    description = (
        "Removes all inflection points where the relative absolute slope value "
        "is below the given threshold."
    )

    def __init__(self, threshold: float) -> None:
        super().__init__()
        self._threshold = _validated_threshold("threshold", threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        numeric = _validated_threshold("threshold", value)
        if numeric == self._threshold:
            return
        self._threshold = numeric
        self._notify()

    def apply(self, annotations: List[Annotation], curve: "AnnotatedCurve") -> List[Annotation]:
        if annotations is None:
            raise NullInput("no annotations given")
        slopes = curve.slopes
        min_height = self._threshold * max(abs(curve.slope_max), abs(curve.slope_min))
        return [
            item
            for item in annotations
            if not item.type.is_inflection or abs(slopes[item.index]) > min_height
        ]
