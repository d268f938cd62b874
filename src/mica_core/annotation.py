"""Structural annotation types and their precedence rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Mapping

__all__ = [
    "AnnotationType",
    "Annotation",
    "compare",
    "is_alignable",
    "is_opposite",
    "precedence_rank",
]


class AnnotationType(IntEnum):
    """Classification of a single curve sample.

    Automatically derived types carry non-positive codes, manual overrides the
    positive counterpart of the corresponding automatic code.  ``SPLIT`` is
    the manual counterpart of ``START``.
    """

    POINT = 0

    DERIVATIVE_MINIMUM_AUTO = -1
    DERIVATIVE_MAXIMUM_AUTO = -2
    INFLECTION_ASCENDING_AUTO = -3
    INFLECTION_DESCENDING_AUTO = -4
    MINIMUM_AUTO = -5
    MAXIMUM_AUTO = -6
    START = -7
    END = -8

    DERIVATIVE_MINIMUM_MAN = 1
    DERIVATIVE_MAXIMUM_MAN = 2
    INFLECTION_ASCENDING_MAN = 3
    INFLECTION_DESCENDING_MAN = 4
    MINIMUM_MAN = 5
    MAXIMUM_MAN = 6
    SPLIT = 7

    @property
    def is_extremum_y(self) -> bool:
        return abs(self.value) in (MAXIMUM_CODE, MINIMUM_CODE)

    @property
    def is_extremum_slope(self) -> bool:
        return abs(self.value) in (DERIVATIVE_MAXIMUM_CODE, DERIVATIVE_MINIMUM_CODE)

    @property
    def is_inflection(self) -> bool:
        return abs(self.value) in (INFLECTION_ASCENDING_CODE, INFLECTION_DESCENDING_CODE)

    @property
    def is_manual(self) -> bool:
        return self.value > 0

    @property
    def is_interval_boundary(self) -> bool:
        return self in (AnnotationType.START, AnnotationType.END, AnnotationType.SPLIT)

    @property
    def label(self) -> str:
        return _LABELS[self]


MAXIMUM_CODE = 6
MINIMUM_CODE = 5
INFLECTION_ASCENDING_CODE = 3
INFLECTION_DESCENDING_CODE = 4
DERIVATIVE_MAXIMUM_CODE = 2
DERIVATIVE_MINIMUM_CODE = 1


_LABELS: Mapping[AnnotationType, str] = {
    AnnotationType.POINT: "point",
    AnnotationType.MAXIMUM_MAN: "maxYm",
    AnnotationType.MINIMUM_MAN: "minYm",
    AnnotationType.MAXIMUM_AUTO: "maxYa",
    AnnotationType.MINIMUM_AUTO: "minYa",
    AnnotationType.INFLECTION_ASCENDING_MAN: "infAm",
    AnnotationType.INFLECTION_DESCENDING_MAN: "infDm",
    AnnotationType.INFLECTION_ASCENDING_AUTO: "infAa",
    AnnotationType.INFLECTION_DESCENDING_AUTO: "infDa",
    AnnotationType.DERIVATIVE_MAXIMUM_MAN: "maxSm",
    AnnotationType.DERIVATIVE_MINIMUM_MAN: "minSm",
    AnnotationType.DERIVATIVE_MAXIMUM_AUTO: "maxSa",
    AnnotationType.DERIVATIVE_MINIMUM_AUTO: "minSa",
    AnnotationType.SPLIT: "split",
    AnnotationType.START: "start",
    AnnotationType.END: "end",
}

_OPPOSITES: Mapping[int, int] = {
    MAXIMUM_CODE: MINIMUM_CODE,
    MINIMUM_CODE: MAXIMUM_CODE,
    DERIVATIVE_MAXIMUM_CODE: DERIVATIVE_MINIMUM_CODE,
    DERIVATIVE_MINIMUM_CODE: DERIVATIVE_MAXIMUM_CODE,
}


def compare(first: AnnotationType, second: AnnotationType) -> int:
    """Order two types by precedence.

    Among automatic types the more negative code wins, among manual ones the
    larger code.  Only meaningful for conflict resolution between related
    types; it is not a total order over unrelated types.
    """

    if first.value > 0 or second.value > 0:
        return (first.value > second.value) - (first.value < second.value)
    return (first.value < second.value) - (first.value > second.value)


def is_alignable(first: AnnotationType, second: AnnotationType) -> bool:
    """Return ``True`` when both types describe the same structural feature."""

    return first.value == second.value or abs(first.value) == abs(second.value)


def is_opposite(first: AnnotationType, second: AnnotationType) -> bool:
    """Maxima oppose minima, slope maxima oppose slope minima."""

    code = abs(first.value)
    if code not in _OPPOSITES:
        return False
    return abs(second.value) == _OPPOSITES[code]


def precedence_rank(annotation_type: AnnotationType) -> int:
    """Rank used to order split candidates; higher ranks are tried first."""

    if annotation_type.is_extremum_y:
        rank = 3
    elif annotation_type.is_inflection:
        rank = 2
    elif annotation_type.is_extremum_slope:
        rank = 1
    else:
        rank = 0
    return rank * 2 + int(annotation_type.is_manual)


@dataclass(frozen=True, slots=True)
class Annotation:
    """Annotated sample ``index`` of the curve named ``curve``.

    The curve is referenced by name only; the annotation does not keep the
    curve alive.
    """

    curve: str
    index: int
    type: AnnotationType

    def __str__(self) -> str:
        return f"({self.index},{self.type.label})"
