from __future__ import annotations

import gc

import numpy as np
import pytest

from mica_core.annotated_curve import AnnotatedCurve
from mica_core.annotation import Annotation, AnnotationType
from mica_core.curve import Curve
from mica_core.errors import IllegalState, InvalidArgument, NullInput
from mica_core.filters import AnnotationFilter, ExtremaFilter

T = AnnotationType

Y_ONE_MAX = [1.0, 2.5, 4.0, 4.5, 5.0, 5.1, 5.0, 4.5, 4.0, 2.5, 1.0]
Y_ONE_MAX_ONE_MIN = [1.0, 2.0, 3.0, 2.0, 3.0, 4.0]


class _KeepAll(AnnotationFilter):
    def apply(self, annotations, curve):
        return list(annotations)


class _DropInflections(AnnotationFilter):
    def apply(self, annotations, curve):
        return [item for item in annotations if not item.type.is_inflection]


@pytest.mark.parametrize("y", [Y_ONE_MAX, Y_ONE_MAX_ONE_MIN, [3.0, 1.0], [1.0, 1.0, 1.0]])
def test_boundaries_are_start_and_end(y: list[float]) -> None:
    curve = AnnotatedCurve("curve", y)

    assert len(curve.annotation) == len(y)
    assert curve.annotation[0] is T.START
    assert curve.annotation[-1] is T.END


def test_single_maximum() -> None:
    curve = AnnotatedCurve("oneMax", Y_ONE_MAX)
    filtered = curve.filtered_annotations()

    assert [(item.index, item.type) for item in filtered] == [
        (0, T.START),
        (5, T.MAXIMUM_AUTO),
        (10, T.END),
    ]
    assert all(item.curve == "oneMax" for item in filtered)


def test_maximum_followed_by_minimum() -> None:
    curve = AnnotatedCurve("oneMaxOneMin", Y_ONE_MAX_ONE_MIN)

    assert [(item.index, item.type) for item in curve.filtered_annotations()] == [
        (0, T.START),
        (2, T.MAXIMUM_AUTO),
        (3, T.MINIMUM_AUTO),
        (5, T.END),
    ]


def test_plateau_extremum_is_marked_once() -> None:
    curve = AnnotatedCurve("plateau", [1.0, 2.0, 4.0, 4.0, 4.0, 2.0, 1.0])
    maxima = [index for index, item in enumerate(curve.annotation) if item.is_extremum_y]

    assert maxima == [3]


def test_inflection_on_rising_flank(peak_curve: AnnotatedCurve) -> None:
    types = peak_curve.annotation

    assert types[4] is T.MAXIMUM_AUTO
    assert T.INFLECTION_ASCENDING_AUTO in types[1:4]


def test_from_curve_and_explicit_annotations() -> None:
    plain = Curve("plain", Y_ONE_MAX)
    auto = AnnotatedCurve.from_curve(plain)
    assert auto.annotation[5] is T.MAXIMUM_AUTO

    manual = AnnotatedCurve.with_annotations(
        "manual", Y_ONE_MAX, None, [Annotation("manual", 3, T.SPLIT)]
    )
    assert [item.index for item in manual.filtered_annotations()] == [0, 3, 10]

    with pytest.raises(InvalidArgument):
        AnnotatedCurve("bad", [1.0, 2.0, 3.0], annotations=[T.START, T.POINT, T.POINT])
    with pytest.raises(InvalidArgument):
        AnnotatedCurve("bad", [1.0, 2.0, 3.0], annotations=[T.START, T.END])
    with pytest.raises(InvalidArgument):
        AnnotatedCurve.with_annotations("bad", [1.0, 2.0], None, [Annotation("bad", 5, T.SPLIT)])


def test_set_annotation_guards_boundaries() -> None:
    curve = AnnotatedCurve("curve", Y_ONE_MAX)
    curve.set_annotation(2, T.SPLIT)

    assert curve.annotation_at(2) == Annotation("curve", 2, T.SPLIT)
    assert any(item.index == 2 for item in curve.filtered_annotations())
    with pytest.raises(IllegalState):
        curve.set_annotation(0, T.MAXIMUM_MAN)
    with pytest.raises(InvalidArgument):
        curve.set_annotation(3, T.END)


def test_filter_chain_add_and_remove() -> None:
    curve = AnnotatedCurve("curve", [0.5, 2.0, 3.0, 2.5, 2.0, 3.0, 5.0])
    dropper = _DropInflections()
    keeper = _KeepAll()
    unfiltered = curve.filtered_annotations()

    curve.add_filter(keeper)
    curve.add_filter(dropper)
    assert curve.filters == (keeper, dropper)
    assert all(not item.type.is_inflection for item in curve.filtered_annotations())

    assert curve.remove_filter(dropper)
    assert not curve.remove_filter(dropper)
    assert curve.filtered_annotations() == unfiltered

    with pytest.raises(NullInput):
        curve.add_filter(None)  # type: ignore[arg-type]
    with pytest.raises(NullInput):
        curve.remove_filter(None)  # type: ignore[arg-type]


def test_adding_a_filter_twice_is_idempotent() -> None:
    curve = AnnotatedCurve("curve", Y_ONE_MAX)
    shared = _KeepAll()
    curve.add_filter(shared)
    curve.add_filter(shared)

    assert curve.filters == (shared,)
    assert len(shared.subscriber_ids) == 1


def test_filtered_annotations_are_sorted_and_copied() -> None:
    curve = AnnotatedCurve("curve", Y_ONE_MAX_ONE_MIN)
    listing = curve.filtered_annotations()
    listing.clear()

    indices = [item.index for item in curve.filtered_annotations()]
    assert indices == sorted(indices)
    assert indices


def test_copy_shares_filters_but_not_data() -> None:
    curve = AnnotatedCurve("curve", Y_ONE_MAX)
    shared = ExtremaFilter(0.1)
    curve.add_filter(shared)
    duplicate = curve.copy("twin")
    duplicate.x[:] += 1.0
    duplicate.update_interpolation()

    assert duplicate.filters == (shared,)
    assert duplicate.annotation == curve.annotation
    assert curve.xmin == 0.0
    assert len(shared.subscriber_ids) == 2


def test_filter_does_not_keep_curves_alive() -> None:
    shared = _KeepAll()
    curve = AnnotatedCurve("short-lived", Y_ONE_MAX)
    curve.add_filter(shared)
    del curve
    gc.collect()
    shared._notify()

    assert shared.subscriber_ids == frozenset()


def test_slopes_vanish_on_extrema() -> None:
    curve = AnnotatedCurve("curve", Y_ONE_MAX_ONE_MIN)

    assert curve.slopes[2] == 0.0
    assert curve.slopes[3] == 0.0
    assert np.all(np.isfinite(curve.slopes))
