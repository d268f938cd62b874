from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from mica_core.annotated_curve import AnnotatedCurve
from mica_core.config import AlignmentOptions
from mica_core.errors import InvalidArgument, NullInput, OutOfRange
from mica_core.filters import ExtremaFilter, InflectionFilter
from mica_core.runner import MicaResult, MicaRunner


def test_runner_aligns_and_reports(profile_triplet) -> None:
    options = AlignmentOptions(distance="value-rms", samples=60)

    result = MicaRunner(profile_triplet, options).run()

    assert isinstance(result, MicaResult)
    assert result.complete
    assert result.names == ("reference", "shifted", "stretched")
    assert result.options is options
    assert result.distance == pytest.approx(0.0, abs=1e-6)
    assert result.distance == result.data.distance
    assert result.elapsed >= 0.0
    assert result.guide_tree.count("(") == 2
    assert "RMSD" in result.metadata["description"]
    assert [x.size for x in result.aligned_x()] == [curve.size() for curve in profile_triplet]
    assert all(np.array_equal(x, curve.x) for x, curve in zip(result.original_x(), profile_triplet))


def test_runner_attaches_one_shared_filter_pair(profile_triplet) -> None:
    result = MicaRunner(profile_triplet).run()

    assert result.options.distance == "slope-mean-abs"
    assert math.isfinite(result.distance)
    assert result.names == ("reference", "shifted", "stretched")

    assert all(curve.filters == () for curve in profile_triplet)
    filters = [item.original.filters for item in result.data.curves]
    assert all(len(item) == 2 for item in filters)
    assert isinstance(filters[0][0], ExtremaFilter)
    assert isinstance(filters[0][1], InflectionFilter)
    assert all(item[0] is filters[0][0] and item[1] is filters[0][1] for item in filters)


def test_runner_without_filters(profile_triplet) -> None:
    result = MicaRunner(profile_triplet, apply_filters=False).run()

    assert all(item.original.filters == () for item in result.data.curves)


def test_runner_reruns_honour_new_thresholds(profile_triplet, wave_factory) -> None:
    strict = AlignmentOptions(extrema_threshold=1.0, inflection_threshold=1.0)
    loose = AlignmentOptions(extrema_threshold=0.0, inflection_threshold=0.0)

    MicaRunner(profile_triplet, strict).run()
    rerun = MicaRunner(profile_triplet, loose).run()

    x, y = wave_factory()
    fresh_curves = [AnnotatedCurve("reference", y, x), AnnotatedCurve("shifted", y, x - 3.0)]
    fresh = MicaRunner(fresh_curves, loose).run()

    assert all(curve.filters == () for curve in profile_triplet)
    rerun_first = rerun.data.curves[0].original
    assert len(rerun_first.filters) == 2
    assert [item.threshold for item in rerun_first.filters] == [0.0, 0.0]
    assert len(rerun_first.filtered_annotations()) == len(
        fresh.data.curves[0].original.filtered_annotations()
    )


def test_runner_reference_mode(profile_triplet) -> None:
    options = AlignmentOptions(distance="value-rms", samples=60, reference=2)

    result = MicaRunner(profile_triplet, options).run()

    assert result.complete
    assert np.allclose(result.aligned_x()[2], profile_triplet[2].x, atol=1e-6)


def test_runner_cancelled(profile_triplet) -> None:
    class _Cancelled:
        def report_progress(self, fraction: float) -> None:
            pass

        def is_cancelled(self) -> bool:
            return True

    result = MicaRunner(profile_triplet, context=_Cancelled()).run()

    assert not result.complete
    assert result.guide_tree == ""
    assert math.isnan(result.distance)
    assert result.data.consensus is None


def test_runner_logs_start_and_finish(profile_triplet, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="mica_core.runner"):
        MicaRunner(profile_triplet).run()

    events = [getattr(record, "event", None) for record in caplog.records]
    assert "runner.start" in events
    assert "runner.finish" in events


def test_runner_validation(profile_triplet) -> None:
    with pytest.raises(NullInput):
        MicaRunner(None)  # type: ignore[arg-type]
    with pytest.raises(InvalidArgument):
        MicaRunner([])
    with pytest.raises(NullInput):
        MicaRunner([profile_triplet[0], None])  # type: ignore[list-item]
    with pytest.raises(OutOfRange):
        MicaRunner(profile_triplet, AlignmentOptions(reference=3))
