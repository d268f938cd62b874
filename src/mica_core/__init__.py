"""Interval-based alignment engine for sampled one-dimensional curves.

The package bundles the numeric building blocks (curves, annotations,
interval decompositions and distances) together with the pairwise
(:class:`PICA`) and progressive multiple (:class:`MICA`) aligners.
"""

from __future__ import annotations

from .annotated_curve import AnnotatedCurve, classify_samples
from .annotation import (
    Annotation,
    AnnotationType,
    compare,
    is_alignable,
    is_opposite,
    precedence_rank,
)
from .config import AlignmentOptions, load_presets, preset_names, resolve_preset
from .curve import Curve
from .decomposition import IntervalDecomposition
from .distance import (
    DISTANCE_NAMES,
    LinearWarpCorrection,
    NoWarpCorrection,
    Reduction,
    SampledCurveDistance,
    Signal,
    WarpCorrection,
    distance_from_name,
    no_warp_correction,
    slope_mean_absolute,
    slope_rms,
    value_mean_absolute,
    value_rms,
)
from .errors import (
    DuplicateName,
    IllegalState,
    InvalidArgument,
    MicaError,
    NullInput,
    OutOfRange,
)
from .filters import AnnotationFilter, ExtremaFilter, InflectionFilter
from .guide_tree import GuideTree, GuideTreeGenerator, GuideTreeNode
from .mica import (
    MICA,
    AlignmentContext,
    MicaData,
    consensus_decomposition,
    consensus_name,
)
from .pica import PICA, PicaData
from .precision import precision_delta, same_x
from .runner import MicaResult, MicaRunner

__all__ = [
    "AlignmentContext",
    "AlignmentOptions",
    "AnnotatedCurve",
    "Annotation",
    "AnnotationFilter",
    "AnnotationType",
    "Curve",
    "DISTANCE_NAMES",
    "DuplicateName",
    "ExtremaFilter",
    "GuideTree",
    "GuideTreeGenerator",
    "GuideTreeNode",
    "IllegalState",
    "InflectionFilter",
    "IntervalDecomposition",
    "InvalidArgument",
    "LinearWarpCorrection",
    "MICA",
    "MicaData",
    "MicaError",
    "MicaResult",
    "MicaRunner",
    "NoWarpCorrection",
    "NullInput",
    "OutOfRange",
    "PICA",
    "PicaData",
    "Reduction",
    "SampledCurveDistance",
    "Signal",
    "WarpCorrection",
    "classify_samples",
    "compare",
    "consensus_decomposition",
    "consensus_name",
    "distance_from_name",
    "is_alignable",
    "is_opposite",
    "load_presets",
    "no_warp_correction",
    "precedence_rank",
    "precision_delta",
    "preset_names",
    "resolve_preset",
    "same_x",
    "slope_mean_absolute",
    "slope_rms",
    "value_mean_absolute",
    "value_rms",
]
