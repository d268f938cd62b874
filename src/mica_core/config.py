"""Alignment options and the packaged YAML presets."""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Iterable, Mapping as MappingABC
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, List, Mapping

import yaml

from .distance import DISTANCE_NAMES, SampledCurveDistance, distance_from_name
from .errors import InvalidArgument, OutOfRange
from .filters import AnnotationFilter, ExtremaFilter, InflectionFilter
from .mica import MICA
from .pica import validate_alignment_parameters

__all__ = [
    "AlignmentOptions",
    "load_presets",
    "preset_names",
    "resolve_preset",
]


_PRESET_RESOURCE_PACKAGE = "mica_core.resources"
_PRESET_RESOURCE_NAME = "presets.yaml"


@dataclass(frozen=True, slots=True)
class AlignmentOptions:
    """Immutable alignment configuration shared by the runner and the CLI."""

    distance: str = "slope-mean-abs"
    samples: int = 100
    max_warp_factor: float = 2.0
    max_rel_x_shift: float = 0.2
    min_rel_interval_length: float = 0.05
    warp_scaling: float | None = None
    extrema_threshold: float = 0.01
    inflection_threshold: float = 0.01
    reference: int | None = None

    def __post_init__(self) -> None:
        key = str(self.distance).strip().lower().replace("_", "-")
        if key not in DISTANCE_NAMES:
            raise InvalidArgument(
                f"Unknown distance '{self.distance}'",
                context={"distance": self.distance, "known": ",".join(DISTANCE_NAMES)},
            )
        object.__setattr__(self, "distance", key)
        if self.samples < 2:
            raise OutOfRange("samples", self.samples, 2, math.inf)
        validate_alignment_parameters(
            self.max_warp_factor,
            self.max_rel_x_shift,
            self.min_rel_interval_length,
            self.warp_scaling,
        )
        for name in ("extrema_threshold", "inflection_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise OutOfRange(name, value, 0.0, 1.0)
        if self.reference is not None and self.reference < 0:
            raise OutOfRange("reference", self.reference, 0, math.inf)

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any] | None = None
    ) -> "AlignmentOptions":
        """Coerce a raw ``[align]`` mapping into options.

        Missing keys keep their defaults.  A present value that cannot be
        coerced raises :class:`InvalidArgument` naming the key; coerced
        values outside of their documented range raise :class:`OutOfRange`.
        """

        def _as_mapping(value: Any) -> Mapping[str, Any]:
            if isinstance(value, MappingABC):
                return value
            return {}

        def _invalid(key: str, value: Any, expected: str) -> InvalidArgument:
            return InvalidArgument(
                f"Option '{key}' expects {expected}, got {value!r}",
                context={"option": key, "value": value},
            )

        def _coerce_float(key: str, fallback: float | None) -> float | None:
            value = payload.get(key)
            if value is None:
                return fallback
            if isinstance(value, bool):
                raise _invalid(key, value, "a number")
            try:
                return float(value)
            except (TypeError, ValueError):
                raise _invalid(key, value, "a number") from None

        def _coerce_int(key: str, fallback: int | None) -> int | None:
            value = payload.get(key)
            if value is None:
                return fallback
            number = _coerce_float(key, None)
            if not float(number).is_integer():
                raise _invalid(key, value, "an integer")
            return int(number)

        payload = _as_mapping(config)
        defaults = cls()
        distance = payload.get("distance", defaults.distance)
        if not isinstance(distance, str):
            raise _invalid("distance", distance, "a metric name")
        return cls(
            distance=distance,
            samples=_coerce_int("samples", defaults.samples),
            max_warp_factor=_coerce_float("max_warp_factor", defaults.max_warp_factor),
            max_rel_x_shift=_coerce_float("max_rel_x_shift", defaults.max_rel_x_shift),
            min_rel_interval_length=_coerce_float(
                "min_rel_interval_length", defaults.min_rel_interval_length
            ),
            warp_scaling=_coerce_float("warp_scaling", None),
            extrema_threshold=_coerce_float("extrema_threshold", defaults.extrema_threshold),
            inflection_threshold=_coerce_float(
                "inflection_threshold", defaults.inflection_threshold
            ),
            reference=_coerce_int("reference", None),
        )

    def with_overrides(self, **overrides: Any) -> "AlignmentOptions":
        """Return a copy where every non-``None`` override replaces the current value."""

        unknown = set(overrides) - {field.name for field in dataclasses.fields(self)}
        if unknown:
            raise InvalidArgument(
                "unknown alignment option", context={"options": ",".join(sorted(unknown))}
            )
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    def build_distance(self) -> SampledCurveDistance:
        return distance_from_name(self.distance, self.samples)

    def build_filters(self) -> List[AnnotationFilter]:
        return [
            ExtremaFilter(self.extrema_threshold),
            InflectionFilter(self.inflection_threshold),
        ]

    def build_aligner(self) -> MICA:
        return MICA(
            self.build_distance(),
            self.max_warp_factor,
            self.max_rel_x_shift,
            self.min_rel_interval_length,
            self.warp_scaling,
        )


def load_presets(
    path: str | Path | None = None,
    *,
    search_paths: Iterable[str | Path] | None = None,
) -> Mapping[str, Mapping[str, Any]]:
    """Load the preset table, each preset already merged onto ``defaults``.

    ``path`` reads one YAML file directly.  Otherwise the first existing
    entry of ``search_paths`` (directories resolve to ``presets.yaml``) wins
    before the presets packaged with :mod:`mica_core`.
    """

    if path is not None:
        candidate = Path(path).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(candidate)
        return _presets_from_text(candidate.read_text(encoding="utf-8"), source=str(candidate))

    for entry in search_paths or ():
        entry_path = Path(entry).expanduser()
        candidate = entry_path / _PRESET_RESOURCE_NAME if entry_path.is_dir() else entry_path
        if candidate.is_file():
            return _presets_from_text(candidate.read_text(encoding="utf-8"), source=str(candidate))

    resource = resources.files(_PRESET_RESOURCE_PACKAGE).joinpath(_PRESET_RESOURCE_NAME)
    return _presets_from_text(resource.read_text(encoding="utf-8"), source=str(resource))


def preset_names(presets: Mapping[str, Mapping[str, Any]] | None = None) -> List[str]:
    table = load_presets() if presets is None else presets
    return sorted(table)


def resolve_preset(
    name: str, presets: Mapping[str, Mapping[str, Any]] | None = None
) -> AlignmentOptions:
    table = load_presets() if presets is None else presets
    try:
        payload = table[name]
    except KeyError:
        raise InvalidArgument(
            f"Unknown preset '{name}'",
            context={"preset": name, "known": ",".join(sorted(table))},
        ) from None
    return AlignmentOptions.from_config(payload)


def _presets_from_text(payload: str, *, source: str) -> Mapping[str, Mapping[str, Any]]:
    try:
        data = yaml.safe_load(payload)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in preset configuration: {source}") from exc
    if data is None:
        return MappingProxyType({})
    if not isinstance(data, MappingABC):
        raise TypeError(f"Preset configuration in {source!s} must decode to a mapping")

    defaults = data.get("defaults")
    base = dict(defaults) if isinstance(defaults, MappingABC) else {}
    table = data.get("presets")
    presets: dict[str, Mapping[str, Any]] = {}
    if isinstance(table, MappingABC):
        for raw_name, entry in table.items():
            merged = dict(base)
            if isinstance(entry, MappingABC):
                merged.update({str(key): value for key, value in entry.items()})
            presets[str(raw_name)] = MappingProxyType(merged)
    if "default" not in presets:
        presets["default"] = MappingProxyType(base)
    return MappingProxyType(presets)
