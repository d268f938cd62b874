"""Command handlers of the ``mica`` command line tool."""

from __future__ import annotations

import argparse
import csv
import json
import logging
from io import StringIO
from pathlib import Path
from typing import Any, List, Mapping, Optional

from mica_core.annotated_curve import AnnotatedCurve
from mica_core.config import AlignmentOptions, load_presets, resolve_preset
from mica_core.errors import MicaError
from mica_core.runner import MicaResult, MicaRunner

from ..exporters import exporters_registry
from ..io import load_curves, write_aligned_x
from .errors import CliError

logger = logging.getLogger(__name__)

_OPTION_OVERRIDES = (
    "distance",
    "samples",
    "max_warp_factor",
    "max_rel_x_shift",
    "min_rel_interval_length",
    "warp_scaling",
    "extrema_threshold",
    "inflection_threshold",
)


def _load_preset_table(path: Optional[Path]) -> Mapping[str, Mapping[str, Any]]:
    try:
        return load_presets(path)
    except FileNotFoundError as exc:
        raise CliError(
            f"Presets file not found: {path}",
            category="not_found",
            context={"path": path},
        ) from exc
    except (TypeError, ValueError) as exc:
        raise CliError(str(exc), category="usage", context={"path": path}) from exc


def _base_options(namespace: argparse.Namespace, config: Mapping[str, Any]) -> AlignmentOptions:
    preset = getattr(namespace, "preset", None)
    try:
        if preset:
            table = _load_preset_table(getattr(namespace, "presets_file", None))
            return resolve_preset(str(preset), table)
        return AlignmentOptions.from_config(config.get("align"))
    except MicaError as exc:
        raise CliError.from_mica_error(exc, preset=preset) from exc


def _load_input(namespace: argparse.Namespace) -> List[AnnotatedCurve]:
    path = Path(namespace.input)
    context = {"path": path, "delimiter": namespace.delimiter}
    try:
        curves = load_curves(path, delimiter=namespace.delimiter, header=namespace.header)
    except FileNotFoundError as exc:
        raise CliError(f"Input file not found: {path}", category="not_found", context=context) from exc
    except MicaError as exc:
        raise CliError.from_mica_error(exc, path=path) from exc
    except (csv.Error, UnicodeDecodeError) as exc:
        raise CliError(f"Unable to parse {path}: {exc}", category="usage", context=context) from exc
    except OSError as exc:
        raise CliError(f"Unable to read {path}: {exc}", category="io", context=context) from exc
    if len(curves) < 2:
        raise CliError(
            f"At least two curves are required for an alignment, {path} provides {len(curves)}.",
            category="usage",
            context={**context, "curves": len(curves)},
        )
    return curves


def _resolve_options(
    namespace: argparse.Namespace, config: Mapping[str, Any], curve_count: int
) -> AlignmentOptions:
    options = _base_options(namespace, config)
    overrides = {name: getattr(namespace, name, None) for name in _OPTION_OVERRIDES}
    reference = getattr(namespace, "reference", None)
    if reference is not None:
        if reference > curve_count:
            raise CliError(
                f"Reference curve {reference} does not exist, only {curve_count} curves were loaded.",
                category="usage",
                context={"reference": reference, "curves": curve_count},
            )
        overrides["reference"] = reference - 1
    try:
        return options.with_overrides(**overrides)
    except MicaError as exc:
        raise CliError.from_mica_error(exc) from exc


def _render(result: MicaResult, namespace: argparse.Namespace) -> str:
    fmt = namespace.output_format
    if fmt == "x":
        buffer = StringIO()
        write_aligned_x(
            buffer,
            result.data,
            aligned=namespace.aligned,
            header=True,
            delimiter=namespace.delimiter,
        )
        return buffer.getvalue()
    exporter = exporters_registry.get(fmt)
    if exporter is None:
        raise CliError(f"Unsupported output format '{fmt}'.", category="usage", context={"format": fmt})
    return exporter(result)


def _handle_align(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    curves = _load_input(namespace)
    options = _resolve_options(namespace, config, len(curves))
    try:
        result = MicaRunner(curves, options).run()
    except MicaError as exc:
        raise CliError.from_mica_error(exc, path=namespace.input) from exc

    rendered = _render(result, namespace)
    logger.info(
        "Curves aligned",
        extra={
            "event": "cli.align",
            "input": str(namespace.input),
            "curves": len(result.names),
            "distance": result.distance,
            "elapsed": round(result.elapsed, 6),
            "format": namespace.output_format,
        },
    )

    destination = getattr(namespace, "output", None)
    if destination is None:
        return rendered
    destination = Path(destination).expanduser()
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            f"Unable to write {destination}: {exc}",
            category="io",
            context={"path": destination},
        ) from exc
    return (
        f"Aligned {len(result.names)} curves (distance {result.distance:.6g}) "
        f"written to {destination}"
    )


def _handle_presets(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    table = _load_preset_table(getattr(namespace, "presets_file", None))
    resolved: dict[str, dict[str, Any]] = {}
    for name in sorted(table):
        try:
            resolved[name] = resolve_preset(name, table).as_dict()
        except MicaError as exc:
            raise CliError.from_mica_error(exc, preset=name) from exc

    if namespace.output_format == "json":
        return json.dumps(resolved, indent=2, sort_keys=True)
    lines = []
    for name, settings in resolved.items():
        summary = ", ".join(
            f"{key}={value}" for key, value in settings.items() if value is not None
        )
        lines.append(f"{name}: {summary}")
    return "\n".join(lines)


__all__ = ["_handle_align", "_handle_presets"]
