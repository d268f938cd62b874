"""Argument parsing helpers for the ``mica`` command."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from mica_core.distance import DISTANCE_NAMES

from ..exporters import exporters_registry
from .workflows import _handle_align, _handle_presets

OUTPUT_FORMATS = ("x", *exporters_registry)


def _section(config: Mapping[str, Any], name: str) -> dict[str, Any]:
    raw = config.get(name, {})
    return dict(raw) if isinstance(raw, Mapping) else {}


def _single_character(value: str) -> str:
    if value == "\\t":
        return "\t"
    if len(value) != 1:
        raise argparse.ArgumentTypeError("the delimiter has to be a single character")
    return value


def _positive_index(value: str) -> int:
    try:
        index = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid curve number: {value!r}") from None
    if index < 1:
        raise argparse.ArgumentTypeError("curve numbers start at 1")
    return index


def _add_alignment_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group(
        "alignment", "Override single settings of the selected preset."
    )
    group.add_argument(
        "--distance",
        choices=DISTANCE_NAMES,
        default=None,
        help="Distance between curves (default: slope-mean-abs).",
    )
    group.add_argument(
        "--samples", type=int, default=None, help="Number of distance samples per curve."
    )
    group.add_argument(
        "--max-warp",
        dest="max_warp_factor",
        type=float,
        default=None,
        help="Maximal warping factor of an interval, in [1, 999].",
    )
    group.add_argument(
        "--max-shift",
        dest="max_rel_x_shift",
        type=float,
        default=None,
        help="Maximal relative x-shift of a split point, in [0, 1].",
    )
    group.add_argument(
        "--min-length",
        dest="min_rel_interval_length",
        type=float,
        default=None,
        help="Minimal relative length of an interval that is refined, in [0, 1].",
    )
    group.add_argument(
        "--warp-scaling",
        type=float,
        default=None,
        help="Penalise warping by scaling distances with max(1, scaling * warp factor).",
    )
    group.add_argument(
        "--extrema-threshold",
        type=float,
        default=None,
        help="Minimal relative height of extrema used for alignment, in [0, 1].",
    )
    group.add_argument(
        "--inflection-threshold",
        type=float,
        default=None,
        help="Minimal relative slope of inflection points used for alignment, in [0, 1].",
    )
    group.add_argument(
        "--reference",
        type=_positive_index,
        default=None,
        help="Align all curves onto this curve (1-based column number among the loaded curves).",
    )


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = _section(config, "logging")
    io_cfg = _section(config, "io")
    align_cfg = _section(config, "align")

    parser = argparse.ArgumentParser(
        prog="mica",
        description="MICA – multiple interval-based curve alignment",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml holding a [tool.mica] table.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    align_parser = subparsers.add_parser(
        "align",
        help="Align the curves stored column-wise in a delimited text file.",
    )
    align_parser.add_argument("input", type=Path, help="Delimited file with one curve per column.")
    align_parser.add_argument(
        "-d",
        "--delimiter",
        type=_single_character,
        default=str(io_cfg.get("delimiter", ";")),
        help="Column delimiter of input and output (default: ';', use '\\t' for tabs).",
    )
    align_parser.add_argument(
        "--no-header",
        dest="header",
        action="store_false",
        default=bool(io_cfg.get("header", True)),
        help="The input has no header row; curves are named c1, c2, ...",
    )
    align_parser.add_argument(
        "--preset",
        default=align_cfg.get("preset"),
        help="Named alignment preset to start from (see 'mica presets').",
    )
    align_parser.add_argument(
        "--presets-file",
        type=Path,
        default=io_cfg.get("presets_file"),
        help="YAML file replacing the packaged presets.",
    )
    _add_alignment_arguments(align_parser)
    align_parser.add_argument(
        "--original",
        dest="aligned",
        action="store_false",
        default=True,
        help="Write the original instead of the aligned x-coordinates.",
    )
    align_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the result to this file instead of stdout.",
    )
    align_parser.add_argument(
        "--format",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="x",
        help="'x' writes the x-coordinates column-wise; json and csv export the full result.",
    )
    align_parser.set_defaults(handler=_handle_align)

    presets_parser = subparsers.add_parser("presets", help="List the available alignment presets.")
    presets_parser.add_argument(
        "--presets-file",
        type=Path,
        default=io_cfg.get("presets_file"),
        help="YAML file replacing the packaged presets.",
    )
    presets_parser.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default="text",
        help="Listing format.",
    )
    presets_parser.set_defaults(handler=_handle_presets)

    return parser
