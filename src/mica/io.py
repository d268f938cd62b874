"""Delimited text import and export of curves and alignments."""

from __future__ import annotations

import csv
import logging
import math
from enum import Enum
from pathlib import Path
from typing import IO, Iterable, List, Sequence, Tuple

import numpy as np

from mica_core.annotated_curve import AnnotatedCurve
from mica_core.curve import Curve
from mica_core.decomposition import IntervalDecomposition
from mica_core.errors import DuplicateName, InvalidArgument, MicaError, NullInput
from mica_core.mica import MicaData

__all__ = [
    "ExportMode",
    "export_csv",
    "format_number",
    "load_curves",
    "parse_curves",
    "write_aligned_x",
    "write_columns",
]

logger = logging.getLogger(__name__)

Column = Tuple[str, Sequence[float]]


class ExportMode(str, Enum):
    """Which coordinates of a curve end up in an exported table."""

    X = "x"
    Y = "y"
    XY = "xy"
    NONE = "none"

    @property
    def writes_x(self) -> bool:
        return self in (ExportMode.X, ExportMode.XY)

    @property
    def writes_y(self) -> bool:
        return self in (ExportMode.Y, ExportMode.XY)


def _validated_delimiter(delimiter: str, *, allow_whitespace: bool) -> str:
    if delimiter is None:
        raise NullInput("no delimiter given")
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise InvalidArgument("delimiter has to be a single character", context={"delimiter": delimiter})
    if not allow_whitespace and delimiter.isspace():
        raise InvalidArgument("delimiter must not be whitespace", context={"delimiter": repr(delimiter)})
    return delimiter


def format_number(value: float) -> str:
    """Shortest text for ``value``; integral values lose their ``.0``."""

    number = float(value)
    if number.is_integer() and abs(number) < 1e15:
        return str(int(number))
    return repr(number)


# ----------------------------------------------------------------------
# import
# ----------------------------------------------------------------------
def _parse_cell(cell: str) -> float | None:
    try:
        value = float(cell.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_curves(
    lines: Iterable[str],
    *,
    delimiter: str = ";",
    header: bool = True,
    source: str = "<stream>",
) -> List[AnnotatedCurve]:
    """Read one curve per column of delimited ``lines``.

    With ``header`` the first row names the columns; a blank first header
    cell marks a leading column of row labels, which is ignored.  Unnamed
    columns are called ``c<column>`` (1-based).  A column ends at its first
    cell that is not a finite number; rows too short to reach a column are
    skipped for that column.  Columns without at least two values are
    skipped with a warning.
    """

    _validated_delimiter(delimiter, allow_whitespace=True)
    rows = [row for row in csv.reader(lines, delimiter=delimiter) if any(cell.strip() for cell in row)]
    if not rows:
        return []

    names_row: List[str] = []
    if header:
        names_row = [cell.strip() for cell in rows[0]]
        rows = rows[1:]
    offset = 1 if len(names_row) > 1 and not names_row[0] else 0
    column_count = max([len(names_row)] + [len(row) for row in rows])

    curves: List[AnnotatedCurve] = []
    seen: dict[str, int] = {}
    for column in range(offset, column_count):
        label = column - offset + 1
        name = names_row[column] if column < len(names_row) and names_row[column] else f"c{label}"
        values: List[float] = []
        for row in rows:
            if column >= len(row):
                continue
            value = _parse_cell(row[column])
            if value is None:
                break
            values.append(value)
        try:
            curve = AnnotatedCurve(name, values)
        except MicaError as exc:
            logger.warning(
                "Column skipped",
                extra={
                    "event": "io.column_skipped",
                    "column": label,
                    "curve": name,
                    "reason": str(exc),
                    "source": source,
                },
            )
            continue
        if name in seen:
            raise DuplicateName(
                f"Duplicate curve name '{name}'",
                context={"name": name, "columns": f"{seen[name]},{label}", "source": source},
            )
        seen[name] = label
        curves.append(curve)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Curves parsed",
            extra={"source": source, "curves": [curve.name for curve in curves]},
        )
    return curves


def load_curves(
    source: str | Path | IO[str],
    *,
    delimiter: str = ";",
    header: bool = True,
) -> List[AnnotatedCurve]:
    """Read curves from a file path or an open text stream, see :func:`parse_curves`."""

    if hasattr(source, "read"):
        label = str(getattr(source, "name", "<stream>"))
        return parse_curves(source, delimiter=delimiter, header=header, source=label)  # type: ignore[arg-type]
    path = Path(source).expanduser()
    with path.open("r", encoding="utf-8", newline="") as handle:
        return parse_curves(handle, delimiter=delimiter, header=header, source=str(path))


# ----------------------------------------------------------------------
# export
# ----------------------------------------------------------------------
def _render_rows(columns: Sequence[Column], header: bool) -> Iterable[List[str]]:
    if header:
        yield [name for name, _ in columns]
    row_count = max((len(values) for _, values in columns), default=0)
    for row in range(row_count):
        yield [format_number(values[row]) if row < len(values) else "" for _, values in columns]


def _write_rows(handle: IO[str], columns: Sequence[Column], delimiter: str, header: bool) -> None:
    # quoted the way parse_curves reads them back
    writer = csv.writer(handle, delimiter=delimiter, lineterminator="\n")
    writer.writerows(_render_rows(columns, header))
    handle.flush()


def write_columns(
    destination: str | Path | IO[str],
    columns: Sequence[Column],
    *,
    delimiter: str = ",",
    header: bool = True,
) -> None:
    """Write ``(name, values)`` columns side by side; short columns leave empty cells."""

    if columns is None:
        raise NullInput("no columns given")
    if hasattr(destination, "write"):
        _write_rows(destination, columns, delimiter, header)  # type: ignore[arg-type]
        return
    path = Path(destination).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        _write_rows(handle, columns, delimiter, header)


def _resolve_modes(
    curves: Sequence[Curve], modes: ExportMode | str | Sequence[ExportMode | str]
) -> List[ExportMode]:
    if modes is None:
        raise NullInput("no export mode given")
    if isinstance(modes, (ExportMode, str)):
        return [ExportMode(modes)] * len(curves)
    resolved = [ExportMode(mode) for mode in modes]
    if len(resolved) != len(curves):
        raise InvalidArgument(
            "one export mode per curve is required",
            context={"curves": len(curves), "modes": len(resolved)},
        )
    return resolved


def export_csv(
    destination: str | Path | IO[str],
    curves: Sequence[Curve],
    modes: ExportMode | str | Sequence[ExportMode | str] = ExportMode.XY,
    *,
    delimiter: str = ",",
) -> None:
    """Export ``curves`` as a delimited table.

    Each curve contributes an ``X_<name>`` column, a ``<name>`` column, both
    or none depending on its mode.  There is one row per sample index up to
    the longest curve.
    """

    if curves is None:
        raise NullInput("no curves given")
    _validated_delimiter(delimiter, allow_whitespace=False)
    columns: List[Column] = []
    for curve, mode in zip(curves, _resolve_modes(curves, modes)):
        if curve is None:
            raise NullInput("curve list contains a missing entry")
        if mode.writes_x:
            columns.append((f"X_{curve.name}", curve.x))
        if mode.writes_y:
            columns.append((curve.name, curve.y))
    write_columns(destination, columns, delimiter=delimiter)


def write_aligned_x(
    destination: str | Path | IO[str],
    alignment: MicaData | Sequence[IntervalDecomposition],
    *,
    aligned: bool = True,
    header: bool = True,
    delimiter: str = ";",
) -> None:
    """Write the warped (or, without ``aligned``, the original) x-coordinates per curve."""

    if alignment is None:
        raise NullInput("no alignment given")
    _validated_delimiter(delimiter, allow_whitespace=True)
    decompositions = alignment.curves if isinstance(alignment, MicaData) else list(alignment)
    columns: List[Column] = []
    for item in decompositions:
        values = item.curve.x if aligned else item.original.x
        columns.append((item.original.name, np.asarray(values, dtype=float)))
    write_columns(destination, columns, delimiter=delimiter, header=header)
