"""Exporter registry rendering alignment results."""

from __future__ import annotations

import json
import math
from io import StringIO
from typing import Any, Dict, List, Protocol

from mica_core.runner import MicaResult

from .io import write_columns

__all__ = [
    "Exporter",
    "build_result_payload",
    "csv_exporter",
    "exporters_registry",
    "json_exporter",
]


class Exporter(Protocol):
    """Exporter callable protocol."""

    def __call__(self, result: MicaResult) -> str:  # pragma: no cover - interface only
        ...


def _finite_or_none(value: float) -> float | None:
    number = float(value)
    return number if math.isfinite(number) else None


def _floats(values: Any) -> List[float]:
    return [float(value) for value in values]


def build_result_payload(result: MicaResult) -> Dict[str, Any]:
    """Serialisable summary of ``result``: settings, per-curve coordinates and consensus."""

    data = result.data
    curves = [
        {
            "name": item.original.name,
            "y": _floats(item.original.y),
            "original_x": _floats(item.original.x),
            "aligned_x": _floats(item.curve.x),
            "intervals": item.size(),
        }
        for item in data.curves
    ]
    consensus = None
    if data.consensus is not None:
        consensus = {
            "name": data.consensus.original.name,
            "x": _floats(data.consensus.original.x),
            "y": _floats(data.consensus.original.y),
        }
    return {
        "names": list(result.names),
        "complete": result.complete,
        "distance": _finite_or_none(result.distance),
        "elapsed": result.elapsed,
        "guide_tree": result.guide_tree,
        "options": result.options.as_dict(),
        "metadata": dict(result.metadata),
        "curves": curves,
        "consensus": consensus,
    }


def json_exporter(result: MicaResult) -> str:
    return json.dumps(build_result_payload(result), indent=2, sort_keys=True)


def csv_exporter(result: MicaResult) -> str:
    """Comma separated table with the aligned x and the y column of every curve."""

    columns = []
    for item in result.data.curves:
        name = item.original.name
        columns.append((f"X_{name}", item.curve.x))
        columns.append((name, item.original.y))
    buffer = StringIO()
    write_columns(buffer, columns, delimiter=",")
    return buffer.getvalue()


exporters_registry: Dict[str, Exporter] = {
    "json": json_exporter,
    "csv": csv_exporter,
}
