"""Helpers to load the ``[tool.mica]`` table from ``pyproject.toml``."""

from __future__ import annotations

from collections.abc import Iterable, Mapping as ABCMapping
from pathlib import Path
from typing import Any

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore


PROJECT_FILENAME = "pyproject.toml"
TOOL_SECTION = "mica"


def _as_dict(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    """Recursively coerce TOML tables into plain dictionaries."""

    result: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, ABCMapping):
            result[str(key)] = _as_dict(value)
        elif isinstance(value, list):
            result[str(key)] = [
                _as_dict(item) if isinstance(item, ABCMapping) else item for item in value
            ]
        else:
            result[str(key)] = value
    return result


def resolve_pyproject_path(candidate: Path) -> Path | None:
    """Map a directory onto its ``pyproject.toml``; other files are rejected."""

    candidate = candidate.expanduser()
    if candidate.name == PROJECT_FILENAME:
        return candidate
    if candidate.suffix:
        return None
    return candidate / PROJECT_FILENAME


def iter_unique_paths(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    ordered: list[Path] = []
    for path in paths:
        resolved = path.expanduser().resolve(strict=False)
        if resolved not in seen:
            seen.add(resolved)
            ordered.append(resolved)
    return ordered


def _load_toml_mapping(path: Path) -> dict[str, Any] | None:
    if not path.is_file():
        return None
    with path.open("rb") as handle:
        try:
            data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"Invalid TOML in configuration file: {path}") from exc
    return _as_dict(data) if isinstance(data, ABCMapping) else None


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.mica]`` section of ``path`` (a file or its directory).

    Returns the section together with the resolved file, or ``None`` when the
    file or the section does not exist.
    """

    pyproject_path = resolve_pyproject_path(Path(path))
    if pyproject_path is None:
        return None
    pyproject_path = pyproject_path.resolve(strict=False)

    payload = _load_toml_mapping(pyproject_path)
    if not payload:
        return None
    tool_section = payload.get("tool")
    if not isinstance(tool_section, ABCMapping):
        return None
    section = tool_section.get(TOOL_SECTION)
    if not isinstance(section, ABCMapping):
        return None
    return _as_dict(section), pyproject_path


__all__ = [
    "PROJECT_FILENAME",
    "iter_unique_paths",
    "load_project_config",
    "resolve_pyproject_path",
]
