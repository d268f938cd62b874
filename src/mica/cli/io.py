"""Configuration discovery for the ``mica`` command."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from mica.configuration import iter_unique_paths, load_project_config, resolve_pyproject_path

CONFIG_ENV_VAR = "MICA_CONFIG"

__all__ = ["CONFIG_ENV_VAR", "load_cli_config"]


def _normalise_cli_config(payload: Mapping[str, Any], source: Path) -> Dict[str, Any]:
    data = {str(key): value for key, value in payload.items()}
    for section in ("logging", "align", "io"):
        if not isinstance(data.get(section), Mapping):
            data[section] = {}
    data["_config_path"] = str(source)
    return data


def load_cli_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load CLI defaults from the ``[tool.mica]`` table of a ``pyproject.toml``.

    ``path`` wins over ``$MICA_CONFIG``, which wins over the current working
    directory.  Without any matching table an empty configuration is
    returned.
    """

    env_value = os.environ.get(CONFIG_ENV_VAR)
    bases: List[Path] = []
    if path is not None:
        bases.append(Path(path))
    if env_value:
        bases.append(Path(env_value))
    bases.append(Path.cwd())

    candidates = [
        candidate
        for candidate in (resolve_pyproject_path(base) for base in bases)
        if candidate is not None
    ]
    for candidate in iter_unique_paths(candidates):
        loaded = load_project_config(candidate)
        if loaded is None:
            continue
        payload, resolved = loaded
        return _normalise_cli_config(payload, resolved)
    return {"logging": {}, "align": {}, "io": {}, "_config_path": None}
