"""Resolve and validate the installed ``mica`` version."""

from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path

from packaging.version import InvalidVersion, Version

_DISTRIBUTION = "mica-align"
_CHANGELOG_ENTRY = re.compile(r"^## v(?P<version>\d+\.\d+\.\d+)\b")


def _version_from_changelog() -> str:
    """Return the newest release listed in ``CHANGELOG.md``.

    Used for source checkouts where no distribution metadata exists yet.
    """

    for parent in Path(__file__).resolve().parents[1:3]:
        changelog = parent / "CHANGELOG.md"
        if not changelog.is_file():
            continue
        for line in changelog.read_text(encoding="utf-8").splitlines():
            match = _CHANGELOG_ENTRY.match(line)
            if match:
                return match.group("version")
    raise RuntimeError(
        f"Unable to determine the '{_DISTRIBUTION}' version from package metadata or CHANGELOG.md."
    )


def _load_version() -> str:
    try:
        raw_version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        raw_version = _version_from_changelog()

    try:
        parsed = Version(raw_version)
    except InvalidVersion as exc:
        raise RuntimeError(f"Invalid version string for '{_DISTRIBUTION}': {raw_version!r}.") from exc
    if len(parsed.release) != 3:
        raise RuntimeError(
            f"The '{_DISTRIBUTION}' version must follow MAJOR.MINOR.PATCH, found {raw_version!r}."
        )
    return raw_version


__version__ = _load_version()

__all__ = ["__version__"]
