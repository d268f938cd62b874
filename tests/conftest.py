from __future__ import annotations

import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import Callable, List, Sequence

import numpy as np
import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from mica_core.annotated_curve import AnnotatedCurve  # noqa: E402


PEAK_Y = (1.0, 1.5, 3.0, 4.0, 5.0, 3.0, 1.5, 1.0)


def write_pyproject(directory: Path, contents: str) -> Path:
    """Persist a ``pyproject.toml`` under ``directory`` and return its path."""

    payload = dedent(contents).lstrip()
    target = directory / "pyproject.toml"
    target.write_text(payload, encoding="utf8")
    return target


def build_curve(
    name: str = "peak",
    y: Sequence[float] = PEAK_Y,
    x: Sequence[float] | None = None,
) -> AnnotatedCurve:
    return AnnotatedCurve(name, list(y), None if x is None else list(x))


def wave(samples: int = 41, length: float = 20.0) -> tuple[np.ndarray, np.ndarray]:
    """One period of a sine: a single maximum followed by a single minimum."""

    x = np.linspace(0.0, length, samples)
    return x, np.sin(2.0 * np.pi * x / length) + 2.0


@pytest.fixture
def pyproject_writer() -> Callable[[Path, str], Path]:
    return write_pyproject


@pytest.fixture
def curve_factory() -> Callable[..., AnnotatedCurve]:
    return build_curve


@pytest.fixture
def wave_factory() -> Callable[..., tuple[np.ndarray, np.ndarray]]:
    return wave


@pytest.fixture
def peak_curve() -> AnnotatedCurve:
    return build_curve()


@pytest.fixture
def profile_triplet() -> List[AnnotatedCurve]:
    """A reference wave, a copy shifted by -3 and a copy stretched by 1.1."""

    x, y = wave()
    return [
        AnnotatedCurve("reference", y, x),
        AnnotatedCurve("shifted", y, x - 3.0),
        AnnotatedCurve("stretched", y, x * 1.1),
    ]


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("MICA_CONFIG", raising=False)
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_mica_handler", False):
            root_logger.removeHandler(handler)
            handler.close()
