from __future__ import annotations

from pathlib import Path

import pytest

from mica.cli.io import CONFIG_ENV_VAR, load_cli_config
from mica.configuration import iter_unique_paths, load_project_config, resolve_pyproject_path


def test_load_project_config_reads_tool_section(tmp_path: Path, pyproject_writer) -> None:
    path = pyproject_writer(
        tmp_path,
        """
        [tool.mica.align]
        samples = 20

        [tool.mica.logging]
        level = "debug"
        """,
    )

    loaded = load_project_config(tmp_path)

    assert loaded is not None
    section, resolved = loaded
    assert resolved == path.resolve()
    assert section["align"] == {"samples": 20}
    assert section["logging"]["level"] == "debug"


def test_load_project_config_without_section(tmp_path: Path, pyproject_writer) -> None:
    pyproject_writer(tmp_path, '[tool.other]\nvalue = 1\n')

    assert load_project_config(tmp_path) is None
    assert load_project_config(tmp_path / "absent") is None
    assert load_project_config(tmp_path / "settings.json") is None


def test_invalid_toml_is_reported(tmp_path: Path, pyproject_writer) -> None:
    pyproject_writer(tmp_path, "[tool.mica\n")

    with pytest.raises(ValueError):
        load_project_config(tmp_path)


def test_path_helpers(tmp_path: Path) -> None:
    assert resolve_pyproject_path(tmp_path) == tmp_path / "pyproject.toml"
    assert resolve_pyproject_path(tmp_path / "pyproject.toml") == tmp_path / "pyproject.toml"
    assert resolve_pyproject_path(tmp_path / "config.yaml") is None
    assert iter_unique_paths([tmp_path, tmp_path / ".", tmp_path / "other"]) == [
        tmp_path.resolve(),
        (tmp_path / "other").resolve(),
    ]


def test_cli_config_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, pyproject_writer) -> None:
    explicit = tmp_path / "explicit"
    from_env = tmp_path / "env"
    cwd = tmp_path / "cwd"
    for directory, samples in ((explicit, 10), (from_env, 20), (cwd, 30)):
        directory.mkdir()
        pyproject_writer(directory, f"[tool.mica.align]\nsamples = {samples}\n")
    monkeypatch.chdir(cwd)

    assert load_cli_config()["align"]["samples"] == 30
    monkeypatch.setenv(CONFIG_ENV_VAR, str(from_env))
    assert load_cli_config()["align"]["samples"] == 20
    config = load_cli_config(explicit)
    assert config["align"]["samples"] == 10
    assert config["_config_path"] == str((explicit / "pyproject.toml").resolve())
    assert config["logging"] == {}
    assert config["io"] == {}


def test_cli_config_defaults_without_pyproject(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert load_cli_config() == {"logging": {}, "align": {}, "io": {}, "_config_path": None}
