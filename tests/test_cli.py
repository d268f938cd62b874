from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import numpy as np
import pytest

from mica.cli import run_cli
from mica.cli.errors import CliError, build_error_payload
from mica_core.errors import OutOfRange


def _write_curves(path: Path, columns: dict[str, Sequence[float]], delimiter: str = ";") -> Path:
    length = max(len(values) for values in columns.values())
    lines = [delimiter.join(columns)]
    for row in range(length):
        lines.append(
            delimiter.join(
                repr(float(values[row])) if row < len(values) else "" for values in columns.values()
            )
        )
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def curves_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, wave_factory) -> Path:
    monkeypatch.chdir(tmp_path)
    return _write_curves(
        tmp_path / "curves.csv",
        {
            "a": wave_factory(41)[1],
            "b": wave_factory(31)[1],
            "c": wave_factory(51)[1],
        },
    )


def test_align_writes_x_columns_to_stdout(curves_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output = run_cli(["align", str(curves_file), "--distance", "value-rms", "--samples", "40"])

    lines = output.splitlines()
    assert lines[0] == "a;b;c"
    assert len(lines) == 1 + 51
    assert lines[-1].startswith(";;")
    assert capsys.readouterr().out == output
    first_row = [float(cell) for cell in lines[1].split(";")]
    assert len(first_row) == 3


def test_align_original_coordinates(curves_file: Path) -> None:
    output = run_cli(["align", str(curves_file), "--original"])

    assert output.splitlines()[1] == "0;0;0"
    assert output.splitlines()[31] == "30;30;30"


def test_align_json_to_file(curves_file: Path, tmp_path: Path) -> None:
    target = tmp_path / "out" / "result.json"

    message = run_cli(
        ["align", str(curves_file), "--format", "json", "-o", str(target), "--reference", "2"]
    )

    assert message.startswith("Aligned 3 curves")
    assert str(target) in message
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["names"] == ["a", "b", "c"]
    assert payload["options"]["reference"] == 1
    assert payload["complete"] is True
    aligned_b = payload["curves"][1]["aligned_x"]
    assert np.allclose(aligned_b, payload["curves"][1]["original_x"], atol=1e-6)


def test_align_csv_format_with_preset(curves_file: Path) -> None:
    output = run_cli(["align", str(curves_file), "--preset", "y-data", "--format", "csv"])

    assert output.splitlines()[0] == "X_a,a,X_b,b,X_c,c"


def test_align_reads_defaults_from_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, pyproject_writer, wave_factory
) -> None:
    monkeypatch.chdir(tmp_path)
    settings = tmp_path / "settings"
    settings.mkdir()
    pyproject_writer(
        settings,
        """
        [tool.mica.io]
        delimiter = ","

        [tool.mica.align]
        distance = "value-rms"
        samples = 30
        """,
    )
    source = _write_curves(
        tmp_path / "comma.csv",
        {"left": wave_factory(21)[1], "right": wave_factory(25)[1]},
        delimiter=",",
    )

    explicit = run_cli(["--config", str(settings), "align", str(source), "--format", "json"])
    assert json.loads(explicit)["options"]["samples"] == 30

    monkeypatch.setenv("MICA_CONFIG", str(settings))
    from_env = run_cli(["align", str(source)])
    assert from_env.splitlines()[0] == "left,right"


def test_align_logs_to_file(curves_file: Path, tmp_path: Path) -> None:
    log_file = tmp_path / "mica.log"

    run_cli(["--log-output", str(log_file), "--log-level", "info", "align", str(curves_file)])

    events = [json.loads(line).get("event") for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert "cli.align" in events
    assert "runner.finish" in events


def test_single_column_is_a_usage_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    source = _write_curves(tmp_path / "single.csv", {"only": [1.0, 2.0, 3.0]})

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(source)])

    assert excinfo.value.code == 2
    assert "At least two curves are required" in capsys.readouterr().out


def test_missing_input_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(tmp_path / "absent.csv")])

    assert excinfo.value.code == 4


@pytest.mark.parametrize(
    "extra",
    [
        ["--reference", "4"],
        ["--preset", "unknown"],
        ["--max-warp", "0.5"],
        ["--samples", "1"],
    ],
)
def test_invalid_alignment_settings(curves_file: Path, extra: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(curves_file), *extra])

    assert excinfo.value.code == 2


def test_argument_errors_exit_with_usage(curves_file: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(curves_file), "--reference", "0"])
    assert excinfo.value.code == 2

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(curves_file), "--delimiter", ";;"])
    assert excinfo.value.code == 2


def test_missing_presets_file(curves_file: Path, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["presets", "--presets-file", str(tmp_path / "none.yaml")])

    assert excinfo.value.code == 4


def test_invalid_log_level(curves_file: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["--log-level", "chatty", "presets"])

    assert "Unknown logging level" in str(excinfo.value.code)


def test_presets_listing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    text = run_cli(["presets"])
    lines = text.splitlines()
    assert [line.split(":")[0] for line in lines] == sorted(line.split(":")[0] for line in lines)
    assert any(line.startswith("strict: ") and "warp_scaling=1.0" in line for line in lines)
    assert all("reference" not in line for line in lines)

    decoded = json.loads(run_cli(["presets", "--format", "json"]))
    assert decoded["coarse"]["samples"] == 50
    assert decoded["default"]["reference"] is None


def test_cli_error_payload() -> None:
    error = CliError.from_mica_error(OutOfRange("samples", 1, 2, 10), path="x.csv")

    assert error.status_code == 2
    assert error.category == "usage"
    assert error.context["error"] == "OutOfRange"
    assert error.context["path"] == "x.csv"
    assert error.payload.as_dict()["message"] == str(error)
    assert build_error_payload("gone", category="not_found").status_code == 4
    assert build_error_payload("odd", category="surprise").status_code == 1
    assert CliError("disk", category="io").status_code == 3


def test_unusable_config_value_is_a_usage_error(
    curves_file: Path, tmp_path: Path, pyproject_writer, capsys: pytest.CaptureFixture[str]
) -> None:
    pyproject_writer(tmp_path, '[tool.mica.align]\nsamples = "many"\n')

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["align", str(curves_file)])

    assert excinfo.value.code == 2
    assert "samples" in capsys.readouterr().out
