import json
import textwrap
from pathlib import Path

import pytest

from flushplan import cli

JOB = textwrap.dedent(
    """
    name: cli-demo
    filaments: [0, 1, 2]
    groups: [0, 0, 1]
    flush_matrix:
      - [0, 1, 1]
      - [1, 0, 1]
      - [1, 1, 0]
    layers:
      - [0, 1, 2]
      - [0, 2]
    """
)


@pytest.fixture
def job_file(tmp_path: Path) -> Path:
    path = tmp_path / "demo.yaml"
    path.write_text(JOB)
    return path


def _json_from_stdout(output: str) -> dict:
    return json.loads(output[output.index("{") :])


def test_cli_run_results_file(job_file: Path, tmp_path: Path, capsys) -> None:
    out_file = tmp_path / "out" / "plan.json"
    cli.main(["run", str(job_file), "--results", str(out_file)])
    data = json.loads(out_file.read_text())
    assert len(data["filament_sequences"]) == 2
    assert set(data["groups"]) == {"0", "1"}
    captured = capsys.readouterr()
    assert "✅ Scheduled 2 layers" in captured.out
    assert "Results written to" in captured.out


def test_cli_run_default_results_path(job_file: Path, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    cli.main(["run", str(job_file)])
    assert (tmp_path / "demo.results.json").is_file()


def test_cli_run_stdout_without_file(job_file: Path, tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    cli.main(["run", str(job_file), "--no-results", "--stdout"])
    data = _json_from_stdout(capsys.readouterr().out)
    assert sorted(data["filament_sequences"][0]) == [0, 1, 2]
    assert not (tmp_path / "demo.results.json").exists()


def test_cli_run_table(job_file: Path, capsys) -> None:
    cli.main(["run", str(job_file), "--no-results", "--table"])
    out = capsys.readouterr().out
    assert "cost_group_0" in out
    assert "cost_group_1" in out


def test_cli_run_missing_file(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["run", str(tmp_path / "missing.yaml")])
    assert exc_info.value.code == 1
    assert "Job file not found" in capsys.readouterr().out


def test_cli_run_invalid_job(tmp_path: Path, capsys) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("filaments: [0]\nlayers: [[0]]\n")
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["run", str(path)])
    assert exc_info.value.code == 1
    assert "Failed to run job: ValidationError" in capsys.readouterr().out


def test_cli_inspect(job_file: Path, capsys) -> None:
    cli.main(["inspect", str(job_file)])
    out = capsys.readouterr().out
    assert "FLUSHPLAN JOB INSPECTION" in out
    assert "cli-demo" in out
    assert "two-group" in out
    assert "GROUPS" in out
    assert "FILAMENT CLUSTERS" in out
    assert "INSPECTION COMPLETE" in out


def test_cli_inspect_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["inspect", str(tmp_path / "nope.yaml")])
    assert exc_info.value.code == 1


def test_cli_verbose(job_file: Path, clean_logging) -> None:
    cli.main(["--verbose", "run", str(job_file), "--no-results"])


def test_cli_no_args_prints_help(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 0
    assert "usage: flushplan" in capsys.readouterr().out


def test_format_cost() -> None:
    assert cli._format_cost(10.0) == "10"
    assert cli._format_cost(0.5) == "0.5"
    assert cli._format_cost(1234.567) == "1,234.567"
    assert cli._format_cost("n/a") == "n/a"


def test_format_table() -> None:
    table = cli._format_table(["A", "B"], [["1", "22"]])
    lines = table.splitlines()
    assert lines[0].split("|")[0].strip() == "A"
    assert lines[2].split("|")[1].strip() == "22"
    assert cli._format_table(["A"], []) == ""
