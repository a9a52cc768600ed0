from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from sammy.execution.sandbox import ExecutionSandbox


def _leftovers(directory: Path) -> list[Path]:
    return list(directory.glob("temp_exec_*.py"))


def test_segment_output_is_captured(tmp_path: Path) -> None:
    sandbox = ExecutionSandbox(working_directory=tmp_path, timeout=20)

    result = sandbox.run("import sys\nprint('out')\nprint('err', file=sys.stderr)\n")

    assert result.succeeded is True
    assert result.reason is None
    assert result.returncode == 0
    assert "out" in result.output
    assert "err" in result.output
    assert _leftovers(tmp_path) == []


def test_segment_runs_in_working_directory(tmp_path: Path) -> None:
    sandbox = ExecutionSandbox(working_directory=tmp_path, timeout=20)

    sandbox.run("open('made_here.txt', 'w').write('x')\n")

    assert (tmp_path / "made_here.txt").read_text() == "x"


def test_failing_segment_reports_traceback(tmp_path: Path) -> None:
    sandbox = ExecutionSandbox(working_directory=tmp_path, timeout=20)

    result = sandbox.run("raise ValueError('boom')\n")

    assert result.succeeded is False
    assert result.reason == "non_zero_exit"
    assert result.returncode == 1
    assert "ValueError: boom" in result.output
    assert _leftovers(tmp_path) == []


def test_timeout_is_reported_and_file_removed(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list[Path] = []

    def fake_run(args: list[str], **kwargs: object) -> object:
        seen.append(Path(args[1]))
        assert Path(args[1]).exists()
        raise subprocess.TimeoutExpired(cmd=args, timeout=60, output=b"half done")

    monkeypatch.setattr(subprocess, "run", fake_run)
    sandbox = ExecutionSandbox(working_directory=tmp_path)

    result = sandbox.run("while True: pass\n")

    assert result.succeeded is False
    assert result.reason == "timeout"
    assert result.output.startswith("Execution timed out (60s limit).")
    assert "half done" in result.output
    assert seen and not seen[0].exists()


def test_missing_interpreter_is_a_spawn_failure(tmp_path: Path) -> None:
    sandbox = ExecutionSandbox(
        working_directory=tmp_path, interpreter=str(tmp_path / "no-such-python")
    )

    result = sandbox.run("print('hi')\n")

    assert result.succeeded is False
    assert result.reason == "spawn_failed"
    assert _leftovers(tmp_path) == []
