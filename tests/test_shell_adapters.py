from __future__ import annotations

import subprocess
from types import SimpleNamespace

import pytest

from sammy.shell import BashAdapter, create_shell_adapter
from sammy.shell.base import normalize_output, sanitize_command


@pytest.mark.parametrize("factory_input", ["bash", "sh", "Shell"])
def test_create_shell_adapter(factory_input: str) -> None:
    adapter = create_shell_adapter(factory_input)
    assert isinstance(adapter, BashAdapter)


def test_create_shell_adapter_sh_pins_executable() -> None:
    assert create_shell_adapter("sh").executable == "sh"


@pytest.mark.parametrize("factory_input", ["zsh", "cmd", "powershell"])
def test_create_shell_adapter_invalid(factory_input: str) -> None:
    with pytest.raises(ValueError, match="Unsupported shell adapter"):
        create_shell_adapter(factory_input)


def test_bash_adapter_runs_command(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> SimpleNamespace:
        assert args[0] == ["bash", "-c", "echo hi"]
        assert kwargs["cwd"] == "/repo"
        assert kwargs["timeout"] == 5
        return SimpleNamespace(returncode=0, stdout=b"hi", stderr=b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = BashAdapter(executable="bash").execute("echo hi", cwd="/repo", timeout=5)

    assert result.returncode == 0
    assert result.stdout == "hi"
    assert result.executed is True


def test_bash_adapter_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> SimpleNamespace:
        raise subprocess.TimeoutExpired(cmd=args[0], timeout=1, output=b"", stderr=b"late")

    monkeypatch.setattr(subprocess, "run", fake_run)
    result = BashAdapter(executable="bash").execute("sleep 5", timeout=1)

    assert result.timed_out is True
    assert result.returncode == 124
    assert result.stderr == "late"


def test_bash_adapter_missing_executable() -> None:
    result = BashAdapter(executable="/missing/bash").execute("echo hi")

    assert result.executed is False
    assert result.returncode == 127
    assert result.stderr.startswith("Failed to start /missing/bash")


def test_bash_adapter_falls_back_to_sh(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_which(name: str) -> str | None:
        if name == "sh":
            return "/bin/sh"
        return None

    monkeypatch.setattr("sammy.shell.bash_adapter.shutil.which", fake_which)

    assert BashAdapter().executable == "sh"


@pytest.mark.parametrize(
    "command",
    [
        "rm -rf /",
        "rm -fr ~",
        "sudo rm -rf --no-preserve-root /",
        "mkfs.ext4 /dev/sda1",
        "dd if=/dev/zero of=/dev/sda bs=1M",
        ":(){ :|:& };:",
        "shutdown -h now",
    ],
)
def test_catastrophic_commands_are_blocked(
    command: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    def fail_run(*args: object, **kwargs: object) -> SimpleNamespace:
        raise AssertionError("blocked command must not be executed")

    monkeypatch.setattr(subprocess, "run", fail_run)
    result = BashAdapter(executable="bash").execute(command)

    assert result.blocked is True
    assert result.executed is False
    assert result.returncode == 126


@pytest.mark.parametrize("command", ["rm -rf ./build", "rm -rf /tmp/scratch", "ls -la /"])
def test_ordinary_commands_are_not_catastrophic(command: str) -> None:
    assert BashAdapter.is_catastrophic_command(command) is False


def test_allowlist_hook_rejects() -> None:
    adapter = BashAdapter(executable="bash", allowlist_hook=lambda _command, _shell: False)
    result = adapter.execute("ls")

    assert result.executed is False
    assert result.blocked is True
    assert "allowlist" in result.stderr


def test_denylist_hook_receives_shell_name() -> None:
    seen: list[tuple[str, str]] = []

    def deny(command: str, shell: str) -> bool:
        seen.append((command, shell))
        return True

    result = BashAdapter(executable="bash", denylist_hook=deny).execute("curl example.com")

    assert seen == [("curl example.com", "bash")]
    assert result.block_reason == "command blocked by denylist policy"


def test_sanitize_command_masks_credentials() -> None:
    sanitized = sanitize_command("deploy --token abc123 password=hunter2")

    assert "abc123" not in sanitized
    assert "hunter2" not in sanitized
    assert "--token ***" in sanitized


def test_normalize_output_decodes_bytes() -> None:
    assert normalize_output(None) == ""
    assert normalize_output("plain") == "plain"
    assert normalize_output("héllo".encode()) == "héllo"
