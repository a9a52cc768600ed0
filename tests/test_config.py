import json
import os

import pytest

from sammy.config import AppConfig


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch) -> None:
    for name in list(os.environ):
        if name.startswith("SAMMY_") or name == "OLLAMA_HOST":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_without_any_config() -> None:
    config = AppConfig.from_env()

    assert config.model == "ministral-3:8b"
    assert config.host == "http://localhost:11434"
    assert config.context_length == 42000
    assert config.strategy == "code"
    assert config.mcp_providers == []
    assert config.log_dir == "logs"
    assert config.log_level == "WARNING"
    assert config.shell == "bash"
    assert config.working_directory is None
    assert config.max_tool_rounds == 25
    assert config.max_consecutive_failures == 10
    assert config.max_iterations == 0


def test_app_config_loads_ollama_section_from_file(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "custom.config.json"
    config_path.write_text(
        json.dumps(
            {
                "ollama": {
                    "model": "qwen3:4b",
                    "host": "http://gpu-box:11434",
                    "context_length": 8192,
                },
                "strategy": "tools",
                "mcp_providers": ["@modelcontextprotocol/server-everything", "", 3],
                "log_dir": "test-logs",
            }
        ),
        encoding="utf-8",
    )

    monkeypatch.setenv("SAMMY_CONFIG_FILE", str(config_path))

    config = AppConfig.from_env()

    assert config.model == "qwen3:4b"
    assert config.host == "http://gpu-box:11434"
    assert config.context_length == 8192
    assert config.strategy == "tools"
    assert config.mcp_providers == ["@modelcontextprotocol/server-everything"]
    assert config.log_dir == "test-logs"


def test_env_overrides_file_values(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "custom.config.json"
    config_path.write_text(
        json.dumps({"model": "from-file", "mcp_providers": ["a"], "max_tool_rounds": 5}),
        encoding="utf-8",
    )

    monkeypatch.setenv("SAMMY_CONFIG_FILE", str(config_path))
    monkeypatch.setenv("SAMMY_MODEL", "from-env")
    monkeypatch.setenv("SAMMY_MCP_PROVIDERS", "b, c ,")
    monkeypatch.setenv("SAMMY_MAX_TOOL_ROUNDS", "9")

    config = AppConfig.from_env()

    assert config.model == "from-env"
    assert config.mcp_providers == ["b", "c"]
    assert config.max_tool_rounds == 9


def test_ollama_host_env_is_honoured(monkeypatch) -> None:
    monkeypatch.setenv("OLLAMA_HOST", "http://other:11434")

    assert AppConfig.from_env().host == "http://other:11434"

    monkeypatch.setenv("SAMMY_HOST", "http://mine:11434")

    assert AppConfig.from_env().host == "http://mine:11434"


def test_runtime_options_load_from_file_and_env(tmp_path, monkeypatch) -> None:
    config_path = tmp_path / "custom.config.json"
    config_path.write_text(
        json.dumps(
            {
                "shell": "sh",
                "cwd": "./test-dir",
                "command_timeout": 12,
                "sandbox_timeout": "90",
                "max_iterations": 4,
            }
        ),
        encoding="utf-8",
    )

    monkeypatch.setenv("SAMMY_CONFIG_FILE", str(config_path))

    file_config = AppConfig.from_env()
    assert file_config.shell == "sh"
    assert file_config.working_directory == "./test-dir"
    assert file_config.command_timeout == 12.0
    assert file_config.sandbox_timeout == 90.0
    assert file_config.max_iterations == 4

    monkeypatch.setenv("SAMMY_SHELL", "bash")
    monkeypatch.setenv("SAMMY_CWD", "~/project")
    monkeypatch.setenv("SAMMY_MAX_ITERATIONS", "0")

    env_config = AppConfig.from_env()
    assert env_config.shell == "bash"
    assert env_config.working_directory == "~/project"
    assert env_config.max_iterations == 0


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("SAMMY_CONTEXT_LENGTH", "-5")
    monkeypatch.setenv("SAMMY_MAX_FAILURES", "lots")
    monkeypatch.setenv("SAMMY_SANDBOX_TIMEOUT", "0")
    monkeypatch.setenv("SAMMY_STRATEGY", "telepathy")
    monkeypatch.setenv("SAMMY_LOG_LEVEL", "chatty")

    config = AppConfig.from_env()

    assert config.context_length == 42000
    assert config.max_consecutive_failures == 10
    assert config.sandbox_timeout == 60.0
    assert config.strategy == "code"
    assert config.log_level == "WARNING"


@pytest.mark.parametrize("value", ["tools", "TOOL", "tool-calling"])
def test_strategy_aliases(value, monkeypatch) -> None:
    monkeypatch.setenv("SAMMY_STRATEGY", value)

    assert AppConfig.from_env().strategy == "tools"


def test_log_level_is_case_insensitive(monkeypatch) -> None:
    monkeypatch.setenv("SAMMY_LOG_LEVEL", "debug")

    assert AppConfig.from_env().log_level == "DEBUG"


def test_local_config_auto_loaded_without_env_override(tmp_path) -> None:
    (tmp_path / "sammy.config.json").write_text(
        json.dumps(
            {
                "ollama": {"model": "base-model", "host": "http://base:11434"},
                "max_tool_rounds": 20,
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "sammy.config.local.json").write_text(
        json.dumps({"ollama": {"model": "local-model"}, "max_tool_rounds": 7}),
        encoding="utf-8",
    )

    config = AppConfig.from_env()

    assert config.model == "local-model"
    assert config.host == "http://base:11434"
    assert config.max_tool_rounds == 7


def test_explicit_config_file_disables_local_auto_merge(tmp_path, monkeypatch) -> None:
    explicit_path = tmp_path / "custom.config.json"
    explicit_path.write_text(json.dumps({"max_tool_rounds": 3}), encoding="utf-8")
    (tmp_path / "sammy.config.local.json").write_text(
        json.dumps({"max_tool_rounds": 99}),
        encoding="utf-8",
    )

    monkeypatch.setenv("SAMMY_CONFIG_FILE", str(explicit_path))

    assert AppConfig.from_env().max_tool_rounds == 3


def test_malformed_config_file_is_ignored(tmp_path, monkeypatch) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    monkeypatch.setenv("SAMMY_CONFIG_FILE", str(broken))

    assert AppConfig.from_env().model == "ministral-3:8b"
