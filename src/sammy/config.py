"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Strategy = Literal["code", "tools"]

VALID_STRATEGIES: set[str] = {"code", "tools"}
VALID_LOG_LEVELS: set[str] = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables and config files."""

    model: str
    host: str
    context_length: int
    strategy: Strategy
    mcp_providers: list[str] = field(default_factory=list)
    log_dir: str = "logs"
    log_level: str = "WARNING"
    shell: str = "bash"
    working_directory: str | None = None
    command_timeout: float = 30.0
    sandbox_timeout: float = 60.0
    max_tool_rounds: int = 25
    max_consecutive_failures: int = 10
    max_iterations: int = 0

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()
        ollama_from_file = file_config.get("ollama")
        ollama_config = ollama_from_file if isinstance(ollama_from_file, dict) else {}

        return cls(
            model=(
                os.getenv("SAMMY_MODEL")
                or _to_optional_string(ollama_config.get("model"))
                or _to_optional_string(file_config.get("model"))
                or "ministral-3:8b"
            ),
            host=(
                os.getenv("SAMMY_HOST")
                or os.getenv("OLLAMA_HOST")
                or _to_optional_string(ollama_config.get("host"))
                or "http://localhost:11434"
            ),
            context_length=_to_positive_int(
                os.getenv("SAMMY_CONTEXT_LENGTH")
                or ollama_config.get("context_length")
                or file_config.get("context_length"),
                default=42000,
            ),
            strategy=_to_strategy(
                os.getenv("SAMMY_STRATEGY") or _to_optional_string(file_config.get("strategy"))
            ),
            mcp_providers=_to_string_list(
                os.getenv("SAMMY_MCP_PROVIDERS"), file_config.get("mcp_providers")
            ),
            log_dir=(
                os.getenv("SAMMY_LOG_DIR")
                or _to_optional_string(file_config.get("log_dir"))
                or "logs"
            ),
            log_level=_to_log_level(
                os.getenv("SAMMY_LOG_LEVEL") or _to_optional_string(file_config.get("log_level"))
            ),
            shell=(
                os.getenv("SAMMY_SHELL")
                or _to_optional_string(file_config.get("shell"))
                or "bash"
            ),
            working_directory=(
                os.getenv("SAMMY_CWD") or _to_optional_string(file_config.get("cwd"))
            ),
            command_timeout=_to_positive_float(
                os.getenv("SAMMY_COMMAND_TIMEOUT") or file_config.get("command_timeout"),
                default=30.0,
            ),
            sandbox_timeout=_to_positive_float(
                os.getenv("SAMMY_SANDBOX_TIMEOUT") or file_config.get("sandbox_timeout"),
                default=60.0,
            ),
            max_tool_rounds=_to_positive_int(
                os.getenv("SAMMY_MAX_TOOL_ROUNDS") or file_config.get("max_tool_rounds"),
                default=25,
            ),
            max_consecutive_failures=_to_positive_int(
                os.getenv("SAMMY_MAX_FAILURES") or file_config.get("max_consecutive_failures"),
                default=10,
            ),
            max_iterations=_to_non_negative_int(
                os.getenv("SAMMY_MAX_ITERATIONS") or file_config.get("max_iterations"),
                default=0,
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _to_string_list(env_value: str | None, file_value: object) -> list[str]:
    if env_value:
        return [item.strip() for item in env_value.split(",") if item.strip()]
    if isinstance(file_value, list):
        return [item.strip() for item in file_value if isinstance(item, str) and item.strip()]
    return []


def _to_strategy(value: str | None) -> Strategy:
    normalized = (value or "").strip().lower()
    if normalized in {"tools", "tool", "tool-calling", "tool_calling"}:
        return "tools"
    return "code"


def _to_log_level(value: str | None) -> str:
    normalized = (value or "").strip().upper()
    return normalized if normalized in VALID_LOG_LEVELS else "WARNING"


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value)
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("SAMMY_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config("sammy.config.json")
    local_override = _load_file_config("sammy.config.local.json")
    return _merge_dicts(shared_config, local_override)


def _merge_dicts(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    merged: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_dicts(base_value, value)
        else:
            merged[key] = value
    return merged


def _to_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _to_positive_int(value: object, *, default: int) -> int:
    parsed = _to_int(value)
    return parsed if parsed is not None and parsed > 0 else default


def _to_non_negative_int(value: object, *, default: int) -> int:
    parsed = _to_int(value)
    return parsed if parsed is not None and parsed >= 0 else default


def _to_positive_float(value: object, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default
