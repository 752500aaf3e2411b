"""Configuration loading utilities for Fleet-Deployer."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("fleet-deployer.json")

_ENV_PREFIX = "FLEET_DEPLOYER_"


@dataclass
class RunnerConfig:
    """Defaults for the phase runner and the process worker."""

    tag: str = "latest"
    registry: str = ""
    template_path: str = "./_templates"
    recipe_path: str = "./recipes"
    timeout: int = 60                 # seconds per attempt
    retries: int = 3                  # extra attempts after the first
    max_workers: int = 0              # 0 = min(service count, 4)
    debug: bool = False
    backoff_base: float = 1.0
    backoff_max: float = 60.0
    fail_on_missing_recipe: bool = False


@dataclass
class OutputConfig:
    """How progress is rendered."""

    quiet: bool = False
    json: bool = False
    no_color: bool = False


@dataclass
class AppConfig:
    """Top-level configuration."""

    runner: RunnerConfig = field(default_factory=RunnerConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        runner_payload = _strip_comments(payload.get("runner", {}) or {})
        output_payload = _strip_comments(payload.get("output", {}) or {})

        try:
            return cls(
                runner=RunnerConfig(**{**RunnerConfig().__dict__, **runner_payload}),
                output=OutputConfig(**{**OutputConfig().__dict__, **output_payload}),
            )
        except TypeError as exc:
            raise ConfigError(f"Unknown configuration key: {exc}") from exc


def _strip_comments(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Keys starting with "_" are treated as inline comments.
    return {k: v for k, v in payload.items() if not k.startswith("_")}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"Expected an integer, got {value!r}") from exc


# Environment overrides: variable suffix -> (RunnerConfig attribute, parser)
_ENV_OVERRIDES: Dict[str, tuple[str, Callable[[str], Any]]] = {
    "TAG": ("tag", str),
    "REGISTRY": ("registry", str),
    "TEMPLATE_PATH": ("template_path", str),
    "RECIPE_PATH": ("recipe_path", str),
    "TIMEOUT": ("timeout", _parse_int),
    "RETRIES": ("retries", _parse_int),
    "MAX_WORKERS": ("max_workers", _parse_int),
    "DEBUG": ("debug", _parse_bool),
}


def validate_timeout(timeout: Any) -> None:
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ConfigError(f"timeout must be a positive number of seconds, got {timeout!r}")


def apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply FLEET_DEPLOYER_* environment variables on top of ``config``."""
    for suffix, (attribute, parser) in _ENV_OVERRIDES.items():
        raw = os.getenv(_ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        setattr(config.runner, attribute, parser(raw))
    return config


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    A missing default file yields the built-in defaults; a missing explicit
    file is an error.

    Environment variables (higher priority than config file):
    - FLEET_DEPLOYER_TAG: Image/release tag
    - FLEET_DEPLOYER_REGISTRY: Registry prefix override
    - FLEET_DEPLOYER_TIMEOUT: Default per-attempt timeout in seconds
    - FLEET_DEPLOYER_RETRIES: Default retry budget
    - FLEET_DEPLOYER_MAX_WORKERS: Parallel tasks per phase
    - FLEET_DEPLOYER_DEBUG: Enable debug logging
    - FLEET_DEPLOYER_RECIPE_PATH / FLEET_DEPLOYER_TEMPLATE_PATH
    """
    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise ConfigError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    config = AppConfig()
    if candidate.is_file():
        try:
            with candidate.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {candidate}: {exc}") from exc
        config = AppConfig.from_dict(data)

    config = apply_env_overrides(config)
    validate_timeout(config.runner.timeout)
    return config
