"""Configuration loader using Dynaconf."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf


def load_config_dict(
    config_path: str | Path | None = None,
    env: str | None = None,
    envvar_prefix: str = "DESK",
) -> dict[str, Any]:
    """Load raw configuration from YAML files and environment variables.

    Priority (highest to lowest):
    1. Environment variables ({envvar_prefix}_*)
    2. {env}.yaml (e.g., production.yaml)
    3. default.yaml

    Args:
        config_path: Path to config directory or specific file
        env: Environment name (development, production, etc.)
        envvar_prefix: Prefix of environment variables to merge

    Returns:
        Lower-cased configuration dict, including the resolved "environment"
    """
    environment = env or os.getenv(f"{envvar_prefix}_ENV", "development")

    if config_path is None:
        config_path = Path.cwd() / "configs"
    else:
        config_path = Path(config_path)

    settings_files: list[str] = []
    if config_path.is_dir():
        default_file = config_path / "default.yaml"
        env_file = config_path / f"{environment}.yaml"
        if default_file.exists():
            settings_files.append(str(default_file))
        if env_file.exists():
            settings_files.append(str(env_file))
    elif config_path.is_file():
        settings_files.append(str(config_path))

    dynaconf_settings = Dynaconf(
        envvar_prefix=envvar_prefix,
        settings_files=settings_files,
        environments=False,  # environments are resolved by file name above
        load_dotenv=True,
    )

    config_dict: dict[str, Any] = {}
    for key in dynaconf_settings.keys():
        if not key.startswith("_"):
            config_dict[key.lower()] = _lower_keys(dynaconf_settings[key])

    config_dict["environment"] = environment
    return config_dict


def _lower_keys(value: Any) -> Any:
    """Recursively lower-case mapping keys (Dynaconf upper-cases env keys)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value
