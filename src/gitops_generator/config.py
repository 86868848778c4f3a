# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The gitops-generator contributors
"""Configuration file parsing for gitops-generator."""

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path

DEFAULT_CONFIG_FILE = Path("gitops-generator.toml")


@dataclass
class GeneratorConfig:
    """Settings from the [generator] table, overridable from the command line."""

    namespace: str | None = None
    repo_url: str | None = None
    branch: str = "main"
    path: str = "/"
    scratch_dir: Path | None = None
    kubectl: str = "kubectl"


def load_config(config_file: Path, required: bool = False) -> GeneratorConfig:
    """
    Load the generator configuration from a TOML file.

    Args:
        config_file: Path to the TOML file
        required: If False, a missing file yields the defaults

    Returns:
        The parsed configuration

    Raises:
        FileNotFoundError: If the file is required and doesn't exist
        ValueError: If the TOML is invalid or contains unknown keys
    """
    if not config_file.exists():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return GeneratorConfig()

    try:
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_file}: {e}") from e

    unknown_tables = set(data) - {"generator"}
    if unknown_tables:
        raise ValueError(
            f"Unknown table(s) in {config_file}: {', '.join(sorted(unknown_tables))}"
        )

    section = data.get("generator", {})
    if not isinstance(section, dict):
        raise ValueError(f"[generator] must be a table in {config_file}")

    known = {f.name for f in fields(GeneratorConfig)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(
            f"Unknown key(s) in [generator] of {config_file}: {', '.join(sorted(unknown))}"
        )

    for key, value in section.items():
        if not isinstance(value, str):
            raise ValueError(f"'{key}' must be a string in {config_file}")

    config = GeneratorConfig(**section)
    if config.scratch_dir is not None:
        config.scratch_dir = config_file.parent / config.scratch_dir
    return config
