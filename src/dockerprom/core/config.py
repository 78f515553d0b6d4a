"""Configuration loading utilities.

Supports YAML and JSON configuration files with schema validation. Validation
failures surface as :class:`ConfigurationError`, which is fatal at startup.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from dockerprom.core.errors import ConfigurationError
from dockerprom.core.schemas import ExporterConfig


def build_config(data: dict[str, Any] | None = None, **overrides: Any) -> ExporterConfig:
    """Validate configuration values into an ExporterConfig.

    Args:
        data: Base values (e.g. from a config file)
        **overrides: Values that take precedence over ``data``; ``None`` and
            empty lists are treated as "not given"

    Raises:
        ConfigurationError: If the merged values are invalid
    """
    merged: dict[str, Any] = dict(data or {})
    for key, value in overrides.items():
        if value is None or value == []:
            continue
        merged[key] = value

    try:
        return ExporterConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def load_config(path: Path | str, **overrides: Any) -> ExporterConfig:
    """Load and validate an exporter configuration file.

    Args:
        path: Path to YAML or JSON configuration file
        **overrides: Values that take precedence over the file

    Returns:
        Validated ExporterConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If file format is unsupported or config is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ConfigurationError(
                f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json"
            )

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    return build_config(data, **overrides)
