"""
Configuration Loader (``consultflow_config.loader``).

Responsibility
--------------
Locates and reads the reporting configuration YAML file and identifies it
by checksum.  Parsing into ``ReportingConfig`` happens in
``consultflow_config.get_reporting_config``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* A document that is not a mapping  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_ENV_VAR = "CONSULTFLOW_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration {path} must be a mapping, got {type(data).__name__}")
    return data


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, else ``$CONSULTFLOW_CONFIG``, else the packaged defaults."""
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULTS_PATH


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums, regardless of
    key order.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
