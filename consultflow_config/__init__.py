"""
consultflow_config -- single public entrypoint for reporting configuration.

Responsibility:
    ``get_reporting_config()`` is the only way services obtain a
    ``ReportingConfig`` from YAML; ``get_database_url()`` supplies the URL
    for ``consultflow_kernel.db.engine.init_engine_from_url``.

Architecture position:
    Configuration -- sits above ``consultflow_kernel`` and
    ``consultflow_modules.reporting``.  The kernel never imports from here.

Invariants enforced:
    - Deterministic: the same YAML document always yields the same
      ``ReportingConfig`` and checksum.
    - Sections left out of the YAML keep their coded defaults.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``ValueError`` / ``TypeError`` -- invalid or unknown settings.

Audit relevance:
    Every successful load emits a ``CONSULTFLOW_CONFIG_TRACE`` log entry
    with the source path and checksum, tying reports to the exact
    configuration that shaped their heuristics.
"""

from __future__ import annotations

import os
from pathlib import Path

from consultflow_config.loader import (
    CONFIG_ENV_VAR,
    DATABASE_URL_ENV_VAR,
    DEFAULTS_PATH,
    compute_checksum,
    load_yaml_file,
    resolve_config_path,
)
from consultflow_kernel.logging_config import get_logger
from consultflow_modules.reporting.config import ReportingConfig

_logger = get_logger("config")

DEFAULT_DATABASE_URL = "sqlite:///consultflow.db"

__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DEFAULTS_PATH",
    "DEFAULT_DATABASE_URL",
    "compute_checksum",
    "get_database_url",
    "get_reporting_config",
    "load_yaml_file",
    "resolve_config_path",
]


def get_reporting_config(path: Path | str | None = None) -> ReportingConfig:
    """
    Load the reporting configuration.

    Args:
        path: YAML file to read.  Defaults to ``$CONSULTFLOW_CONFIG`` and
            then to the packaged ``defaults.yaml``.
    """
    source = resolve_config_path(path)
    data = load_yaml_file(source)
    checksum = compute_checksum(data)
    config = ReportingConfig.from_dict(data)
    _logger.info(
        "CONSULTFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "CONSULTFLOW_CONFIG_TRACE",
            "source": str(source),
            "checksum": checksum,
            "default_currency": config.default_currency,
        },
    )
    return config


def get_database_url() -> str:
    """``$DATABASE_URL``, or a local SQLite file when unset."""
    return os.environ.get(DATABASE_URL_ENV_VAR) or DEFAULT_DATABASE_URL
