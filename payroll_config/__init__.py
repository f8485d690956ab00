"""
payroll_config -- single public entrypoint for payroll configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``WageConfig``.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  The kernel only
    imports the pure ``schema`` module; file and environment access stays
    in this package.

Failure modes:
    - ``FileNotFoundError`` -- the configured path does not exist.
    - ``ValueError`` -- values out of range.

Audit relevance:
    Every ``get_active_config()`` call emits a ``PAYROLL_CONFIG_TRACE`` log
    entry with the source path, version and checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from payroll_config.loader import load_wage_config
from payroll_config.schema import DEFAULT_WAGE_CONFIG, WageConfig

_logger = logging.getLogger("payroll_kernel.config")

CONFIG_PATH_ENV = "PAYROLL_CONFIG_PATH"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> WageConfig:
    """Load the active wage configuration.

    Resolution order: explicit ``config_path``, then the
    ``PAYROLL_CONFIG_PATH`` environment variable, then the packaged
    ``defaults.yaml``.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    path = Path(config_path or env_path or DEFAULT_CONFIG_PATH)

    config = load_wage_config(path)

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "config_path": str(path),
            "config_version": config.version,
            "checksum": config.checksum,
        },
    )
    return config


__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_WAGE_CONFIG",
    "WageConfig",
    "get_active_config",
    "load_wage_config",
]
