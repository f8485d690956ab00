"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``payroll_config.schema.WageConfig``.  Runtime callers go through
``payroll_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values  -> ``ValueError`` from ``WageConfig``.
* Non-numeric percentages  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import WageConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse a YAML scalar into Decimal without going through float rounding."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from exc


def parse_wage_config(data: dict[str, Any]) -> WageConfig:
    """Build a WageConfig from a parsed YAML mapping.

    Missing keys fall back to the WageConfig defaults.
    """
    defaults = WageConfig()
    wages = data.get("wages") or {}
    documents = data.get("documents") or {}

    return WageConfig(
        employee_pf_percent=parse_decimal(
            wages.get("employee_pf_percent", defaults.employee_pf_percent),
            "employee_pf_percent",
        ),
        employer_pf_percent=parse_decimal(
            wages.get("employer_pf_percent", defaults.employer_pf_percent),
            "employer_pf_percent",
        ),
        weekly_divisor=int(wages.get("weekly_divisor", defaults.weekly_divisor)),
        monthly_divisor=int(wages.get("monthly_divisor", defaults.monthly_divisor)),
        default_currency=str(
            wages.get("default_currency", defaults.default_currency)
        ).upper(),
        money_decimal_places=int(
            wages.get("money_decimal_places", defaults.money_decimal_places)
        ),
        rate_decimal_places=int(
            wages.get("rate_decimal_places", defaults.rate_decimal_places)
        ),
        salary_as_of=str(wages.get("salary_as_of", defaults.salary_as_of)),
        max_document_bytes=int(
            documents.get("max_bytes", defaults.max_document_bytes)
        ),
        version=str(data.get("version", defaults.version)),
        checksum=compute_checksum(data),
    )


def load_wage_config(path: Path) -> WageConfig:
    """Load and validate a wage configuration file."""
    return parse_wage_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
