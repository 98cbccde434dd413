# Ledger Insight - Financial KPI & client analysis for marketing-services businesses
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for Ledger Insight.

This module is responsible for:
- loading the main application configuration from a TOML file,
- exposing typed dataclasses used by the rest of the application.

All file paths in the TOML are resolved relative to the directory of the
TOML file itself.
"""

import tomllib  # Python 3.11+
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .errors import InputError
from .periods import validate_month, validate_year

DEFAULT_CONFIG_FILE = "ledger_insight_config.toml"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class DataPaths:
    """CSV files feeding the in-memory sources."""

    entries: Path
    cost_centers: Optional[Path]
    businesses: Optional[Path]


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for Ledger Insight.

    This aggregates:
    - the data files (entries and reference data),
    - the optional rules file overriding groupings and expense formulas,
    - the default period used when the CLI gets no --year / --month,
    - display options,
    - logging options.
    """

    data: DataPaths
    rules_file: Optional[Path]
    default_year: int
    default_month: int
    display_mode: str
    decimals: int
    log_level: str
    log_format: str


def load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        InputError: if the TOML content cannot be parsed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise InputError(f"Failed to parse TOML file: {path}") from exc

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a sub-table, or an empty mapping if absent or not a table."""
    value = raw.get(name) or {}
    if not isinstance(value, Mapping):
        return {}
    return value


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the Ledger Insight configuration from a TOML file.

    Expected sections
    -----------------
    [data]
        entries (required), cost_centers, businesses: CSV paths.

    [rules]
        file: optional TOML file defining groupings and expense formulas.

    [period]
        default_year (2025), default_month (12).

    [display]
        mode ("table" or "csv"), decimals (2).

    [logging]
        level ("INFO"), format ("console" or "json").

    Parameters
    ----------
    config_path :
        Path to the TOML file. Defaults to ``ledger_insight_config.toml`` in
        the current working directory.

    Returns
    -------
    AppConfig
        Parsed and validated configuration.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    InputError
        If a value is missing or invalid.
    """
    config_file = Path(config_path or DEFAULT_CONFIG_FILE).resolve()
    raw = load_toml(config_file)
    base_dir = config_file.parent

    def _resolve_optional(rel: Any) -> Optional[Path]:
        if not rel:
            return None
        return (base_dir / str(rel)).resolve()

    # 1) Data files
    data_section = _section(raw, "data")
    entries_path = _resolve_optional(data_section.get("entries"))
    if entries_path is None:
        raise InputError("Config file is missing [data].entries.")
    data = DataPaths(
        entries=entries_path,
        cost_centers=_resolve_optional(data_section.get("cost_centers")),
        businesses=_resolve_optional(data_section.get("businesses")),
    )

    # 2) Rules
    rules_file = _resolve_optional(_section(raw, "rules").get("file"))

    # 3) Default period
    period_section = _section(raw, "period")
    default_year = validate_year(period_section.get("default_year", 2025))
    default_month = validate_month(period_section.get("default_month", 12))

    # 4) Display options
    display_section = _section(raw, "display")
    display_mode = str(display_section.get("mode", "table"))
    if display_mode not in ("table", "csv"):
        raise InputError(
            f"Invalid [display].mode {display_mode!r}: expected 'table' or 'csv'."
        )
    try:
        decimals = int(display_section.get("decimals", 2))
    except (TypeError, ValueError) as exc:
        raise InputError("Invalid [display].decimals, expected an integer.") from exc

    # 5) Logging options
    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise InputError(
            f"Invalid [logging].level {log_level!r}: expected one of "
            + ", ".join(LOG_LEVELS)
            + "."
        )
    log_format = str(logging_section.get("format", "console"))
    if log_format not in ("console", "json"):
        raise InputError(
            f"Invalid [logging].format {log_format!r}: expected 'console' or 'json'."
        )

    return AppConfig(
        data=data,
        rules_file=rules_file,
        default_year=default_year,
        default_month=default_month,
        display_mode=display_mode,
        decimals=decimals,
        log_level=log_level,
        log_format=log_format,
    )
