# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Configuration system for batchq.

This module defines dataclasses representing the configurable aspects of batchq:
environment variables, date formats used by the individual batch systems,
exit codes, and backend-specific options.

The `Config` class loads user configuration from a TOML file (if available)
and provides a globally accessible `CFG` instance.
"""

import os
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Self


@dataclass
class EnvironmentVariables:
    """Environment variable names used by batchq."""

    # Enables batchq debug mode.
    debug_mode: str = "BQ_DEBUG"
    # Path to an explicit batchq config file.
    config: str = "BQ_CONFIG"
    # Root of the SGE installation exported to SGE commands.
    sge_root: str = "SGE_ROOT"


@dataclass
class DateFormats:
    """Date and time formats used by batchq and the supported batch systems."""

    # Standard date format used in logs.
    standard: str = "%Y-%m-%d %H:%M:%S"
    # Format of timestamps in `qstat -xml` output.
    sge_xml: str = "%Y-%m-%dT%H:%M:%S"
    # Formats of timestamps in `qacct` output. Tried in order.
    sge_qacct: list[str] = field(
        default_factory=lambda: [
            "%a %b %d %H:%M:%S %Y",
            "%m/%d/%Y %H:%M:%S.%f",
            "%m/%d/%Y %H:%M:%S",
        ]
    )
    # Format of timestamps in `bjobs -W` output (without the year).
    lsf: str = "%m/%d-%H:%M:%S"


@dataclass
class ExitCodes:
    """Exit codes associated with batchq errors."""

    # Generic recoverable error.
    default: int = 91
    # External batch-system command failed.
    process: int = 92
    # Output of a batch-system command has an unexpected format.
    schema_mismatch: int = 93
    # Operation is not supported by the batch system.
    unimplemented: int = 94


@dataclass
class LSFOptions:
    """Options associated with LSF."""

    # Markers printed by bjobs instead of the table when there are no jobs.
    no_jobs_markers: list[str] = field(
        default_factory=lambda: ["No job found", "No unfinished job found"]
    )
    # Pattern matched against bjobs stderr when a requested job does not exist.
    not_found_pattern: str = r"Job <\S+> is not found"


@dataclass
class SGEOptions:
    """Options associated with Sun/Son of Grid Engine."""

    # Pattern matched against qacct stderr when no accounting record exists.
    qacct_not_found_pattern: str = r"job id \S+ not found"


@dataclass
class Config:
    """Main configuration for batchq."""

    env_vars: EnvironmentVariables = field(default_factory=EnvironmentVariables)
    date_formats: DateFormats = field(default_factory=DateFormats)
    exit_codes: ExitCodes = field(default_factory=ExitCodes)
    lsf_options: LSFOptions = field(default_factory=LSFOptions)
    sge_options: SGEOptions = field(default_factory=SGEOptions)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Self:
        """
        Load configuration from TOML file or use defaults.

        Args:
            config_path: Explicit path to config file. If None, searches standard locations.

        Returns:
            Config instance with loaded or default values.
        """
        if config_path is None:
            config_path = Config._get_config_path()

        try:
            if config_path and config_path.exists():
                with config_path.open("rb") as f:
                    config_data = tomllib.load(f)
                return _dict_to_dataclass(cls, config_data)
        except Exception as e:
            raise ValueError(f"Could not read batchq config '{config_path}': {e}.")

        # no config found - use defaults
        return cls()

    @staticmethod
    def _get_config_path() -> Path | None:
        """
        Search for config file in standard locations (XDG compliant).
        Returns the first existing config file, or None.
        """
        config_locations: list[Path | None] = [
            # 1. Explicit environment variable (highest priority)
            Path(env_path)
            if (env_path := os.getenv(EnvironmentVariables().config))
            else None,
            # 2. Current working directory (for development/override)
            Path.cwd() / "bq_config.toml",
            # 3. XDG config home (standard user config location)
            Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
            / "batchq"
            / "config.toml",
        ]

        for path in config_locations:
            if path and path.is_file():
                return path

        return None


def _dict_to_dataclass(cls, data: dict[str, Any]):
    """
    Recursively convert a dictionary to a dataclass instance.
    Handles nested dataclasses properly.
    """
    if not is_dataclass(cls):
        return data

    field_values = {}
    for field_info in fields(cls):
        field_name = field_info.name
        field_type = field_info.type

        if field_name in data:
            value = data[field_name]
            if is_dataclass(field_type) and isinstance(value, dict):
                field_values[field_name] = _dict_to_dataclass(field_type, value)
            else:
                field_values[field_name] = value

    return cls(**field_values)


# Global configuration for batchq.
CFG = Config.load()
