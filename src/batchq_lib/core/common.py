# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
General utility functions for the batchq library.

This module provides helpers for YAML output and for converting the duration
and timestamp strings reported by batch systems into plain numbers.
"""

import re
from datetime import datetime
from functools import lru_cache

import yaml

from .error import BQError
from .logger import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def load_yaml_dumper() -> type[yaml.SafeDumper]:
    """Return the fastest available safe YAML dumper (CSafeDumper if possible)."""
    try:
        from yaml import CSafeDumper as SafeDumper  # type: ignore[attr-defined]

        logger.debug("Loaded YAML CSafeDumper.")
    except ImportError:
        from yaml import SafeDumper

        logger.debug("Loaded default YAML safe dumper.")
    return SafeDumper


def hhmmss_to_seconds(timestr: str) -> int:
    """
    Convert a time string in HH:MM:SS (or HHH:MM:SS, optionally with a fractional
    part of seconds) format to a whole number of seconds.

    Examples:
        "0:00:00"       -> 0
        "1:23:45"       -> 5025
        "100:00:00"     -> 360000
        "000:01:02.50"  -> 62

    Args:
        timestr (str): Input string in HH:MM:SS format.

    Returns:
        int: The corresponding number of seconds.

    Raises:
        BQError: If the input string is not in a valid HH:MM:SS format.
    """
    pattern = re.compile(r"^\s*(\d+):([0-5]?\d):([0-5]?\d)(?:\.\d+)?\s*$")
    match = pattern.fullmatch(timestr)
    if not match:
        raise BQError(f"Invalid HH:MM:SS time string '{timestr}'.")

    hours, minutes, seconds = map(int, match.groups())

    return hours * 3600 + minutes * 60 + seconds


def duration_to_seconds(timestr: str) -> int:
    """
    Convert a duration reported by a batch system to a whole number of seconds.

    Accepts plain (possibly fractional) seconds with an optional 's' suffix
    ("30", "30s", "12.500s") as well as the HH:MM:SS format.

    Args:
        timestr (str): Duration to convert.

    Returns:
        int: The duration in whole seconds.

    Raises:
        BQError: If the string is not a recognized duration.
    """
    stripped = timestr.strip()
    if ":" in stripped:
        return hhmmss_to_seconds(stripped)

    try:
        return int(float(stripped.removesuffix("s")))
    except ValueError as e:
        raise BQError(f"Invalid duration '{timestr}'.") from e


def datetime_to_epoch(time: datetime) -> int:
    """
    Convert a datetime to whole epoch seconds.

    Naive datetimes are interpreted in the local timezone, same as the batch
    systems report them.
    """
    return int(time.timestamp())


def parse_datetime(raw: str, formats: list[str]) -> datetime:
    """
    Parse a timestamp trying each of the provided formats in order.

    Args:
        raw (str): The timestamp to parse.
        formats (list[str]): strptime formats to try.

    Returns:
        datetime: The parsed timestamp.

    Raises:
        BQError: If no format matches.
    """
    # some batch systems pad single-digit days with an extra space
    normalized = " ".join(raw.split())
    for fmt in formats:
        try:
            return datetime.strptime(normalized, fmt)
        except ValueError:
            continue

    raise BQError(f"Could not parse timestamp '{raw}' using formats {formats}.")
